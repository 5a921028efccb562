[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kindnodes"
version = "0.1.0"
description = "Manage local Kubernetes cluster nodes running as nerdctl or finch containers"
requires-python = ">=3.11"
keywords = ["kubernetes", "containers", "nerdctl", "finch", "cluster", "nodes"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
]
dependencies = []

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["kindnodes"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

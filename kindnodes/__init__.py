"""Work with local Kubernetes cluster nodes running as containers."""

__version__ = "0.1.0"
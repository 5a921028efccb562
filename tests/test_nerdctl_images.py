import subprocess
import time

import pytest

from kindnodes.nerdctl import images
from kindnodes.nodes import RunError

DIGEST = "sha256:69860bda5563ac81e3c0057d654b5253219618a22ec3a346306239bba8cfa1a6"


class FakeRunner:
    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        rc, out = self.handler(list(argv))
        stderr = b"" if kwargs.get("stderr") is subprocess.PIPE else None
        return subprocess.CompletedProcess(argv, rc, stdout=out, stderr=stderr)


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr(time, "sleep", recorded.append)
    return recorded


@pytest.mark.parametrize(
    "friendly",
    ["kindest/node:v1.21.1", "foo.bar/baz", "baz:quux"],
)
def test_sanitize_image_strips_digest_for_display(friendly):
    image = f"{friendly}@{DIGEST}"
    assert images.sanitize_image(image) == (friendly, image)


def test_sanitize_image_without_digest_is_unchanged():
    image = "kindest/node:v1.21.1"
    assert images.sanitize_image(image) == (image, image)


def test_pull_if_not_present_skips_present_image(monkeypatch):
    runner = FakeRunner(lambda argv: (0, b"[]"))
    monkeypatch.setattr(subprocess, "run", runner)
    assert images.pull_if_not_present("img:1", 4, "nerdctl") is False
    assert runner.calls == [["nerdctl", "inspect", "--type=image", "img:1"]]


def test_pull_if_not_present_pulls_missing_image(monkeypatch, sleeps):
    runner = FakeRunner(lambda argv: (1, b"") if argv[1] == "inspect" else (0, b""))
    monkeypatch.setattr(subprocess, "run", runner)
    assert images.pull_if_not_present("img:1", 4, "finch") is True
    assert runner.calls[-1] == ["finch", "pull", "img:1"]
    assert sleeps == []


def test_pull_retries_then_succeeds(monkeypatch, sleeps):
    results = iter([(1, b""), (1, b"x"), (1, b"x"), (0, b"")])
    runner = FakeRunner(lambda argv: next(results))
    monkeypatch.setattr(subprocess, "run", runner)
    assert images.pull_if_not_present("img:1", 4, "nerdctl") is True
    assert runner.calls[1:] == [["nerdctl", "pull", "img:1"]] * 3
    assert sleeps == [1, 2]


def test_pull_gives_up_after_retries(monkeypatch, sleeps):
    runner = FakeRunner(lambda argv: (1, b"denied"))
    monkeypatch.setattr(subprocess, "run", runner)
    with pytest.raises(RunError) as info:
        images.pull("img:1", 2, "nerdctl")
    assert len(runner.calls) == 3
    assert sleeps == [1, 2]
    assert "failed to pull image 'img:1'" in info.value.__notes__
import subprocess

import pytest

from kindnodes.nerdctl import network
from kindnodes.nodes import RunError

POOL_OVERLAP = (
    b"Error response from daemon: Pool overlaps with other one on this address space"
)


class FakeRunner:
    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        rc, out = self.handler(list(argv))
        stderr = b"" if kwargs.get("stderr") is subprocess.PIPE else None
        return subprocess.CompletedProcess(argv, rc, stdout=out, stderr=stderr)

    def creates(self):
        return [c for c in self.calls if c[1:3] == ["network", "create"]]


@pytest.mark.parametrize(
    "name, attempt, subnet",
    [
        ("kind", 0, "fc00:f853:ccd:e793::/64"),
        ("foo", 1, "fc00:8edf:7f02:ec8f::/64"),
        ("foo", 2, "fc00:9968:306b:2c65::/64"),
        ("kind2", 0, "fc00:444c:147a:44ab::/64"),
        ("kin", 0, "fc00:fcd9:c2be:8e23::/64"),
        ("mysupernetwork", 0, "fc00:7ae1:1e0d:b4d4::/64"),
    ],
)
def test_generate_ula_subnet_from_name(name, attempt, subnet):
    assert network.generate_ula_subnet_from_name(name, attempt) == subnet


def test_pool_overlap_error_detection():
    assert network.is_pool_overlap_error(RunError(["x"], POOL_OVERLAP, 1))
    assert network.is_pool_overlap_error(
        RunError(["x"], b"subnet: networks have overlapping IPv4", 1)
    )
    assert not network.is_pool_overlap_error(RunError(["x"], b"other", 1))
    assert not network.is_pool_overlap_error(ValueError("networks have overlapping"))


def test_ipv6_unavailable_error_detection():
    err = RunError(
        ["x"], b"Error response from daemon: Cannot read IPv6 setup for bridge", 1
    )
    assert network.is_ipv6_unavailable_error(err)
    assert not network.is_ipv6_unavailable_error(RunError(["x"], POOL_OVERLAP, 1))
    assert not network.is_ipv6_unavailable_error(ValueError("x"))


def test_create_network_arguments(monkeypatch):
    runner = FakeRunner(lambda argv: (0, b""))
    monkeypatch.setattr(subprocess, "run", runner)
    assert network.create_network("kind", "fc00::/64", 1400, "nerdctl") is None
    assert runner.calls == [
        [
            "nerdctl", "network", "create", "-d=bridge",
            "-o", "com.docker.network.driver.mtu=1400",
            "--ipv6", "--subnet", "fc00::/64", "kind",
        ]
    ]


def test_create_network_without_mtu_or_subnet(monkeypatch):
    runner = FakeRunner(lambda argv: (0, b""))
    monkeypatch.setattr(subprocess, "run", runner)
    assert network.create_network("kind", "", 0, "nerdctl") is None
    assert runner.calls == [["nerdctl", "network", "create", "-d=bridge", "kind"]]


@pytest.mark.parametrize(
    "rc, out, expected",
    [(0, b"1500\n", 1500), (0, b"abc\n", 0), (1, b"", 0), (0, b"1\n2\n", 0)],
)
def test_get_default_network_mtu(monkeypatch, rc, out, expected):
    monkeypatch.setattr(subprocess, "run", FakeRunner(lambda argv: (rc, out)))
    assert network.get_default_network_mtu("nerdctl") == expected


def test_check_if_network_exists(monkeypatch):
    monkeypatch.setattr(subprocess, "run", FakeRunner(lambda argv: (0, b"kind\n")))
    assert network.check_if_network_exists("kind", "nerdctl")
    monkeypatch.setattr(subprocess, "run", FakeRunner(lambda argv: (1, b"")))
    assert not network.check_if_network_exists("kind", "nerdctl")


def _handler(create_results, exists=False):
    results = iter(create_results)

    def handle(argv):
        if argv[1:3] == ["network", "inspect"]:
            if argv[3] == "bridge":
                return 0, b"1500\n"
            return (0, b"kind\n") if exists else (1, b"no such network")
        return next(results)

    return handle


def test_ensure_network_existing_does_not_create(monkeypatch):
    runner = FakeRunner(_handler([], exists=True))
    monkeypatch.setattr(subprocess, "run", runner)
    assert network.ensure_network("kind", "nerdctl") is None
    assert runner.creates() == []


def test_ensure_network_retries_on_pool_overlap(monkeypatch):
    runner = FakeRunner(_handler([(1, POOL_OVERLAP), (0, b"")]))
    monkeypatch.setattr(subprocess, "run", runner)
    assert network.ensure_network("kind", "nerdctl") is None
    creates = runner.creates()
    assert len(creates) == 2
    assert network.generate_ula_subnet_from_name("kind", 0) in creates[0]
    assert network.generate_ula_subnet_from_name("kind", 1) in creates[1]
    assert "com.docker.network.driver.mtu=1500" in creates[1]


def test_ensure_network_falls_back_to_ipv4(monkeypatch):
    unavailable = b"Error response from daemon: Cannot read IPv6 setup for bridge"
    runner = FakeRunner(_handler([(1, unavailable), (0, b"")]))
    monkeypatch.setattr(subprocess, "run", runner)
    assert network.ensure_network("kind", "nerdctl") is None
    creates = runner.creates()
    assert len(creates) == 2
    assert "--ipv6" not in creates[1]


def test_ensure_network_unknown_error_raises(monkeypatch):
    runner = FakeRunner(_handler([(1, b"boom")]))
    monkeypatch.setattr(subprocess, "run", runner)
    with pytest.raises(RunError):
        network.ensure_network("kind", "nerdctl")
    assert len(runner.creates()) == 1


def test_ensure_network_exhausts_attempts(monkeypatch):
    runner = FakeRunner(_handler([(1, POOL_OVERLAP)] * 5))
    monkeypatch.setattr(subprocess, "run", runner)
    with pytest.raises(RuntimeError, match="exhausted attempts"):
        network.ensure_network("kind", "nerdctl")
    assert len(runner.creates()) == 5
"""Creation of the container network the cluster nodes are attached to."""

from __future__ import annotations

import hashlib
import ipaddress
import struct

from ..nodes import Cmd, RunError

FIXED_NETWORK_NAME = "kind"

_MAX_ATTEMPTS = 5
_IPV6_UNAVAILABLE_PREFIX = (
    "Error response from daemon: Cannot read IPv6 setup for bridge"
)
_POOL_OVERLAP_PREFIX = (
    "Error response from daemon: Pool overlaps with other one on this address space"
)
_NETWORKS_OVERLAP = "networks have overlapping"


def generate_ula_subnet_from_name(name: str, attempt: int = 0) -> str:
    """Return an IPv6 ULA /64 derived from ``name`` and the probing attempt."""
    digest = hashlib.sha1(name.encode() + struct.pack("<i", attempt)).digest()
    address = bytes([0xFC, 0x00]) + digest[2:8] + bytes(8)
    return str(ipaddress.IPv6Network((address, 64)))


def create_network(name: str, ipv6_subnet: str, mtu: int, binary_name: str) -> None:
    """Create a bridge network, with an IPv6 subnet when one is given."""
    args = ["network", "create", "-d=bridge"]
    if mtu > 0:
        args += ["-o", f"com.docker.network.driver.mtu={mtu}"]
    if ipv6_subnet:
        args += ["--ipv6", "--subnet", ipv6_subnet]
    args.append(name)
    Cmd(binary_name, args).run()


def get_default_network_mtu(binary_name: str) -> int:
    """Return the MTU of the default bridge network, or 0 if it is unknown."""
    cmd = Cmd(
        binary_name,
        [
            "network",
            "inspect",
            "bridge",
            "-f",
            '{{ index .Options "com.docker.network.driver.mtu" }}',
        ],
    )
    try:
        lines = cmd.output_lines()
    except RunError:
        return 0
    if len(lines) != 1:
        return 0
    try:
        return int(lines[0])
    except ValueError:
        return 0


def check_if_network_exists(name: str, binary_name: str) -> bool:
    """Return whether a network called ``name`` exists."""
    cmd = Cmd(binary_name, ["network", "inspect", name, "--format={{.Name}}"])
    try:
        out = cmd.output()
    except RunError:
        return False
    return out.decode(errors="replace").startswith(name)


def _error_output(err: BaseException) -> str | None:
    if not isinstance(err, RunError):
        return None
    return err.output.decode(errors="replace")


def is_ipv6_unavailable_error(err: BaseException) -> bool:
    """Return whether ``err`` says IPv6 cannot be used on this host."""
    output = _error_output(err)
    return output is not None and output.startswith(_IPV6_UNAVAILABLE_PREFIX)


def is_pool_overlap_error(err: BaseException) -> bool:
    """Return whether ``err`` says the subnet overlaps an existing one."""
    output = _error_output(err)
    return output is not None and (
        output.startswith(_POOL_OVERLAP_PREFIX) or _NETWORKS_OVERLAP in output
    )


def ensure_network(name: str, binary_name: str) -> None:
    """Create the network ``name`` unless it already exists."""
    if check_if_network_exists(name, binary_name):
        return

    mtu = get_default_network_mtu(binary_name)
    try:
        create_network(name, generate_ula_subnet_from_name(name, 0), mtu, binary_name)
        return
    except RunError as err:
        if is_ipv6_unavailable_error(err):
            # IPv4 only: address management is automatic, one attempt
            create_network(name, "", mtu, binary_name)
            return
        if not is_pool_overlap_error(err):
            raise

    # an overlap may mean another process created the network meanwhile
    if check_if_network_exists(name, binary_name):
        return

    for attempt in range(1, _MAX_ATTEMPTS):
        subnet = generate_ula_subnet_from_name(name, attempt)
        try:
            create_network(name, subnet, mtu, binary_name)
            return
        except RunError as err:
            if not is_pool_overlap_error(err):
                raise
        if check_if_network_exists(name, binary_name):
            return
    raise RuntimeError("exhausted attempts trying to find a non-overlapping subnet")
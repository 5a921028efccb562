"""Helpers for selecting cluster nodes and working with their contents."""

from __future__ import annotations

import json
import posixpath
import tomllib
from typing import IO

from .nodes import Node, RunError

CONTROL_PLANE_ROLE = "control-plane"
WORKER_ROLE = "worker"
EXTERNAL_LOAD_BALANCER_ROLE = "external-load-balancer"


class NodeSelectionError(Exception):
    """The node list does not have the expected shape."""


def select_nodes_by_role(all_nodes: list[Node], role: str) -> list[Node]:
    """Return the nodes whose role is ``role``, in their original order."""
    return [node for node in all_nodes if node.role() == role]


def internal_nodes(all_nodes: list[Node]) -> list[Node]:
    """Return the Kubernetes nodes, leaving out e.g. an external load balancer."""
    return [
        node
        for node in all_nodes
        if node.role() in (WORKER_ROLE, CONTROL_PLANE_ROLE)
    ]


def external_load_balancer_node(all_nodes: list[Node]) -> Node | None:
    """Return the external load balancer node, or None if there is none."""
    balancers = select_nodes_by_role(all_nodes, EXTERNAL_LOAD_BALANCER_ROLE)
    if not balancers:
        return None
    if len(balancers) > 1:
        raise NodeSelectionError(
            f"unexpected number of {EXTERNAL_LOAD_BALANCER_ROLE} nodes {len(balancers)}"
        )
    return balancers[0]


def api_server_endpoint_node(all_nodes: list[Node]) -> Node:
    """Return the load balancer, or the only control plane when there is none."""
    try:
        balancer = external_load_balancer_node(all_nodes)
        if balancer is not None:
            return balancer
        planes = control_plane_nodes(all_nodes)
    except (NodeSelectionError, RunError, ValueError) as err:
        raise NodeSelectionError("failed to find api-server endpoint node") from err
    if len(planes) != 1:
        raise NodeSelectionError(
            f"expected one control plane node or a load balancer, not {len(planes)} and none"
        )
    return planes[0]


def control_plane_nodes(all_nodes: list[Node]) -> list[Node]:
    """Return the control plane nodes sorted by name; the first bootstraps."""
    return sorted(select_nodes_by_role(all_nodes, CONTROL_PLANE_ROLE), key=str)


def _require_control_planes(all_nodes: list[Node]) -> list[Node]:
    planes = control_plane_nodes(all_nodes)
    if not planes:
        raise NodeSelectionError(f"expected at least one {CONTROL_PLANE_ROLE} node")
    return planes


def bootstrap_control_plane_node(all_nodes: list[Node]) -> Node:
    """Return the bootstrap control plane node."""
    return _require_control_planes(all_nodes)[0]


def secondary_control_plane_nodes(all_nodes: list[Node]) -> list[Node]:
    """Return every control plane node except the bootstrap one."""
    return _require_control_planes(all_nodes)[1:]


def kube_version(node: Node) -> str:
    """Return the Kubernetes version installed on the node."""
    try:
        lines = node.command("cat", "/kind/version").output_lines()
    except RunError as err:
        err.add_note("failed to get file")
        raise
    if len(lines) != 1:
        raise ValueError(f"file should only be one line, got {len(lines)} lines")
    return lines[0]


def write_file(node: Node, dest: str, content: str | bytes) -> None:
    """Write ``content`` to ``dest`` on the node, creating its directory."""
    directory = posixpath.dirname(dest)
    try:
        node.command("mkdir", "-p", directory).run()
    except RunError as err:
        err.add_note(f"failed to create directory {directory}")
        raise
    cmd = node.command("cp", "/dev/stdin", dest)
    cmd.stdin = content
    cmd.run()


def copy_node_to_node(a: Node, b: Node, file: str) -> None:
    """Copy ``file`` from node ``a`` to the same path on node ``b``."""
    directory = posixpath.dirname(file)
    try:
        b.command("mkdir", "-p", directory).run()
    except RunError as err:
        err.add_note(f"failed to create directory {directory!r}")
        raise
    try:
        data = a.command("cat", file).output()
    except RunError as err:
        err.add_note(f"failed to read {file!r} from node")
        raise
    cmd = b.command("cp", "/dev/stdin", file)
    cmd.stdin = data
    try:
        cmd.run()
    except RunError as err:
        err.add_note(f"failed to write {file!r} to node")
        raise


def load_image_archive(node: Node, image: IO[bytes] | bytes) -> None:
    """Import an image archive into the node's containerd."""
    snapshotter = _get_snapshotter(node)
    cmd = node.command(
        "ctr",
        "--namespace=k8s.io",
        "images",
        "import",
        "--all-platforms",
        "--digests",
        f"--snapshotter={snapshotter}",
        "-",
    )
    cmd.stdin = image
    try:
        cmd.run()
    except RunError as err:
        err.add_note("failed to load image")
        raise


def _get_snapshotter(node: Node) -> str:
    try:
        out = node.command("containerd", "config", "dump").output()
    except RunError as err:
        err.add_note("failed to detect containerd snapshotter")
        raise
    return parse_snapshotter(out.decode(errors="replace"))


def parse_snapshotter(config: str) -> str:
    """Return the CRI snapshotter named in a containerd TOML config."""
    try:
        value: object = tomllib.loads(config)
    except tomllib.TOMLDecodeError as err:
        raise ValueError("failed to detect containerd snapshotter") from err
    for key in ("plugins", "io.containerd.grpc.v1.cri", "containerd", "snapshotter"):
        if not isinstance(value, dict) or key not in value:
            raise ValueError("failed to detect containerd snapshotter")
        value = value[key]
    if not isinstance(value, str):
        raise ValueError("failed to detect containerd snapshotter")
    return value


def _inspect_image_status(node: Node, image: str) -> dict:
    out = node.command("crictl", "inspecti", image).output()
    status = json.loads(out).get("status")
    return status if isinstance(status, dict) else {}


def image_id(node: Node, image: str) -> str:
    """Return the ID of ``image`` on the node."""
    return _inspect_image_status(node, image).get("id") or ""


def image_tags(node: Node, image_id: str) -> set[str]:
    """Return the repository tags that point at ``image_id`` on the node."""
    return set(_inspect_image_status(node, image_id).get("repoTags") or [])


def re_tag_image(node: Node, image_id: str, image_name: str) -> None:
    """Tag ``image_id`` on the node as ``image_name``."""
    node.command(
        "ctr", "--namespace=k8s.io", "images", "tag", "--force", image_id, image_name
    ).output()
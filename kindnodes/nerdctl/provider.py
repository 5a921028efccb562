"""Cluster node infrastructure backed by nerdctl (or finch)."""

from __future__ import annotations

import csv
import io
import json
import logging
import shutil
from dataclasses import dataclass, field

from ..nodes import Cmd, Node, RunError
from ..nodeutils import api_server_endpoint_node
from ..providers.base import Provider, ProviderInfo
from .node import CLUSTER_LABEL_KEY, NerdctlNode

log = logging.getLogger(__name__)

API_SERVER_INTERNAL_PORT = 6443


def _join_host_port(host: str, port: str | int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def parse_info(output: str | bytes) -> ProviderInfo:
    """Build provider info from ``info --format '{{json .}}'`` output."""
    data = json.loads(output)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("runtime info should be a JSON object")

    cgroup2 = data.get("CgroupVersion") == "2"
    # with the "none" cgroup driver the limit flags carry no meaning
    limits_known = data.get("CgroupDriver") != "none"
    rootless = False
    for option in data.get("SecurityOptions") or []:
        # an option looks like "name=seccomp,profile=default" or "name=rootless"
        for row in csv.reader(io.StringIO(option)):
            if "name=rootless" in row:
                rootless = True

    return ProviderInfo(
        rootless=rootless,
        cgroup2=cgroup2,
        supports_memory_limit=limits_known and bool(data.get("MemoryLimit")),
        supports_pids_limit=limits_known and bool(data.get("PidsLimit")),
        supports_cpu_shares=limits_known and bool(data.get("CPUShares")),
    )


def _query_info(binary_name: str) -> ProviderInfo:
    try:
        out = Cmd(binary_name, ["info", "--format", "{{json .}}"]).output()
    except RunError as err:
        err.add_note("failed to get nerdctl info")
        raise
    return parse_info(out)


def mount_fuse(binary_name: str) -> bool:
    """Return whether ``/dev/fuse`` should be passed to nodes (rootless runtime)."""
    try:
        return _query_info(binary_name).rootless
    except (RunError, ValueError):
        return False


@dataclass
class NerdctlProvider(Provider):
    """A provider that drives nodes through the nerdctl command line."""

    binary_name: str = "nerdctl"
    _info: ProviderInfo | None = field(default=None, init=False, repr=False)

    def __str__(self) -> str:
        return "nerdctl"

    def _node(self, name: str) -> NerdctlNode:
        return NerdctlNode(name=name, binary_name=self.binary_name)

    def list_clusters(self) -> list[str]:
        cmd = Cmd(
            self.binary_name,
            [
                "ps",
                "-a",
                "--filter",
                f"label={CLUSTER_LABEL_KEY}",
                "--format",
                f'{{{{index .Labels "{CLUSTER_LABEL_KEY}"}}}}',
            ],
        )
        try:
            lines = cmd.output_lines()
        except RunError as err:
            err.add_note("failed to list clusters")
            raise
        return sorted(set(lines))

    def list_nodes(self, cluster: str) -> list[Node]:
        cmd = Cmd(
            self.binary_name,
            [
                "ps",
                "-a",
                "--filter",
                f"label={CLUSTER_LABEL_KEY}={cluster}",
                "--format",
                "{{.Names}}",
            ],
        )
        try:
            lines = cmd.output_lines()
        except RunError as err:
            err.add_note("failed to list nodes")
            raise
        return [self._node(name) for name in lines if name]

    def delete_nodes(self, nodes: list[Node]) -> None:
        if not nodes:
            return
        names = [str(node) for node in nodes]
        steps = [
            (["update", "--restart=no"], "failed to update restart policy to 'no'"),
            (["stop"], "failed to stop nodes"),
            (["wait"], "failed to wait for node exit"),
            (["rm", "-f", "-v"], "failed to delete nodes"),
        ]
        for args, note in steps:
            try:
                Cmd(self.binary_name, [*args, *names]).run()
            except RunError as err:
                err.add_note(note)
                raise

    def _endpoint_node(self, cluster: str) -> Node:
        try:
            all_nodes = self.list_nodes(cluster)
        except RunError as err:
            err.add_note("failed to list nodes")
            raise
        try:
            return api_server_endpoint_node(all_nodes)
        except Exception as err:
            err.add_note("failed to get api server endpoint")
            raise

    def _inspect_lines(self, node: Node, template: str) -> list[str]:
        cmd = Cmd(self.binary_name, ["inspect", "--format", template, str(node)])
        try:
            return cmd.output_lines()
        except RunError as err:
            err.add_note("failed to get api server port")
            raise

    def get_api_server_endpoint(self, cluster: str) -> str:
        node = self._endpoint_node(cluster)

        # a desktop port label, when present, holds the endpoint directly
        lines = self._inspect_lines(
            node,
            f'{{{{ index .Config.Labels "desktop.docker.io/ports/'
            f'{API_SERVER_INTERNAL_PORT}/tcp" }}}}',
        )
        if len(lines) == 1 and lines[0]:
            return lines[0]

        lines = self._inspect_lines(
            node,
            f'{{{{ with (index (index .NetworkSettings.Ports "'
            f'{API_SERVER_INTERNAL_PORT}/tcp") 0) }}}}'
            '{{ printf "%s\t%s" .HostIp .HostPort }}{{ end }}',
        )
        if len(lines) != 1:
            raise ValueError(
                f"network details should only be one line, got {len(lines)} lines"
            )
        parts = lines[0].split("\t")
        if len(parts) != 2:
            raise ValueError(
                f"network details should only be two parts, got {len(parts)}"
            )
        return _join_host_port(parts[0], parts[1])

    def get_api_server_internal_endpoint(self, cluster: str) -> str:
        node = self._endpoint_node(cluster)
        # node hostnames are their names
        return _join_host_port(str(node), API_SERVER_INTERNAL_PORT)

    def info(self) -> ProviderInfo:
        if self._info is None:
            self._info = _query_info(self.binary_name)
        return self._info


def new_provider(binary_name: str = "") -> NerdctlProvider:
    """Return a provider; without a binary name use nerdctl, else finch if found."""
    if not binary_name:
        binary_name = "nerdctl"
        if shutil.which("nerdctl") is None and shutil.which("finch") is not None:
            binary_name = "finch"
    return NerdctlProvider(binary_name=binary_name)
"""Node handles backed by nerdctl (or finch) containers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import IO, Any

from ..nodes import Cmd, Node, RunError

CLUSTER_LABEL_KEY = "io.x-k8s.kind.cluster"
NODE_ROLE_LABEL_KEY = "io.x-k8s.kind.role"


@dataclass
class _NodeCmd(Cmd):
    """A command run inside a node container through ``exec``."""

    container: str = ""

    def _argv(self) -> list[str]:
        argv = [self.program, "exec", "--privileged"]
        if self.stdin is not None:
            argv.append("-i")
        for entry in self.env or ():
            argv += ["-e", entry]
        return [*argv, self.container, *self.args]

    def _environ(self) -> dict[str, str] | None:
        return None


@dataclass
class NerdctlNode(Node):
    """A cluster node running as a nerdctl container."""

    name: str
    binary_name: str = "nerdctl"

    def __str__(self) -> str:
        return self.name

    def role(self) -> str:
        cmd = Cmd(
            self.binary_name,
            [
                "inspect",
                "--format",
                f'{{{{ index .Config.Labels "{NODE_ROLE_LABEL_KEY}"}}}}',
                self.name,
            ],
        )
        try:
            lines = cmd.output_lines()
        except RunError as err:
            err.add_note("failed to get role for node")
            raise
        if len(lines) != 1:
            raise ValueError(
                f"failed to get role for node: output lines {len(lines)} != 1"
            )
        return lines[0]

    def ip(self) -> tuple[str, str]:
        cmd = Cmd(
            self.binary_name,
            [
                "inspect",
                "-f",
                "{{range .NetworkSettings.Networks}}"
                "{{.IPAddress}},{{.GlobalIPv6Address}}{{end}}",
                self.name,
            ],
        )
        try:
            lines = cmd.output_lines()
        except RunError as err:
            err.add_note("failed to get container details")
            raise
        if len(lines) != 1:
            raise ValueError(f"file should only be one line, got {len(lines)} lines")
        ips = lines[0].split(",")
        if len(ips) != 2:
            raise ValueError(
                f"container addresses should have 2 values, got {len(ips)} values"
            )
        return ips[0], ips[1]

    def command(self, command: str, *args: str) -> Cmd:
        return _NodeCmd(
            program=self.binary_name, args=[command, *args], container=self.name
        )

    def serial_logs(self, writer: IO[Any]) -> None:
        Cmd(
            self.binary_name, ["logs", self.name], stdout=writer, stderr=writer
        ).run()


def _version_line(binary_name: str) -> str | None:
    try:
        lines = Cmd(binary_name, ["-v"]).output_lines()
    except RunError:
        return None
    return lines[0] if len(lines) == 1 else None


def is_available() -> bool:
    """Return whether nerdctl, or failing that finch, can be run."""
    line = _version_line("nerdctl")
    if line is not None:
        return line.startswith("nerdctl version")
    line = _version_line("finch")
    return line is not None and line.startswith("finch version")
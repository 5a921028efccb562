"""Cluster node handles and the commands that are run against them."""

from __future__ import annotations

import abc
import io
import shlex
import subprocess
from dataclasses import dataclass, field
from typing import IO, Any

Input = bytes | str | IO[bytes] | IO[str] | None


class RunError(Exception):
    """A command could not be started or exited unsuccessfully."""

    def __init__(
        self,
        command: list[str],
        output: bytes = b"",
        returncode: int | None = None,
        reason: str | None = None,
    ) -> None:
        self.command = list(command)
        self.output = output
        self.returncode = returncode
        if reason is None:
            reason = (
                "could not be started"
                if returncode is None
                else f"failed with exit code {returncode}"
            )
        super().__init__(f"command {shlex.join(self.command)!r} {reason}")


def _read_input(source: Input) -> bytes | None:
    if source is None:
        return None
    if isinstance(source, bytes):
        return source
    if isinstance(source, str):
        return source.encode()
    data = source.read()
    return data.encode() if isinstance(data, str) else data


def _write(writer: IO[Any], data: bytes) -> None:
    if not data:
        return
    if isinstance(writer, io.TextIOBase):
        writer.write(data.decode(errors="replace"))
    else:
        writer.write(data)


@dataclass
class Cmd:
    """A command line ready to be run.

    ``env`` replaces the environment with ``KEY=VALUE`` entries when given.
    Without ``stdin`` the command reads from the null device.
    """

    program: str
    args: list[str] = field(default_factory=list)
    env: list[str] | None = None
    stdin: Input = None
    stdout: IO[Any] | None = None
    stderr: IO[Any] | None = None
    timeout: float | None = None

    def __post_init__(self) -> None:
        self.args = list(self.args)

    def _argv(self) -> list[str]:
        return [self.program, *self.args]

    def _environ(self) -> dict[str, str] | None:
        if self.env is None:
            return None
        return dict(entry.partition("=")[::2] for entry in self.env)

    def _execute(self, capture: bool) -> bytes:
        argv = self._argv()
        data = _read_input(self.stdin)
        shared_writer = self.stdout is not None and self.stdout is self.stderr
        merge = shared_writer or (
            not capture and self.stdout is None and self.stderr is None
        )
        stdin_kwargs: dict[str, Any] = (
            {"stdin": subprocess.DEVNULL} if data is None else {"input": data}
        )
        try:
            proc = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge else subprocess.PIPE,
                env=self._environ(),
                timeout=self.timeout,
                check=False,
                **stdin_kwargs,
            )
        except subprocess.TimeoutExpired as err:
            raise RunError(
                argv, err.output or b"", reason=f"timed out after {self.timeout}s"
            ) from err
        except OSError as err:
            raise RunError(argv) from err

        out = proc.stdout or b""
        errout = proc.stderr or b""
        captured = b""
        undelivered = b""
        if capture:
            captured = out
        elif self.stdout is not None:
            _write(self.stdout, out)
        else:
            undelivered += out
        if self.stderr is not None:
            _write(self.stderr, errout)
        else:
            undelivered += errout
        if proc.returncode != 0:
            raise RunError(argv, undelivered, proc.returncode)
        return captured

    def run(self) -> None:
        """Run the command, streaming output to the configured writers."""
        self._execute(capture=False)

    def output(self) -> bytes:
        """Run the command and return what it wrote to standard output."""
        return self._execute(capture=True)

    def output_lines(self) -> list[str]:
        """Run the command and return its standard output split into lines."""
        text = self.output().decode(errors="replace")
        lines = text.split("\n")
        if lines[-1] == "":
            lines.pop()
        return [line.removesuffix("\r") for line in lines]


class Node(abc.ABC):
    """A cluster node; ``str(node)`` is the node name."""

    name: str

    def __str__(self) -> str:
        return self.name

    @abc.abstractmethod
    def role(self) -> str:
        """Return the node's role."""

    @abc.abstractmethod
    def ip(self) -> tuple[str, str]:
        """Return the node's IPv4 and IPv6 addresses."""

    @abc.abstractmethod
    def command(self, command: str, *args: str) -> Cmd:
        """Return a command that runs on the node."""

    @abc.abstractmethod
    def serial_logs(self, writer: IO[Any]) -> None:
        """Write the node container's logs to ``writer``."""
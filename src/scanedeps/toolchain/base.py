"""Protocol for the OS binary tools the bundler drives, plus subprocess helpers."""

from __future__ import annotations

import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from scanedeps.errors import ToolExecutionError


@dataclass(frozen=True, slots=True)
class ToolResult:
    argv: tuple[str, ...]
    status: int
    output: tuple[str, ...]


class Toolchain(Protocol):
    name: str

    def prepare(self) -> None:
        """Verify that the required tools are available."""

    def describe_references(self, path: Path) -> list[str]:
        """Return the raw reference listing lines for *path*."""

    def list_architectures(self, path: Path) -> tuple[str, ...]:
        """Return the architectures contained in *path*."""

    def set_identity(self, path: Path, identity: str) -> None:
        """Rewrite the install name of *path*."""

    def change_reference(self, path: Path, old: str, new: str) -> None:
        """Rewrite one linked-library reference of *path*."""

    def merge_architectures(self, output: Path, slices: Mapping[str, Path]) -> None:
        """Combine one slice per architecture into a universal binary at *output*."""

    def sign_adhoc(self, path: Path) -> None:
        """Apply an identity-less signature without a timestamp."""

    def mirror_tree(self, source: Path, destination: Path) -> None:
        """Make *destination* an exact recursive copy of *source*."""


def run_tool(
    argv: Sequence[str],
    *,
    operation: str,
    timeout: float | None = None,
    cwd: Path | None = None,
) -> ToolResult:
    """Run *argv*, capturing stdout and stderr together.

    Raises :class:`ToolExecutionError` when the executable is missing, the
    call times out, or the exit status is non-zero. The captured output is
    carried verbatim in the error context.
    """
    command = [str(item) for item in argv]
    try:
        completed = subprocess.run(
            command,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise ToolExecutionError(
            f"`{command[0]}` is not available.",
            hint="Install the Xcode command line tools and ensure they are in PATH.",
            context={"operation": operation, "command": " ".join(command)},
        ) from exc
    except subprocess.TimeoutExpired as exc:
        output = exc.output if isinstance(exc.output, str) else ""
        raise ToolExecutionError(
            f"`{command[0]}` timed out.",
            hint="Re-run once the tool is responsive, or raise tool_timeout.",
            context={
                "operation": operation,
                "command": " ".join(command),
                "timeout": str(timeout),
                "output": output,
            },
        ) from exc

    output = completed.stdout or ""
    if completed.returncode != 0:
        raise ToolExecutionError(
            f"`{command[0]}` failed.",
            hint="Check the tool output below for details.",
            context={
                "operation": operation,
                "command": " ".join(command),
                "returncode": str(completed.returncode),
                "output": output.rstrip("\n"),
            },
        )
    return ToolResult(
        argv=tuple(command),
        status=completed.returncode,
        output=tuple(output.splitlines()),
    )

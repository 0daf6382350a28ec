"""Native macOS toolchain: lipo, otool, install_name_tool, codesign and rsync."""

from __future__ import annotations

import shutil
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from scanedeps.errors import ToolExecutionError
from scanedeps.toolchain.base import run_tool

REQUIRED_TOOLS = ("lipo", "otool", "install_name_tool", "codesign", "rsync")


@dataclass(slots=True)
class DarwinToolchain:
    name: str = "darwin"
    timeout: float | None = 600.0

    def prepare(self) -> None:
        if sys.platform != "darwin":
            raise ToolExecutionError(
                "Darwin toolchain requires a macOS host.",
                hint="Run the bundler on macOS with the Xcode command line tools installed.",
                context={"toolchain": self.name, "operation": "prepare"},
            )
        missing = [tool for tool in REQUIRED_TOOLS if shutil.which(tool) is None]
        if missing:
            raise ToolExecutionError(
                "Darwin toolchain is missing required tools.",
                hint="Install the Xcode command line tools (`xcode-select --install`).",
                context={
                    "toolchain": self.name,
                    "operation": "prepare",
                    "missing": ", ".join(missing),
                },
            )

    def describe_references(self, path: Path) -> list[str]:
        result = run_tool(
            ["otool", "-L", "-X", str(path)],
            operation="inspect_references",
            timeout=self.timeout,
        )
        return list(result.output)

    def list_architectures(self, path: Path) -> tuple[str, ...]:
        result = run_tool(
            ["lipo", "-archs", str(path)],
            operation="list_architectures",
            timeout=self.timeout,
        )
        return tuple(" ".join(result.output).split())

    def set_identity(self, path: Path, identity: str) -> None:
        run_tool(
            ["install_name_tool", "-id", identity, str(path)],
            operation="set_identity",
            timeout=self.timeout,
        )

    def change_reference(self, path: Path, old: str, new: str) -> None:
        run_tool(
            ["install_name_tool", "-change", old, new, str(path)],
            operation="change_reference",
            timeout=self.timeout,
        )

    def merge_architectures(self, output: Path, slices: Mapping[str, Path]) -> None:
        argv = ["lipo", "-create"]
        for arch, slice_path in slices.items():
            argv.extend(["-arch", arch, str(slice_path)])
        argv.extend(["-output", str(output)])
        run_tool(argv, operation="merge_architectures", timeout=self.timeout)

    def sign_adhoc(self, path: Path) -> None:
        run_tool(
            ["codesign", "--force", "--sign", "-", "--timestamp=none", str(path)],
            operation="sign_adhoc",
            timeout=self.timeout,
        )

    def mirror_tree(self, source: Path, destination: Path) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        # Trailing slashes copy the contents of source into destination itself.
        run_tool(
            ["rsync", "-rtvh", "--delete", f"{source}/", f"{destination}/"],
            operation="mirror_tree",
            timeout=self.timeout,
        )

"""Reference table inspection for Mach-O binaries."""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

from scanedeps.errors import InspectionError
from scanedeps.toolchain.base import Toolchain

# "\t@@HOMEBREW_PREFIX@@/opt/libusb/lib/libusb-1.0.0.dylib (compatibility version 4.0.0, ...)"
# Paths may contain spaces when a version detail follows.
REFERENCE_LINE = re.compile(
    r"^\s*(?P<path>\S(?:.*?\S)?)\s+\((?P<detail>[^()]*\bversion\b[^()]*)\)\s*$"
)
BARE_REFERENCE_LINE = re.compile(r"^\s*(?P<path>\S+)\s*$")
# Fat files list one table per slice, each introduced by an architecture header.
ARCH_HEADER_LINE = re.compile(r"^\S.*\(architecture [\w-]+\):\s*$")


def parse_reference_listing(lines: Iterable[str], *, binary: str | Path = "") -> list[str]:
    """Return the path of every reference line, in order."""
    references: list[str] = []
    for number, line in enumerate(lines, start=1):
        if not line.strip() or ARCH_HEADER_LINE.match(line):
            continue
        match = REFERENCE_LINE.match(line) or BARE_REFERENCE_LINE.match(line)
        if match is None or match.group("path").endswith(":"):
            raise InspectionError(
                "Unexpected reference listing format.",
                hint="Expected one `<path> (compatibility version ...)` entry per line.",
                context={
                    "operation": "inspect_references",
                    "binary": str(binary),
                    "line": str(number),
                    "text": line.strip(),
                },
            )
        references.append(match.group("path"))
    return references


def inspect_references(toolchain: Toolchain, binary: Path) -> list[str]:
    return parse_reference_listing(toolchain.describe_references(binary), binary=binary)


__all__ = ["inspect_references", "parse_reference_listing"]

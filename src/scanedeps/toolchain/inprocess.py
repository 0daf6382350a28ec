"""In-process toolchain for testing and development.

Simulates Mach-O reference tables in memory instead of invoking Apple's tools.
Each simulated binary is also written to disk as a deterministic text
rendering of its state, so digests, existence checks and directory listings
behave the same as with real binaries. Suitable for:
- Unit tests of planning, patching and assembly
- Running the pipeline on hosts without the Xcode command line tools
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from scanedeps.errors import ToolExecutionError

REFERENCE_DETAIL = "(compatibility version 1.0.0, current version 1.0.0)"


@dataclass(slots=True)
class FakeSlice:
    arch: str
    install_name: str | None = None
    references: list[str] = field(default_factory=list)


@dataclass(slots=True)
class FakeBinary:
    slices: list[FakeSlice] = field(default_factory=list)
    signed: bool = False

    @property
    def architectures(self) -> tuple[str, ...]:
        return tuple(item.arch for item in self.slices)

    @property
    def install_names(self) -> set[str | None]:
        return {item.install_name for item in self.slices}

    def render(self) -> str:
        lines = [f"fake-macho signed={self.signed}"]
        for item in self.slices:
            lines.append(f"[{item.arch}] id={item.install_name or ''}")
            lines.extend(f"[{item.arch}] load={reference}" for reference in item.references)
        return "\n".join(lines) + "\n"


@dataclass(slots=True)
class InProcessToolchain:
    """Toolchain that records every call and edits simulated reference tables."""

    name: str = "inprocess"
    binaries: dict[Path, FakeBinary] = field(default_factory=dict)
    calls: list[tuple[str, ...]] = field(default_factory=list)
    raw_listings: dict[Path, list[str]] = field(default_factory=dict)
    fail_on: set[str] = field(default_factory=set)

    def add_slice(
        self,
        path: Path,
        *,
        arch: str,
        install_name: str | None = None,
        references: Iterable[str] = (),
    ) -> Path:
        """Create a single-architecture binary at *path*."""
        binary = FakeBinary(
            slices=[FakeSlice(arch=arch, install_name=install_name, references=list(references))]
        )
        self.binaries[_key(path)] = binary
        self._write(path, binary)
        return path

    def binary(self, path: Path) -> FakeBinary:
        return self.binaries[_key(path)]

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    def prepare(self) -> None:
        self._record("prepare")

    def describe_references(self, path: Path) -> list[str]:
        self._record("describe_references", str(path))
        if _key(path) in self.raw_listings:
            return list(self.raw_listings[_key(path)])
        binary = self._require(path, operation="describe_references")
        lines: list[str] = []
        for item in binary.slices:
            if item.install_name:
                lines.append(f"\t{item.install_name} {REFERENCE_DETAIL}")
            lines.extend(f"\t{reference} {REFERENCE_DETAIL}" for reference in item.references)
        return lines

    def list_architectures(self, path: Path) -> tuple[str, ...]:
        self._record("list_architectures", str(path))
        return self._require(path, operation="list_architectures").architectures

    def set_identity(self, path: Path, identity: str) -> None:
        self._record("set_identity", str(path), identity)
        binary = self._require(path, operation="set_identity")
        for item in binary.slices:
            item.install_name = identity
        binary.signed = False
        self._write(path, binary)

    def change_reference(self, path: Path, old: str, new: str) -> None:
        self._record("change_reference", str(path), old, new)
        binary = self._require(path, operation="change_reference")
        for item in binary.slices:
            item.references = [new if reference == old else reference for reference in item.references]
        binary.signed = False
        self._write(path, binary)

    def merge_architectures(self, output: Path, slices: Mapping[str, Path]) -> None:
        self._record("merge_architectures", str(output), *(f"{a}={p}" for a, p in slices.items()))
        merged = FakeBinary()
        for arch, slice_path in slices.items():
            source = self._require(slice_path, operation="merge_architectures")
            if source.architectures != (arch,):
                raise ToolExecutionError(
                    "`lipo` failed.",
                    context={
                        "operation": "merge_architectures",
                        "output": f"{slice_path}: architecture does not match -arch {arch}",
                    },
                )
            only = source.slices[0]
            merged.slices.append(
                FakeSlice(
                    arch=arch,
                    install_name=only.install_name,
                    references=list(only.references),
                )
            )
        self.binaries[_key(output)] = merged
        self._write(output, merged)

    def sign_adhoc(self, path: Path) -> None:
        self._record("sign_adhoc", str(path))
        binary = self._require(path, operation="sign_adhoc")
        binary.signed = True
        self._write(path, binary)

    def mirror_tree(self, source: Path, destination: Path) -> None:
        self._record("mirror_tree", str(source), str(destination))
        if not source.is_dir():
            raise ToolExecutionError(
                "`rsync` failed.",
                context={
                    "operation": "mirror_tree",
                    "output": f'rsync: change_dir "{source}" failed: No such file or directory (2)',
                },
            )
        if destination.exists():
            shutil.rmtree(destination)
        shutil.copytree(source, destination, symlinks=True)

    def _record(self, operation: str, *args: str) -> None:
        self.calls.append((operation, *args))
        if operation in self.fail_on:
            raise ToolExecutionError(
                f"Simulated `{operation}` failure.",
                context={"operation": operation, "output": "simulated failure"},
            )

    def _require(self, path: Path, *, operation: str) -> FakeBinary:
        binary = self.binaries.get(_key(path))
        if binary is None or not Path(path).is_file():
            raise ToolExecutionError(
                "Tool input is not a known binary.",
                context={"operation": operation, "path": str(path)},
            )
        return binary

    def _write(self, path: Path, binary: FakeBinary) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(binary.render(), encoding="utf-8")


def _key(path: Path) -> Path:
    return Path(path).absolute()

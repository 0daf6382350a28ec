"""Core typed dataclasses for dependency descriptors, rewrite plans and results."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Literal

Classification = Literal["self", "foreign-dependency", "ignore"]


class PipelineState(StrEnum):
    INIT = "init"
    FETCH_ALL = "fetch_all"
    MERGE_ROOTS = "merge_roots"
    MERGE_PLUGINS = "merge_plugins"
    COPY_AUX = "copy_aux"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class DependencyDescriptor:
    """One upstream library shipped in the bundle.

    :ivar lib_name: Unversioned library prefix used for matching references,
        e.g. ``libpng`` matches ``libpng16.16.dylib``.
    :ivar target_name: Filename the merged library is shipped under.
    :ivar fingerprints: Architecture identifier to expected archive sha256.
    """

    name: str
    version: str
    lib_name: str
    target_name: str
    fingerprints: Mapping[str, str] = field(default_factory=dict)

    @property
    def architectures(self) -> tuple[str, ...]:
        return tuple(self.fingerprints)

    def fingerprint(self, arch: str) -> str:
        return self.fingerprints[arch]


@dataclass(frozen=True, slots=True)
class RewriteDecision:
    """Planned treatment of one reference found in a binary."""

    reference: str
    classification: Classification
    canonical_name: str | None = None
    replacement: str | None = None

    @property
    def actionable(self) -> bool:
        return self.classification != "ignore"


@dataclass(frozen=True, slots=True)
class StagedArtifact:
    """Unpacked upstream archive for one (dependency, architecture) pair."""

    descriptor: DependencyDescriptor
    arch: str
    root: Path

    @property
    def prefix(self) -> Path:
        return self.root / self.descriptor.name / self.descriptor.version

    @property
    def lib_dir(self) -> Path:
        return self.prefix / "lib"


@dataclass(frozen=True, slots=True)
class UniversalBinary:
    path: Path
    architectures: tuple[str, ...]
    decisions: tuple[RewriteDecision, ...] = ()
    sha256: str = ""

    @property
    def applied(self) -> tuple[RewriteDecision, ...]:
        return tuple(decision for decision in self.decisions if decision.actionable)


@dataclass(slots=True)
class BundleResult:
    root: Path
    state: PipelineState = PipelineState.INIT
    binaries: list[UniversalBinary] = field(default_factory=list)
    aux_trees: list[Path] = field(default_factory=list)
    logs: list[dict[str, Any]] = field(default_factory=list)

    def binary(self, name: str) -> UniversalBinary:
        for item in self.binaries:
            if item.path.name == name:
                return item
        raise KeyError(name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": str(self.root),
            "state": self.state.value,
            "binaries": [
                {
                    "path": str(item.path.relative_to(self.root)),
                    "architectures": list(item.architectures),
                    "sha256": item.sha256,
                    "rewrites": {
                        decision.reference: decision.replacement for decision in item.applied
                    },
                }
                for item in self.binaries
            ],
            "aux_trees": [str(path.relative_to(self.root)) for path in self.aux_trees],
            "logs": list(self.logs),
        }


__all__ = [
    "BundleResult",
    "Classification",
    "DependencyDescriptor",
    "PipelineState",
    "RewriteDecision",
    "StagedArtifact",
    "UniversalBinary",
]

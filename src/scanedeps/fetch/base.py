"""Fetcher protocol and disjoint per-(dependency, architecture) staging areas."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from scanedeps.models import DependencyDescriptor, StagedArtifact


@dataclass(frozen=True, slots=True)
class StagingArea:
    root: Path

    def artifact_dir(self, descriptor: DependencyDescriptor, arch: str) -> Path:
        return self.root / f"{descriptor.name}-{arch}"

    def archive_path(self, descriptor: DependencyDescriptor, arch: str) -> Path:
        return self.root / f"{descriptor.name}-{arch}.tar.gz"

    def staged(self, descriptor: DependencyDescriptor, arch: str) -> StagedArtifact:
        return StagedArtifact(
            descriptor=descriptor,
            arch=arch,
            root=self.artifact_dir(descriptor, arch),
        )


class Fetcher(Protocol):
    def fetch(
        self,
        descriptor: DependencyDescriptor,
        arch: str,
        staging: StagingArea,
    ) -> StagedArtifact:
        """Retrieve and unpack one architecture of *descriptor*."""

"""Integrity-enforced bottle fetch and extraction."""

from __future__ import annotations

import hashlib
import os
import shutil
import tarfile
from dataclasses import dataclass
from pathlib import Path
from urllib.request import Request, urlopen

from scanedeps.config import GHCR_URL_TEMPLATE
from scanedeps.errors import FetchError, ReproducibilityError, ValidationError
from scanedeps.fetch.base import StagingArea
from scanedeps.models import DependencyDescriptor, StagedArtifact


@dataclass(frozen=True, slots=True)
class HttpFetcher:
    url_template: str = GHCR_URL_TEMPLATE
    auth_token: str | None = None
    timeout: float | None = 300.0

    def url_for(self, descriptor: DependencyDescriptor, arch: str) -> str:
        return self.url_template.format(
            name=descriptor.name,
            version=descriptor.version,
            arch=arch,
            sha256=self._fingerprint(descriptor, arch),
        )

    def fetch(
        self,
        descriptor: DependencyDescriptor,
        arch: str,
        staging: StagingArea,
    ) -> StagedArtifact:
        """Download, verify and unpack one bottle; safe to re-run."""
        sha256 = self._fingerprint(descriptor, arch)
        archive_path = staging.archive_path(descriptor, arch)
        archive_path.parent.mkdir(parents=True, exist_ok=True)

        if not _hash_matches(archive_path, expected_sha256=sha256):
            self._download(self.url_for(descriptor, arch), archive_path, sha256=sha256)

        staged = staging.staged(descriptor, arch)
        _extract(archive_path, staged.root)
        if not staged.prefix.is_dir():
            raise FetchError(
                "Archive does not contain the expected install prefix.",
                hint="Check the dependency name and version against the upstream archive.",
                context={
                    "operation": "fetch",
                    "archive": str(archive_path),
                    "expected": f"{descriptor.name}/{descriptor.version}",
                },
            )
        return staged

    def _download(self, url: str, archive_path: Path, *, sha256: str) -> None:
        headers = {}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        request = Request(url, headers=headers)
        try:
            with urlopen(request, timeout=self.timeout) as response:  # noqa: S310 - integrity check is mandatory below
                payload = response.read()
        except OSError as exc:
            raise FetchError(
                "Artifact download failed.",
                hint="Check network access and the configured URL template.",
                context={"operation": "fetch", "url": url, "error": str(exc)},
            ) from exc

        actual_sha256 = hashlib.sha256(payload).hexdigest()
        if actual_sha256 != sha256:
            raise ReproducibilityError(
                "Fetched content hash mismatch.",
                hint="Update the expected fingerprint or source URL to a trusted immutable artifact.",
                context={"operation": "fetch", "url": url, "expected": sha256, "actual": actual_sha256},
            )

        temp_path = archive_path.with_suffix(".tmp")
        temp_path.write_bytes(payload)
        os.replace(temp_path, archive_path)

    def _fingerprint(self, descriptor: DependencyDescriptor, arch: str) -> str:
        try:
            return descriptor.fingerprint(arch)
        except KeyError as exc:
            raise ValidationError(
                "Dependency has no fingerprint for this architecture.",
                context={"operation": "fetch", "dependency": descriptor.name, "arch": arch},
            ) from exc


def _hash_matches(path: Path, *, expected_sha256: str) -> bool:
    if not path.is_file():
        return False
    return hashlib.sha256(path.read_bytes()).hexdigest() == expected_sha256


def _extract(archive_path: Path, destination: Path) -> None:
    if destination.exists():
        shutil.rmtree(destination)
    destination.mkdir(parents=True)
    try:
        with tarfile.open(archive_path, "r:*") as archive:
            archive.extractall(destination, filter="data")
    except (tarfile.TarError, OSError) as exc:
        raise FetchError(
            "Artifact extraction failed.",
            hint="Delete the cached archive and re-run to refetch it.",
            context={
                "operation": "extract",
                "archive": str(archive_path),
                "destination": str(destination),
                "error": str(exc),
            },
        ) from exc

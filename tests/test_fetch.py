import hashlib
import io
import tarfile
from pathlib import Path

import pytest

from scanedeps.errors import FetchError, ReproducibilityError, ValidationError
from scanedeps.fetch import HttpFetcher, StagingArea
from scanedeps.models import DependencyDescriptor


def _bottle(path: Path, prefix: str, files: dict[str, bytes]) -> str:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as archive:
        for relative, content in files.items():
            info = tarfile.TarInfo(f"{prefix}/{relative}")
            info.size = len(content)
            archive.addfile(info, io.BytesIO(content))
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _descriptor(sha256: str) -> DependencyDescriptor:
    return DependencyDescriptor(
        name="libusb",
        version="1.0.24",
        lib_name="libusb",
        target_name="libusb-1.0.dylib",
        fingerprints={"arm64": sha256},
    )


def _fetcher(tmp_path: Path) -> HttpFetcher:
    return HttpFetcher(url_template=(tmp_path / "bottles").as_uri() + "/{name}-{version}.{arch}.tar.gz")


def test_fetch_verifies_and_unpacks_bottle(tmp_path: Path) -> None:
    sha256 = _bottle(
        tmp_path / "bottles" / "libusb-1.0.24.arm64.tar.gz",
        "libusb/1.0.24",
        {"lib/libusb-1.0.0.dylib": b"arm64 slice", "include/libusb-1.0/libusb.h": b"/* header */"},
    )
    staging = StagingArea(root=tmp_path / "staging")

    staged = _fetcher(tmp_path).fetch(_descriptor(sha256), "arm64", staging)

    assert staged.root == tmp_path / "staging" / "libusb-arm64"
    assert (staged.lib_dir / "libusb-1.0.0.dylib").read_bytes() == b"arm64 slice"
    assert staging.archive_path(staged.descriptor, "arm64").is_file()


def test_fetch_reuses_verified_archive(tmp_path: Path) -> None:
    source = tmp_path / "bottles" / "libusb-1.0.24.arm64.tar.gz"
    sha256 = _bottle(source, "libusb/1.0.24", {"lib/libusb-1.0.0.dylib": b"arm64 slice"})
    staging = StagingArea(root=tmp_path / "staging")
    fetcher = _fetcher(tmp_path)

    first = fetcher.fetch(_descriptor(sha256), "arm64", staging)
    (first.lib_dir / "stale.txt").write_text("left over", encoding="utf-8")
    source.unlink()
    second = fetcher.fetch(_descriptor(sha256), "arm64", staging)

    assert second == first
    assert (second.lib_dir / "libusb-1.0.0.dylib").is_file()
    assert not (second.lib_dir / "stale.txt").exists()


def test_fetch_rejects_hash_mismatch(tmp_path: Path) -> None:
    _bottle(tmp_path / "bottles" / "libusb-1.0.24.arm64.tar.gz", "libusb/1.0.24", {"lib/a": b"a"})
    staging = StagingArea(root=tmp_path / "staging")
    descriptor = _descriptor("0" * 64)

    with pytest.raises(ReproducibilityError) as excinfo:
        _fetcher(tmp_path).fetch(descriptor, "arm64", staging)

    assert excinfo.value.context["expected"] == "0" * 64
    assert not staging.archive_path(descriptor, "arm64").exists()


def test_fetch_wraps_download_failures(tmp_path: Path) -> None:
    with pytest.raises(FetchError) as excinfo:
        _fetcher(tmp_path).fetch(_descriptor("0" * 64), "arm64", StagingArea(root=tmp_path / "staging"))

    assert excinfo.value.code == "E_FETCH"
    assert excinfo.value.context["url"].endswith("/libusb-1.0.24.arm64.tar.gz")


def test_fetch_requires_install_prefix_in_archive(tmp_path: Path) -> None:
    sha256 = _bottle(
        tmp_path / "bottles" / "libusb-1.0.24.arm64.tar.gz",
        "libusb/1.0.23",
        {"lib/libusb-1.0.0.dylib": b"old"},
    )

    with pytest.raises(FetchError) as excinfo:
        _fetcher(tmp_path).fetch(_descriptor(sha256), "arm64", StagingArea(root=tmp_path / "staging"))

    assert excinfo.value.context["expected"] == "libusb/1.0.24"


def test_fetch_rejects_unknown_architecture(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        _fetcher(tmp_path).fetch(_descriptor("0" * 64), "x86_64", StagingArea(root=tmp_path / "staging"))


def test_default_url_addresses_bottle_blob_by_digest() -> None:
    descriptor = _descriptor("ab" * 32)

    assert HttpFetcher().url_for(descriptor, "arm64") == (
        f"https://ghcr.io/v2/homebrew/core/libusb/blobs/sha256:{'ab' * 32}"
    )


def test_staging_areas_are_disjoint_per_architecture(tmp_path: Path) -> None:
    staging = StagingArea(root=tmp_path)
    descriptor = _descriptor("0" * 64)

    assert staging.artifact_dir(descriptor, "arm64") != staging.artifact_dir(descriptor, "x86_64")
    assert staging.staged(descriptor, "x86_64").prefix == tmp_path / "libusb-x86_64" / "libusb" / "1.0.24"

"""Shared test fixtures."""

from __future__ import annotations

import hashlib
import shutil
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from scanedeps.config import BundleConfig
from scanedeps.errors import FetchError
from scanedeps.fetch import StagingArea
from scanedeps.layout import BundleLayout
from scanedeps.models import DependencyDescriptor, StagedArtifact
from scanedeps.observability import StructuredLogger
from scanedeps.pipeline import BundlePipeline
from scanedeps.registry import Registry
from scanedeps.toolchain import InProcessToolchain

SENTINEL = "@@HOMEBREW_PREFIX@@"
SYSTEM_LIB = "/usr/lib/libSystem.B.dylib"


def fingerprints(seed: str) -> dict[str, str]:
    return {
        arch: hashlib.sha256(f"{seed}-{arch}".encode()).hexdigest()
        for arch in ("arm64", "x86_64")
    }


SANE = DependencyDescriptor(
    name="sane-backends",
    version="1.0.32",
    lib_name="libsane",
    target_name="libsane.dylib",
    fingerprints=fingerprints("sane"),
)
USB = DependencyDescriptor(
    name="libusb",
    version="1.0.24",
    lib_name="libusb",
    target_name="libusb-1.0.dylib",
    fingerprints=fingerprints("usb"),
)
PNG = DependencyDescriptor(
    name="libpng",
    version="1.6.37",
    lib_name="libpng",
    target_name="libpng.dylib",
    fingerprints=fingerprints("png"),
)


@dataclass(slots=True)
class Bottle:
    """Contents of a simulated Homebrew bottle."""

    install_name: str | None
    references: tuple[str, ...] = ()
    plugins: dict[str, tuple[str, ...]] = field(default_factory=dict)
    files: dict[str, str] = field(default_factory=dict)


BOTTLES = {
    "sane-backends": Bottle(
        install_name=f"{SENTINEL}/opt/sane-backends/lib/libsane.1.dylib",
        references=(
            f"{SENTINEL}/opt/libusb/lib/libusb-1.0.0.dylib",
            f"{SENTINEL}/opt/libpng/lib/libpng16.16.dylib",
            SYSTEM_LIB,
        ),
        plugins={
            "libsane-epson2.1.so": (
                f"{SENTINEL}/opt/sane-backends/lib/libsane.1.dylib",
                f"{SENTINEL}/opt/libusb/lib/libusb-1.0.0.dylib",
                SYSTEM_LIB,
            ),
            "libsane-pixma.1.so": (
                f"{SENTINEL}/opt/libpng/lib/libpng16.16.dylib",
                SYSTEM_LIB,
            ),
        },
        files={
            "lib/sane/libsane-epson2.so": "symlink stand-in\n",
            "lib/sane/libsane-epson2.la": "libtool archive\n",
            "etc/sane.d/dll.conf": "epson2\npixma\n",
            "etc/sane.d/epson2.conf": "usb\n",
            "include/sane/sane.h": "#define SANE_CURRENT_MAJOR 1\n",
        },
    ),
    "libusb": Bottle(
        install_name=f"{SENTINEL}/opt/libusb/lib/libusb-1.0.0.dylib",
        references=("/usr/lib/libobjc.A.dylib", SYSTEM_LIB),
    ),
    "libpng": Bottle(
        install_name=f"{SENTINEL}/opt/libpng/lib/libpng16.16.dylib",
        references=("/usr/lib/libz.1.dylib", SYSTEM_LIB),
    ),
}


@dataclass(slots=True)
class StubFetcher:
    """Fetcher that materializes simulated bottles into the staging area."""

    toolchain: InProcessToolchain
    bottles: dict[str, Bottle] = field(default_factory=lambda: dict(BOTTLES))
    fetched: list[tuple[str, str]] = field(default_factory=list)
    fail_on: set[tuple[str, str]] = field(default_factory=set)

    def fetch(
        self,
        descriptor: DependencyDescriptor,
        arch: str,
        staging: StagingArea,
    ) -> StagedArtifact:
        self.fetched.append((descriptor.name, arch))
        if (descriptor.name, arch) in self.fail_on:
            raise FetchError(
                "Artifact download failed.",
                context={"dependency": descriptor.name, "arch": arch},
            )
        staged = staging.staged(descriptor, arch)
        if staged.root.exists():
            shutil.rmtree(staged.root)
        bottle = self.bottles[descriptor.name]
        self.toolchain.add_slice(
            staged.lib_dir / descriptor.target_name,
            arch=arch,
            install_name=bottle.install_name,
            references=bottle.references,
        )
        for name, references in bottle.plugins.items():
            self.toolchain.add_slice(
                staged.lib_dir / "sane" / name,
                arch=arch,
                references=references,
            )
        for relative, content in bottle.files.items():
            path = staged.prefix / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return staged


@pytest.fixture
def registry() -> Registry:
    return Registry(descriptors=(SANE, USB, PNG))


@pytest.fixture
def config() -> BundleConfig:
    return BundleConfig()


@pytest.fixture
def toolchain() -> InProcessToolchain:
    return InProcessToolchain()


@pytest.fixture
def stub_fetcher(toolchain: InProcessToolchain) -> StubFetcher:
    return StubFetcher(toolchain=toolchain)


@pytest.fixture
def pipeline(
    tmp_path: Path,
    registry: Registry,
    config: BundleConfig,
    toolchain: InProcessToolchain,
    stub_fetcher: StubFetcher,
) -> BundlePipeline:
    return BundlePipeline(
        layout=BundleLayout(root=tmp_path / "bundle"),
        staging=StagingArea(root=tmp_path / "staging"),
        toolchain=toolchain,
        fetcher=stub_fetcher,
        registry=registry,
        config=config,
        logger=StructuredLogger(),
    )

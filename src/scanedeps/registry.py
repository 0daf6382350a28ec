"""Ordered, immutable registry of bundled dependencies."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

from scanedeps.errors import ValidationError
from scanedeps.models import DependencyDescriptor

SHA256_PATTERN = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True, slots=True)
class Registry:
    """Dependency descriptors in significant order.

    Canonical-name resolution scans descriptors front to back and the first
    ``lib_name`` contained in a reference's basename wins.
    """

    descriptors: tuple[DependencyDescriptor, ...]

    def __iter__(self) -> Iterator[DependencyDescriptor]:
        return iter(self.descriptors)

    def __len__(self) -> int:
        return len(self.descriptors)

    @property
    def architectures(self) -> tuple[str, ...]:
        if not self.descriptors:
            return ()
        return self.descriptors[0].architectures

    def get(self, name: str) -> DependencyDescriptor:
        for descriptor in self.descriptors:
            if descriptor.name == name:
                return descriptor
        raise ValidationError(
            f"Dependency `{name}` is not registered.",
            hint="Add the dependency to the manifest or fix the configured name.",
            context={"operation": "registry_get", "name": name},
        )

    def match(self, raw_name: str) -> DependencyDescriptor | None:
        for descriptor in self.descriptors:
            if descriptor.lib_name in raw_name:
                return descriptor
        return None

    def canonical_name(self, raw_name: str) -> str:
        """Return the shipped filename for *raw_name*, or *raw_name* if unregistered."""
        descriptor = self.match(raw_name)
        if descriptor is None:
            return raw_name
        return descriptor.target_name

    def validate(self) -> None:
        if not self.descriptors:
            raise ValidationError("Registry declares no dependencies.")
        expected = set(self.architectures)
        seen: set[str] = set()
        for descriptor in self.descriptors:
            context = {"operation": "registry_validate", "dependency": descriptor.name}
            if descriptor.name in seen:
                raise ValidationError("Duplicate dependency name in registry.", context=context)
            seen.add(descriptor.name)
            if not descriptor.lib_name or not descriptor.target_name:
                raise ValidationError(
                    "Dependency is missing its library or target name.",
                    context=context,
                )
            if not descriptor.fingerprints:
                raise ValidationError(
                    "Dependency declares no architectures.",
                    hint="Add at least one architecture fingerprint.",
                    context=context,
                )
            if set(descriptor.fingerprints) != expected:
                raise ValidationError(
                    "Dependency architectures differ from the rest of the registry.",
                    hint="Every dependency must be fetched for the same architecture set.",
                    context={
                        **context,
                        "expected": ",".join(sorted(expected)),
                        "actual": ",".join(sorted(descriptor.fingerprints)),
                    },
                )
            for arch, sha256 in descriptor.fingerprints.items():
                if not SHA256_PATTERN.fullmatch(sha256):
                    raise ValidationError(
                        "Dependency fingerprint is not a sha256 hex digest.",
                        context={**context, "arch": arch, "sha256": sha256},
                    )


SANE_BACKENDS = DependencyDescriptor(
    name="sane-backends",
    version="1.0.32",
    lib_name="libsane",
    target_name="libsane.dylib",
    fingerprints={
        "arm64": "63e8564065939a6a8dd41b20293d20e35b94ff75ebaec99181d286269624a3ec",
        "x86_64": "ca18d70d2c990dca6f77b72c8d6fe5e04f66bb7a314a35fe4f9a0452e57e9eeb",
    },
)

LIBUSB = DependencyDescriptor(
    name="libusb",
    version="1.0.24",
    lib_name="libusb",
    target_name="libusb-1.0.dylib",
    fingerprints={
        "arm64": "715b8ecff2ca68aeb277664cf22e433e33bef7b2a25dfd577b6abb0dd3e6e730",
        "x86_64": "e77deec33475ce0a496be778b6fbf1d5e6a656e46fbf4baad52049330b48b01d",
    },
)

LIBPNG = DependencyDescriptor(
    name="libpng",
    version="1.6.37",
    lib_name="libpng",
    target_name="libpng.dylib",
    fingerprints={
        "arm64": "40b9dd222c45fb7e2ae3d5c702a4529aedf8c9848a5b6420cb951e72d3ad3919",
        "x86_64": "7209cfe63b2e8fdbd9615221d78201bfac44405f5206f7b08867bcd0c6046757",
    },
)

LIBTIFF = DependencyDescriptor(
    name="libtiff",
    version="4.3.0",
    lib_name="libtiff",
    target_name="libtiff.dylib",
    fingerprints={
        "arm64": "112b3bb5e0654331812403b0a6e62b4d1ddbcb1634894898072633d24fe8adee",
        "x86_64": "c4c73629e4bc92019e02fb19aced2a5d35cd1b9c4e20452d490efb97b7045a18",
    },
)

JPEG = DependencyDescriptor(
    name="jpeg",
    version="9d",
    lib_name="libjpeg",
    target_name="libjpeg.dylib",
    fingerprints={
        "arm64": "ea3b46eb66c711e99ccbab7f9b821efeecbc737ab07e1104e37eafc0bdba8a5f",
        "x86_64": "1a67c415e4636c77057bf80bf37ea3978e4888064a8b7fd04c0cf71a24f32cee",
    },
)

# Bottles pulled from Homebrew (arm64_monterey / monterey).
DEFAULT_REGISTRY = Registry(descriptors=(SANE_BACKENDS, LIBUSB, LIBPNG, LIBTIFF, JPEG))


__all__ = [
    "DEFAULT_REGISTRY",
    "JPEG",
    "LIBPNG",
    "LIBTIFF",
    "LIBUSB",
    "Registry",
    "SANE_BACKENDS",
]

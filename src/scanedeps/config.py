"""Bundle configuration and consistency checks."""

from __future__ import annotations

from dataclasses import dataclass

from scanedeps.errors import ValidationError
from scanedeps.registry import Registry

HOMEBREW_PREFIX_SENTINEL = "@@HOMEBREW_PREFIX@@"
GHCR_URL_TEMPLATE = "https://ghcr.io/v2/homebrew/core/{name}/blobs/sha256:{sha256}"


@dataclass(frozen=True, slots=True)
class AuxTree:
    """Architecture-independent tree mirrored from the staged prefix into the bundle."""

    source: str
    destination: str


DEFAULT_AUX_TREES = (
    AuxTree(source="etc/sane.d", destination="etc/sane.d"),
    AuxTree(source="include/sane", destination="include/sane"),
)


@dataclass(frozen=True, slots=True)
class BundleConfig:
    architectures: tuple[str, ...] = ("arm64", "x86_64")
    foreign_prefixes: tuple[str, ...] = (HOMEBREW_PREFIX_SENTINEL,)
    self_token: str = "@rpath"
    root_rewrite_base: str = "@loader_path"
    plugin_rewrite_base: str = "@loader_path/.."
    plugin_owner: str = "sane-backends"
    plugin_subdir: str = "sane"
    plugin_pattern: str = "*.1.so"
    aux_arch: str | None = None
    aux_trees: tuple[AuxTree, ...] = DEFAULT_AUX_TREES
    url_template: str = GHCR_URL_TEMPLATE
    auth_token: str | None = "QQ=="
    tool_timeout: float | None = 600.0
    fetch_timeout: float | None = 300.0
    fetch_workers: int = 1

    @property
    def resolved_aux_arch(self) -> str:
        return self.aux_arch or self.architectures[0]

    def validate(self, registry: Registry) -> None:
        """Check that *registry* can be bundled under this configuration."""
        if not self.architectures:
            raise ValidationError("No target architectures configured.")
        if len(set(self.architectures)) != len(self.architectures):
            raise ValidationError(
                "Duplicate target architecture in configuration.",
                context={"architectures": ",".join(self.architectures)},
            )
        if not self.foreign_prefixes or not all(self.foreign_prefixes):
            raise ValidationError(
                "Foreign reference prefixes must be non-empty.",
                hint="Set foreign_prefixes to the build environment's sentinel token.",
            )
        if self.resolved_aux_arch not in self.architectures:
            raise ValidationError(
                "Auxiliary tree architecture is not a target architecture.",
                context={"aux_arch": self.resolved_aux_arch},
            )
        if self.fetch_workers < 1:
            raise ValidationError(
                "fetch_workers must be at least 1.",
                context={"fetch_workers": str(self.fetch_workers)},
            )
        registry.validate()
        if set(registry.architectures) != set(self.architectures):
            raise ValidationError(
                "Registry architectures do not match the configured architectures.",
                hint="Declare a fingerprint for every configured architecture.",
                context={
                    "configured": ",".join(self.architectures),
                    "registry": ",".join(registry.architectures),
                },
            )
        registry.get(self.plugin_owner)


__all__ = [
    "AuxTree",
    "BundleConfig",
    "DEFAULT_AUX_TREES",
    "GHCR_URL_TEMPLATE",
    "HOMEBREW_PREFIX_SENTINEL",
]

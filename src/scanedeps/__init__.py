"""Public package entrypoint for the relocatable SANE dylib bundler."""

from .assembler import assemble_universal
from .config import AuxTree, BundleConfig
from .errors import (
    BundleError,
    BundleRootError,
    ErrorCode,
    FetchError,
    InspectionError,
    LayoutError,
    ManifestError,
    ReproducibilityError,
    ToolExecutionError,
    ValidationError,
)
from .layout import BundleLayout, locate_root
from .manifest import Manifest, default_manifest, read_manifest, write_manifest
from .models import (
    BundleResult,
    DependencyDescriptor,
    PipelineState,
    RewriteDecision,
    StagedArtifact,
    UniversalBinary,
)
from .patcher import apply_rewrites
from .pipeline import BundlePipeline
from .planner import plan_rewrites
from .registry import DEFAULT_REGISTRY, Registry

__all__ = [
    "AuxTree",
    "BundleConfig",
    "BundleError",
    "BundleLayout",
    "BundlePipeline",
    "BundleResult",
    "BundleRootError",
    "DEFAULT_REGISTRY",
    "DependencyDescriptor",
    "ErrorCode",
    "FetchError",
    "InspectionError",
    "LayoutError",
    "Manifest",
    "ManifestError",
    "PipelineState",
    "Registry",
    "ReproducibilityError",
    "RewriteDecision",
    "StagedArtifact",
    "ToolExecutionError",
    "UniversalBinary",
    "ValidationError",
    "apply_rewrites",
    "assemble_universal",
    "default_manifest",
    "locate_root",
    "plan_rewrites",
    "read_manifest",
    "write_manifest",
]

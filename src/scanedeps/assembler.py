"""Universal binary assembly: merge slices, then patch and re-sign the result."""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from pathlib import Path

from scanedeps.config import BundleConfig
from scanedeps.errors import ValidationError
from scanedeps.inspector import inspect_references
from scanedeps.models import UniversalBinary
from scanedeps.observability import StructuredLogger
from scanedeps.patcher import apply_rewrites
from scanedeps.planner import plan_rewrites
from scanedeps.registry import Registry
from scanedeps.toolchain.base import Toolchain


def assemble_universal(
    dest: Path,
    slices: Mapping[str, Path],
    *,
    rewrite_base: str,
    toolchain: Toolchain,
    registry: Registry,
    config: BundleConfig,
    logger: StructuredLogger | None = None,
    dependency: str | None = None,
) -> UniversalBinary:
    """Merge *slices* into *dest* and make the result relocatable and loadable.

    Slices are checked before anything is written, so a missing slice never
    leaves output at *dest*. Failures after the merge leave the partially
    processed file in place and propagate unchanged.
    """
    ordered = _ordered_slices(dest, slices, config=config)

    dest.parent.mkdir(parents=True, exist_ok=True)
    toolchain.merge_architectures(dest, ordered)

    merged_archs = toolchain.list_architectures(dest)
    missing = [arch for arch in config.architectures if arch not in merged_archs]
    if missing:
        raise ValidationError(
            "Merged binary is missing architectures.",
            hint="Check that every slice was built for the architecture it is labelled with.",
            context={
                "operation": "assemble_universal",
                "path": str(dest),
                "missing": ",".join(missing),
                "actual": ",".join(merged_archs),
            },
        )

    references = inspect_references(toolchain, dest)
    decisions = plan_rewrites(
        dest,
        references,
        registry,
        rewrite_base=rewrite_base,
        foreign_prefixes=config.foreign_prefixes,
        self_token=config.self_token,
    )
    applied = apply_rewrites(toolchain, dest, decisions)
    toolchain.sign_adhoc(dest)

    if logger is not None:
        logger.log(
            operation="assemble_universal",
            dependency=dependency,
            stage="patch",
            tool=getattr(toolchain, "name", None),
            level="debug",
            message=f"Patched {dest.name}: {applied} rewrite(s).",
            extra={
                "rewrites": {
                    decision.reference: decision.replacement
                    for decision in decisions
                    if decision.actionable
                },
            },
        )

    return UniversalBinary(
        path=dest,
        architectures=tuple(merged_archs),
        decisions=tuple(decisions),
        sha256=hashlib.sha256(dest.read_bytes()).hexdigest(),
    )


def _ordered_slices(
    dest: Path,
    slices: Mapping[str, Path],
    *,
    config: BundleConfig,
) -> dict[str, Path]:
    expected = set(config.architectures)
    provided = set(slices)
    if provided != expected:
        raise ValidationError(
            "Universal binary needs exactly one slice per target architecture.",
            context={
                "operation": "assemble_universal",
                "path": str(dest),
                "expected": ",".join(config.architectures),
                "provided": ",".join(sorted(provided)),
            },
        )
    ordered = {arch: Path(slices[arch]) for arch in config.architectures}
    absent = [f"{arch}={path}" for arch, path in ordered.items() if not path.is_file()]
    if absent:
        raise ValidationError(
            "Architecture slice is missing on disk.",
            hint="Re-run the fetch step; staged artifacts may be incomplete.",
            context={
                "operation": "assemble_universal",
                "path": str(dest),
                "missing": ", ".join(absent),
            },
        )
    return ordered

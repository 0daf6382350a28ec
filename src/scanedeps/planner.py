"""Reference classification and rewrite planning.

Given the shared-library references embedded in a binary, decide which of
them were baked in by the build environment and what they must point at in
the relocatable bundle:

- references that do not start with a foreign-environment sentinel (system
  libraries, already rewritten ``@rpath``/``@loader_path`` entries) are
  ignored, which keeps planning idempotent;
- a foreign reference whose canonical name is the binary's own filename is the
  binary's install name and becomes ``@rpath/<canonical>``;
- every other foreign reference becomes ``<rewrite_base>/<canonical>``.

Everything here is pure: no filesystem access and no subprocesses.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path, PurePosixPath

from scanedeps.config import HOMEBREW_PREFIX_SENTINEL
from scanedeps.models import RewriteDecision
from scanedeps.registry import Registry


def raw_dependency_name(reference: str) -> str:
    """Return the final path segment of *reference*."""
    return reference.rstrip("/").rsplit("/", 1)[-1]


def is_foreign_reference(reference: str, prefixes: Sequence[str]) -> bool:
    return any(reference.startswith(prefix) for prefix in prefixes)


def classify_reference(
    reference: str,
    *,
    binary_name: str,
    registry: Registry,
    rewrite_base: str,
    foreign_prefixes: Sequence[str] = (HOMEBREW_PREFIX_SENTINEL,),
    self_token: str = "@rpath",
) -> RewriteDecision:
    if not is_foreign_reference(reference, foreign_prefixes):
        return RewriteDecision(reference=reference, classification="ignore")

    canonical = registry.canonical_name(raw_dependency_name(reference))
    if canonical == binary_name:
        return RewriteDecision(
            reference=reference,
            classification="self",
            canonical_name=canonical,
            replacement=f"{self_token}/{canonical}",
        )
    return RewriteDecision(
        reference=reference,
        classification="foreign-dependency",
        canonical_name=canonical,
        replacement=f"{rewrite_base.rstrip('/')}/{canonical}",
    )


def plan_rewrites(
    binary: str | Path,
    references: Iterable[str],
    registry: Registry,
    *,
    rewrite_base: str,
    foreign_prefixes: Sequence[str] = (HOMEBREW_PREFIX_SENTINEL,),
    self_token: str = "@rpath",
) -> list[RewriteDecision]:
    """Classify every distinct reference of *binary*, in first-seen order.

    Universal binaries list one reference table per slice, so the same
    reference usually appears once per architecture; it is planned once.
    """
    binary_name = PurePosixPath(str(binary)).name
    decisions: list[RewriteDecision] = []
    seen: set[str] = set()
    for reference in references:
        if reference in seen:
            continue
        seen.add(reference)
        decisions.append(
            classify_reference(
                reference,
                binary_name=binary_name,
                registry=registry,
                rewrite_base=rewrite_base,
                foreign_prefixes=foreign_prefixes,
                self_token=self_token,
            )
        )
    return decisions


def actionable_decisions(decisions: Iterable[RewriteDecision]) -> list[RewriteDecision]:
    return [decision for decision in decisions if decision.actionable]


__all__ = [
    "actionable_decisions",
    "classify_reference",
    "is_foreign_reference",
    "plan_rewrites",
    "raw_dependency_name",
]

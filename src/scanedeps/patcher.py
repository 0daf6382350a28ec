"""Apply planned reference rewrites to a binary."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from scanedeps.errors import ValidationError
from scanedeps.models import RewriteDecision
from scanedeps.toolchain.base import Toolchain


def apply_rewrites(
    toolchain: Toolchain,
    binary: Path,
    decisions: Iterable[RewriteDecision],
) -> int:
    """Apply every actionable decision to *binary* and return the edit count.

    The first failing tool invocation propagates; later decisions are not
    attempted.
    """
    applied = 0
    for decision in decisions:
        if not decision.actionable:
            continue
        if decision.replacement is None:
            raise ValidationError(
                "Rewrite decision has no replacement.",
                context={"binary": str(binary), "reference": decision.reference},
            )
        if decision.classification == "self":
            toolchain.set_identity(binary, decision.replacement)
        else:
            toolchain.change_reference(binary, decision.reference, decision.replacement)
        applied += 1
    return applied

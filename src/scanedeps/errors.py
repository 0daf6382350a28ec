"""Typed bundling error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across the pipeline and CLI."""

    VALIDATION = "E_VALIDATION"
    ENVIRONMENT = "E_ENVIRONMENT"
    MANIFEST = "E_MANIFEST"
    FETCH = "E_FETCH"
    REPRODUCIBILITY = "E_REPRODUCIBILITY"
    INSPECTION = "E_INSPECTION"
    TOOL_EXECUTION = "E_TOOL_EXECUTION"
    FILESYSTEM = "E_FILESYSTEM"


class BundleError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        for k, v in self.context.items():
            if v and k != "output":
                parts.append(f"  {k}: {v}")
        output = self.context.get("output")
        if output:
            # Captured tool output is shown verbatim, one indented line per line.
            parts.append("Tool output:")
            parts.extend(f"    {line}" for line in output.splitlines())
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(BundleError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class BundleRootError(BundleError):
    """Raised when the bundle root directory cannot be determined."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.ENVIRONMENT, hint=hint, context=context)


class ManifestError(BundleError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MANIFEST, hint=hint, context=context)


class FetchError(BundleError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.FETCH, hint=hint, context=context)


class ReproducibilityError(BundleError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.REPRODUCIBILITY, hint=hint, context=context)


class InspectionError(BundleError):
    """Raised when a reference listing does not have the expected shape."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INSPECTION, hint=hint, context=context)


class ToolExecutionError(BundleError):
    """Raised when an external tool exits non-zero, is missing, or times out."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.TOOL_EXECUTION, hint=hint, context=context)


class LayoutError(BundleError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.FILESYSTEM, hint=hint, context=context)


__all__ = [
    "BundleError",
    "BundleRootError",
    "ErrorCode",
    "FetchError",
    "InspectionError",
    "LayoutError",
    "ManifestError",
    "ReproducibilityError",
    "ToolExecutionError",
    "ValidationError",
]

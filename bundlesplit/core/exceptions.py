"""
Custom exception hierarchy for bundlesplit.

All exceptions inherit from BundleSplitError so callers can handle every
build and resolution failure in one place. Each exception names the module
and targeting dimension involved wherever one exists.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class BundleSplitError(Exception):
    """Base exception for all bundlesplit errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ValidationError(BundleSplitError):
    """Raised when bundle or device input is structurally invalid."""

    field_name: str | None = None

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Validation failed for '{self.field_name}': {base}"
        return f"Validation failed: {base}"


@dataclass
class MalformedTargetingError(BundleSplitError):
    """Raised when a content entry carries a targeting tag that cannot be honoured.

    Fatal for the whole build: a malformed module invalidates every variant
    combination it takes part in.
    """

    module_name: str = ""
    dimension: str = ""
    value: Any = None

    def __str__(self) -> str:
        return (
            f"Malformed targeting in module '{self.module_name}' "
            f"[{self.dimension}={self.value!r}]: {super().__str__()}"
        )


@dataclass
class IncompleteTargetingError(BundleSplitError):
    """Raised when the splits of a dimension leave part of its value space uncovered."""

    module_name: str = ""
    dimension: str = ""
    missing_values: list[Any] = field(default_factory=list)

    def __str__(self) -> str:
        missing = ", ".join(str(v) for v in self.missing_values)
        return (
            f"Incomplete '{self.dimension}' targeting in module '{self.module_name}'"
            f" (uncovered: {missing or '-'}): {super().__str__()}"
        )


@dataclass
class InstantSizeExceededError(BundleSplitError):
    """A module is too large for the instant experience.

    Never raised by the build itself: the module is dropped from the instant
    variant and the error is reported as a warning.
    """

    module_name: str = ""
    size_bytes: int = 0
    ceiling_bytes: int = 0

    def __str__(self) -> str:
        return (
            f"Instant module '{self.module_name}' is {self.size_bytes} bytes, "
            f"ceiling is {self.ceiling_bytes} bytes: {self.message}"
        )


@dataclass
class InstantVariantEmptyError(BundleSplitError):
    """Raised when the instant variant would be left without its entry module."""

    dropped_modules: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        dropped = ", ".join(self.dropped_modules) or "-"
        return f"Instant variant has no entry module (dropped: {dropped}): {self.message}"


@dataclass
class NoCompatibleVariantError(BundleSplitError):
    """Raised at resolution time when no variant can serve the device."""

    sdk_version: int = 0
    reason: str = ""

    def __str__(self) -> str:
        reason = f" ({self.reason})" if self.reason else ""
        return f"No compatible variant for SDK {self.sdk_version}{reason}: {self.message}"

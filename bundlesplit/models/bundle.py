"""
App bundle input models.

These records are the boundary with the bundle reader: each module is a list
of content entries (relative path, raw targeting tags, compressed size) plus
bundle-wide metadata. Parsing the bundle container itself happens upstream.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from ..core.exceptions import MalformedTargetingError
from .targeting import (
    DEFAULT_DEVICE_TIER,
    TargetingDimension,
    TargetingRecord,
    TargetingScalar,
    TargetingUniverse,
    normalize_value,
    parse_dimension,
)


class ContentEntry(TargetingRecord):
    """One file of a module with its targeting tags."""

    relative_path: str = Field(description="Path inside the module, e.g. lib/x86/libgame.so")
    targeting_tags: dict[str, Any] = Field(
        default_factory=dict, description="Raw {dimension: value} tags from the bundle reader"
    )
    size_bytes: int = Field(default=0, ge=0, description="Compressed size of the entry")


class BundleMetadata(TargetingRecord):
    """Bundle-wide settings that drive variant generation."""

    package_name: str = Field(default="", description="Application package name")
    min_sdk: int = Field(default=21, ge=1, description="Lowest SDK the app installs on")
    base_module: str = Field(default="base", description="Entry module present in every variant")
    instant_modules: tuple[str, ...] = Field(
        default=(), description="Modules eligible for the instant experience"
    )
    device_tiers: tuple[int, ...] = Field(
        default=(DEFAULT_DEVICE_TIER,), description="Declared device tiers"
    )
    default_values: dict[str, Any] = Field(
        default_factory=dict,
        description="Platform-default value per dimension; matching entries stay in the master",
    )

    @field_validator("device_tiers")
    @classmethod
    def _include_default_tier(cls, tiers: tuple[int, ...]) -> tuple[int, ...]:
        if any(t < 0 for t in tiers):
            raise ValueError("device tiers must be non-negative")
        return tuple(sorted(set(tiers) | {DEFAULT_DEVICE_TIER}))


class AppBundle(TargetingRecord):
    """A modular application bundle, already read into memory."""

    metadata: BundleMetadata = Field(default_factory=BundleMetadata)
    modules: dict[str, tuple[ContentEntry, ...]] = Field(default_factory=dict)

    def module_names(self) -> list[str]:
        """Module names with the base module first, the rest alphabetically."""
        base = self.metadata.base_module
        rest = sorted(name for name in self.modules if name != base)
        return ([base] if base in self.modules else []) + rest

    def iter_entries(self) -> list[tuple[str, ContentEntry]]:
        return [(name, entry) for name in self.module_names() for entry in self.modules[name]]

    def universe(self) -> TargetingUniverse:
        """Value spaces of this bundle.

        Raises:
            MalformedTargetingError: If a default value or a language tag is invalid.
        """
        defaults: dict[TargetingDimension, TargetingScalar] = {}
        for name, raw in self.metadata.default_values.items():
            try:
                dimension = parse_dimension(name)
                defaults[dimension] = normalize_value(dimension, raw)
            except ValueError as e:
                raise MalformedTargetingError(
                    message=f"invalid bundle default: {e}",
                    module_name="<bundle>",
                    dimension=str(name),
                    value=raw,
                    cause=e,
                ) from e

        languages: set[str] = set()
        if TargetingDimension.LANGUAGE in defaults:
            languages.add(str(defaults[TargetingDimension.LANGUAGE]))
        for module_name, entry in self.iter_entries():
            for name, raw in entry.targeting_tags.items():
                if str(name).strip().lower() != TargetingDimension.LANGUAGE.value:
                    continue
                try:
                    languages.add(str(normalize_value(TargetingDimension.LANGUAGE, raw)))
                except ValueError as e:
                    raise MalformedTargetingError(
                        message=str(e),
                        module_name=module_name,
                        dimension=TargetingDimension.LANGUAGE.value,
                        value=raw,
                        cause=e,
                    ) from e

        return TargetingUniverse(
            languages=frozenset(languages),
            device_tiers=frozenset(self.metadata.device_tiers),
            default_values=defaults,
        )

"""
Targeting data models.

Every artifact produced from a bundle is tagged with the device properties it
serves. A TargetingValue pins one dimension to one value and records the
sibling values it was disambiguated against; ApkTargeting and VariantTargeting
group those values at split and whole-install granularity.

Value spaces are closed and enumerable wherever the platform defines them
(ABI, density buckets, texture formats) so completeness of a set of splits is
a plain set difference. Language is the one open dimension.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, field_serializer, model_validator
from pydantic.alias_generators import to_camel

from ..core.exceptions import MalformedTargetingError

TargetingScalar = Union[str, int]


class TargetingDimension(str, Enum):
    """Axes along which bundle content is partitioned."""

    ABI = "abi"
    SCREEN_DENSITY = "screen_density"
    LANGUAGE = "language"
    TEXTURE_COMPRESSION = "texture_compression"
    SDK_VERSION = "sdk_version"
    DEVICE_TIER = "device_tier"


# Canonical order; also the order values are joined in split names.
SPLIT_DIMENSIONS: tuple[TargetingDimension, ...] = (
    TargetingDimension.ABI,
    TargetingDimension.SCREEN_DENSITY,
    TargetingDimension.LANGUAGE,
    TargetingDimension.TEXTURE_COMPRESSION,
)

VARIANT_DIMENSIONS: tuple[TargetingDimension, ...] = (
    TargetingDimension.SDK_VERSION,
    TargetingDimension.ABI,
    TargetingDimension.DEVICE_TIER,
)

ABI_VALUES: tuple[str, ...] = (
    "armeabi",
    "armeabi-v7a",
    "arm64-v8a",
    "x86",
    "x86_64",
    "mips",
    "mips64",
    "riscv64",
)

DENSITY_BUCKETS: dict[str, int] = {
    "ldpi": 120,
    "mdpi": 160,
    "tvdpi": 213,
    "hdpi": 240,
    "xhdpi": 320,
    "xxhdpi": 480,
    "xxxhdpi": 640,
}

TEXTURE_COMPRESSION_VALUES: tuple[str, ...] = (
    "etc1_rgb8",
    "paletted",
    "three_dc",
    "atc",
    "latc",
    "dxt1",
    "s3tc",
    "pvrtc",
    "astc",
    "etc2",
)

DEFAULT_DEVICE_TIER = 0

# Devices may report values no content mentions; these fall back to the master.
OPEN_DIMENSIONS: frozenset[TargetingDimension] = frozenset({TargetingDimension.LANGUAGE})

_LANGUAGE_RE = re.compile(r"^[a-z]{2,3}$")


def parse_dimension(name: str | TargetingDimension) -> TargetingDimension:
    """Parse a dimension name, raising ValueError for unknown names."""
    if isinstance(name, TargetingDimension):
        return name
    return TargetingDimension(str(name).strip().lower())


def language_of(locale: str) -> str:
    """Reduce a locale tag (``fr-CA``, ``fr_CA``, ``fr-rCA``) to its language code."""
    return re.split(r"[-_]", locale.strip(), maxsplit=1)[0].lower()


def _as_int(raw: Any, *, minimum: int) -> int:
    if isinstance(raw, bool):
        raise ValueError(f"expected an integer, got {raw!r}")
    if isinstance(raw, str) and raw.strip().isdigit():
        raw = int(raw.strip())
    if not isinstance(raw, int):
        raise ValueError(f"expected an integer, got {raw!r}")
    if raw < minimum:
        raise ValueError(f"{raw} is below the minimum of {minimum}")
    return raw


def normalize_value(dimension: TargetingDimension, raw: Any) -> TargetingScalar:
    """Normalize a raw targeting value into its canonical form.

    Args:
        dimension: Dimension the value belongs to.
        raw: Value as found in a tag or a serialized record.

    Returns:
        The canonical value: an ABI name, density bucket alias, language code,
        texture format name, SDK level or tier number.

    Raises:
        ValueError: If the value is outside the dimension's value space.
    """
    if dimension in (TargetingDimension.SDK_VERSION, TargetingDimension.DEVICE_TIER):
        return _as_int(raw, minimum=1 if dimension == TargetingDimension.SDK_VERSION else 0)

    if dimension == TargetingDimension.SCREEN_DENSITY:
        if isinstance(raw, int) and not isinstance(raw, bool):
            for alias, dpi in DENSITY_BUCKETS.items():
                if dpi == raw:
                    return alias
            raise ValueError(f"{raw} dpi is not a density bucket")
        alias = str(raw).strip().lower()
        if alias not in DENSITY_BUCKETS:
            raise ValueError(f"unknown density bucket {raw!r}")
        return alias

    if not isinstance(raw, str):
        raise ValueError(f"expected a string, got {raw!r}")
    text = raw.strip().lower()

    if dimension == TargetingDimension.ABI:
        if text not in ABI_VALUES:
            raise ValueError(f"unknown ABI {raw!r}")
        return text
    if dimension == TargetingDimension.TEXTURE_COMPRESSION:
        if text not in TEXTURE_COMPRESSION_VALUES:
            raise ValueError(f"unknown texture compression format {raw!r}")
        return text
    language = language_of(text)
    if not _LANGUAGE_RE.match(language):
        raise ValueError(f"invalid language code {raw!r}")
    return language


def closed_value_space(dimension: TargetingDimension) -> frozenset[TargetingScalar] | None:
    """Return the platform-defined value space of a dimension, or None if open."""
    if dimension == TargetingDimension.ABI:
        return frozenset(ABI_VALUES)
    if dimension == TargetingDimension.SCREEN_DENSITY:
        return frozenset(DENSITY_BUCKETS)
    if dimension == TargetingDimension.TEXTURE_COMPRESSION:
        return frozenset(TEXTURE_COMPRESSION_VALUES)
    return None


def value_rank(dimension: TargetingDimension, value: TargetingScalar) -> Any:
    """Sort key placing values in the order the platform enumerates them."""
    if dimension == TargetingDimension.ABI:
        return ABI_VALUES.index(str(value))
    if dimension == TargetingDimension.SCREEN_DENSITY:
        return DENSITY_BUCKETS[str(value)]
    if dimension == TargetingDimension.TEXTURE_COMPRESSION:
        return TEXTURE_COMPRESSION_VALUES.index(str(value))
    return value


def sort_values(dimension: TargetingDimension, values: Iterable[TargetingScalar]) -> list[TargetingScalar]:
    return sorted(values, key=lambda v: value_rank(dimension, v))


def density_bucket_for_dpi(dpi: int) -> str:
    """Map an arbitrary screen dpi to the bucket a device reports for it."""
    for alias, bucket_dpi in sorted(DENSITY_BUCKETS.items(), key=lambda item: item[1]):
        if dpi <= bucket_dpi:
            return alias
    return "xxxhdpi"


def select_density(dpi: int, available: Iterable[str]) -> str | None:
    """Pick the best density among available buckets for a device dpi.

    The smallest bucket at or above the device density wins (downscaling keeps
    quality); failing that, the largest bucket below it.
    """
    ordered = sorted(set(available), key=lambda alias: DENSITY_BUCKETS[alias])
    if not ordered:
        return None
    for alias in ordered:
        if DENSITY_BUCKETS[alias] >= dpi:
            return alias
    return ordered[-1]


class TargetingRecord(BaseModel):
    """Immutable record serialized with camelCase field names."""

    model_config = {
        "frozen": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class TargetingValue(TargetingRecord):
    """One dimension pinned to one value, with the sibling values it excludes."""

    dimension: TargetingDimension
    value: TargetingScalar
    alternatives: frozenset[TargetingScalar] = frozenset()

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        if data.get("dimension") is None:
            return data
        dimension = parse_dimension(data["dimension"])
        data["dimension"] = dimension
        if "value" in data:
            data["value"] = normalize_value(dimension, data["value"])
        if data.get("alternatives") is not None:
            data["alternatives"] = frozenset(
                normalize_value(dimension, alt) for alt in data["alternatives"]
            )
        return data

    @model_validator(mode="after")
    def _value_not_in_alternatives(self) -> TargetingValue:
        if self.value in self.alternatives:
            raise ValueError(
                f"{self.dimension.value} value {self.value!r} also listed in its alternatives"
            )
        return self

    @field_serializer("alternatives")
    def _serialize_alternatives(self, alternatives: frozenset[TargetingScalar]) -> list[TargetingScalar]:
        return sort_values(self.dimension, alternatives)

    @classmethod
    def of(
        cls,
        dimension: TargetingDimension,
        value: TargetingScalar,
        alternatives: Iterable[TargetingScalar] = (),
    ) -> TargetingValue:
        """Build a value; alternatives equal to the value itself are dropped."""
        normalized = normalize_value(dimension, value)
        alts = {normalize_value(dimension, alt) for alt in alternatives}
        alts.discard(normalized)
        return cls(dimension=dimension, value=normalized, alternatives=frozenset(alts))

    @property
    def covered_values(self) -> frozenset[TargetingScalar]:
        """The value plus everything it was disambiguated against."""
        return self.alternatives | {self.value}


class ApkTargeting(TargetingRecord):
    """Split-level targeting of a single APK. Unset dimensions match any device."""

    abi: TargetingValue | None = None
    screen_density: TargetingValue | None = None
    language: TargetingValue | None = None
    texture_compression: TargetingValue | None = None

    @model_validator(mode="after")
    def _dimensions_match_fields(self) -> ApkTargeting:
        for dimension in SPLIT_DIMENSIONS:
            value = getattr(self, dimension.value)
            if value is not None and value.dimension != dimension:
                raise ValueError(f"field '{dimension.value}' holds a {value.dimension.value} value")
        return self

    @classmethod
    def from_values(cls, values: Iterable[TargetingValue]) -> ApkTargeting:
        """Build targeting from split-dimension values, one per dimension."""
        fields: dict[str, TargetingValue] = {}
        for value in values:
            if value.dimension not in SPLIT_DIMENSIONS:
                raise ValueError(f"{value.dimension.value} is not a split dimension")
            if value.dimension.value in fields:
                raise ValueError(f"duplicate {value.dimension.value} targeting")
            fields[value.dimension.value] = value
        return cls(**fields)

    def get(self, dimension: TargetingDimension) -> TargetingValue | None:
        if dimension not in SPLIT_DIMENSIONS:
            return None
        return getattr(self, dimension.value)

    @property
    def dimensions(self) -> tuple[TargetingDimension, ...]:
        """Targeted dimensions in canonical order."""
        return tuple(d for d in SPLIT_DIMENSIONS if getattr(self, d.value) is not None)

    @property
    def is_empty(self) -> bool:
        return not self.dimensions

    @property
    def suffix(self) -> str:
        """Split name fragment, e.g. ``x86_fr``."""
        return "_".join(str(getattr(self, d.value).value) for d in self.dimensions)


class VariantTargeting(TargetingRecord):
    """Whole-install targeting of a variant."""

    sdk_version: TargetingValue
    abi: TargetingValue | None = None
    device_tier: TargetingValue | None = None

    @model_validator(mode="after")
    def _dimensions_match_fields(self) -> VariantTargeting:
        for dimension in VARIANT_DIMENSIONS:
            value = getattr(self, dimension.value)
            if value is not None and value.dimension != dimension:
                raise ValueError(f"field '{dimension.value}' holds a {value.dimension.value} value")
        return self

    @property
    def min_sdk(self) -> int:
        return int(self.sdk_version.value)


@dataclass(frozen=True)
class TargetingUniverse:
    """Complete value space of every dimension for one bundle.

    Closed dimensions use the platform-defined space; device tiers use the
    tiers the bundle declares and languages the ones its content mentions.
    """

    languages: frozenset[str] = frozenset()
    device_tiers: frozenset[int] = frozenset({DEFAULT_DEVICE_TIER})
    default_values: Mapping[TargetingDimension, TargetingScalar] = field(default_factory=dict)

    def space(self, dimension: TargetingDimension) -> frozenset[TargetingScalar] | None:
        """Return the value space of a dimension; None means unbounded (SDK levels)."""
        if dimension == TargetingDimension.LANGUAGE:
            return frozenset(self.languages)
        if dimension == TargetingDimension.DEVICE_TIER:
            return frozenset(self.device_tiers)
        return closed_value_space(dimension)

    def is_open(self, dimension: TargetingDimension) -> bool:
        """Open dimensions fall back to the master for device values they never saw."""
        return dimension in OPEN_DIMENSIONS

    def default_for(self, dimension: TargetingDimension) -> TargetingScalar | None:
        if dimension == TargetingDimension.DEVICE_TIER:
            return self.default_values.get(dimension, DEFAULT_DEVICE_TIER)
        return self.default_values.get(dimension)

    def parse_tags(self, module_name: str, tags: Mapping[str, Any]) -> dict[TargetingDimension, TargetingScalar]:
        """Parse the raw targeting tags of one content entry.

        Args:
            module_name: Module owning the entry, for error reporting.
            tags: ``{dimension name: value}`` as supplied by the bundle reader.

        Returns:
            Canonical ``{dimension: value}`` mapping.

        Raises:
            MalformedTargetingError: On unknown dimensions or out-of-space values.
        """
        parsed: dict[TargetingDimension, TargetingScalar] = {}
        for name, raw in tags.items():
            try:
                dimension = parse_dimension(name)
            except ValueError as e:
                raise MalformedTargetingError(
                    message="unknown targeting dimension",
                    module_name=module_name,
                    dimension=str(name),
                    value=raw,
                    cause=e,
                ) from e
            try:
                value = normalize_value(dimension, raw)
            except ValueError as e:
                raise MalformedTargetingError(
                    message=str(e),
                    module_name=module_name,
                    dimension=dimension.value,
                    value=raw,
                    cause=e,
                ) from e
            space = self.space(dimension)
            if dimension == TargetingDimension.DEVICE_TIER and value not in (space or ()):
                raise MalformedTargetingError(
                    message="device tier is not declared by the bundle",
                    module_name=module_name,
                    dimension=dimension.value,
                    value=raw,
                )
            parsed[dimension] = value
        return parsed

"""
Build result models.

A build produces a tree of variants: each variant holds one APK set per
module, and each APK set holds the master APK plus the configuration splits
of that module. The tree is immutable once built and serializes with the
camelCase names downstream packagers read (``variants[].apkSets[].moduleName``,
``apkDescriptions[].isMasterSplit``...).
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import Field, model_validator

from .targeting import ApkTargeting, TargetingDimension, TargetingRecord, VariantTargeting


class VariantKind(str, Enum):
    """Family of a variant, fixed when the variant is assembled."""

    STANDALONE = "standalone"
    SPLIT = "split"
    INSTANT = "instant"


class ApkDescription(TargetingRecord):
    """One physical APK."""

    targeting: ApkTargeting = Field(default_factory=ApkTargeting)
    path: str = Field(description="Path of the APK inside the output set")
    is_master_split: bool = Field(default=False)
    entries: tuple[str, ...] = Field(default=(), description="Relative paths of packaged entries")
    size_bytes: int = Field(default=0, ge=0, description="Compressed size of packaged entries")


class ApkSet(TargetingRecord):
    """The APKs of one module within one variant."""

    module_name: str
    apk_descriptions: tuple[ApkDescription, ...]

    @model_validator(mode="after")
    def _single_master(self) -> ApkSet:
        masters = [d for d in self.apk_descriptions if d.is_master_split]
        if len(masters) != 1:
            raise ValueError(
                f"module '{self.module_name}' has {len(masters)} master APKs, expected exactly one"
            )
        split_dimensions = {dim for d in self.splits for dim in d.targeting.dimensions}
        overlap = split_dimensions & set(masters[0].targeting.dimensions)
        if overlap:
            names = ", ".join(sorted(d.value for d in overlap))
            raise ValueError(f"master of '{self.module_name}' is targeted on split dimension(s) {names}")
        return self

    @property
    def master(self) -> ApkDescription:
        return next(d for d in self.apk_descriptions if d.is_master_split)

    @property
    def splits(self) -> tuple[ApkDescription, ...]:
        return tuple(d for d in self.apk_descriptions if not d.is_master_split)

    @property
    def split_dimensions(self) -> tuple[TargetingDimension, ...]:
        """Dimensions at least one split of this set is targeted on."""
        seen = {dim for d in self.splits for dim in d.targeting.dimensions}
        return tuple(dim for dim in TargetingDimension if dim in seen)

    @property
    def size_bytes(self) -> int:
        return sum(d.size_bytes for d in self.apk_descriptions)


def infer_variant_kind(targeting: VariantTargeting, apk_sets: tuple[ApkSet, ...] | list[ApkSet]) -> VariantKind:
    """Derive the family of a variant from its shape.

    Only used for serialized results that predate the explicit ``kind`` field;
    the instant family can never be inferred.
    """
    if (
        len(apk_sets) == 1
        and len(apk_sets[0].apk_descriptions) == 1
        and apk_sets[0].apk_descriptions[0].is_master_split
        and targeting.device_tier is None
    ):
        return VariantKind.STANDALONE
    return VariantKind.SPLIT


class Variant(TargetingRecord):
    """The unit of device-install selection."""

    variant_number: int = Field(default=0, ge=0)
    kind: VariantKind
    targeting: VariantTargeting
    apk_sets: tuple[ApkSet, ...]

    @model_validator(mode="before")
    @classmethod
    def _infer_missing_kind(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or data.get("kind") is not None or "targeting" not in data:
            return data
        data = dict(data)
        targeting = VariantTargeting.model_validate(data["targeting"])
        raw_sets = data.get("apk_sets", data.get("apkSets", ()))
        apk_sets = [ApkSet.model_validate(s) for s in raw_sets]
        data["targeting"] = targeting
        data.pop("apkSets", None)
        data["apk_sets"] = tuple(apk_sets)
        data["kind"] = infer_variant_kind(targeting, apk_sets)
        return data

    @model_validator(mode="after")
    def _shape_matches_kind(self) -> Variant:
        if not self.apk_sets:
            raise ValueError("a variant needs at least one APK set")
        modules = [s.module_name for s in self.apk_sets]
        if len(set(modules)) != len(modules):
            raise ValueError(f"duplicate modules in variant: {modules}")
        if self.kind == VariantKind.STANDALONE:
            if len(self.apk_sets) != 1 or len(self.apk_sets[0].apk_descriptions) != 1:
                raise ValueError("a standalone variant holds exactly one APK")
            if self.targeting.device_tier is not None:
                raise ValueError("a standalone variant cannot be targeted on device tier")
        return self

    def apk_set(self, module_name: str) -> ApkSet | None:
        for apk_set in self.apk_sets:
            if apk_set.module_name == module_name:
                return apk_set
        return None


class BuildApksResult(TargetingRecord):
    """Root of the generated variant tree."""

    package_name: str = ""
    variants: tuple[Variant, ...] = ()

    def to_json(self) -> str:
        """Serialize with the camelCase field names."""
        return self.model_dump_json(by_alias=True, indent=2)

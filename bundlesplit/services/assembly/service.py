"""
Variant Assembler.

Combines per-module APK sets into installable variants. Variant-level
dimensions are SDK version (every variant), ABI (standalone variants, which
cannot be split) and device tier (split variants). Only combinations some
content actually reaches are materialized: the axes are built from the values
observed in the bundle, per SDK bucket, never from the full cartesian space.

Assembly runs in three steps so the per-module work can be fanned out:
``plan`` filters every module's entries per variant, ``generate_module`` runs
the Split Generator for one (variant, module) pair, and ``assemble`` validates
the sets and produces the immutable BuildApksResult.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ...core.config import BuildConfig
from ...core.exceptions import (
    IncompleteTargetingError,
    InstantSizeExceededError,
    InstantVariantEmptyError,
    MalformedTargetingError,
    ValidationError,
)
from ...core.logging import get_logger
from ...models.bundle import AppBundle, ContentEntry
from ...models.result import ApkDescription, ApkSet, BuildApksResult, Variant, VariantKind
from ...models.targeting import (
    ApkTargeting,
    TargetingDimension,
    TargetingScalar,
    TargetingUniverse,
    TargetingValue,
    VariantTargeting,
    sort_values,
    value_rank,
)
from ..splitting import ApkNaming, SplitGenerator

logger = get_logger(__name__)

ABI = TargetingDimension.ABI
SDK = TargetingDimension.SDK_VERSION
TIER = TargetingDimension.DEVICE_TIER
TEXTURE = TargetingDimension.TEXTURE_COMPRESSION

_FAMILY_RANK = {VariantKind.STANDALONE: 0, VariantKind.SPLIT: 1, VariantKind.INSTANT: 2}

Tagged = tuple[ContentEntry, dict[TargetingDimension, TargetingScalar]]


@dataclass(frozen=True)
class VariantPlan:
    """One variant to build, with each module's entries already filtered for it."""

    kind: VariantKind
    targeting: VariantTargeting
    entries: Mapping[str, tuple[ContentEntry, ...]]
    ordinal: int = 1

    @property
    def modules(self) -> tuple[str, ...]:
        return tuple(self.entries)

    @property
    def naming(self) -> ApkNaming:
        if self.kind == VariantKind.INSTANT:
            return ApkNaming(directory="instant", prefix="instant-", ordinal=self.ordinal)
        if self.kind == VariantKind.STANDALONE:
            return ApkNaming(directory="standalones", prefix="standalone-", ordinal=self.ordinal)
        return ApkNaming(directory="splits", ordinal=self.ordinal)

    def sort_key(self) -> tuple[Any, ...]:
        abi = self.targeting.abi
        tier = self.targeting.device_tier
        return (
            -self.targeting.min_sdk,
            0 if abi else 1,
            value_rank(ABI, abi.value) if abi else 0,
            -int(tier.value) if tier else 0,
            _FAMILY_RANK[self.kind],
        )


@dataclass(frozen=True)
class BuildPlan:
    """Every variant of a build, in final priority order."""

    bundle: AppBundle
    universe: TargetingUniverse
    variants: tuple[VariantPlan, ...]

    def jobs(self) -> list[tuple[int, str]]:
        """(variant index, module) pairs; each one is an independent generation task."""
        return [(index, module) for index, plan in enumerate(self.variants) for module in plan.modules]


@dataclass
class Assembly:
    """Assembled result plus the non-fatal problems met on the way."""

    result: BuildApksResult
    warnings: list[InstantSizeExceededError] = field(default_factory=list)


def instant_download_size(apk_set: ApkSet) -> int:
    """Largest download any single device can get from an instant module.

    The master plus, for every group of splits on the same dimensions, the
    biggest split of that group.
    """
    largest: dict[tuple[TargetingDimension, ...], int] = defaultdict(int)
    for description in apk_set.splits:
        dims = description.targeting.dimensions
        largest[dims] = max(largest[dims], description.size_bytes)
    return apk_set.master.size_bytes + sum(largest.values())


def validate_apk_set(apk_set: ApkSet, universe: TargetingUniverse) -> None:
    """Check that the splits of every dimension are disjoint and complete.

    Raises:
        MalformedTargetingError: If two splits of the same group pin the same values.
        IncompleteTargetingError: If a dimension's splits leave part of its space uncovered.
    """
    groups: dict[tuple[TargetingDimension, ...], list[ApkDescription]] = defaultdict(list)
    for description in apk_set.splits:
        groups[description.targeting.dimensions].append(description)

    for dims, descriptions in groups.items():
        seen: set[tuple[TargetingScalar, ...]] = set()
        for description in descriptions:
            key = tuple(description.targeting.get(dim).value for dim in dims)
            if key in seen:
                raise MalformedTargetingError(
                    message=f"two splits pin the same value(s) {list(key)}",
                    module_name=apk_set.module_name,
                    dimension="+".join(d.value for d in dims),
                    value=list(key),
                )
            seen.add(key)

        for dim in dims:
            covered: set[TargetingScalar] = set()
            for description in descriptions:
                covered |= description.targeting.get(dim).covered_values
            missing = (universe.space(dim) or frozenset()) - covered
            if missing:
                raise IncompleteTargetingError(
                    message="device values would match no split of this dimension",
                    module_name=apk_set.module_name,
                    dimension=dim.value,
                    missing_values=sort_values(dim, missing),
                )


class VariantAssembler:
    """Builds the variant tree of a bundle."""

    def __init__(self, config: BuildConfig | None = None) -> None:
        """Initialize the assembler.

        Args:
            config: Build settings; defaults apply when omitted.
        """
        self.config = config or BuildConfig()

    def _validate_bundle(self, bundle: AppBundle) -> None:
        metadata = bundle.metadata
        if metadata.base_module not in bundle.modules:
            raise ValidationError(
                message=f"base module '{metadata.base_module}' not found in bundle",
                field_name="base_module",
                context={"modules": sorted(bundle.modules)},
            )
        unknown = sorted(set(metadata.instant_modules) - set(bundle.modules))
        if unknown:
            raise ValidationError(
                message=f"instant modules not found in bundle: {unknown}",
                field_name="instant_modules",
            )
        if self._wants_instant(bundle) and metadata.base_module not in metadata.instant_modules:
            raise InstantVariantEmptyError(
                message=f"base module '{metadata.base_module}' is not instant-eligible",
            )

    def _wants_instant(self, bundle: AppBundle) -> bool:
        return self.config.generate_instant and bool(bundle.metadata.instant_modules)

    @staticmethod
    def _observed(
        tagged: Mapping[str, list[Tagged]], dim: TargetingDimension, floor: int | None = None
    ) -> set[TargetingScalar]:
        """Values of a dimension found in entries reachable at an SDK floor."""
        return {
            tags[dim]
            for entries in tagged.values()
            for _, tags in entries
            if dim in tags and (floor is None or int(tags.get(SDK, 1)) <= floor)
        }

    def _select(
        self,
        tagged: list[Tagged],
        universe: TargetingUniverse,
        *,
        floor: int,
        tier: int,
        abi: TargetingScalar | None = None,
        texture: TargetingScalar | None = None,
    ) -> tuple[ContentEntry, ...]:
        """Entries of one module that belong in a variant.

        A module without content for the requested tier falls back to its
        highest tier below it.
        """
        reachable = [(entry, tags) for entry, tags in tagged if int(tags.get(SDK, 1)) <= floor]
        default_tier = int(universe.default_for(TIER))
        module_tiers = {int(tags[TIER]) for _, tags in reachable if TIER in tags} | {default_tier}
        effective_tier = max((t for t in module_tiers if t <= tier), default=default_tier)

        selected = []
        for entry, tags in reachable:
            if TIER in tags and int(tags[TIER]) != effective_tier:
                continue
            if abi is not None and ABI in tags and tags[ABI] != abi:
                continue
            if texture is not None and TEXTURE in tags and tags[TEXTURE] != texture:
                continue
            selected.append(entry)
        return tuple(selected)

    def plan(self, bundle: AppBundle) -> BuildPlan:
        """Decide which variants to build and what content each one carries.

        Raises:
            ValidationError: If the base or instant modules are missing.
            MalformedTargetingError: If any entry carries an invalid tag.
            InstantVariantEmptyError: If instant modules are declared without the base.
        """
        self._validate_bundle(bundle)
        universe = bundle.universe()
        metadata = bundle.metadata
        modules = bundle.module_names()
        tagged: dict[str, list[Tagged]] = {
            name: [(entry, universe.parse_tags(name, entry.targeting_tags)) for entry in bundle.modules[name]]
            for name in modules
        }
        default_tier = int(universe.default_for(TIER))
        threshold = self.config.standalone_sdk_threshold

        floors = {metadata.min_sdk}
        floors |= {int(v) for v in self._observed(tagged, SDK) if int(v) > metadata.min_sdk}
        if metadata.min_sdk < threshold:
            floors.add(threshold)
        standalone_floors = sorted(f for f in floors if f < threshold) if self.config.generate_standalone else []
        split_floors = sorted(f for f in floors if f >= threshold)
        variant_floors = standalone_floors + split_floors

        def sdk_targeting(floor: int, alternatives: list[int]) -> TargetingValue:
            return TargetingValue.of(SDK, floor, alternatives)

        plans: list[VariantPlan] = []

        textures = self._observed(tagged, TEXTURE)
        standalone_texture = universe.default_for(TEXTURE) or (sort_values(TEXTURE, textures)[0] if textures else None)
        for floor in standalone_floors:
            abis = sort_values(ABI, self._observed(tagged, ABI, floor))
            for abi in abis or [None]:
                targeting = VariantTargeting(
                    sdk_version=sdk_targeting(floor, variant_floors),
                    abi=TargetingValue.of(ABI, abi, abis) if abi else None,
                )
                entries = {
                    name: self._select(
                        tagged[name], universe, floor=floor, tier=default_tier, abi=abi, texture=standalone_texture
                    )
                    for name in modules
                }
                plans.append(VariantPlan(kind=VariantKind.STANDALONE, targeting=targeting, entries=entries))

        tier_axis = any(
            TIER in tags and int(tags[TIER]) != default_tier for entries in tagged.values() for _, tags in entries
        )
        for floor in split_floors:
            tiers = sorted({int(t) for t in self._observed(tagged, TIER, floor)} | {default_tier}, reverse=True)
            for tier in tiers if tier_axis else [None]:
                targeting = VariantTargeting(
                    sdk_version=sdk_targeting(floor, variant_floors),
                    device_tier=TargetingValue.of(TIER, tier, tiers) if tier is not None else None,
                )
                entries = {
                    name: self._select(
                        tagged[name], universe, floor=floor, tier=default_tier if tier is None else tier
                    )
                    for name in modules
                }
                plans.append(VariantPlan(kind=VariantKind.SPLIT, targeting=targeting, entries=entries))

        if self._wants_instant(bundle):
            floor = max(metadata.min_sdk, threshold)
            instant = set(metadata.instant_modules)
            entries = {
                name: self._select(tagged[name], universe, floor=floor, tier=default_tier)
                for name in modules
                if name in instant
            }
            plans.append(
                VariantPlan(
                    kind=VariantKind.INSTANT,
                    targeting=VariantTargeting(sdk_version=sdk_targeting(floor, [])),
                    entries=entries,
                )
            )

        plans.sort(key=VariantPlan.sort_key)
        counters: dict[tuple[VariantKind, Any], int] = defaultdict(int)
        ordered = []
        for plan in plans:
            family = (plan.kind, plan.targeting.abi.value if plan.targeting.abi else None)
            counters[family] += 1
            ordered.append(
                VariantPlan(kind=plan.kind, targeting=plan.targeting, entries=plan.entries, ordinal=counters[family])
            )

        logger.info(
            "Planned variants",
            variants=len(ordered),
            standalone_floors=standalone_floors,
            split_floors=split_floors,
            device_tier_axis=tier_axis,
        )
        return BuildPlan(bundle=bundle, universe=universe, variants=tuple(ordered))

    def generate_module(self, build_plan: BuildPlan, index: int, module_name: str) -> ApkSet:
        """Run the Split Generator for one module of one planned variant."""
        plan = build_plan.variants[index]
        generator = SplitGenerator(build_plan.universe)
        return generator.generate(module_name, plan.entries[module_name], plan.naming)

    def _flatten(self, plan: VariantPlan, apk_sets: list[ApkSet], base_module: str) -> ApkSet:
        entries: list[str] = []
        size = 0
        for apk_set in apk_sets:
            for description in apk_set.apk_descriptions:
                entries.extend(description.entries)
                size += description.size_bytes
        abi = plan.targeting.abi
        name = f"standalone-{abi.value}" if abi else "standalone"
        tail = f"_{plan.ordinal}" if plan.ordinal > 1 else ""
        description = ApkDescription(
            targeting=ApkTargeting(abi=abi),
            path=f"standalones/{name}{tail}.apk",
            is_master_split=True,
            entries=tuple(entries),
            size_bytes=size,
        )
        return ApkSet(module_name=base_module, apk_descriptions=(description,))

    def _fit_instant(
        self, apk_sets: list[ApkSet], base_module: str, warnings: list[InstantSizeExceededError]
    ) -> list[ApkSet]:
        ceiling = self.config.instant_size_ceiling_bytes
        kept: list[ApkSet] = []
        dropped: list[str] = []
        for apk_set in apk_sets:
            size = instant_download_size(apk_set)
            if size < ceiling:
                kept.append(apk_set)
                continue
            dropped.append(apk_set.module_name)
            warnings.append(
                InstantSizeExceededError(
                    message="module dropped from the instant variant",
                    module_name=apk_set.module_name,
                    size_bytes=size,
                    ceiling_bytes=ceiling,
                )
            )
            logger.warning(
                "Dropping module from instant variant",
                module=apk_set.module_name,
                size_bytes=size,
                ceiling_bytes=ceiling,
            )
        if base_module in dropped:
            raise InstantVariantEmptyError(
                message=f"base module '{base_module}' exceeds the instant size ceiling",
                dropped_modules=dropped,
                context={"ceiling_bytes": ceiling},
            )
        return kept

    def assemble(self, build_plan: BuildPlan, module_sets: Mapping[tuple[int, str], ApkSet]) -> Assembly:
        """Turn generated module sets into the final variant tree.

        Args:
            build_plan: The plan the sets were generated from.
            module_sets: ApkSet per (variant index, module) job.

        Returns:
            Assembly with the BuildApksResult and instant-drop warnings.

        Raises:
            MalformedTargetingError: If splits of one set overlap.
            IncompleteTargetingError: If splits of one set leave device values uncovered.
            InstantVariantEmptyError: If the base module cannot fit the instant variant.
        """
        base_module = build_plan.bundle.metadata.base_module
        warnings: list[InstantSizeExceededError] = []
        variants: list[Variant] = []
        for index, plan in enumerate(build_plan.variants):
            apk_sets = [module_sets[(index, module)] for module in plan.modules]
            for apk_set in apk_sets:
                validate_apk_set(apk_set, build_plan.universe)
            if plan.kind == VariantKind.STANDALONE:
                apk_sets = [self._flatten(plan, apk_sets, base_module)]
            elif plan.kind == VariantKind.INSTANT:
                apk_sets = self._fit_instant(apk_sets, base_module, warnings)
            variants.append(
                Variant(
                    variant_number=index,
                    kind=plan.kind,
                    targeting=plan.targeting,
                    apk_sets=tuple(apk_sets),
                )
            )

        result = BuildApksResult(package_name=build_plan.bundle.metadata.package_name, variants=tuple(variants))
        logger.info(
            "Assembled variants",
            total=len(variants),
            standalone=sum(v.kind == VariantKind.STANDALONE for v in variants),
            split=sum(v.kind == VariantKind.SPLIT for v in variants),
            instant=sum(v.kind == VariantKind.INSTANT for v in variants),
            warnings=len(warnings),
        )
        return Assembly(result=result, warnings=warnings)

    def build(self, bundle: AppBundle) -> Assembly:
        """Plan, generate and assemble sequentially in the calling thread."""
        build_plan = self.plan(bundle)
        module_sets = {
            (index, module): self.generate_module(build_plan, index, module) for index, module in build_plan.jobs()
        }
        return self.assemble(build_plan, module_sets)

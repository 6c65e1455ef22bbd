"""
Result Classifier.

Read-only queries over a BuildApksResult. Families come from the ``kind``
recorded on each variant when it was assembled, so a split variant that
happens to have a single master APK is never mistaken for a standalone one.
"""

from __future__ import annotations

from ...models.result import BuildApksResult, Variant, VariantKind


def is_standalone_apk_variant(variant: Variant) -> bool:
    return variant.kind == VariantKind.STANDALONE


def is_split_apk_variant(variant: Variant) -> bool:
    return variant.kind == VariantKind.SPLIT


def is_instant_apk_variant(variant: Variant) -> bool:
    return variant.kind == VariantKind.INSTANT


def standalone_apk_variants(result: BuildApksResult) -> list[Variant]:
    """Standalone variants in result order."""
    return [v for v in result.variants if is_standalone_apk_variant(v)]


def split_apk_variants(result: BuildApksResult) -> list[Variant]:
    """Split variants in result order."""
    return [v for v in result.variants if is_split_apk_variant(v)]


def instant_apk_variants(result: BuildApksResult) -> list[Variant]:
    """Instant variants in result order."""
    return [v for v in result.variants if is_instant_apk_variant(v)]


def variants_by_kind(result: BuildApksResult) -> dict[VariantKind, list[Variant]]:
    """Group variants by family; every family is present, possibly empty."""
    grouped: dict[VariantKind, list[Variant]] = {kind: [] for kind in VariantKind}
    for variant in result.variants:
        grouped[variant.kind].append(variant)
    return grouped


def apk_paths(variant: Variant) -> list[str]:
    """Every APK path of a variant, module by module."""
    return [d.path for apk_set in variant.apk_sets for d in apk_set.apk_descriptions]

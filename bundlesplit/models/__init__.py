"""
bundlesplit data models.

Pydantic models for bundle input, device specifications, targeting and the
generated variant tree. All of them are immutable once constructed.
"""

from .bundle import AppBundle, BundleMetadata, ContentEntry
from .device import DeviceSpec
from .result import ApkDescription, ApkSet, BuildApksResult, Variant, VariantKind, infer_variant_kind
from .targeting import (
    SPLIT_DIMENSIONS,
    VARIANT_DIMENSIONS,
    ApkTargeting,
    TargetingDimension,
    TargetingUniverse,
    TargetingValue,
    VariantTargeting,
)

__all__ = [
    # Bundle input
    "AppBundle",
    "BundleMetadata",
    "ContentEntry",
    # Device
    "DeviceSpec",
    # Targeting
    "SPLIT_DIMENSIONS",
    "VARIANT_DIMENSIONS",
    "ApkTargeting",
    "TargetingDimension",
    "TargetingUniverse",
    "TargetingValue",
    "VariantTargeting",
    # Build result
    "ApkDescription",
    "ApkSet",
    "BuildApksResult",
    "Variant",
    "VariantKind",
    "infer_variant_kind",
]

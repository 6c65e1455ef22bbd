"""Variant assembly service."""

from .service import (
    Assembly,
    BuildPlan,
    VariantAssembler,
    VariantPlan,
    instant_download_size,
    validate_apk_set,
)

__all__ = [
    "Assembly",
    "BuildPlan",
    "VariantAssembler",
    "VariantPlan",
    "instant_download_size",
    "validate_apk_set",
]

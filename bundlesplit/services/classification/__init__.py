"""Result classification helpers."""

from .service import (
    apk_paths,
    instant_apk_variants,
    is_instant_apk_variant,
    is_split_apk_variant,
    is_standalone_apk_variant,
    split_apk_variants,
    standalone_apk_variants,
    variants_by_kind,
)

__all__ = [
    "apk_paths",
    "instant_apk_variants",
    "is_instant_apk_variant",
    "is_split_apk_variant",
    "is_standalone_apk_variant",
    "split_apk_variants",
    "standalone_apk_variants",
    "variants_by_kind",
]

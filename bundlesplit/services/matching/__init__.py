"""Device matching service."""

from .service import DeviceMatcher, MatchedApks, variant_matches

__all__ = ["DeviceMatcher", "MatchedApks", "variant_matches"]

"""Services package for bundlesplit."""

from .splitting import ApkNaming, SplitGenerator
from .assembly import Assembly, BuildPlan, VariantAssembler
from .build import BuildApksInput, BuildApksOutput, BuildApksService
from .matching import DeviceMatcher, MatchedApks

__all__ = [
    "ApkNaming",
    "SplitGenerator",
    "Assembly",
    "BuildPlan",
    "VariantAssembler",
    "BuildApksInput",
    "BuildApksOutput",
    "BuildApksService",
    "DeviceMatcher",
    "MatchedApks",
]

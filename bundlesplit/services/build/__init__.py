"""Build orchestration service."""

from .service import BuildApksInput, BuildApksOutput, BuildApksService

__all__ = ["BuildApksInput", "BuildApksOutput", "BuildApksService"]

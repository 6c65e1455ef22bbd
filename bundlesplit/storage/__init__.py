"""Artifact storage for bundlesplit."""

from .interface import ArtifactStore
from .local import LocalArtifactStore

__all__ = ["ArtifactStore", "LocalArtifactStore"]

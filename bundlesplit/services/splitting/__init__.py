"""Split generation service."""

from .service import ApkNaming, SplitGenerator

__all__ = ["ApkNaming", "SplitGenerator"]

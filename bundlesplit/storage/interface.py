"""
Artifact store interface.

Build outputs (the variant table of contents and anything derived from it)
are written through this interface so the CLI and services do not care
whether they land on a local disk or elsewhere.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from typing import Any, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class ArtifactStore(ABC):
    """Abstract store for build artifacts."""

    @abstractmethod
    async def store_text(self, key: str, content: str, metadata: dict[str, Any] | None = None) -> str:
        """Store a text document.

        Args:
            key: Storage key, a relative slash-separated path.
            content: Document body.
            metadata: Extra fields recorded in the document's sidecar.

        Returns:
            The normalized key the document was stored under.
        """
        ...

    @abstractmethod
    async def store_model(self, key: str, model: BaseModel, metadata: dict[str, Any] | None = None) -> str:
        """Store a pydantic model as camelCase JSON."""
        ...

    @abstractmethod
    async def load_text(self, key: str) -> str:
        """Load a text document.

        Raises:
            FileNotFoundError: If nothing is stored under the key.
        """
        ...

    @abstractmethod
    async def load_model(self, key: str, model_type: type[T]) -> T:
        """Load and validate a stored model."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool: ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a document and its sidecar; False if it was not there."""
        ...

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> list[str]:
        """Sorted keys under a prefix, sidecars excluded."""
        ...

    @abstractmethod
    async def get_metadata(self, key: str) -> dict[str, Any]:
        """Sidecar metadata of a key, or an empty dict."""
        ...

    @staticmethod
    def compute_hash(data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

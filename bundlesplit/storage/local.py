"""
Local filesystem artifact store.

Every document is written next to a ``<key>.meta.json`` sidecar recording its
hash, size, model type and storage time.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, TypeVar

import aiofiles
import aiofiles.os
from pydantic import BaseModel

from ..core.exceptions import ValidationError
from ..core.logging import get_logger
from .interface import ArtifactStore

T = TypeVar("T", bound=BaseModel)

logger = get_logger(__name__)

METADATA_SUFFIX = ".meta.json"


class LocalArtifactStore(ArtifactStore):
    """Artifact store rooted at a local directory."""

    def __init__(self, base_path: Path) -> None:
        """Initialize the store.

        Args:
            base_path: Directory every key is resolved under; created lazily.
        """
        self.base_path = Path(base_path).resolve()

    @staticmethod
    def normalize_key(key: str) -> str:
        """Canonical form of a key.

        Raises:
            ValidationError: If the key is empty or climbs out of the store.
        """
        parts = [p for p in PurePosixPath(key.replace("\\", "/")).parts if p not in ("/", ".", "")]
        if not parts or ".." in parts:
            raise ValidationError(message=f"invalid storage key {key!r}", field_name="key")
        return "/".join(parts)

    def _path(self, key: str) -> Path:
        return self.base_path.joinpath(*self.normalize_key(key).split("/"))

    def _meta_path(self, key: str) -> Path:
        path = self._path(key)
        return path.with_name(path.name + METADATA_SUFFIX)

    async def _write(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(content)

    async def store_text(self, key: str, content: str, metadata: dict[str, Any] | None = None) -> str:
        key = self.normalize_key(key)
        await self._write(self._path(key), content)

        meta = dict(metadata or {})
        encoded = content.encode("utf-8")
        meta["size_bytes"] = len(encoded)
        meta["hash"] = self.compute_hash(encoded)
        meta["_key"] = key
        meta["_stored_at"] = datetime.now(timezone.utc).isoformat()
        await self._write(self._meta_path(key), json.dumps(meta, indent=2, default=str))

        logger.debug("Stored artifact", key=key, size_bytes=meta["size_bytes"])
        return key

    async def store_model(self, key: str, model: BaseModel, metadata: dict[str, Any] | None = None) -> str:
        meta = dict(metadata or {})
        meta["model_type"] = type(model).__name__
        return await self.store_text(key, model.model_dump_json(by_alias=True, indent=2), meta)

    async def load_text(self, key: str) -> str:
        path = self._path(key)
        if not path.is_file():
            raise FileNotFoundError(f"Key not found: {key}")
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return await f.read()

    async def load_model(self, key: str, model_type: type[T]) -> T:
        return model_type.model_validate_json(await self.load_text(key))

    async def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    async def delete(self, key: str) -> bool:
        path = self._path(key)
        meta_path = self._meta_path(key)
        if meta_path.exists():
            await aiofiles.os.remove(meta_path)
        if not path.is_file():
            return False
        await aiofiles.os.remove(path)
        return True

    async def list_keys(self, prefix: str = "") -> list[str]:
        root = self._path(prefix) if prefix.strip("/") else self.base_path
        if not root.exists():
            return []
        return sorted(
            path.relative_to(self.base_path).as_posix()
            for path in root.rglob("*")
            if path.is_file() and not path.name.endswith(METADATA_SUFFIX)
        )

    async def get_metadata(self, key: str) -> dict[str, Any]:
        meta_path = self._meta_path(key)
        if not meta_path.exists():
            return {}
        async with aiofiles.open(meta_path, "r", encoding="utf-8") as f:
            return json.loads(await f.read())

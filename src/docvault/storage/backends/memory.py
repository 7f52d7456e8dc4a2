from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

from ..base import FileNotFoundError, QuotaExceededError, StorageBackend, validate_key


class MemoryBackend(StorageBackend):
    """Process-local object store for tests and throwaway runs.

    ``max_size`` caps the total bytes held; replacing an object only counts
    the size difference.
    """

    def __init__(self, base_url: str = "memory://", max_size: Optional[int] = None):
        self.base_url = base_url.rstrip("/") if base_url != "memory://" else base_url
        self.max_size = max_size
        self._objects: dict[str, bytes] = {}
        self._metadata: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    def _total_size(self) -> int:
        return sum(len(v) for v in self._objects.values())

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> str:
        validate_key(key)
        async with self._lock:
            if self.max_size is not None:
                projected = self._total_size() - len(self._objects.get(key, b"")) + len(data)
                if projected > self.max_size:
                    raise QuotaExceededError(
                        f"Storage quota exceeded: {projected} > {self.max_size} bytes"
                    )
            self._objects[key] = bytes(data)
            self._metadata[key] = {
                **(metadata or {}),
                "size": len(data),
                "content_type": content_type,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
        return self.public_url(key)

    async def get(self, key: str) -> bytes:
        validate_key(key)
        try:
            return self._objects[key]
        except KeyError:
            raise FileNotFoundError(f"Object not found: {key}") from None

    async def delete(self, key: str) -> bool:
        validate_key(key)
        async with self._lock:
            self._metadata.pop(key, None)
            return self._objects.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        validate_key(key)
        return key in self._objects

    def public_url(self, key: str) -> str:
        if self.base_url == "memory://":
            return f"memory://{key}"
        return f"{self.base_url}/{key}"

    async def list_keys(self, prefix: str = "", limit: Optional[int] = None) -> list[str]:
        keys = sorted(k for k in self._objects if k.startswith(prefix))
        return keys[:limit] if limit else keys

    async def get_metadata(self, key: str) -> dict[str, Any]:
        validate_key(key)
        try:
            return dict(self._metadata[key])
        except KeyError:
            raise FileNotFoundError(f"Object not found: {key}") from None

    async def clear(self) -> None:
        async with self._lock:
            self._objects.clear()
            self._metadata.clear()

    def get_stats(self) -> dict[str, Any]:
        return {
            "file_count": len(self._objects),
            "total_size": self._total_size(),
            "max_size": self.max_size,
        }

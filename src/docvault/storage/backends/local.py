from __future__ import annotations

import asyncio
import json
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..base import FileNotFoundError, StorageBackend, StorageError, validate_key

METADATA_DIR = ".meta"


class LocalBackend(StorageBackend):
    """Objects as files under ``base_path``; metadata as JSON under ``.meta/``.

    Blocking filesystem calls run in the default executor so the event loop
    stays responsive.
    """

    def __init__(self, base_path: str | Path, base_url: str):
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/")
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_file_path(self, key: str) -> Path:
        validate_key(key)
        return self.base_path / key

    def _get_metadata_path(self, key: str) -> Path:
        validate_key(key)
        return self.base_path / METADATA_DIR / f"{key}.json"

    def _write(self, key: str, data: bytes, meta: dict[str, Any]) -> None:
        path = self._get_file_path(key)
        meta_path = self._get_metadata_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        meta_path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        meta_path.write_text(json.dumps(meta), encoding="utf-8")

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> str:
        meta = {
            **(metadata or {}),
            "size": len(data),
            "content_type": content_type,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await asyncio.to_thread(self._write, key, data, meta)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e
        return self.public_url(key)

    async def get(self, key: str) -> bytes:
        path = self._get_file_path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            if not path.exists():
                raise FileNotFoundError(f"Object not found: {key}") from e
            raise StorageError(f"Failed to read {key}: {e}") from e

    def _unlink(self, key: str) -> bool:
        path = self._get_file_path(key)
        if not path.is_file():
            return False
        path.unlink()
        self._get_metadata_path(key).unlink(missing_ok=True)
        return True

    async def delete(self, key: str) -> bool:
        try:
            return await asyncio.to_thread(self._unlink, key)
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        path = self._get_file_path(key)
        return await asyncio.to_thread(path.is_file)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def _scan(self) -> list[str]:
        keys = []
        for path in self.base_path.rglob("*"):
            rel = path.relative_to(self.base_path)
            if path.is_file() and rel.parts[0] != METADATA_DIR:
                keys.append(rel.as_posix())
        return sorted(keys)

    async def list_keys(self, prefix: str = "", limit: Optional[int] = None) -> list[str]:
        keys = [k for k in await asyncio.to_thread(self._scan) if k.startswith(prefix)]
        return keys[:limit] if limit else keys

    async def get_metadata(self, key: str) -> dict[str, Any]:
        meta_path = self._get_metadata_path(key)
        if not await self.exists(key):
            raise FileNotFoundError(f"Object not found: {key}")
        try:
            text = await asyncio.to_thread(meta_path.read_text, encoding="utf-8")
        except OSError:
            return {}
        return json.loads(text)

    async def clear(self) -> None:
        await asyncio.to_thread(shutil.rmtree, self.base_path, True)
        self.base_path.mkdir(parents=True, exist_ok=True)

"""Object storage contract.

Keys are ``/``-separated relative paths (``<owner-id>/<file name>``). Every
backend validates keys the same way and raises the errors defined here, all of
which are :class:`~docvault.exceptions.BackendError` subclasses so callers can
treat storage failures like any other remote failure.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from docvault.exceptions import BackendError

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 1024
UNSAFE_KEY_CHARS = re.compile(r'[<>:"|?*\\\x00-\x1f]')


class StorageError(BackendError):
    """Base class for storage failures."""


class FileNotFoundError(StorageError):  # noqa: A001 - mirrors the builtin on purpose
    """No object is stored under the key."""


class InvalidKeyError(StorageError):
    """The key is empty, absolute, traverses upward or has unsafe characters."""


class QuotaExceededError(StorageError):
    """Storing the object would exceed the backend's byte quota."""


def validate_key(key: str) -> None:
    if not key:
        raise InvalidKeyError("Storage key must not be empty")
    if key.startswith("/"):
        raise InvalidKeyError(f"Storage key must be relative: {key!r}")
    if len(key) > MAX_KEY_LENGTH:
        raise InvalidKeyError(f"Storage key longer than {MAX_KEY_LENGTH} characters")
    if ".." in key.split("/"):
        raise InvalidKeyError(f"Storage key must not contain '..': {key!r}")
    if UNSAFE_KEY_CHARS.search(key):
        raise InvalidKeyError(f"Storage key contains unsafe characters: {key!r}")


@dataclass
class RemoveResult:
    """Outcome of a multi-key remove; failures are reported, not raised."""

    removed: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class StorageBackend(ABC):
    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> str:
        """Store ``data`` under ``key`` and return its public URL."""

    @abstractmethod
    async def get(self, key: str) -> bytes: ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete one object. Returns False when nothing was stored."""

    @abstractmethod
    async def exists(self, key: str) -> bool: ...

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Publicly resolvable URL for ``key``; does not check existence."""

    @abstractmethod
    async def list_keys(self, prefix: str = "", limit: Optional[int] = None) -> list[str]: ...

    @abstractmethod
    async def get_metadata(self, key: str) -> dict[str, Any]: ...

    async def remove(self, keys: Iterable[str]) -> RemoveResult:
        result = RemoveResult()
        for key in keys:
            try:
                if await self.delete(key):
                    result.removed.append(key)
                else:
                    result.missing.append(key)
            except StorageError as e:
                logger.warning("Failed to remove %s: %s", key, e, extra={"storage_path": key})
                result.failed[key] = e.message
        return result


def key_from_url(url: str) -> str:
    """Storage key of a public URL: its last two path segments (``owner/file``)."""
    parts = url.split("?", 1)[0].rstrip("/").split("/")
    return "/".join(p for p in parts[-2:] if p)


__all__ = [
    "StorageBackend",
    "StorageError",
    "FileNotFoundError",
    "InvalidKeyError",
    "QuotaExceededError",
    "RemoveResult",
    "key_from_url",
    "validate_key",
]

from .backends import LocalBackend, MemoryBackend
from .base import (
    FileNotFoundError,
    InvalidKeyError,
    QuotaExceededError,
    RemoveResult,
    StorageBackend,
    StorageError,
    key_from_url,
)
from .easy import easy_storage

__all__ = [
    "StorageBackend",
    "StorageError",
    "FileNotFoundError",
    "InvalidKeyError",
    "QuotaExceededError",
    "RemoveResult",
    "LocalBackend",
    "MemoryBackend",
    "easy_storage",
    "key_from_url",
]

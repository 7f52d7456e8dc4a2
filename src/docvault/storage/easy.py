from __future__ import annotations

import logging
from typing import Optional

from docvault.settings import DocVaultSettings, get_settings

from .backends import LocalBackend, MemoryBackend
from .base import StorageBackend

logger = logging.getLogger(__name__)


def easy_storage(settings: Optional[DocVaultSettings] = None) -> StorageBackend:
    """Build the storage backend named by ``DOCVAULT_STORAGE_BACKEND``.

    Public URLs take the form ``<public_base_url>/<bucket>/<owner>/<file>``.
    """
    settings = settings or get_settings()
    public_root = f"{settings.public_base_url.rstrip('/')}/{settings.bucket}"
    if settings.storage_backend == "memory":
        logger.debug("Using in-memory storage")
        return MemoryBackend(base_url=public_root, max_size=settings.max_storage_bytes)
    path = settings.storage_path / settings.bucket
    logger.debug("Using local storage at %s", path)
    return LocalBackend(base_path=path, base_url=public_root)

"""Application-level document operations.

Each operation is an ordered sequence of backend and storage calls. The
backend offers no transaction across those calls, so the order is the
consistency story:

* the row write is the durability point of create/update; anything after it
  that fails raises :class:`PartialFailureError` carrying the written record;
* storage cleanup (old file on update, file on delete) is best effort: logged
  and reported, never raised.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from docvault.auth.session import SessionManager
from docvault.exceptions import (
    BackendError,
    DocVaultError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from docvault.storage.base import StorageBackend, StorageError, key_from_url

from .models import (
    Category,
    CleanupResult,
    DeleteResult,
    Document,
    DocumentData,
    DocumentWithCategories,
    FileUpload,
)
from .query import SearchQuery, parse_keywords

if TYPE_CHECKING:
    from docvault.backend.base import DocumentBackend

logger = logging.getLogger(__name__)


def object_name(file: FileUpload) -> str:
    """Millisecond timestamp, random suffix, original extension."""
    name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
    return f"{name}.{file.extension}" if file.extension else name


class DocumentRepository:
    def __init__(self, backend: "DocumentBackend", storage: StorageBackend, sessions: SessionManager):
        self.backend = backend
        self.storage = storage
        self.sessions = sessions

    async def _owner_or_none(self) -> Optional[uuid.UUID]:
        state = await self.sessions.wait_resolved()
        return state.user.id if state.user is not None else None

    async def _upload(self, file: FileUpload, owner_id: uuid.UUID) -> str:
        key = f"{owner_id}/{object_name(file)}"
        url = await self.storage.put(
            key, file.data, file.content_type, metadata={"original_name": file.name}
        )
        logger.debug("Uploaded %s", key, extra={"storage_path": key, "user_id": str(owner_id)})
        return url

    async def _cleanup(self, file_url: str) -> CleanupResult:
        key = key_from_url(file_url)
        if not key:
            return CleanupResult(storage_path=key, removed=False, error="no storage path in URL")
        try:
            removed = await self.storage.delete(key)
        except StorageError as e:
            logger.warning("Error deleting file from storage: %s", e.message, extra={"storage_path": key})
            return CleanupResult(storage_path=key, removed=False, error=e.message)
        if not removed:
            logger.info("Stored object already gone", extra={"storage_path": key})
        return CleanupResult(storage_path=key, removed=removed)

    async def _replace_links(self, document_id: uuid.UUID, category_ids: Sequence[int]) -> None:
        await self.backend.delete_links(document_id)
        if category_ids:
            await self.backend.insert_links(document_id, category_ids)

    @staticmethod
    def _validate(data: DocumentData) -> None:
        if not data.title or not data.title.strip():
            raise ValidationError("Title is required.", field="title")

    # -- reads --------------------------------------------------------------

    async def list(self, owner_id: Optional[uuid.UUID] = None) -> list[Document]:
        """Documents of ``owner_id`` (default: the signed-in user), newest first."""
        owner_id = owner_id or await self._owner_or_none()
        if owner_id is None:
            return []
        return await self.backend.select_documents(owner_id)

    async def search(self, query_text: str | None) -> list[Document]:
        """Prefix AND search over title and description; blank lists everything."""
        owner_id = await self._owner_or_none()
        if owner_id is None:
            return []
        query = SearchQuery.parse(query_text)
        if query.is_empty:
            return await self.backend.select_documents(owner_id)
        return await self.backend.search_documents(owner_id, query)

    async def get_by_id(self, document_id: uuid.UUID) -> DocumentWithCategories:
        owner_id = await self._owner_or_none()
        if owner_id is None:
            raise NotFoundError("Document not found")
        doc = await self.backend.get_document(document_id, owner_id=owner_id)
        if doc is None:
            raise NotFoundError("Document not found")
        unique = {c.id: c for c in doc.categories}
        doc.categories = sorted(unique.values(), key=lambda c: (c.name.casefold(), c.id))
        return doc

    async def list_categories(self) -> list[Category]:
        return await self.backend.select_categories()

    async def create_category(self, name: str) -> Category:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name is required.", field="name")
        return await self.backend.insert_category(name)

    # -- writes -------------------------------------------------------------

    async def create(
        self,
        data: DocumentData,
        file: Optional[FileUpload],
        category_ids: Iterable[int] = (),
    ) -> Document:
        self._validate(data)
        if file is None or not file.name:
            raise ValidationError("A file is required.", field="file")
        category_ids = list(dict.fromkeys(category_ids))
        user = await self.sessions.require_user()

        file_url = await self._upload(file, user.id)
        try:
            document = await self.backend.insert_document(
                {
                    "user_id": user.id,
                    "title": data.title,
                    "description": data.description,
                    "keywords": parse_keywords(data.keywords),
                    "file_url": file_url,
                }
            )
        except BackendError:
            logger.error(
                "Insert failed; uploaded object left orphaned",
                extra={"storage_path": key_from_url(file_url), "user_id": str(user.id)},
            )
            raise
        logger.info("Created document %s", document.id, extra={"document_id": str(document.id)})

        if category_ids:
            try:
                await self.backend.insert_links(document.id, category_ids)
            except DocVaultError as e:
                raise PartialFailureError(
                    "Document created, but failed to link categories.",
                    document=document,
                    step="link_categories",
                    cause=e,
                ) from e
        return document

    async def update(
        self,
        document_id: uuid.UUID,
        data: DocumentData,
        category_ids: Iterable[int] = (),
        new_file: Optional[FileUpload] = None,
    ) -> Document:
        self._validate(data)
        category_ids = list(dict.fromkeys(category_ids))
        user = await self.sessions.require_user()

        values: dict = {}
        if new_file is not None:
            old_url = await self.backend.get_document_file_url(document_id, owner_id=user.id)
            if old_url is None:
                raise NotFoundError("Document not found")
            values["file_url"] = await self._upload(new_file, user.id)
            await self._cleanup(old_url)

        values.update(
            title=data.title,
            description=data.description,
            keywords=parse_keywords(data.keywords),
            updated_at=datetime.now(timezone.utc),
        )
        document = await self.backend.update_document(document_id, values, owner_id=user.id)
        if document is None:
            raise NotFoundError("Document not found")
        logger.info("Updated document %s", document.id, extra={"document_id": str(document.id)})

        try:
            await self._replace_links(document.id, category_ids)
        except DocVaultError as e:
            raise PartialFailureError(
                "Document updated, but failed to sync categories.",
                document=document,
                step="sync_categories",
                cause=e,
            ) from e
        return document

    async def delete(self, document: Document) -> DeleteResult:
        """Remove the stored file (best effort), then the links and the row."""
        user = await self.sessions.require_user()
        stored_url = await self.backend.get_document_file_url(document.id, owner_id=user.id)
        if stored_url is None:
            raise NotFoundError("Document not found")
        cleanup = await self._cleanup(stored_url)

        await self.backend.delete_links(document.id)
        deleted = await self.backend.delete_document(document.id, owner_id=user.id)
        if not deleted:
            raise NotFoundError("Document not found")
        logger.info("Deleted document %s", document.id, extra={"document_id": str(document.id)})
        return DeleteResult(
            document_id=document.id,
            storage_path=cleanup.storage_path,
            storage_removed=cleanup.removed,
            storage_error=cleanup.error,
        )

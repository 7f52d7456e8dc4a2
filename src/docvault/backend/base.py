"""Row-level contract the document repository consumes.

Implementations own transactions and translate driver failures into
:class:`~docvault.exceptions.BackendError`. ``owner_id`` arguments scope rows
the way row-level security would: rows of other owners are invisible.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from docvault.documents.models import Category, Document, DocumentWithCategories
from docvault.documents.query import SearchQuery


class DocumentBackend(ABC):
    @abstractmethod
    async def select_documents(self, owner_id: uuid.UUID) -> list[Document]:
        """Documents of ``owner_id``, newest first."""

    @abstractmethod
    async def search_documents(self, owner_id: uuid.UUID, query: SearchQuery) -> list[Document]:
        """Documents of ``owner_id`` matching every token as a prefix, newest first."""

    @abstractmethod
    async def get_document(
        self, document_id: uuid.UUID, *, owner_id: Optional[uuid.UUID] = None
    ) -> Optional[DocumentWithCategories]: ...

    @abstractmethod
    async def get_document_file_url(
        self, document_id: uuid.UUID, *, owner_id: Optional[uuid.UUID] = None
    ) -> Optional[str]: ...

    @abstractmethod
    async def insert_document(self, values: dict[str, Any]) -> Document: ...

    @abstractmethod
    async def update_document(
        self, document_id: uuid.UUID, values: dict[str, Any], *, owner_id: Optional[uuid.UUID] = None
    ) -> Optional[Document]:
        """Returns None when no visible row matched."""

    @abstractmethod
    async def delete_document(
        self, document_id: uuid.UUID, *, owner_id: Optional[uuid.UUID] = None
    ) -> bool: ...

    @abstractmethod
    async def select_categories(self) -> list[Category]:
        """All categories ordered by name."""

    @abstractmethod
    async def insert_category(self, name: str) -> Category: ...

    @abstractmethod
    async def insert_links(self, document_id: uuid.UUID, category_ids: Iterable[int]) -> None: ...

    @abstractmethod
    async def delete_links(self, document_id: uuid.UUID) -> int: ...

    @abstractmethod
    async def select_links(self, document_id: uuid.UUID) -> list[int]: ...

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Optional

from sqlalchemy import and_, cast, delete, func, insert, literal, select, true
from sqlalchemy.dialects.postgresql import REGCONFIG
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from docvault.db.engine import DBEngine
from docvault.db.models import CategoryRow, DocumentRow, document_categories
from docvault.db.repository import Repository
from docvault.documents.models import Category, Document, DocumentWithCategories
from docvault.documents.query import SearchQuery
from docvault.exceptions import BackendError, ConflictError

from .base import DocumentBackend

logger = logging.getLogger(__name__)


# Word boundaries for the LIKE search used outside Postgres.
_WORD_SEPARATORS = "\t\r\n()[]{}<>/-,.;:!?\"'«»"
_TO_SPACE = str.maketrans({ch: " " for ch in _WORD_SEPARATORS})


def _escape_like(token: str) -> str:
    return token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@asynccontextmanager
async def translate_errors(action: str) -> AsyncIterator[None]:
    try:
        yield
    except IntegrityError as e:
        raise ConflictError(f"{action} failed: {e.orig}") from e
    except SQLAlchemyError as e:
        raise BackendError(f"{action} failed: {e}") from e
    except OSError as e:
        raise BackendError(f"{action} failed: database unreachable ({e})") from e


class SqlDocumentBackend(DocumentBackend):
    """``DocumentBackend`` over SQLAlchemy async.

    On Postgres, search uses ``to_tsvector``/``to_tsquery`` with
    ``search_config``; other dialects match each token against word starts
    with ``LIKE``.
    """

    def __init__(self, engine: DBEngine, *, search_config: str = "french"):
        self._engine = engine
        self._search_config = search_config

    @asynccontextmanager
    async def _tx(self, action: str) -> AsyncIterator[AsyncSession]:
        async with translate_errors(action):
            async with self._engine.transaction() as session:
                yield session

    def _owned(self, stmt, document_id: uuid.UUID, owner_id: Optional[uuid.UUID]):
        stmt = stmt.where(DocumentRow.id == document_id)
        if owner_id is not None:
            stmt = stmt.where(DocumentRow.user_id == owner_id)
        return stmt

    def _search_clause(self, query: SearchQuery):
        text = func.coalesce(DocumentRow.title, "") + " " + func.coalesce(DocumentRow.description, "")
        if self._engine.dialect == "postgresql":
            config = cast(literal(self._search_config), REGCONFIG)
            return func.to_tsvector(config, text).op("@@")(func.to_tsquery(config, query.to_tsquery()))
        words = func.lower(text)
        for ch in _WORD_SEPARATORS:
            words = func.replace(words, ch, " ")
        haystack = literal(" ") + words
        prefixes = [p for p in (t.lower().translate(_TO_SPACE).strip() for t in query.tokens) if p]
        if not prefixes:
            return true()
        return and_(*[haystack.like(f"% {_escape_like(p)}%", escape="\\") for p in prefixes])

    async def select_documents(self, owner_id: uuid.UUID) -> list[Document]:
        async with self._tx("List documents") as session:
            rows = await Repository(session, DocumentRow).list(
                where={"user_id": owner_id}, order_by=DocumentRow.created_at.desc()
            )
            return [Document.model_validate(r) for r in rows]

    async def search_documents(self, owner_id: uuid.UUID, query: SearchQuery) -> list[Document]:
        logger.debug("Searching %r for owner %s", query.to_tsquery(), owner_id, extra={"user_id": str(owner_id)})
        stmt = select(DocumentRow).where(DocumentRow.user_id == owner_id)
        if not query.is_empty:
            stmt = stmt.where(self._search_clause(query))
        stmt = stmt.order_by(DocumentRow.created_at.desc())
        async with self._tx("Search documents") as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [Document.model_validate(r) for r in rows]

    async def get_document(
        self, document_id: uuid.UUID, *, owner_id: Optional[uuid.UUID] = None
    ) -> Optional[DocumentWithCategories]:
        stmt = self._owned(
            select(DocumentRow).options(selectinload(DocumentRow.categories)), document_id, owner_id
        )
        async with self._tx("Fetch document") as session:
            row = (await session.execute(stmt)).scalars().first()
            if row is None:
                return None
            return DocumentWithCategories.model_validate(row)

    async def get_document_file_url(
        self, document_id: uuid.UUID, *, owner_id: Optional[uuid.UUID] = None
    ) -> Optional[str]:
        stmt = self._owned(select(DocumentRow.file_url), document_id, owner_id)
        async with self._tx("Fetch document file URL") as session:
            return (await session.execute(stmt)).scalar_one_or_none()

    async def insert_document(self, values: dict[str, Any]) -> Document:
        async with self._tx("Insert document") as session:
            row = await Repository(session, DocumentRow).create(**values)
            return Document.model_validate(row)

    async def update_document(
        self, document_id: uuid.UUID, values: dict[str, Any], *, owner_id: Optional[uuid.UUID] = None
    ) -> Optional[Document]:
        async with self._tx("Update document") as session:
            row = (
                await session.execute(self._owned(select(DocumentRow), document_id, owner_id))
            ).scalars().first()
            if row is None:
                return None
            row = await Repository(session, DocumentRow).update(row.id, **values)
            return Document.model_validate(row)

    async def delete_document(
        self, document_id: uuid.UUID, *, owner_id: Optional[uuid.UUID] = None
    ) -> bool:
        stmt = self._owned(delete(DocumentRow), document_id, owner_id)
        async with self._tx("Delete document") as session:
            res = await session.execute(stmt)
            return bool(res.rowcount)

    async def select_categories(self) -> list[Category]:
        async with self._tx("List categories") as session:
            rows = await Repository(session, CategoryRow).list(order_by=CategoryRow.name)
            return [Category.model_validate(r) for r in rows]

    async def insert_category(self, name: str) -> Category:
        try:
            async with self._tx("Insert category") as session:
                row = await Repository(session, CategoryRow).create(name=name)
                return Category.model_validate(row)
        except ConflictError as e:
            raise ConflictError(f"Category '{name}' may already exist.") from e

    async def insert_links(self, document_id: uuid.UUID, category_ids: Iterable[int]) -> None:
        rows = [{"document_id": document_id, "category_id": cid} for cid in dict.fromkeys(category_ids)]
        if not rows:
            return
        async with self._tx("Link categories") as session:
            await session.execute(insert(document_categories), rows)

    async def delete_links(self, document_id: uuid.UUID) -> int:
        stmt = delete(document_categories).where(document_categories.c.document_id == document_id)
        async with self._tx("Unlink categories") as session:
            res = await session.execute(stmt)
            return int(res.rowcount or 0)

    async def select_links(self, document_id: uuid.UUID) -> list[int]:
        stmt = (
            select(document_categories.c.category_id)
            .where(document_categories.c.document_id == document_id)
            .order_by(document_categories.c.category_id)
        )
        async with self._tx("List category links") as session:
            return list((await session.execute(stmt)).scalars().all())

"""SqlDocumentBackend: owner scoping, links, search predicates, error translation."""

import uuid
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import OperationalError

from docvault.backend.sql import SqlDocumentBackend, translate_errors
from docvault.documents.query import SearchQuery
from docvault.exceptions import BackendError, ConflictError


async def _insert(backend, owner_id, title="Doc", description=""):
    return await backend.insert_document(
        {
            "user_id": owner_id,
            "title": title,
            "description": description,
            "keywords": ["k1", "k2"],
            "file_url": f"memory://{owner_id}/{uuid.uuid4().hex}.pdf",
        }
    )


@pytest.mark.asyncio
@pytest.mark.documents
class TestSqlDocumentBackend:
    async def test_insert_and_get(self, backend, signed_in):
        owner = signed_in.current_user.id
        doc = await _insert(backend, owner, "Lease")

        fetched = await backend.get_document(doc.id, owner_id=owner)

        assert fetched.title == "Lease"
        assert fetched.keywords == ["k1", "k2"]
        assert fetched.categories == []

    async def test_owner_scoping(self, backend, signed_in):
        owner = signed_in.current_user.id
        doc = await _insert(backend, owner)
        stranger = uuid.uuid4()

        assert await backend.get_document(doc.id, owner_id=stranger) is None
        assert await backend.get_document_file_url(doc.id, owner_id=stranger) is None
        assert await backend.update_document(doc.id, {"title": "x"}, owner_id=stranger) is None
        assert await backend.delete_document(doc.id, owner_id=stranger) is False
        assert await backend.select_documents(stranger) == []
        assert await backend.get_document_file_url(doc.id, owner_id=owner) == doc.file_url

    async def test_links(self, backend, signed_in):
        doc = await _insert(backend, signed_in.current_user.id)
        a = await backend.insert_category("a")
        b = await backend.insert_category("b")

        await backend.insert_links(doc.id, [b.id, a.id, b.id])
        assert await backend.select_links(doc.id) == [a.id, b.id]

        assert await backend.delete_links(doc.id) == 2
        assert await backend.delete_links(doc.id) == 0

    async def test_insert_links_empty_is_noop(self, backend, signed_in):
        doc = await _insert(backend, signed_in.current_user.id)

        await backend.insert_links(doc.id, [])

        assert await backend.select_links(doc.id) == []

    async def test_delete_cascades_links(self, backend, signed_in):
        doc = await _insert(backend, signed_in.current_user.id)
        cat = await backend.insert_category("a")
        await backend.insert_links(doc.id, [cat.id])

        assert await backend.delete_document(doc.id) is True
        assert await backend.select_links(doc.id) == []

    async def test_like_search_matches_word_starts(self, backend, signed_in):
        owner = signed_in.current_user.id
        hit = await _insert(backend, owner, "Tax return", "signed copy")
        await _insert(backend, owner, "Syntax notes", "")

        found = await backend.search_documents(owner, SearchQuery.parse("tax"))

        assert [d.id for d in found] == [hit.id]

    @pytest.mark.parametrize(
        "title",
        ["Annual\treport", "Annual (report)", "Q3-report", "draft,report", "2024/report", "Annual\r\nreport"],
    )
    async def test_like_search_after_punctuation(self, backend, signed_in, title):
        owner = signed_in.current_user.id
        hit = await _insert(backend, owner, title, "")
        await _insert(backend, owner, "Transport costs", "")

        found = await backend.search_documents(owner, SearchQuery.parse("report"))

        assert [d.id for d in found] == [hit.id]

    async def test_like_search_hyphenated_token(self, backend, signed_in):
        owner = signed_in.current_user.id
        hit = await _insert(backend, owner, "E-mail archive", "")
        await _insert(backend, owner, "Mail room", "")

        found = await backend.search_documents(owner, SearchQuery.parse("e-mail"))

        assert [d.id for d in found] == [hit.id]

    async def test_like_wildcards_escaped(self, backend, signed_in):
        owner = signed_in.current_user.id
        await _insert(backend, owner, "abc", "")

        assert await backend.search_documents(owner, SearchQuery.parse("_bc")) == []
        assert await backend.search_documents(owner, SearchQuery.parse("%")) == []

    async def test_duplicate_category(self, backend):
        await backend.insert_category("Tax")

        with pytest.raises(ConflictError):
            await backend.insert_category("Tax")

    async def test_driver_errors_translated(self, backend, db):
        def boom(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        with patch.object(db, "transaction", side_effect=boom):
            with pytest.raises(BackendError) as exc_info:
                await backend.select_categories()

        assert exc_info.value.message.startswith("List categories failed")


@pytest.mark.documents
class TestSearchClause:
    def test_postgres_uses_full_text_search(self):
        backend = SqlDocumentBackend(SimpleNamespace(dialect="postgresql"), search_config="french")

        clause = backend._search_clause(SearchQuery.parse("ann rep"))
        sql = str(clause.compile(dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}))

        assert "to_tsvector" in sql
        assert "@@ to_tsquery" in sql
        assert "'ann:* & rep:*'" in sql
        assert "REGCONFIG" in sql.upper()

    def test_other_dialects_use_like(self):
        backend = SqlDocumentBackend(SimpleNamespace(dialect="sqlite"))

        clause = backend._search_clause(SearchQuery.parse("ann rep"))
        sql = str(clause.compile(dialect=sqlite.dialect()))

        assert sql.count("LIKE") == 2


@pytest.mark.asyncio
class TestTranslateErrors:
    async def test_os_error(self):
        with pytest.raises(BackendError) as exc_info:
            async with translate_errors("Connect"):
                raise ConnectionRefusedError("refused")

        assert "database unreachable" in exc_info.value.message

    async def test_other_errors_pass_through(self):
        with pytest.raises(KeyError):
            async with translate_errors("Connect"):
                raise KeyError("x")

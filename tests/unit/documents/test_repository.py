"""DocumentRepository against the SQL backend and in-memory storage."""

import logging
import uuid
from unittest.mock import AsyncMock

import pytest

from docvault.documents import DocumentData
from docvault.exceptions import (
    AuthRequiredError,
    BackendError,
    ConflictError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from docvault.storage.base import StorageError, key_from_url

TEST_PASSWORD = "s3cret-pass"


async def _categories(repository, *names):
    return [await repository.create_category(n) for n in names]


@pytest.mark.asyncio
@pytest.mark.documents
class TestCreate:
    async def test_round_trip(self, repository, signed_in, storage, make_file):
        finance, tax = await _categories(repository, "Finance", "Tax")

        created = await repository.create(
            DocumentData(title="Q3 report", description="Quarterly numbers", keywords="a, b,,c "),
            make_file("report.pdf", b"pdf-bytes"),
            [finance.id, tax.id],
        )
        fetched = await repository.get_by_id(created.id)

        assert fetched.title == "Q3 report"
        assert fetched.description == "Quarterly numbers"
        assert fetched.keywords == ["a", "b", "c"]
        assert fetched.user_id == signed_in.current_user.id
        assert [c.name for c in fetched.categories] == ["Finance", "Tax"]
        assert fetched.file_url == created.file_url

    async def test_file_stored_under_owner(self, repository, signed_in, storage, make_file):
        created = await repository.create(DocumentData(title="Scan"), make_file("scan.png", b"png"), [])

        key = key_from_url(created.file_url)
        owner, name = key.split("/")
        assert owner == str(signed_in.current_user.id)
        assert name.endswith(".png")
        assert await storage.get(key) == b"png"
        assert (await storage.get_metadata(key))["original_name"] == "scan.png"

    async def test_title_is_kept_verbatim(self, repository, signed_in, make_file):
        created = await repository.create(DocumentData(title="  Padded  "), make_file(), [])

        assert (await repository.get_by_id(created.id)).title == "  Padded  "

    @pytest.mark.parametrize("title", ["", "   "])
    async def test_blank_title_rejected_before_upload(self, repository, signed_in, storage, make_file, title):
        with pytest.raises(ValidationError) as exc_info:
            await repository.create(DocumentData(title=title), make_file(), [])

        assert exc_info.value.field == "title"
        assert await storage.list_keys() == []

    async def test_file_required(self, repository, signed_in):
        with pytest.raises(ValidationError) as exc_info:
            await repository.create(DocumentData(title="No file"), None, [])

        assert exc_info.value.field == "file"

    async def test_requires_session(self, repository, storage, make_file):
        with pytest.raises(AuthRequiredError) as exc_info:
            await repository.create(DocumentData(title="Anon"), make_file(), [])

        assert exc_info.value.message == "User not found. Please log in."
        assert await storage.list_keys() == []

    async def test_insert_failure_leaves_orphan_logged(
        self, repository, signed_in, backend, storage, make_file, caplog
    ):
        backend.insert_document = AsyncMock(side_effect=BackendError("Insert document failed"))

        with caplog.at_level(logging.ERROR, logger="docvault.documents.repository"):
            with pytest.raises(BackendError):
                await repository.create(DocumentData(title="Lost"), make_file(), [])

        assert len(await storage.list_keys()) == 1
        assert "orphaned" in caplog.text

    async def test_link_failure_is_partial(self, repository, signed_in, backend, make_file):
        (finance,) = await _categories(repository, "Finance")
        backend.insert_links = AsyncMock(side_effect=BackendError("Link categories failed"))

        with pytest.raises(PartialFailureError) as exc_info:
            await repository.create(DocumentData(title="Half"), make_file(), [finance.id])

        err = exc_info.value
        assert err.step == "link_categories"
        assert err.message == "Document created, but failed to link categories."
        assert (await repository.get_by_id(err.document.id)).title == "Half"

    async def test_unknown_category_is_partial(self, repository, signed_in, make_file):
        with pytest.raises(PartialFailureError) as exc_info:
            await repository.create(DocumentData(title="Bad link"), make_file(), [9999])

        assert isinstance(exc_info.value.cause, BackendError)
        assert (await repository.get_by_id(exc_info.value.document.id)).categories == []


@pytest.mark.asyncio
@pytest.mark.documents
class TestUpdate:
    async def test_without_file_keeps_url(self, repository, signed_in, storage, make_file):
        created = await repository.create(DocumentData(title="Old", keywords="x"), make_file(), [])

        updated = await repository.update(
            created.id, DocumentData(title="New", description="d", keywords="y, z"), []
        )

        assert updated.file_url == created.file_url
        assert updated.title == "New"
        assert updated.keywords == ["y", "z"]
        assert updated.updated_at >= created.updated_at
        assert await storage.exists(key_from_url(created.file_url))

    async def test_with_file_replaces_object(self, repository, signed_in, storage, make_file):
        created = await repository.create(DocumentData(title="Doc"), make_file("v1.pdf", b"one"), [])
        old_key = key_from_url(created.file_url)

        updated = await repository.update(
            created.id, DocumentData(title="Doc"), [], new_file=make_file("v2.txt", b"two", "text/plain")
        )

        new_key = key_from_url(updated.file_url)
        assert updated.file_url != created.file_url
        assert new_key.endswith(".txt")
        assert not await storage.exists(old_key)
        assert await storage.get(new_key) == b"two"

    async def test_old_object_cleanup_failure_is_not_raised(
        self, repository, signed_in, storage, make_file, caplog
    ):
        created = await repository.create(DocumentData(title="Doc"), make_file(), [])
        storage.delete = AsyncMock(side_effect=StorageError("permission denied"))

        with caplog.at_level(logging.WARNING, logger="docvault.documents.repository"):
            updated = await repository.update(created.id, DocumentData(title="Doc"), [], new_file=make_file())

        assert updated.file_url != created.file_url
        assert "permission denied" in caplog.text

    async def test_links_fully_replaced(self, repository, signed_in, backend, make_file):
        a, b, c = await _categories(repository, "a", "b", "c")
        created = await repository.create(DocumentData(title="Doc"), make_file(), [a.id, b.id])

        await repository.update(created.id, DocumentData(title="Doc"), [b.id, c.id])
        assert await backend.select_links(created.id) == [b.id, c.id]

        await repository.update(created.id, DocumentData(title="Doc"), [])
        assert await backend.select_links(created.id) == []

    async def test_unknown_id(self, repository, signed_in):
        with pytest.raises(NotFoundError):
            await repository.update(uuid.uuid4(), DocumentData(title="Ghost"), [])

    async def test_unknown_id_with_file_uploads_nothing(self, repository, signed_in, storage, make_file):
        with pytest.raises(NotFoundError):
            await repository.update(uuid.uuid4(), DocumentData(title="Ghost"), [], new_file=make_file())

        assert await storage.list_keys() == []

    async def test_link_sync_failure_is_partial(self, repository, signed_in, backend, make_file):
        created = await repository.create(DocumentData(title="Doc"), make_file(), [])
        backend.delete_links = AsyncMock(side_effect=BackendError("Unlink categories failed"))

        with pytest.raises(PartialFailureError) as exc_info:
            await repository.update(created.id, DocumentData(title="Renamed"), [])

        assert exc_info.value.step == "sync_categories"
        assert exc_info.value.document.title == "Renamed"
        assert (await repository.get_by_id(created.id)).title == "Renamed"

    async def test_blank_title_rejected(self, repository, signed_in, make_file):
        created = await repository.create(DocumentData(title="Doc"), make_file(), [])

        with pytest.raises(ValidationError):
            await repository.update(created.id, DocumentData(title=" "), [])


@pytest.mark.asyncio
@pytest.mark.documents
class TestDelete:
    async def test_removes_row_object_and_links(self, repository, signed_in, backend, storage, make_file):
        (cat,) = await _categories(repository, "Archive")
        created = await repository.create(DocumentData(title="Bye"), make_file(), [cat.id])

        result = await repository.delete(created)

        assert result.document_id == created.id
        assert result.storage_removed is True
        assert result.storage_error is None
        assert not await storage.exists(key_from_url(created.file_url))
        assert await backend.select_links(created.id) == []
        with pytest.raises(NotFoundError):
            await repository.get_by_id(created.id)

    async def test_missing_object_still_deletes_row(self, repository, signed_in, storage, make_file):
        created = await repository.create(DocumentData(title="Bye"), make_file(), [])
        await storage.clear()

        result = await repository.delete(created)

        assert result.storage_removed is False
        assert result.storage_error is None
        with pytest.raises(NotFoundError):
            await repository.get_by_id(created.id)

    async def test_storage_failure_logged_and_reported(self, repository, signed_in, storage, make_file, caplog):
        created = await repository.create(DocumentData(title="Bye"), make_file(), [])
        storage.delete = AsyncMock(side_effect=StorageError("bucket unavailable"))

        with caplog.at_level(logging.WARNING, logger="docvault.documents.repository"):
            result = await repository.delete(created)

        assert result.storage_removed is False
        assert result.storage_error == "bucket unavailable"
        assert "bucket unavailable" in caplog.text
        with pytest.raises(NotFoundError):
            await repository.get_by_id(created.id)

    async def test_uses_stored_url_not_caller_copy(self, repository, signed_in, storage, make_file):
        created = await repository.create(DocumentData(title="Bye"), make_file(), [])
        tampered = created.model_copy(update={"file_url": "https://files.test/documents/other/x.pdf"})

        result = await repository.delete(tampered)

        assert result.storage_path == key_from_url(created.file_url)

    async def test_unknown_document(self, repository, signed_in, make_file):
        created = await repository.create(DocumentData(title="Bye"), make_file(), [])
        await repository.delete(created)

        with pytest.raises(NotFoundError):
            await repository.delete(created)


@pytest.mark.asyncio
@pytest.mark.documents
class TestReads:
    async def test_list_newest_first(self, repository, signed_in, make_file):
        first = await repository.create(DocumentData(title="first"), make_file(), [])
        second = await repository.create(DocumentData(title="second"), make_file(), [])

        assert [d.id for d in await repository.list()] == [second.id, first.id]

    async def test_anonymous_reads(self, repository):
        assert await repository.list() == []
        assert await repository.search("anything") == []
        with pytest.raises(NotFoundError):
            await repository.get_by_id(uuid.uuid4())

    async def test_search_prefix_and(self, repository, signed_in, make_file):
        report = await repository.create(
            DocumentData(title="Annual report 2024", description="Finance summary"), make_file(), []
        )
        photos = await repository.create(
            DocumentData(title="Holiday photos", description="Beach\nannecy trip"), make_file(), []
        )

        assert [d.id for d in await repository.search("ann")] == [photos.id, report.id]
        assert [d.id for d in await repository.search("rep fin")] == [report.id]
        assert [d.id for d in await repository.search("ANNUAL")] == [report.id]
        assert await repository.search("annual holiday") == []

    async def test_search_sanitizes_operators(self, repository, signed_in, make_file):
        report = await repository.create(DocumentData(title="Annual report"), make_file(), [])

        assert [d.id for d in await repository.search("ann& (rep)")] == [report.id]
        assert [d.id for d in await repository.search("50%")] == []

    @pytest.mark.parametrize("blank", ["", "   ", None])
    async def test_blank_search_lists_everything(self, repository, signed_in, make_file, blank):
        first = await repository.create(DocumentData(title="first"), make_file(), [])
        second = await repository.create(DocumentData(title="second"), make_file(), [])

        assert [d.id for d in await repository.search(blank)] == [second.id, first.id]

    async def test_other_owners_are_invisible(self, repository, signed_in, make_file):
        mine = await repository.create(DocumentData(title="shared word"), make_file(), [])
        owner_id = signed_in.current_user.id

        await signed_in.sign_out()
        result = await signed_in.sign_up("intruder@example.com", TEST_PASSWORD)
        assert result.ok
        theirs = await repository.create(DocumentData(title="shared word"), make_file(), [])

        assert [d.id for d in await repository.search("shared")] == [theirs.id]
        assert [d.id for d in await repository.list()] == [theirs.id]
        assert [d.id for d in await repository.list(owner_id=owner_id)] == [mine.id]
        with pytest.raises(NotFoundError):
            await repository.get_by_id(mine.id)
        with pytest.raises(NotFoundError):
            await repository.update(mine.id, DocumentData(title="hijacked"), [])
        with pytest.raises(NotFoundError):
            await repository.delete(mine)

    async def test_categories_deduplicated_and_sorted(self, repository, signed_in, backend, make_file):
        zeta, alpha, beta = await _categories(repository, "zeta", "Alpha", "beta")
        created = await repository.create(
            DocumentData(title="Doc"), make_file(), [zeta.id, alpha.id, zeta.id, beta.id]
        )

        fetched = await repository.get_by_id(created.id)

        assert [c.name for c in fetched.categories] == ["Alpha", "beta", "zeta"]


@pytest.mark.asyncio
@pytest.mark.documents
class TestCategories:
    async def test_create_and_list(self, repository):
        await repository.create_category("  Tax ")
        await repository.create_category("Bills")

        assert [c.name for c in await repository.list_categories()] == ["Bills", "Tax"]

    async def test_blank_name(self, repository):
        with pytest.raises(ValidationError):
            await repository.create_category("   ")

    async def test_duplicate_name(self, repository):
        await repository.create_category("Tax")

        with pytest.raises(ConflictError) as exc_info:
            await repository.create_category("Tax")

        assert exc_info.value.message == "Category 'Tax' may already exist."
        assert isinstance(exc_info.value, BackendError)

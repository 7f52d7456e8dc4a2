"""
Root conftest.py for docvault tests.

Fixtures are organized by category:
- Database fixtures (ephemeral SQLite)
- Storage fixtures (in-memory object store)
- Auth fixtures (backend, session manager, signed-in user)
- Document fixtures (repository, sample files)
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from docvault.auth import AuthSettings, SessionManager
from docvault.auth.sql import SqlAuthBackend
from docvault.backend import SqlDocumentBackend
from docvault.db.testing import ephemeral_db
from docvault.documents import DocumentRepository, FileUpload
from docvault.storage import MemoryBackend

TEST_PASSWORD = "s3cret-pass"


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_collection_modifyitems(config, items):
    """Tag tests under `tests/unit/auth/` with the `security` marker."""
    for item in items:
        norm = str(item.fspath).replace("\\", "/")
        if "/tests/unit/auth/" in norm:
            item.add_marker(pytest.mark.security)


# =============================================================================
# DATABASE / STORAGE
# =============================================================================


@pytest_asyncio.fixture
async def db():
    async with ephemeral_db() as engine:
        yield engine


@pytest.fixture
def storage():
    return MemoryBackend(base_url="https://files.test/storage/v1/object/public/documents")


@pytest.fixture
def backend(db):
    return SqlDocumentBackend(db)


# =============================================================================
# AUTH
# =============================================================================


@pytest.fixture
def auth_settings():
    return AuthSettings(jwt_secret="test-signing-secret-with-enough-length-for-hs256")


@pytest_asyncio.fixture
async def auth_backend(db, auth_settings):
    auth = SqlAuthBackend(db, auth_settings)
    yield auth
    await auth.stop_auto_refresh()


@pytest_asyncio.fixture
async def sessions(auth_backend):
    manager = SessionManager(auth_backend)
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def signed_in(sessions):
    """A resolved, authenticated session manager."""
    await sessions.initialize()
    result = await sessions.sign_up("owner@example.com", TEST_PASSWORD)
    assert result.ok, result.error
    return sessions


# =============================================================================
# DOCUMENTS
# =============================================================================


@pytest.fixture
def repository(backend, storage, sessions):
    return DocumentRepository(backend, storage, sessions)


@pytest.fixture
def make_file():
    def _make(name: str = "report.pdf", data: bytes = b"%PDF-1.4 test", content_type: str = "application/pdf"):
        return FileUpload(name=name, content_type=content_type, data=data)

    return _make

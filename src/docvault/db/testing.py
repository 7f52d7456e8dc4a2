from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from .engine import DBEngine
from .settings import DBSettings


@asynccontextmanager
async def ephemeral_db() -> AsyncIterator[DBEngine]:
    """In-memory SQLite engine with every docvault table created."""
    settings = DBSettings(database_url="sqlite+aiosqlite:///:memory:", echo=False)
    engine = DBEngine(settings)
    await engine.create_all()
    try:
        yield engine
    finally:
        await engine.dispose()

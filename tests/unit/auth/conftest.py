from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from docvault.auth import AuthBackend, AuthEvent, AuthResponse, Session, User
from docvault.exceptions import AuthError


def make_session(email: str = "owner@example.com") -> Session:
    return Session(
        access_token=uuid.uuid4().hex,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        user=User(id=uuid.uuid4(), email=email),
    )


class FakeAuthBackend(AuthBackend):
    """In-memory auth backend; ``get_session`` can be held open with ``hold``."""

    def __init__(self, stored: Optional[Session] = None):
        super().__init__()
        self.stored = stored
        self.hold: Optional[asyncio.Event] = None
        self.accounts: dict[str, str] = {}

    async def sign_in(self, email, password):
        if self.accounts.get(email) != password:
            raise AuthError("Invalid login credentials")
        self.stored = make_session(email)
        self._emit(AuthEvent.SIGNED_IN, self.stored)
        return AuthResponse(user=self.stored.user, session=self.stored)

    async def sign_up(self, email, password):
        if email in self.accounts:
            raise AuthError("User already registered")
        self.accounts[email] = password
        return await self.sign_in(email, password)

    async def sign_out(self):
        self.stored = None
        self._emit(AuthEvent.SIGNED_OUT, None)

    async def get_session(self):
        if self.hold is not None:
            await self.hold.wait()
        return self.stored

    async def get_user(self):
        return self.stored.user if self.stored else None

    async def refresh_session(self):
        self.stored = make_session(self.stored.user.email)
        self._emit(AuthEvent.TOKEN_REFRESHED, self.stored)
        return self.stored


@pytest.fixture
def fake_auth():
    return FakeAuthBackend()


@pytest.fixture
def session_factory():
    return make_session

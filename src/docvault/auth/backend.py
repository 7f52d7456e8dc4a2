"""Auth contract consumed by the session manager.

Backends publish session changes on a listener channel; the session manager is
the only subscriber that writes application state.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import StrEnum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    email: str
    created_at: Optional[datetime] = None


class Session(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: User

    @property
    def expired(self) -> bool:
        return self.expires_at <= datetime.now(timezone.utc)


class AuthResponse(BaseModel):
    """``session`` is None when sign-up still awaits email confirmation."""

    user: Optional[User] = None
    session: Optional[Session] = None


class AuthEvent(StrEnum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    USER_UPDATED = "USER_UPDATED"


AuthListener = Callable[[AuthEvent, Optional[Session]], None]


class AuthBackend(ABC):
    def __init__(self) -> None:
        self._listeners: list[AuthListener] = []

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: AuthEvent, session: Optional[Session]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception("Auth listener failed on %s", event, extra={"event": str(event)})

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthResponse: ...

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> AuthResponse: ...

    @abstractmethod
    async def sign_out(self) -> None: ...

    @abstractmethod
    async def get_session(self) -> Optional[Session]:
        """The persisted session, if one is still valid."""

    @abstractmethod
    async def get_user(self) -> Optional[User]: ...

    @abstractmethod
    async def refresh_session(self) -> Session: ...

    def start_auto_refresh(self) -> None:
        """Begin refreshing the session before it expires. No-op by default."""

    async def stop_auto_refresh(self) -> None:
        """Stop the refresh loop started by :meth:`start_auto_refresh`."""

"""Process-wide session state.

``SessionManager`` is the single writer of the current :class:`SessionState`.
Everything else reads ``manager.state`` or subscribes to changes. A state of
``LOADING`` means *unknown*: readers that need an answer await
:meth:`SessionManager.wait_resolved` instead of assuming anonymous.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Optional

from docvault.exceptions import AuthRequiredError, DocVaultError

from .backend import AuthBackend, AuthEvent, Session, User

logger = logging.getLogger(__name__)


class SessionStatus(StrEnum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class SessionState:
    status: SessionStatus
    session: Optional[Session] = None

    @property
    def user(self) -> Optional[User]:
        return self.session.user if self.session is not None else None

    @property
    def is_resolved(self) -> bool:
        return self.status in (SessionStatus.AUTHENTICATED, SessionStatus.ANONYMOUS)

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED

    @classmethod
    def from_session(cls, session: Optional[Session]) -> "SessionState":
        if session is None:
            return cls(SessionStatus.ANONYMOUS)
        return cls(SessionStatus.AUTHENTICATED, session)


@dataclass(frozen=True)
class AuthResult:
    """Outcome of sign-in, sign-up or sign-out; ``error`` is None on success."""

    session: Optional[Session] = None
    user: Optional[User] = None
    error: Optional[DocVaultError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


StateListener = Callable[[SessionState], None]

_SESSION_EVENTS = {
    AuthEvent.INITIAL_SESSION,
    AuthEvent.SIGNED_IN,
    AuthEvent.TOKEN_REFRESHED,
    AuthEvent.USER_UPDATED,
}


class SessionManager:
    def __init__(self, backend: AuthBackend):
        self._backend = backend
        self._state = SessionState(SessionStatus.UNINITIALIZED)
        self._listeners: list[StateListener] = []
        self._resolved = asyncio.Event()
        self._unsubscribe_backend: Optional[Callable[[], None]] = backend.on_auth_state_change(
            self._on_auth_event
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_user(self) -> Optional[User]:
        return self._state.user

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, state: SessionState) -> None:
        if state == self._state:
            return
        previous, self._state = self._state, state
        logger.debug("Session %s -> %s", previous.status, state.status)
        if state.is_resolved:
            self._resolved.set()
        else:
            self._resolved.clear()
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session listener failed")

    def _on_auth_event(self, event: AuthEvent, session: Optional[Session]) -> None:
        logger.debug("Auth event %s", event, extra={"event": str(event)})
        if event in _SESSION_EVENTS and session is not None:
            self._set(SessionState.from_session(session))
        elif event in (AuthEvent.SIGNED_OUT, AuthEvent.TOKEN_EXPIRED):
            self._set(SessionState(SessionStatus.ANONYMOUS))

    async def initialize(self) -> SessionState:
        """Resolve the persisted session. Auth events are handled from construction on."""
        if self._state.status is not SessionStatus.UNINITIALIZED:
            return await self.wait_resolved()
        self._set(SessionState(SessionStatus.LOADING))
        try:
            session = await self._backend.get_session()
        except DocVaultError as e:
            logger.warning("Could not restore session: %s", e.message)
            session = None
        # an auth event may have resolved the state while we waited
        if self._state.status is SessionStatus.LOADING:
            self._set(SessionState.from_session(session))
        if self._state.is_authenticated:
            self._backend.start_auto_refresh()
        return self._state

    async def wait_resolved(self) -> SessionState:
        if self._state.status is SessionStatus.UNINITIALIZED:
            return await self.initialize()
        await self._resolved.wait()
        return self._state

    async def require_user(self) -> User:
        state = await self.wait_resolved()
        if state.user is None:
            raise AuthRequiredError()
        return state.user

    async def sign_in(self, email: str, password: str) -> AuthResult:
        try:
            response = await self._backend.sign_in(email, password)
        except DocVaultError as e:
            logger.info("Sign-in failed: %s", e.message)
            if not self._state.is_authenticated:
                self._set(SessionState(SessionStatus.ANONYMOUS))
            return AuthResult(error=e)
        self._set(SessionState.from_session(response.session))
        if response.session is not None:
            self._backend.start_auto_refresh()
        return AuthResult(session=response.session, user=response.user)

    async def sign_up(self, email: str, password: str) -> AuthResult:
        try:
            response = await self._backend.sign_up(email, password)
        except DocVaultError as e:
            logger.info("Sign-up failed: %s", e.message)
            if not self._state.is_authenticated:
                self._set(SessionState(SessionStatus.ANONYMOUS))
            return AuthResult(error=e)
        if response.session is not None:
            self._set(SessionState.from_session(response.session))
            self._backend.start_auto_refresh()
        elif not self._state.is_authenticated:
            self._set(SessionState(SessionStatus.ANONYMOUS))
        return AuthResult(session=response.session, user=response.user)

    async def sign_out(self) -> AuthResult:
        """Clear the session; local state is cleared even if the backend fails."""
        error: Optional[DocVaultError] = None
        try:
            await self._backend.sign_out()
        except DocVaultError as e:
            logger.warning("Remote sign-out failed, clearing local session anyway: %s", e.message)
            error = e
        finally:
            self._set(SessionState(SessionStatus.ANONYMOUS))
        return AuthResult(error=error)

    async def close(self) -> None:
        if self._unsubscribe_backend is not None:
            self._unsubscribe_backend()
            self._unsubscribe_backend = None
        await self._backend.stop_auto_refresh()

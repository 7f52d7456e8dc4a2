from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import jwt

from docvault.backend.sql import translate_errors
from docvault.db.engine import DBEngine
from docvault.db.models import UserRow
from docvault.db.repository import Repository
from docvault.exceptions import AuthError

from .backend import AuthBackend, AuthEvent, AuthResponse, Session, User
from .passwords import PasswordPolicy, hash_password, validate_email, validate_password, verify_password
from .settings import AuthSettings, get_auth_settings

logger = logging.getLogger(__name__)


class SqlAuthBackend(AuthBackend):
    """Email/password auth over the ``users`` table.

    Access tokens are HS256 JWTs. When ``session_file`` is given the current
    session is persisted there so a later process can pick it up.
    """

    def __init__(
        self,
        engine: DBEngine,
        settings: Optional[AuthSettings] = None,
        *,
        session_file: Optional[Path] = None,
    ):
        super().__init__()
        self._engine = engine
        self._settings = settings or get_auth_settings()
        self._session_file = Path(session_file) if session_file else None
        self._current: Optional[Session] = None
        self._refresh_task: Optional[asyncio.Task] = None

    # -- tokens -------------------------------------------------------------

    def _issue(self, user: User) -> Session:
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=self._settings.jwt_lifetime_seconds)
        claims = {
            "sub": str(user.id),
            "email": user.email,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": uuid.uuid4().hex,
        }
        token = jwt.encode(
            claims, self._settings.jwt_secret.get_secret_value(), algorithm=self._settings.jwt_algorithm
        )
        return Session(
            access_token=token,
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
            user=user,
        )

    def _decode(self, token: str) -> dict:
        return jwt.decode(
            token,
            self._settings.jwt_secret.get_secret_value(),
            algorithms=[self._settings.jwt_algorithm],
        )

    # -- persistence --------------------------------------------------------

    def _write_session_file(self, session: Optional[Session]) -> None:
        if self._session_file is None:
            return
        if session is None:
            self._session_file.unlink(missing_ok=True)
            return
        self._session_file.parent.mkdir(parents=True, exist_ok=True)
        self._session_file.write_text(session.model_dump_json(), encoding="utf-8")

    def _read_session_file(self) -> Optional[Session]:
        if self._session_file is None or not self._session_file.is_file():
            return None
        try:
            return Session.model_validate(json.loads(self._session_file.read_text(encoding="utf-8")))
        except ValueError:
            logger.warning("Ignoring unreadable session file %s", self._session_file)
            return None

    async def _set_current(self, session: Optional[Session]) -> None:
        self._current = session
        try:
            await asyncio.to_thread(self._write_session_file, session)
        except OSError as e:
            logger.warning("Could not persist session: %s", e)

    async def _load_user(self, user_id: uuid.UUID) -> Optional[User]:
        async with translate_errors("Fetch user"), self._engine.session() as session:
            row = await Repository(session, UserRow).get(user_id)
            return User.model_validate(row) if row is not None else None

    # -- contract -----------------------------------------------------------

    async def sign_up(self, email: str, password: str) -> AuthResponse:
        email = validate_email(email)
        validate_password(password, PasswordPolicy(min_length=self._settings.min_password_length))
        async with translate_errors("Sign up"), self._engine.transaction() as session:
            repo = Repository(session, UserRow)
            if await repo.first(email=email) is not None:
                raise AuthError("User already registered")
            row = await repo.create(email=email, password_hash=hash_password(password))
            user = User.model_validate(row)
        logger.info("Registered user %s", user.id, extra={"user_id": str(user.id)})
        if self._settings.require_email_confirmation:
            return AuthResponse(user=user, session=None)
        new_session = self._issue(user)
        await self._set_current(new_session)
        self._emit(AuthEvent.SIGNED_IN, new_session)
        return AuthResponse(user=user, session=new_session)

    async def sign_in(self, email: str, password: str) -> AuthResponse:
        normalized = email.strip().lower()
        async with translate_errors("Sign in"), self._engine.session() as session:
            row = await Repository(session, UserRow).first(email=normalized)
            stored_hash = row.password_hash if row is not None else None
            user = User.model_validate(row) if row is not None else None
        if user is None or stored_hash is None or not verify_password(password, stored_hash):
            raise AuthError("Invalid login credentials")
        new_session = self._issue(user)
        await self._set_current(new_session)
        self._emit(AuthEvent.SIGNED_IN, new_session)
        return AuthResponse(user=user, session=new_session)

    async def sign_out(self) -> None:
        await self.stop_auto_refresh()
        self._current = None
        try:
            await asyncio.to_thread(self._write_session_file, None)
        except OSError as e:
            raise AuthError(f"Sign out failed: {e}") from e
        finally:
            self._emit(AuthEvent.SIGNED_OUT, None)

    async def get_session(self) -> Optional[Session]:
        candidate = self._current or await asyncio.to_thread(self._read_session_file)
        if candidate is None:
            return None
        try:
            claims = self._decode(candidate.access_token)
        except jwt.ExpiredSignatureError:
            logger.info("Stored session expired")
            await self._set_current(None)
            return None
        except jwt.InvalidTokenError as e:
            logger.warning("Discarding invalid stored session: %s", e)
            await self._set_current(None)
            return None
        user = await self._load_user(uuid.UUID(claims["sub"]))
        if user is None:
            await self._set_current(None)
            return None
        self._current = candidate
        return candidate

    async def get_user(self) -> Optional[User]:
        current = await self.get_session()
        return current.user if current is not None else None

    async def refresh_session(self) -> Session:
        current = self._current
        if current is None:
            raise AuthError("No session to refresh")
        try:
            claims = self._decode(current.access_token)
        except jwt.InvalidTokenError as e:
            await self._set_current(None)
            self._emit(AuthEvent.TOKEN_EXPIRED, None)
            raise AuthError("Session expired, please sign in again") from e
        user = await self._load_user(uuid.UUID(claims["sub"]))
        if user is None:
            await self._set_current(None)
            self._emit(AuthEvent.SIGNED_OUT, None)
            raise AuthError("User no longer exists")
        refreshed = self._issue(user)
        await self._set_current(refreshed)
        self._emit(AuthEvent.TOKEN_REFRESHED, refreshed)
        return refreshed

    # -- auto refresh -------------------------------------------------------

    def start_auto_refresh(self) -> None:
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop())

    async def stop_auto_refresh(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _refresh_loop(self) -> None:
        margin = timedelta(seconds=self._settings.refresh_margin_seconds)
        while self._current is not None:
            wait = (self._current.expires_at - margin - datetime.now(timezone.utc)).total_seconds()
            await asyncio.sleep(max(wait, 1.0))
            if self._current is None:
                return
            try:
                await self.refresh_session()
            except AuthError as e:
                logger.info("Auto refresh stopped: %s", e)
                return

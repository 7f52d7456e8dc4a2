from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DocVaultSettings(BaseSettings):
    """
    Application settings.

    Env support (DOCVAULT_ prefix, .env file honored):
      DOCVAULT_STORAGE_BACKEND, DOCVAULT_STORAGE_PATH, DOCVAULT_PUBLIC_BASE_URL,
      DOCVAULT_BUCKET, DOCVAULT_SEARCH_CONFIG, DOCVAULT_SEARCH_DEBOUNCE_SECONDS,
      DOCVAULT_SESSION_FILE, DOCVAULT_HOME_ROUTE, DOCVAULT_LOGIN_ROUTE
    """

    storage_backend: Literal["memory", "local"] = "local"
    storage_path: Path = Field(default=Path(".docvault/storage"))
    public_base_url: str = "http://localhost:8000/storage/v1/object/public"
    bucket: str = "documents"
    max_storage_bytes: Optional[int] = None

    # Text-search configuration name used by Postgres to_tsvector/to_tsquery.
    search_config: str = "french"
    search_debounce_seconds: float = Field(default=0.3, ge=0)

    session_file: Optional[Path] = Field(default=Path(".docvault/session.json"))

    home_route: str = "/"
    login_route: str = "/login"
    auth_routes: tuple[str, ...] = ("login", "signup")

    model_config = SettingsConfigDict(
        env_prefix="DOCVAULT_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_settings(**kwargs) -> DocVaultSettings:
    # Only pass explicit overrides so field defaults still apply
    filtered = {k: v for k, v in kwargs.items() if v is not None}
    return DocVaultSettings(**filtered)

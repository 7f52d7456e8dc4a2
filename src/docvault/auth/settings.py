from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    jwt_secret: SecretStr = SecretStr("change-me-docvault-development-signing-secret")
    jwt_algorithm: str = "HS256"
    jwt_lifetime_seconds: int = 60 * 60
    # Refresh this long before the access token expires.
    refresh_margin_seconds: int = 60
    min_password_length: int = Field(default=6, ge=1)
    # When set, sign-up creates the account but returns no session.
    require_email_confirmation: bool = False

    model_config = SettingsConfigDict(env_prefix="AUTH_", env_file=".env", extra="ignore")


_settings: AuthSettings | None = None


def get_auth_settings() -> AuthSettings:
    global _settings
    if _settings is None:
        _settings = AuthSettings()
    return _settings

"""Error taxonomy shared by every docvault layer.

Every error surfaced to a caller carries a human-readable ``message`` so a
front end can show it as-is.
"""

from __future__ import annotations

from typing import Any


class DocVaultError(Exception):
    """Base class for all docvault errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthRequiredError(DocVaultError):
    """A write (or owner-scoped read) was attempted without a session."""

    def __init__(self, message: str = "User not found. Please log in."):
        super().__init__(message)


class AuthError(DocVaultError):
    """Credentials were rejected or an auth call failed."""


class NotFoundError(DocVaultError):
    """A lookup by id matched zero rows."""


class ValidationError(DocVaultError):
    """Input failed validation before any remote call was made."""

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class BackendError(DocVaultError):
    """Any remote call failure: network, constraint violation, quota."""


class ConflictError(BackendError):
    """A unique constraint rejected the write."""


class PartialFailureError(DocVaultError):
    """The primary write succeeded but a dependent step failed.

    ``document`` is the record that *was* written, so the caller can tell the
    user it exists even though e.g. category linking failed.
    """

    def __init__(self, message: str, *, document: Any, step: str, cause: BaseException | None = None):
        super().__init__(message)
        self.document = document
        self.step = step
        self.cause = cause


__all__ = [
    "DocVaultError",
    "AuthRequiredError",
    "AuthError",
    "NotFoundError",
    "ValidationError",
    "BackendError",
    "ConflictError",
    "PartialFailureError",
]

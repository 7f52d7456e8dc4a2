from . import app

# Base exception
from .exceptions import (
    AuthError,
    AuthRequiredError,
    BackendError,
    ConflictError,
    DocVaultError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from .settings import DocVaultSettings, get_settings

__version__ = "0.1.0"

__all__ = [
    # Modules
    "app",
    # Errors
    "DocVaultError",
    "AuthError",
    "AuthRequiredError",
    "BackendError",
    "ConflictError",
    "NotFoundError",
    "PartialFailureError",
    "ValidationError",
    # Settings
    "DocVaultSettings",
    "get_settings",
]

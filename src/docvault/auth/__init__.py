from .backend import AuthBackend, AuthEvent, AuthResponse, Session, User
from .redirect import MemoryNavigator, Navigator, RedirectPolicy, RouteGuard
from .session import AuthResult, SessionManager, SessionState, SessionStatus
from .settings import AuthSettings, get_auth_settings

__all__ = [
    "AuthBackend",
    "AuthEvent",
    "AuthResponse",
    "AuthResult",
    "AuthSettings",
    "MemoryNavigator",
    "Navigator",
    "RedirectPolicy",
    "RouteGuard",
    "Session",
    "SessionManager",
    "SessionState",
    "SessionStatus",
    "User",
    "get_auth_settings",
]

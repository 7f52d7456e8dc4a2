from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from .session import SessionManager, SessionState

logger = logging.getLogger(__name__)

Segments = tuple[str, ...]


def split_path(path: str) -> Segments:
    return tuple(p for p in path.strip().split("/") if p)


class Navigator(Protocol):
    @property
    def segments(self) -> Segments: ...

    def replace(self, path: str) -> None: ...

    def subscribe(self, listener: Callable[[Segments], None]) -> Callable[[], None]: ...


class MemoryNavigator:
    """Stack navigator: ``push`` adds a screen, ``replace`` swaps the top one."""

    def __init__(self, initial: str = "/"):
        self.history: list[str] = [initial]
        self._listeners: list[Callable[[Segments], None]] = []

    @property
    def location(self) -> str:
        return self.history[-1]

    @property
    def segments(self) -> Segments:
        return split_path(self.location)

    def push(self, path: str) -> None:
        self.history.append(path)
        self._notify()

    def replace(self, path: str) -> None:
        self.history[-1] = path
        self._notify()

    def back(self) -> None:
        if len(self.history) > 1:
            self.history.pop()
            self._notify()

    def subscribe(self, listener: Callable[[Segments], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.segments)


@dataclass(frozen=True)
class RedirectPolicy:
    home: str = "/"
    login: str = "/login"
    auth_routes: frozenset[str] = field(default_factory=lambda: frozenset({"login", "signup"}))

    def is_auth_route(self, segments: Segments) -> bool:
        return any(s in self.auth_routes for s in segments)

    def decide(self, state: SessionState, segments: Segments) -> Optional[str]:
        """Where to go, or None to stay. Undecided while the session loads."""
        if not state.is_resolved:
            return None
        on_auth_route = self.is_auth_route(segments)
        if state.is_authenticated and on_auth_route:
            return self.home
        if not state.is_authenticated and not on_auth_route:
            return self.login
        return None


class RouteGuard:
    """Re-runs the redirect policy on every session or location change."""

    def __init__(self, sessions: SessionManager, navigator: Navigator, policy: Optional[RedirectPolicy] = None):
        self.sessions = sessions
        self.navigator = navigator
        self.policy = policy or RedirectPolicy()
        self._last_inputs: Optional[tuple] = None
        self._unsubscribers: list[Callable[[], None]] = []

    def start(self) -> "RouteGuard":
        self._unsubscribers = [
            self.sessions.subscribe(lambda _state: self.evaluate()),
            self.navigator.subscribe(lambda _segments: self.evaluate()),
        ]
        self.evaluate()
        return self

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def evaluate(self) -> Optional[str]:
        state = self.sessions.state
        segments = self.navigator.segments
        user_id = state.user.id if state.user is not None else None
        inputs = (state.status, user_id, segments)
        if inputs == self._last_inputs:
            return None
        self._last_inputs = inputs

        target = self.policy.decide(state, segments)
        if target is None or split_path(target) == segments:
            return None
        logger.info("Redirecting to %s", target, extra={"route": "/" + "/".join(segments)})
        self.navigator.replace(target)
        return target

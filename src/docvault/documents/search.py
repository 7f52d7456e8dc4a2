"""Search-as-you-type with debounce and stale-result suppression.

Every fetch takes the next sequence number when it is *issued*. A fetch that
completes after a newer one was issued is dropped, so the visible results
always belong to the most recently issued request, whatever order the
backend answers in.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from docvault.exceptions import DocVaultError

from .models import Document

logger = logging.getLogger(__name__)

SearchFn = Callable[[str], Awaitable[list[Document]]]


class SearchController:
    def __init__(self, search: SearchFn, *, debounce: float = 0.3):
        self._search = search
        self.debounce = debounce
        self.query = ""
        self.results: list[Document] = []
        self.error: Optional[str] = None
        self.loading = False
        self.results_for: Optional[str] = None
        self._issued = 0
        self._timer: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()
        self._listeners: list[Callable[["SearchController"], None]] = []

    def subscribe(self, listener: Callable[["SearchController"], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def set_query(self, text: str) -> None:
        """Record the input and search once it has been quiet for ``debounce`` seconds."""
        self.query = text
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._debounced(text))

    def refresh(self) -> asyncio.Task:
        """Clear the query and fetch right away."""
        self._cancel_timer()
        self.query = ""
        return self._issue("")

    def search_now(self, text: str) -> asyncio.Task:
        self._cancel_timer()
        self.query = text
        return self._issue(text)

    async def _debounced(self, text: str) -> None:
        await asyncio.sleep(self.debounce)
        if self._timer is asyncio.current_task():
            self._timer = None
        self._issue(text)

    def _issue(self, text: str) -> asyncio.Task:
        self._issued += 1
        task = asyncio.get_running_loop().create_task(self._fetch(self._issued, text))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _fetch(self, seq: int, text: str) -> None:
        self.loading = True
        self._notify()
        try:
            results = await self._search(text)
        except DocVaultError as e:
            self._fail(seq, e.message)
            return
        except Exception:
            logger.exception("Search for %r failed", text)
            self._fail(seq, "Search failed unexpectedly.")
            return
        if seq != self._issued:
            logger.debug("Discarding stale results #%d for %r", seq, text)
            return
        self.results = results
        self.results_for = text
        self.error = None
        self.loading = False
        self._notify()

    def _fail(self, seq: int, message: str) -> None:
        if seq != self._issued:
            return
        self.error = message
        self.loading = False
        self._notify()

    async def wait_idle(self) -> None:
        """Wait for the pending debounce timer and every in-flight fetch."""
        while self._timer is not None or self._inflight:
            pending = [t for t in (self._timer, *self._inflight) if t is not None]
            await asyncio.gather(*pending, return_exceptions=True)

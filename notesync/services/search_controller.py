"""Debounced full-text search over meetings.

Keystrokes update ``query`` immediately and restart a quiescence timer.
Only when the input has been stable for the debounce window does the
debounced query change, and only a change of the debounced query starts a
request.  Every change bumps an intent sequence number; a response is
applied only while its sequence number is still the current intent, so a
slow answer for an older query can never overwrite a newer one.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from typing import Optional

from notesync.models import Meeting
from notesync.services.errors import SyncError, error_message
from notesync.services.gateway import EntityGateway
from notesync.services.list_controller import LoadStatus


@dataclass(frozen=True)
class SearchState:
    query: str = ""
    debounced: str = ""
    results: tuple = ()
    status: LoadStatus = LoadStatus.IDLE
    error: Optional[str] = None
    error_query: Optional[str] = None
    intent_seq: int = 0

    @property
    def loading(self) -> bool:
        return self.status == LoadStatus.LOADING


def set_raw_query(state: SearchState, text: str) -> SearchState:
    return replace(state, query=text)


def clear_search(state: SearchState, seq: int) -> SearchState:
    return replace(
        state,
        debounced="",
        results=(),
        status=LoadStatus.IDLE,
        error=None,
        error_query=None,
        intent_seq=seq,
    )


def begin_search(state: SearchState, debounced: str, seq: int) -> SearchState:
    return replace(
        state,
        debounced=debounced,
        status=LoadStatus.LOADING,
        error=None,
        error_query=None,
        intent_seq=seq,
    )


def apply_results(state: SearchState, results: list[Meeting], seq: int) -> SearchState:
    if seq != state.intent_seq:
        return state
    return replace(state, results=tuple(results), status=LoadStatus.LOADED, error=None)


def apply_search_failed(state: SearchState, message: str, query: str, seq: int) -> SearchState:
    if seq != state.intent_seq:
        return state
    return replace(state, status=LoadStatus.ERROR, error=message, error_query=query)


def abandon_search(state: SearchState, seq: int) -> SearchState:
    # Forget the debounced value so typing the same query searches again.
    if seq != state.intent_seq or not state.loading:
        return state
    return replace(state, debounced="", status=LoadStatus.IDLE)


class SearchController:
    def __init__(self, gateway: EntityGateway, debounce_seconds: float = 0.3) -> None:
        self._gateway = gateway
        self._debounce = debounce_seconds
        self._state = SearchState()
        self._seq = itertools.count(1)
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: set[asyncio.Task] = set()
        self._logger = logging.getLogger("notesync.search")

    @property
    def state(self) -> SearchState:
        return self._state

    def set_query(self, text: str) -> None:
        """Record a keystroke; must be called from a running event loop."""
        self._state = set_raw_query(self._state, text)
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._debounce_then_fire(text))

    async def _debounce_then_fire(self, text: str) -> None:
        await asyncio.sleep(self._debounce)
        self._on_debounced(text)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _on_debounced(self, text: str) -> None:
        if text == self._state.debounced:
            return
        seq = next(self._seq)
        if not text.strip():
            self._logger.debug("Query cleared seq=%s", seq)
            self._state = clear_search(self._state, seq)
            return
        self._logger.debug("Search start seq=%s q=%r", seq, text)
        self._state = begin_search(self._state, text, seq)
        task = asyncio.get_running_loop().create_task(self._run_search(text, seq))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _run_search(self, text: str, seq: int) -> None:
        try:
            results = await self._gateway.search_meetings(text)
        except SyncError as exc:
            message = error_message(exc, "Search failed")
            if seq == self._state.intent_seq:
                self._logger.warning("Search failed q=%r: %s", text, message)
            self._state = apply_search_failed(self._state, message, text, seq)
            return
        except BaseException:
            self._state = abandon_search(self._state, seq)
            raise
        if seq != self._state.intent_seq:
            self._logger.debug("Stale search result dropped seq=%s q=%r", seq, text)
            return
        self._state = apply_results(self._state, results, seq)
        self._logger.debug("Search applied seq=%s hits=%s", seq, len(results))

    async def flush(self) -> SearchState:
        """Skip the remaining quiescence window and wait for the search."""
        if self._timer is not None and not self._timer.done():
            self._cancel_timer()
            self._on_debounced(self._state.query)
        return await self.wait_idle()

    async def wait_idle(self) -> SearchState:
        """Wait for a pending debounce and every in-flight request."""
        while self._timer is not None and not self._timer.done():
            await asyncio.wait({self._timer})
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)
        return self._state

    async def close(self) -> None:
        """Drop the pending debounce and wait for cancelled requests to unwind."""
        self._cancel_timer()
        tasks = list(self._in_flight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

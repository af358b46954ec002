"""Server-authoritative collections.

A list controller never patches its collection in place: every mutation
is followed by a full reload (or a wholesale replacement with a list the
server returned), so the local copy is always some snapshot of server
truth.  Loads may overlap; each is tagged with a monotonically increasing
sequence number and a response older than the one already applied is
dropped, so the last *completed* load wins.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Generic, Iterable, Optional, TypeVar

from notesync.models import Meeting, Note
from notesync.services.errors import SyncError, error_message
from notesync.services.gateway import EntityGateway
from notesync.services.sort_controller import SortController, SortState

T = TypeVar("T")


class LoadStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True)
class ListState(Generic[T]):
    items: tuple = ()
    status: LoadStatus = LoadStatus.IDLE
    error: Optional[str] = None
    applied_seq: int = 0

    @property
    def loading(self) -> bool:
        return self.status == LoadStatus.LOADING


def begin_load(state: ListState) -> ListState:
    return replace(state, status=LoadStatus.LOADING, error=None)


def apply_loaded(state: ListState, items: Iterable, seq: int) -> ListState:
    if seq <= state.applied_seq:
        return state
    return replace(
        state, items=tuple(items), status=LoadStatus.LOADED, error=None, applied_seq=seq
    )


def apply_failed(state: ListState, message: str, seq: int, latest: int) -> ListState:
    # Items stay as the last good snapshot.  A newer load still in flight
    # decides the outcome, so an older failure is not shown.
    if seq <= state.applied_seq or seq != latest:
        return state
    return replace(state, status=LoadStatus.ERROR, error=message, applied_seq=seq)


def abandon_load(state: ListState, seq: int, latest: int) -> ListState:
    """Leave LOADING when the newest load was interrupted without a result."""
    if seq != latest or not state.loading:
        return state
    status = LoadStatus.LOADED if state.applied_seq else LoadStatus.IDLE
    return replace(state, status=status)


class ListController(Generic[T]):
    """Owns one collection, its loading status and its last error."""

    def __init__(
        self,
        fetch: Callable[[], Awaitable[list[T]]],
        delete: Callable[[int], Awaitable[None]],
        label: str,
    ) -> None:
        self._fetch = fetch
        self._delete = delete
        self._label = label
        self._state: ListState = ListState()
        self._seq = itertools.count(1)
        self._latest = 0
        self._logger = logging.getLogger(f"notesync.list.{label}")

    @property
    def state(self) -> ListState:
        return self._state

    @property
    def items(self) -> tuple:
        return self._state.items

    def find(self, item_id: int) -> Optional[T]:
        for item in self._state.items:
            if getattr(item, "id", None) == item_id:
                return item
        return None

    def _next_seq(self) -> int:
        self._latest = next(self._seq)
        return self._latest

    async def load(self) -> ListState:
        seq = self._next_seq()
        self._state = begin_load(self._state)
        self._logger.debug("Load start seq=%s", seq)
        try:
            items = await self._fetch()
        except SyncError as exc:
            message = error_message(exc, f"Failed to load {self._label}")
            self._logger.warning("Load failed seq=%s: %s", seq, message)
            self._state = apply_failed(self._state, message, seq, self._latest)
            return self._state
        except BaseException:
            self._logger.debug("Load seq=%s interrupted", seq)
            self._state = abandon_load(self._state, seq, self._latest)
            raise

        before = self._state.applied_seq
        self._state = apply_loaded(self._state, items, seq)
        if self._state.applied_seq == before:
            self._logger.debug("Load seq=%s superseded by seq=%s, dropped", seq, before)
        else:
            self._logger.debug("Load applied seq=%s count=%s", seq, len(self._state.items))
        return self._state

    def replace(self, items: Iterable[T]) -> ListState:
        """Adopt a full collection returned by the server for a mutation."""
        seq = self._next_seq()
        self._state = apply_loaded(self._state, items, seq)
        self._logger.debug("Replaced seq=%s count=%s", seq, len(self._state.items))
        return self._state

    async def remove(self, item_id: int) -> ListState:
        """Delete on the server, then reload.

        A failed delete leaves the collection untouched and propagates.
        """
        self._logger.info("Delete %s id=%s", self._label, item_id)
        await self._delete(item_id)
        return await self.load()


class MeetingListController(ListController[Meeting]):
    """Meeting list whose fetch always carries the current sort state."""

    def __init__(self, gateway: EntityGateway, sort: Optional[SortController] = None) -> None:
        self._gateway = gateway
        self._sort = sort or SortController()
        super().__init__(self._fetch_sorted, gateway.delete_meeting, "meetings")
        self._sort.subscribe(self._on_sort_changed)

    @property
    def sort(self) -> SortController:
        return self._sort

    async def _fetch_sorted(self) -> list[Meeting]:
        return await self._gateway.list_meetings(**self._sort.state.as_params())

    async def _on_sort_changed(self, state: SortState) -> None:
        await self.load()

    async def select_column(self, column: str) -> ListState:
        await self._sort.select_column(column)
        return self._state


class NoteListController(ListController[Note]):
    """Notes of one meeting, ordered by ``note_number`` on the server."""

    def __init__(self, gateway: EntityGateway, meeting_id: int) -> None:
        self._gateway = gateway
        self.meeting_id = meeting_id
        super().__init__(
            lambda: gateway.list_notes(meeting_id), gateway.delete_note, "notes"
        )

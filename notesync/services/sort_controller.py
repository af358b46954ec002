from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from notesync.models import SortOrder
from notesync.services.errors import PreconditionError

SORTABLE_COLUMNS = ("meeting_date", "start_time", "end_time", "subject", "keywords")


@dataclass(frozen=True)
class SortState:
    column: str = "meeting_date"
    order: SortOrder = SortOrder.DESC

    def as_params(self) -> dict:
        return {"sort": self.column, "order": self.order.value}


def toggle_sort(state: SortState, column: str) -> SortState:
    """Same column flips the order; a new column starts ascending."""
    if column == state.column:
        flipped = SortOrder.ASC if state.order == SortOrder.DESC else SortOrder.DESC
        return SortState(column=state.column, order=flipped)
    return SortState(column=column, order=SortOrder.ASC)


class SortController:
    """Owns the (column, order) pair of one list and notifies on change."""

    def __init__(
        self,
        initial: Optional[SortState] = None,
        columns: tuple[str, ...] = SORTABLE_COLUMNS,
    ) -> None:
        self._state = initial or SortState()
        self._columns = columns
        self._listeners: list[Callable[[SortState], Awaitable[None]]] = []
        self._logger = logging.getLogger("notesync.sort")

    @property
    def state(self) -> SortState:
        return self._state

    def subscribe(self, listener: Callable[[SortState], Awaitable[None]]) -> None:
        self._listeners.append(listener)

    async def select_column(self, column: str) -> SortState:
        if column not in self._columns:
            raise PreconditionError(f"Cannot sort by unknown column '{column}'")
        self._state = toggle_sort(self._state, column)
        self._logger.debug("Sort -> %s %s", self._state.column, self._state.order.value)
        for listener in self._listeners:
            await listener(self._state)
        return self._state

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from notesync.services.errors import PreconditionError, SyncError, error_message
from notesync.services.list_controller import LoadStatus

T = TypeVar("T")


@dataclass(frozen=True)
class DetailState(Generic[T]):
    entity_id: Optional[int] = None
    entity: Optional[T] = None
    status: LoadStatus = LoadStatus.IDLE
    error: Optional[str] = None
    applied_seq: int = 0


class DetailController(Generic[T]):
    """Single-entity view (meeting detail, note edit form)."""

    def __init__(self, fetch: Callable[[int], Awaitable[T]], label: str) -> None:
        self._fetch = fetch
        self._label = label
        self._state: DetailState = DetailState()
        self._seq = itertools.count(1)
        self._latest = 0
        self._logger = logging.getLogger(f"notesync.detail.{label}")

    @property
    def state(self) -> DetailState:
        return self._state

    @property
    def entity(self) -> Optional[T]:
        return self._state.entity

    async def load(self, entity_id: int) -> DetailState:
        seq = self._latest = next(self._seq)
        if entity_id != self._state.entity_id:
            self._state = DetailState(applied_seq=self._state.applied_seq)
        self._state = replace(
            self._state, entity_id=entity_id, status=LoadStatus.LOADING, error=None
        )
        try:
            entity = await self._fetch(entity_id)
        except SyncError as exc:
            message = error_message(exc, f"Failed to load {self._label}")
            self._logger.warning("Load %s id=%s failed: %s", self._label, entity_id, message)
            if seq == self._latest and seq > self._state.applied_seq:
                self._state = replace(
                    self._state, status=LoadStatus.ERROR, error=message, applied_seq=seq
                )
            return self._state
        except BaseException:
            if seq == self._latest and self._state.status == LoadStatus.LOADING:
                status = LoadStatus.LOADED if self._state.entity is not None else LoadStatus.IDLE
                self._state = replace(self._state, status=status)
            raise

        if seq > self._state.applied_seq and entity_id == self._state.entity_id:
            self._state = replace(
                self._state,
                entity=entity,
                status=LoadStatus.LOADED,
                error=None,
                applied_seq=seq,
            )
        return self._state

    async def refresh(self) -> DetailState:
        if self._state.entity_id is None:
            raise PreconditionError(f"No {self._label} selected")
        return await self.load(self._state.entity_id)

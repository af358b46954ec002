from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from notesync.models import Direction
from notesync.services.errors import PreconditionError, SyncError, error_message
from notesync.services.gateway import EntityGateway
from notesync.services.list_controller import NoteListController


@dataclass(frozen=True)
class ReorderState:
    pending_note_id: Optional[int] = None
    error: Optional[str] = None


class ReorderController:
    """Moves one note up or down and adopts the server's resulting order.

    Position is never checked locally: the server decides whether a move is
    possible, and a refusal (first note up, last note down) leaves the note
    list exactly as it was.
    """

    def __init__(self, gateway: EntityGateway, notes: NoteListController) -> None:
        self._gateway = gateway
        self._notes = notes
        self._state = ReorderState()
        self._lock = asyncio.Lock()
        self._logger = logging.getLogger("notesync.reorder")

    @property
    def state(self) -> ReorderState:
        return self._state

    async def move(self, note_id: int, direction: Direction) -> bool:
        try:
            direction = Direction(direction)
        except ValueError as exc:
            raise PreconditionError(f"Invalid direction '{direction}'") from exc
        # Clicks queue up here and reach the server one at a time.
        async with self._lock:
            self._state = ReorderState(pending_note_id=note_id)
            try:
                ordered = await self._gateway.reorder_note(note_id, direction)
            except SyncError as exc:
                message = error_message(exc, "Failed to reorder note")
                self._logger.info(
                    "Reorder note=%s %s refused: %s", note_id, direction.value, message
                )
                self._state = ReorderState(error=message)
                return False
            except BaseException:
                self._state = ReorderState()
                raise
            self._notes.replace(ordered)
            self._state = ReorderState()
            self._logger.debug(
                "Reorder note=%s %s -> %s",
                note_id,
                direction.value,
                [note.id for note in ordered],
            )
            return True

"""AI-assisted mutations with a single-step undo.

Each target entity moves through ``idle -> pending -> settled | error``.
A successful enhancement retains exactly one prior value for that target;
starting another enhancement discards it, and ``undo`` writes it back with
an explicit update.  A failed undo keeps the value so the undo can be
retried.  There is no history beyond that one slot.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from notesync.models import Meeting, MeetingInput, NoteUpdate
from notesync.services.detail_controller import DetailController
from notesync.services.errors import PreconditionError, SyncError, error_message
from notesync.services.gateway import EntityGateway
from notesync.services.list_controller import MeetingListController, NoteListController


class EnhanceStatus(Enum):
    IDLE = "idle"
    PENDING = "pending"
    SETTLED = "settled"
    ERROR = "error"


@dataclass(frozen=True)
class UndoSlot:
    target_id: int
    value: Optional[str]


@dataclass(frozen=True)
class EnhancementState:
    target_id: int
    status: EnhanceStatus = EnhanceStatus.IDLE
    previous: Optional[UndoSlot] = None
    error: Optional[str] = None

    @property
    def pending(self) -> bool:
        return self.status == EnhanceStatus.PENDING

    @property
    def can_undo(self) -> bool:
        return self.previous is not None and not self.pending


def start_enhance(state: EnhancementState) -> EnhancementState:
    return EnhancementState(target_id=state.target_id, status=EnhanceStatus.PENDING)


def enhance_succeeded(state: EnhancementState, previous: Optional[str]) -> EnhancementState:
    return replace(
        state,
        status=EnhanceStatus.SETTLED,
        previous=UndoSlot(state.target_id, previous),
        error=None,
    )


def enhance_failed(state: EnhancementState, message: str) -> EnhancementState:
    return replace(state, status=EnhanceStatus.ERROR, previous=None, error=message)


def start_undo(state: EnhancementState) -> EnhancementState:
    return replace(state, status=EnhanceStatus.PENDING, error=None)


def undo_succeeded(state: EnhancementState) -> EnhancementState:
    return EnhancementState(target_id=state.target_id)


def undo_failed(state: EnhancementState, message: str) -> EnhancementState:
    return replace(state, status=EnhanceStatus.ERROR, error=message)


class EnhancementTarget(ABC):
    label: str = "entity"

    @abstractmethod
    async def current_value(self, target_id: int) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    async def apply_enhancement(self, target_id: int, current: Optional[str]) -> Optional[str]:
        """Run the AI operation, persist its outcome and return the new value."""
        raise NotImplementedError

    @abstractmethod
    async def restore(self, target_id: int, previous: Optional[str]) -> None:
        raise NotImplementedError


class NoteContentTarget(EnhancementTarget):
    """Note content: the backend only suggests text, the client saves it."""

    label = "note"

    def __init__(
        self,
        gateway: EntityGateway,
        notes: NoteListController,
        detail: Optional[DetailController] = None,
    ) -> None:
        self._gateway = gateway
        self._notes = notes
        self._detail = detail

    async def current_value(self, target_id: int) -> Optional[str]:
        note = self._notes.find(target_id)
        if note is None and self._detail is not None and self._detail.state.entity_id == target_id:
            note = self._detail.entity
        if note is None:
            raise PreconditionError(f"Note {target_id} is not loaded")
        return note.content

    async def _save(self, target_id: int, content: str) -> None:
        try:
            payload = NoteUpdate(content=content)
        except ValidationError as exc:
            raise PreconditionError(f"Invalid note content: {exc.errors()[0]['msg']}") from exc
        await self._gateway.update_note(target_id, payload)
        await self._notes.load()
        if self._detail is not None and self._detail.state.entity_id == target_id:
            await self._detail.refresh()

    async def apply_enhancement(self, target_id: int, current: Optional[str]) -> Optional[str]:
        if not (current or "").strip():
            raise PreconditionError("Note content is empty")
        result = await self._gateway.enhance_note(target_id, current)
        await self._save(target_id, result.content)
        return result.content

    async def restore(self, target_id: int, previous: Optional[str]) -> None:
        await self._save(target_id, previous or "")


class MeetingSummaryTarget(EnhancementTarget):
    """Meeting summary: the backend generates and stores it in one call."""

    label = "meeting"

    def __init__(
        self,
        gateway: EntityGateway,
        meetings: Optional[MeetingListController] = None,
        detail: Optional[DetailController] = None,
    ) -> None:
        self._gateway = gateway
        self._meetings = meetings
        self._detail = detail

    def _known(self, target_id: int) -> Optional[Meeting]:
        if self._detail is not None and self._detail.state.entity_id == target_id:
            if self._detail.entity is not None:
                return self._detail.entity
        if self._meetings is not None:
            return self._meetings.find(target_id)
        return None

    async def _refresh(self, target_id: int) -> None:
        if self._meetings is not None:
            await self._meetings.load()
        if self._detail is not None and self._detail.state.entity_id == target_id:
            await self._detail.refresh()

    async def current_value(self, target_id: int) -> Optional[str]:
        meeting = self._known(target_id)
        if meeting is None:
            raise PreconditionError(f"Meeting {target_id} is not loaded")
        return meeting.summary

    async def apply_enhancement(self, target_id: int, current: Optional[str]) -> Optional[str]:
        meeting = await self._gateway.summarize_meeting(target_id)
        await self._refresh(target_id)
        return meeting.summary

    async def restore(self, target_id: int, previous: Optional[str]) -> None:
        # Re-read so only the summary is rolled back, not concurrent edits.
        meeting = await self._gateway.get_meeting(target_id)
        try:
            payload = MeetingInput.from_meeting(meeting, summary=previous)
        except ValidationError as exc:
            raise PreconditionError(f"Cannot restore summary: {exc.errors()[0]['msg']}") from exc
        await self._gateway.update_meeting(target_id, payload)
        await self._refresh(target_id)


class EnhancementController:
    def __init__(self, target: EnhancementTarget) -> None:
        self._target = target
        self._states: dict[int, EnhancementState] = {}
        self._logger = logging.getLogger(f"notesync.enhance.{target.label}")

    def state_for(self, target_id: int) -> EnhancementState:
        return self._states.get(target_id) or EnhancementState(target_id=target_id)

    def is_pending(self, target_id: int) -> bool:
        return self.state_for(target_id).pending

    async def enhance(self, target_id: int, current: Optional[str] = None) -> EnhancementState:
        """Enhance ``target_id``; ``current`` overrides the loaded value (unsaved edits)."""
        state = self.state_for(target_id)
        if state.pending:
            raise PreconditionError(f"An operation on {self._target.label} {target_id} is already running")
        if state.previous is not None:
            self._logger.debug("Discarding undo for %s %s", self._target.label, target_id)
        self._states[target_id] = start_enhance(state)

        try:
            if current is None:
                current = await self._target.current_value(target_id)
            await self._target.apply_enhancement(target_id, current)
        except SyncError as exc:
            message = error_message(exc, f"Failed to enhance {self._target.label}")
            self._logger.warning("Enhance %s %s failed: %s", self._target.label, target_id, message)
            self._states[target_id] = enhance_failed(self._states[target_id], message)
            return self._states[target_id]
        except BaseException:
            self._logger.warning("Enhance %s %s interrupted", self._target.label, target_id)
            self._states[target_id] = enhance_failed(self._states[target_id], "Enhancement was interrupted")
            raise

        self._states[target_id] = enhance_succeeded(self._states[target_id], current)
        self._logger.info("Enhanced %s %s, undo available", self._target.label, target_id)
        return self._states[target_id]

    async def undo(self, target_id: int) -> EnhancementState:
        state = self.state_for(target_id)
        if state.pending:
            raise PreconditionError(f"An operation on {self._target.label} {target_id} is already running")
        if state.previous is None:
            raise PreconditionError(f"Nothing to undo for {self._target.label} {target_id}")
        slot = state.previous
        self._states[target_id] = start_undo(state)

        try:
            await self._target.restore(target_id, slot.value)
        except SyncError as exc:
            message = error_message(exc, f"Failed to undo {self._target.label} enhancement")
            self._logger.warning("Undo %s %s failed: %s", self._target.label, target_id, message)
            self._states[target_id] = undo_failed(self._states[target_id], message)
            return self._states[target_id]
        except BaseException:
            self._logger.warning("Undo %s %s interrupted", self._target.label, target_id)
            self._states[target_id] = undo_failed(self._states[target_id], "Undo was interrupted")
            raise

        self._states[target_id] = undo_succeeded(self._states[target_id])
        self._logger.info("Undid enhancement of %s %s", self._target.label, target_id)
        return self._states[target_id]

"""In-process stand-in for the meetings/notes backend.

Routers are mounted on a FastAPI app and reached through
``httpx.ASGITransport``, so the real gateway code runs end to end without a
socket.  Tests steer it through ``FakeBackend``: seed data, inject one-shot
failures per operation, delay or fail search answers per query and inspect the
request log.
"""
from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from notesync.context import SyncContext
from notesync.main import SyncSession

VALID_SORT_COLUMNS = ("meeting_date", "start_time", "end_time", "subject", "keywords")


class MeetingBody(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    meeting_date: str
    start_time: str
    end_time: Optional[str] = None
    participants: Optional[str] = None
    summary: Optional[str] = None
    keywords: Optional[str] = None


class NoteCreateBody(BaseModel):
    meeting_id: int
    content: str = Field(..., min_length=1)


class NoteUpdateBody(BaseModel):
    content: str = Field(..., min_length=1)


class EnhanceBody(BaseModel):
    content: str = ""


class ReorderBody(BaseModel):
    direction: str


class ConfigBody(BaseModel):
    llm_provider_url: str = ""
    llm_api_key: str = ""
    llm_model: str = ""
    language: str = ""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def mask_api_key(key: str) -> str:
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


class FakeBackend:
    def __init__(self) -> None:
        self.meetings: dict[int, dict] = {}
        self.notes: dict[int, dict] = {}
        self.config = {"llm_provider_url": "", "llm_api_key": "", "llm_model": "", "language": ""}
        self.requests: list[tuple[str, str]] = []
        self.search_queries: list[str] = []
        self.search_delays: dict[str, float] = {}
        self.search_failures: dict[str, tuple[int, str]] = {}
        self.enhance_delay = 0.0
        self.enhance_fn: Callable[[str], str] = lambda content: f"Enhanced: {content}"
        self._failures: dict[str, list[tuple[int, str]]] = {}
        self._meeting_ids = itertools.count(1)
        self._note_ids = itertools.count(1)
        self.app = self._build_app()

    # ── test controls ──────────────────────────────────────────────────

    def fail_next(self, operation: str, status: int = 500, message: str = "internal error") -> None:
        self._failures.setdefault(operation, []).append((status, message))

    def _maybe_fail(self, operation: str) -> None:
        queued = self._failures.get(operation)
        if queued:
            status, message = queued.pop(0)
            raise HTTPException(status_code=status, detail=message)

    def add_meeting(self, subject: str, meeting_date: str = "2024-05-01", meeting_id: Optional[int] = None, **fields) -> dict:
        meeting_id = meeting_id if meeting_id is not None else next(self._meeting_ids)
        meeting = {
            "id": meeting_id,
            "created_by": "dev@example.com",
            "subject": subject,
            "meeting_date": meeting_date,
            "start_time": fields.pop("start_time", "09:00"),
            "end_time": None,
            "participants": None,
            "summary": None,
            "keywords": None,
            "created_at": _now(),
            "updated_at": _now(),
        }
        meeting.update(fields)
        self.meetings[meeting_id] = meeting
        return meeting

    def add_note(self, meeting_id: int, content: str) -> dict:
        note_id = next(self._note_ids)
        note = {
            "id": note_id,
            "meeting_id": meeting_id,
            "note_number": len(self.notes_of(meeting_id)) + 1,
            "content": content,
            "created_at": _now(),
            "updated_at": _now(),
        }
        self.notes[note_id] = note
        return note

    def notes_of(self, meeting_id: int) -> list[dict]:
        siblings = [n for n in self.notes.values() if n["meeting_id"] == meeting_id]
        return sorted(siblings, key=lambda n: n["note_number"])

    def _renumber(self, meeting_id: int) -> None:
        for position, note in enumerate(self.notes_of(meeting_id), start=1):
            note["note_number"] = position

    def count(self, method: str, path: str) -> int:
        return sum(1 for entry in self.requests if entry == (method, path))

    def session(self, debounce_ms: int = 50, cwd: str = ".") -> SyncSession:
        ctx = SyncContext(cwd=cwd, base_url="http://testserver", debounce_ms=debounce_ms)
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=self.app))
        return SyncSession(ctx, client)

    # ── app ────────────────────────────────────────────────────────────

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="Fake notebook backend")

        @app.middleware("http")
        async def record_requests(request: Request, call_next):
            self.requests.append((request.method, request.url.path))
            return await call_next(request)

        @app.exception_handler(StarletteHTTPException)
        async def error_body(request: Request, exc: StarletteHTTPException):
            return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

        app.include_router(self._meetings_router())
        app.include_router(self._notes_router())
        app.include_router(self._collaborators_router())
        return app

    def _get_meeting_or_404(self, meeting_id: int) -> dict:
        meeting = self.meetings.get(meeting_id)
        if not meeting:
            raise HTTPException(status_code=404, detail="meeting not found")
        return meeting

    def _get_note_or_404(self, note_id: int) -> dict:
        note = self.notes.get(note_id)
        if not note:
            raise HTTPException(status_code=404, detail="note not found")
        return note

    def _meetings_router(self) -> APIRouter:
        router = APIRouter()

        @router.get("/api/meetings")
        def list_meetings(sort: str = "meeting_date", order: str = "desc") -> list[dict]:
            self._maybe_fail("list_meetings")
            column = sort if sort in VALID_SORT_COLUMNS else "meeting_date"
            return sorted(
                self.meetings.values(),
                key=lambda m: ((m.get(column) or "").lower(), m["id"]),
                reverse=order != "asc",
            )

        @router.post("/api/meetings", status_code=201)
        def create_meeting(payload: MeetingBody) -> dict:
            self._maybe_fail("create_meeting")
            return self.add_meeting(**payload.model_dump())

        @router.get("/api/meetings/{meeting_id}")
        def get_meeting(meeting_id: int) -> dict:
            self._maybe_fail("get_meeting")
            return self._get_meeting_or_404(meeting_id)

        @router.put("/api/meetings/{meeting_id}")
        def update_meeting(meeting_id: int, payload: MeetingBody) -> dict:
            self._maybe_fail("update_meeting")
            meeting = self._get_meeting_or_404(meeting_id)
            meeting.update(payload.model_dump())
            meeting["updated_at"] = _now()
            return meeting

        @router.delete("/api/meetings/{meeting_id}", status_code=204)
        def delete_meeting(meeting_id: int) -> None:
            self._maybe_fail("delete_meeting")
            self._get_meeting_or_404(meeting_id)
            del self.meetings[meeting_id]
            for note in self.notes_of(meeting_id):
                del self.notes[note["id"]]

        @router.get("/api/search")
        async def search(q: str = Query("")) -> list[dict]:
            self.search_queries.append(q)
            await asyncio.sleep(self.search_delays.get(q, 0.0))
            self._maybe_fail("search")
            if q in self.search_failures:
                status, message = self.search_failures.pop(q)
                raise HTTPException(status_code=status, detail=message)
            if not q:
                return []
            needle = q.lower()
            fields = ("subject", "summary", "keywords", "participants")
            return [
                m
                for m in self.meetings.values()
                if any(needle in (m.get(f) or "").lower() for f in fields)
            ]

        @router.post("/api/meetings/{meeting_id}/summarize")
        def summarize(meeting_id: int) -> dict:
            self._maybe_fail("summarize")
            meeting = self._get_meeting_or_404(meeting_id)
            notes = self.notes_of(meeting_id)
            if not notes:
                raise HTTPException(status_code=400, detail="no notes to summarize")
            meeting["summary"] = "Summary: " + "; ".join(n["content"] for n in notes)
            meeting["updated_at"] = _now()
            return meeting

        @router.get("/api/meetings/{meeting_id}/notes")
        def list_notes(meeting_id: int) -> list[dict]:
            self._maybe_fail("list_notes")
            return self.notes_of(meeting_id)

        return router

    def _notes_router(self) -> APIRouter:
        router = APIRouter()

        @router.post("/api/notes", status_code=201)
        def create_note(payload: NoteCreateBody) -> dict:
            self._maybe_fail("create_note")
            self._get_meeting_or_404(payload.meeting_id)
            return self.add_note(payload.meeting_id, payload.content)

        @router.get("/api/notes/{note_id}")
        def get_note(note_id: int) -> dict:
            self._maybe_fail("get_note")
            return self._get_note_or_404(note_id)

        @router.put("/api/notes/{note_id}")
        def update_note(note_id: int, payload: NoteUpdateBody) -> dict:
            self._maybe_fail("update_note")
            note = self._get_note_or_404(note_id)
            note["content"] = payload.content
            note["updated_at"] = _now()
            return note

        @router.delete("/api/notes/{note_id}", status_code=204)
        def delete_note(note_id: int) -> None:
            self._maybe_fail("delete_note")
            note = self._get_note_or_404(note_id)
            del self.notes[note_id]
            self._renumber(note["meeting_id"])

        @router.post("/api/notes/{note_id}/enhance")
        async def enhance_note(note_id: int, payload: EnhanceBody) -> dict:
            await asyncio.sleep(self.enhance_delay)
            self._maybe_fail("enhance_note")
            if not payload.content.strip():
                raise HTTPException(status_code=400, detail="content is required")
            self._get_note_or_404(note_id)
            return {"content": self.enhance_fn(payload.content)}

        @router.put("/api/notes/{note_id}/reorder")
        def reorder_note(note_id: int, payload: ReorderBody) -> list[dict]:
            self._maybe_fail("reorder_note")
            if payload.direction not in ("up", "down"):
                raise HTTPException(status_code=400, detail="invalid direction: must be 'up' or 'down'")
            note = self._get_note_or_404(note_id)
            siblings = self.notes_of(note["meeting_id"])
            index = next(i for i, n in enumerate(siblings) if n["id"] == note_id)
            if payload.direction == "up":
                if index == 0:
                    raise HTTPException(status_code=400, detail="note is already first")
                other = siblings[index - 1]
            else:
                if index == len(siblings) - 1:
                    raise HTTPException(status_code=400, detail="note is already last")
                other = siblings[index + 1]
            note["note_number"], other["note_number"] = other["note_number"], note["note_number"]
            return self.notes_of(note["meeting_id"])

        return router

    def _collaborators_router(self) -> APIRouter:
        router = APIRouter()

        def _masked() -> dict:
            return dict(self.config, llm_api_key=mask_api_key(self.config["llm_api_key"]))

        @router.get("/api/whoami")
        def whoami() -> dict:
            return {
                "displayName": "Dev User",
                "loginName": "dev@example.com",
                "profilePicURL": "https://ui-avatars.com/api/?name=Dev+User&size=128",
                "nodeName": "dev-machine",
                "nodeID": "dev-node-12345",
            }

        @router.get("/api/config")
        def get_config() -> dict:
            self._maybe_fail("get_config")
            return _masked()

        @router.post("/api/config")
        def update_config(payload: ConfigBody) -> dict:
            self._maybe_fail("update_config")
            for key, value in payload.model_dump().items():
                if not value:
                    continue
                if key == "llm_api_key" and "*" in value:
                    continue
                self.config[key] = value
            return _masked()

        return router

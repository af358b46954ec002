from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from notesync.context import SyncContext
from notesync.models import (
    Direction,
    EnhanceResult,
    LLMConfig,
    Meeting,
    MeetingInput,
    Note,
    NoteCreate,
    NoteUpdate,
    SortOrder,
    UserInfo,
)
from notesync.services.errors import GatewayError


def _extract_error(response: httpx.Response) -> str:
    """Pull ``{"error": "..."}`` out of a failed response, else a status line."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        message = data.get("error") or data.get("detail")
        if isinstance(message, str) and message.strip():
            return message
    reason = response.reason_phrase or ""
    return f"Request failed: {response.status_code} {reason}".strip()


class EntityGateway:
    """Typed request/response functions for every backend operation.

    Holds no state beyond the HTTP client; every method either returns a
    parsed model or raises ``GatewayError``.
    """

    def __init__(self, client: httpx.AsyncClient, ctx: SyncContext) -> None:
        self._client = client
        self._ctx = ctx
        self._logger = logging.getLogger("notesync.gateway")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
    ) -> Any:
        url = f"{self._ctx.base_url}{path}"
        try:
            response = await self._client.request(
                method, url, params=params, json=json, timeout=self._ctx.timeout
            )
        except httpx.RequestError as exc:
            self._logger.warning("%s %s unreachable: %s", method, path, exc)
            raise GatewayError(f"Failed to reach server: {exc}") from exc

        if not response.is_success:
            message = _extract_error(response)
            self._logger.warning(
                "%s %s failed status=%s error=%s", method, path, response.status_code, message
            )
            raise GatewayError(message, status_code=response.status_code)

        self._logger.debug("%s %s -> %s", method, path, response.status_code)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError(
                f"Invalid response from server for {method} {path}",
                status_code=response.status_code,
            ) from exc

    def _parse(self, model, data: Any):
        try:
            if isinstance(data, list):
                return [model.model_validate(item) for item in data]
            return model.model_validate(data)
        except ValidationError as exc:
            self._logger.warning("Unexpected %s payload: %s", model.__name__, exc)
            raise GatewayError(f"Malformed {model.__name__} in server response") from exc

    # ── meetings ───────────────────────────────────────────────────────

    async def list_meetings(self, sort: str, order: SortOrder) -> list[Meeting]:
        data = await self._request(
            "GET", "/api/meetings", params={"sort": sort, "order": SortOrder(order).value}
        )
        return self._parse(Meeting, data or [])

    async def get_meeting(self, meeting_id: int) -> Meeting:
        return self._parse(Meeting, await self._request("GET", f"/api/meetings/{meeting_id}"))

    async def create_meeting(self, payload: MeetingInput) -> Meeting:
        data = await self._request("POST", "/api/meetings", json=payload.model_dump())
        return self._parse(Meeting, data)

    async def update_meeting(self, meeting_id: int, payload: MeetingInput) -> Meeting:
        data = await self._request(
            "PUT", f"/api/meetings/{meeting_id}", json=payload.model_dump()
        )
        return self._parse(Meeting, data)

    async def delete_meeting(self, meeting_id: int) -> None:
        await self._request("DELETE", f"/api/meetings/{meeting_id}")

    async def search_meetings(self, query: str) -> list[Meeting]:
        # Callers never send a blank query; the backend would answer [] anyway.
        if not query.strip():
            return []
        data = await self._request("GET", "/api/search", params={"q": query})
        return self._parse(Meeting, data or [])

    async def summarize_meeting(self, meeting_id: int) -> Meeting:
        data = await self._request("POST", f"/api/meetings/{meeting_id}/summarize", json={})
        return self._parse(Meeting, data)

    # ── notes ──────────────────────────────────────────────────────────

    async def list_notes(self, meeting_id: int) -> list[Note]:
        data = await self._request("GET", f"/api/meetings/{meeting_id}/notes")
        return self._parse(Note, data or [])

    async def get_note(self, note_id: int) -> Note:
        return self._parse(Note, await self._request("GET", f"/api/notes/{note_id}"))

    async def create_note(self, payload: NoteCreate) -> Note:
        data = await self._request("POST", "/api/notes", json=payload.model_dump())
        return self._parse(Note, data)

    async def update_note(self, note_id: int, payload: NoteUpdate) -> Note:
        data = await self._request("PUT", f"/api/notes/{note_id}", json=payload.model_dump())
        return self._parse(Note, data)

    async def delete_note(self, note_id: int) -> None:
        await self._request("DELETE", f"/api/notes/{note_id}")

    async def enhance_note(self, note_id: int, content: str) -> EnhanceResult:
        data = await self._request(
            "POST", f"/api/notes/{note_id}/enhance", json={"content": content}
        )
        return self._parse(EnhanceResult, data)

    async def reorder_note(self, note_id: int, direction: Direction) -> list[Note]:
        data = await self._request(
            "PUT",
            f"/api/notes/{note_id}/reorder",
            json={"direction": Direction(direction).value},
        )
        return self._parse(Note, data or [])

    # ── collaborators ──────────────────────────────────────────────────

    async def whoami(self) -> UserInfo:
        return self._parse(UserInfo, await self._request("GET", "/api/whoami"))

    async def get_config(self) -> LLMConfig:
        return self._parse(LLMConfig, await self._request("GET", "/api/config"))

    async def update_config(self, payload: LLMConfig) -> LLMConfig:
        data = await self._request("POST", "/api/config", json=payload.model_dump())
        return self._parse(LLMConfig, data)

import json
import logging
import os
from typing import Optional

import httpx
import requests

from notesync.context import (
    DEFAULT_BASE_URL,
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_TIMEOUT,
    SyncContext,
)
from notesync.models import Meeting, Note
from notesync.services.detail_controller import DetailController
from notesync.services.enhancement import (
    EnhancementController,
    MeetingSummaryTarget,
    NoteContentTarget,
)
from notesync.services.gateway import EntityGateway
from notesync.services.list_controller import MeetingListController, NoteListController
from notesync.services.logging_setup import configure_logging
from notesync.services.reorder_controller import ReorderController
from notesync.services.search_controller import SearchController
from notesync.services.settings_controller import SettingsController

logger = logging.getLogger("notesync.boot")


def probe_backend(base_url: str, timeout: float = 3) -> bool:
    """Best-effort reachability check run once at startup."""
    try:
        resp = requests.get(f"{base_url}/api/whoami", timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("Backend not reachable at %s: %s", base_url, exc)
        return False
    logger.info("Backend %s answered whoami status=%s", base_url, resp.status_code)
    return resp.status_code < 500


def load_client_config(config_path: str) -> dict:
    if not os.path.exists(config_path):
        logger.info("Boot: config_path missing=%s", config_path)
        return {}
    with open(config_path, "r", encoding="utf-8") as config_file:
        config = json.load(config_file)
    logger.info("Boot: config keys=%s", sorted(config.keys()))
    return config


class NoteWorkspace:
    """Everything bound to the notes of one meeting."""

    def __init__(self, gateway: EntityGateway, meeting_id: int) -> None:
        self.notes = NoteListController(gateway, meeting_id)
        self.note_detail: DetailController[Note] = DetailController(gateway.get_note, "note")
        self.reorder = ReorderController(gateway, self.notes)
        self.enhance = EnhancementController(
            NoteContentTarget(gateway, self.notes, self.note_detail)
        )


class SyncSession:
    """All controllers of one client, sharing a single HTTP connection pool."""

    def __init__(self, ctx: SyncContext, client: httpx.AsyncClient) -> None:
        self.ctx = ctx
        self._client = client
        self.gateway = EntityGateway(client, ctx)
        self.meetings = MeetingListController(self.gateway)
        self.meeting_detail: DetailController[Meeting] = DetailController(
            self.gateway.get_meeting, "meeting"
        )
        self.search = SearchController(self.gateway, debounce_seconds=ctx.debounce_seconds)
        self.summaries = EnhancementController(
            MeetingSummaryTarget(self.gateway, self.meetings, self.meeting_detail)
        )
        self.settings = SettingsController(self.gateway, ctx)
        self._workspaces: dict[int, NoteWorkspace] = {}

    def notes_for(self, meeting_id: int) -> NoteWorkspace:
        workspace = self._workspaces.get(meeting_id)
        if workspace is None:
            workspace = NoteWorkspace(self.gateway, meeting_id)
            self._workspaces[meeting_id] = workspace
        return workspace

    async def aclose(self) -> None:
        await self.search.close()
        await self._client.aclose()

    async def __aenter__(self) -> "SyncSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def create_session(
    config_path: Optional[str] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    probe: bool = True,
    setup_logging: bool = True,
) -> SyncSession:
    cwd = os.getcwd()
    config_path = config_path or os.path.join(cwd, "data", "client.json")
    config = load_client_config(config_path)

    base_url = os.environ.get("NOTESYNC_BASE_URL") or config.get("base_url") or DEFAULT_BASE_URL
    ctx = SyncContext(
        cwd=cwd,
        base_url=base_url,
        timeout=config.get("timeout", DEFAULT_TIMEOUT),
        debounce_ms=config.get("search_debounce_ms", DEFAULT_DEBOUNCE_MS),
        config_path=config_path,
        language=config.get("language", "en"),
    )
    if setup_logging:
        ctx.ensure_dirs()
        configure_logging(ctx.logs_dir)
    logger.info("Boot: base_url=%s debounce=%.3fs", ctx.base_url, ctx.debounce_seconds)

    if probe and transport is None:
        probe_backend(ctx.base_url)

    client = httpx.AsyncClient(transport=transport, timeout=ctx.timeout)
    return SyncSession(ctx, client)

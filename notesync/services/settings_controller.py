from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from notesync.context import SyncContext
from notesync.models import LLMConfig, UserInfo
from notesync.services.errors import PreconditionError, SyncError, error_message
from notesync.services.gateway import EntityGateway

SUPPORTED_LANGUAGES = ("en", "de", "fr", "es")


@dataclass(frozen=True)
class SettingsState:
    config: Optional[LLMConfig] = None
    loading: bool = False
    saving: bool = False
    error: Optional[str] = None
    saved: bool = False
    user: Optional[UserInfo] = None


class SettingsController:
    """LLM provider settings, language preference and the current user.

    The backend returns the API key masked.  When the key field still holds
    that masked value on save, an empty key is sent so the stored key is
    kept.
    """

    def __init__(self, gateway: EntityGateway, ctx: SyncContext) -> None:
        self._gateway = gateway
        self._ctx = ctx
        self._state = SettingsState()
        self._original_key = ""
        self._logger = logging.getLogger("notesync.settings")

    @property
    def state(self) -> SettingsState:
        return self._state

    @property
    def language(self) -> str:
        return self._ctx.language

    async def load(self) -> SettingsState:
        self._state = replace(self._state, loading=True, error=None)
        try:
            config = await self._gateway.get_config()
        except SyncError as exc:
            self._state = replace(
                self._state, loading=False, error=error_message(exc, "Failed to load configuration")
            )
            return self._state
        self._original_key = config.llm_api_key
        self._state = replace(self._state, config=config, loading=False)
        return self._state

    async def save(self, provider_url: str, api_key: str, model: str) -> SettingsState:
        self._state = replace(self._state, saving=True, error=None, saved=False)
        payload = LLMConfig(
            llm_provider_url=provider_url,
            llm_api_key="" if api_key == self._original_key else api_key,
            llm_model=model,
            language=self._ctx.language,
        )
        try:
            config = await self._gateway.update_config(payload)
        except SyncError as exc:
            self._state = replace(
                self._state, saving=False, error=error_message(exc, "Failed to save configuration")
            )
            return self._state
        self._original_key = config.llm_api_key
        self._logger.info("Configuration saved model=%s", config.llm_model)
        self._state = replace(self._state, config=config, saving=False, saved=True)
        return self._state

    async def set_language(self, language: str) -> str:
        """Apply locally, then persist best-effort; a failed write is not an error."""
        if language not in SUPPORTED_LANGUAGES:
            raise PreconditionError(f"Unsupported language '{language}'")
        self._ctx.language = language
        config = self._state.config or LLMConfig()
        try:
            await self._gateway.update_config(
                config.model_copy(update={"llm_api_key": "", "language": language})
            )
        except SyncError as exc:
            self._logger.warning("Language preference not persisted: %s", exc)
        return language

    async def whoami(self) -> SettingsState:
        try:
            user = await self._gateway.whoami()
        except SyncError as exc:
            self._state = replace(
                self._state, user=None, error=error_message(exc, "Failed to fetch user info")
            )
            return self._state
        self._state = replace(self._state, user=user, error=None)
        return self._state

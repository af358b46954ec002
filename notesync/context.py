"""Client context: the one place runtime settings live.

Every controller that needs a timing or a path reads it from this object
instead of receiving loose values.  Properties always return the *current*
value, so changing ``base_url`` at runtime is seen by the next request
without rebuilding the session.
"""

from __future__ import annotations

import os
import threading

DEFAULT_BASE_URL = "http://127.0.0.1:8080"
DEFAULT_TIMEOUT = 30.0
DEFAULT_DEBOUNCE_MS = 300


class SyncContext:
    """Holds connection settings and local paths for one client session."""

    def __init__(
        self,
        *,
        cwd: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        config_path: str = "",
        language: str = "en",
    ) -> None:
        self._lock = threading.Lock()
        self._cwd = cwd
        self._base_url = base_url.rstrip("/")
        self._timeout = float(timeout)
        self._debounce_ms = int(debounce_ms)
        self._config_path = config_path
        self._language = language

    # ── connection (hot-swappable) ─────────────────────────────────────

    @property
    def base_url(self) -> str:
        with self._lock:
            return self._base_url

    @base_url.setter
    def base_url(self, value: str) -> None:
        with self._lock:
            self._base_url = value.rstrip("/")

    @property
    def timeout(self) -> float:
        return self._timeout

    # ── timings ────────────────────────────────────────────────────────

    @property
    def debounce_seconds(self) -> float:
        return self._debounce_ms / 1000.0

    # ── preferences ────────────────────────────────────────────────────

    @property
    def language(self) -> str:
        with self._lock:
            return self._language

    @language.setter
    def language(self, value: str) -> None:
        with self._lock:
            self._language = value

    # ── paths ──────────────────────────────────────────────────────────

    @property
    def config_path(self) -> str:
        return self._config_path

    @property
    def logs_dir(self) -> str:
        return os.path.join(self._cwd, "logs")

    def ensure_dirs(self) -> None:
        """Create all required directories if they don't exist."""
        os.makedirs(self.logs_dir, exist_ok=True)

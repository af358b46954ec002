from __future__ import annotations

from typing import Optional


class SyncError(RuntimeError):
    """Any failure surfaced to the caller as a single readable message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class GatewayError(SyncError):
    """Transport failure (no status) or a non-2xx backend response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_transport_error(self) -> bool:
        return self.status_code is None


class PreconditionError(SyncError):
    """The action was refused locally before any request was sent."""


def error_message(exc: BaseException, fallback: str) -> str:
    if isinstance(exc, SyncError) and exc.message:
        return exc.message
    text = str(exc)
    return text or fallback

"""Exception hierarchy for tro.

Every error that crosses a module boundary derives from :class:`TroError`
so the command layer can render a clean message (and optional hint)
instead of a stack trace. Raw ``httpx`` and ``pydantic`` exceptions never
leave the client / schema layer.

Hierarchy
---------
TroError
├── NetworkError
├── AuthError
├── NotFound
├── RateLimited
├── Conflict
├── FilterError
├── MalformedResponse
├── ApiError
├── EditorError
└── ConfigError
"""

from __future__ import annotations

from pathlib import Path


class TroError(Exception):
    """Base exception for all tro errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint


class NetworkError(TroError):
    """Transport failure that persisted after the retry budget was spent."""


class AuthError(TroError):
    """Invalid or expired key/token. Fatal for the session."""


class NotFound(TroError):
    """Referenced entity no longer exists (remotely or in the cache)."""

    def __init__(self, message: str, *, entity_id: str | None = None, hint: str | None = None):
        super().__init__(message, hint=hint)
        self.entity_id = entity_id


class RateLimited(TroError):
    """The service kept answering 429 until the retry budget was spent."""


class Conflict(TroError):
    """The remote entity changed since the edit was based on it."""

    def __init__(self, message: str, *, path: Path | None = None, hint: str | None = None):
        super().__init__(message, hint=hint)
        self.path = path


class FilterError(TroError):
    """Invalid filter pattern."""


class MalformedResponse(TroError):
    """A payload was missing required fields or had the wrong shape."""


class ApiError(TroError):
    """Non-transient HTTP error not covered by a more specific class."""

    def __init__(self, message: str, *, status_code: int, hint: str | None = None):
        super().__init__(message, hint=hint)
        self.status_code = status_code


class EditorError(TroError):
    """The external editor exited unsuccessfully."""


class ConfigError(TroError):
    """Credentials or configuration are missing or invalid."""

"""Error taxonomy shared by the external clients."""

from __future__ import annotations

from typing import Any


class PaperSearchError(Exception):
    """Base exception for failures talking to an upstream service."""


class UpstreamUnavailableError(PaperSearchError):
    """Raised when an HTTP request fails or the upstream returns an error status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedResponseError(PaperSearchError):
    """Raised when an upstream reply does not have the documented JSON/XML shape."""


class RateLimitedError(PaperSearchError):
    """Raised when the upstream answers with an explicit error payload.

    The payload is kept exactly as received so callers can inspect it.
    """

    def __init__(self, message: str, payload: Any) -> None:
        super().__init__(message)
        self.payload = payload


class ModelReplyError(PaperSearchError):
    """Raised when a model reply is empty or not in the requested format."""

"""Error taxonomy shared by the dispatcher and both transports."""
from __future__ import annotations
from typing import Any


class RelayError(Exception):
    """Base class for errors surfaced to relay clients."""


class ValidationError(RelayError):
    """Client input is missing or malformed; no provider call is made."""


class ProviderError(RelayError):
    """The generation or storage provider failed or answered malformed data.

    `detail` carries whatever diagnostic the provider returned (decoded JSON
    body, raw text) or the local error text when there was no response.
    """

    def __init__(self, message: str, detail: Any = None) -> None:
        super().__init__(message)
        self.detail = detail if detail is not None else message


class RateLimitError(RelayError):
    """The abuse guard rejected the caller for the current window."""

    def __init__(self, message: str, retry_after: int = 0, limit: int = 0) -> None:
        super().__init__(message)
        self.retry_after = retry_after
        self.limit = limit

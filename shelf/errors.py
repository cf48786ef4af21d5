"""Exception hierarchy for library export failures."""

from __future__ import annotations

from typing import Any


class ExportError(RuntimeError):
    """Base error for anything that goes wrong while exporting a library."""


class FetchError(ExportError):
    """Raised when a single page request fails."""

    retryable = True

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.details = details or {}


class TransportError(FetchError):
    """Network failure or a non-2xx response."""


class MalformedResponseError(FetchError):
    """The endpoint answered with HTML or another non-JSON body."""


class ProtocolError(FetchError):
    """The GraphQL envelope carried ``errors``."""

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = True,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details=details)
        self.retryable = retryable


class DataShapeError(FetchError):
    """An expected field was missing from a payload."""

    retryable = False


class PaginationError(ExportError):
    """The cursor did not advance between two pages."""

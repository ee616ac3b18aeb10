"""Failure types raised by the exporter.

All of them are fatal to a run: nothing is retried, and ``main()`` is the
only place they are caught.
"""

from typing import Any


class ExportError(Exception):
    """Base class for every exporter failure."""


class ConfigurationError(ExportError):
    """Missing required setting or malformed filter JSON."""


class TransportError(ExportError):
    """Non-2xx HTTP response or connection-level failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ApplicationError(ExportError):
    """GraphQL ``errors`` entries in an otherwise successful response."""

    def __init__(self, message: str, errors: list[Any]) -> None:
        super().__init__(message)
        self.errors = errors

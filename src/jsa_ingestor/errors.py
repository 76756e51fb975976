"""Exception hierarchy for the JSA header ingestor."""

from __future__ import annotations

from typing import Optional


class IngestError(Exception):
    """Base exception for ingestion failures."""


class ConfigurationError(IngestError):
    """Raised for fatal configuration problems which abort the whole run."""


class BadArgumentError(IngestError):
    """Raised when a caller passes malformed input."""


class DatabaseError(IngestError):
    """Raised when an SQL operation fails; carries the driver error text."""

    def __init__(self, message: str, driver_text: Optional[str] = None) -> None:
        super().__init__(message)
        self.driver_text = driver_text or message


class DuplicateError(DatabaseError):
    """Raised when an insert collides with an existing unique key."""


class HeaderValidationError(IngestError):
    """A header value failed domain verification."""

    def __init__(self, header: str, message: str) -> None:
        super().__init__(f"{header}: {message}")
        self.header = header
        self.message = message


class ExternalToolError(IngestError):
    """Raised when an external bounds or frequency calculation fails."""

"""
Error taxonomy for the ingestion pipeline.

Only ConfigurationError and ValidationError (and an unavailable extraction
service at the gate) stop a run before work starts. Everything else is
caught at the batch or record boundary and turned into a failure outcome.
"""

from typing import Any, Optional


class IngestionError(Exception):
    """Base exception for all ingestion errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(IngestionError):
    """The extraction service location is not configured."""


class ValidationError(IngestionError):
    """An uploaded file has the wrong content type or is too large."""


class UnavailableError(IngestionError):
    """The extraction service could not be reached or refused the call."""


class ExtractionTimeoutError(UnavailableError):
    """A call to the extraction service exceeded its deadline."""


class ExtractionError(IngestionError):
    """
    The extraction service answered but reported failure for a file.

    Never raised past the extraction client: it is recorded as a failed
    FileOutcome carrying the message.
    """


class PersistenceError(IngestionError):
    """Writing an invoice record to storage failed."""

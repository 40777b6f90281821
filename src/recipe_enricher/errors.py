from __future__ import annotations


class EnricherError(Exception):
    """Base class for errors raised by the enrichment pipeline."""


class ConfigurationError(EnricherError):
    """A required credential or setting is missing or unreadable."""


class RecordStoreError(EnricherError):
    """The record store rejected a request or could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None, code: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class AiRequestError(EnricherError):
    """The classification API call failed (transport, status, or empty content)."""


class ImageHostError(EnricherError):
    """The image host failed to accept an uploaded file."""


class InvalidUpdateError(EnricherError):
    """Caller-supplied update data failed validation."""

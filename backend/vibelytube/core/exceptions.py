"""
VibelyTube error taxonomy.

Every error raised by services carries the HTTP status it maps to at the
endpoint boundary, the public message, and optional detail text.
"""
from __future__ import annotations

from typing import Optional


class VibelyError(Exception):
    """Base class for errors surfaced through the failure envelope."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(VibelyError):
    """A required request field is missing or malformed."""

    status_code = 400


class NotFoundError(VibelyError):
    status_code = 404


class ExtractionError(VibelyError):
    """The analysis pipeline could not produce a result."""

    status_code = 500


class GenerationError(VibelyError):
    """The language-model call failed."""

    status_code = 500

from __future__ import annotations

from typing import Optional


class AnamnesisError(Exception):
    """Base class for every failure the analysis pipeline surfaces to callers."""


class ExtractionTransportError(AnamnesisError):
    """The extraction backend call did not complete successfully."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ExtractionFormatError(AnamnesisError):
    """The backend answered, but its text is not the expected JSON shape."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(f"{message}: {raw_text}")
        self.reason = message
        self.raw_text = raw_text


class BusyError(AnamnesisError):
    """An analysis is already running for this session."""


class ValidationError(AnamnesisError):
    """A caller asked for an answer override the entry cannot accept."""


class QuestionnaireError(AnamnesisError):
    """The questionnaire definition could not be loaded or decoded."""


class ConfigurationError(AnamnesisError):
    """Required runtime configuration (e.g. the API credential) is missing."""

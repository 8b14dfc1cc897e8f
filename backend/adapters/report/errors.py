"""
Report collaborator error classification.

Every failure reaching the caller is a ReportError with a kind the UI can
present distinctly. The core never retries; a retry is a new session.
"""

from __future__ import annotations

from enum import Enum


class ReportErrorKind(str, Enum):
    """
    OVERLOADED:
        The collaborator signaled it is over capacity. Shown distinctly.

    NO_DATA:
        The session completed without a single valid reading.

    INVALID_RESPONSE:
        The collaborator answered, but not with a well-formed report.

    UPSTREAM:
        Any other collaborator or network failure.
    """

    OVERLOADED = "overloaded"
    NO_DATA = "no_data"
    INVALID_RESPONSE = "invalid_response"
    UPSTREAM = "upstream"


_USER_MESSAGES: dict[ReportErrorKind, str] = {
    ReportErrorKind.OVERLOADED: (
        "The AI model is currently overloaded. Please try again later."
    ),
    ReportErrorKind.NO_DATA: (
        "No monitoring data available to generate a report."
    ),
    ReportErrorKind.INVALID_RESPONSE: (
        "Failed to generate report. Please try again in a few moments."
    ),
}


class ReportError(Exception):
    """Classified report-generation failure."""

    def __init__(self, kind: ReportErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def user_message(self) -> str:
        """Text shown to the user; never empty."""
        default = f"An unexpected error occurred: {self.message}"
        return _USER_MESSAGES.get(self.kind, default)

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind.value,
            "message": self.user_message,
            "detail": self.message,
        }

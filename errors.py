"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
DEVICE_NOT_FOUND = "DEVICE_NOT_FOUND"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"
NO_SPEECH = "NO_SPEECH"
ABORTED = "ABORTED"
ASSESSMENT_FAILED = "ASSESSMENT_FAILED"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone permission is required, please allow access and retry.",
    DEVICE_NOT_FOUND: "No microphone was found, please connect one and retry.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    ASR_PROTOCOL_ERROR: "Speech recognition response is invalid.",
    NO_SPEECH: "No speech was detected.",
    ABORTED: "Speech recognition was aborted.",
    ASSESSMENT_FAILED: "Pronunciation assessment failed, please retry.",
}

# Recognition errors that never end a recording.
TRANSIENT_RECOGNITION_ERRORS = frozenset({NO_SPEECH, ABORTED})


def message_for(code: str, detail: str = "") -> str:
    base = ERROR_MESSAGES.get(code, code)
    return f"{base} ({detail})" if detail else base


class PracticeError(Exception):
    """Base class for errors carrying one of the codes above."""

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES.get(code, code))
        self.code = code


class DeviceError(PracticeError):
    """Microphone could not be acquired."""


class AssessmentError(PracticeError):
    """Assessment provider call failed."""


class SegmentOrderError(ValueError):
    """Segments are unsorted, overlapping or have an empty time range."""

# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Error types for speech tracking.

Recognition problems reported while a session runs are delivered to
subscribers as RecognitionError values, already classified as fatal or
recoverable. Exceptions are only raised by calls that fail outright, such
as starting a session without microphone permission.
"""

from dataclasses import dataclass
from enum import Enum

# Error codes reported by speech capabilities
NETWORK: str = "network"
AUDIO_CAPTURE: str = "audio-capture"
NOT_ALLOWED: str = "not-allowed"
SERVICE_NOT_ALLOWED: str = "service-not-allowed"

PERMISSION_CODES: frozenset[str] = frozenset([NOT_ALLOWED, SERVICE_NOT_ALLOWED])


class ErrorKind(Enum):
    """Classification of a recognition error."""
    NETWORK_TRANSIENT = "network_transient"
    AUDIO_CAPTURE = "audio_capture"
    PERMISSION_DENIED = "permission_denied"
    RESTART_LOOP = "restart_loop"
    START_FAILED = "start_failed"
    ENGINE = "engine"


FATAL_KINDS: frozenset[ErrorKind] = frozenset([
    ErrorKind.AUDIO_CAPTURE,
    ErrorKind.PERMISSION_DENIED,
    ErrorKind.RESTART_LOOP,
    ErrorKind.START_FAILED,
])

MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK_TRANSIENT: "Speech recognition network connection dropped.",
    ErrorKind.AUDIO_CAPTURE:
        "No microphone found. Check your microphone settings and try again.",
    ErrorKind.PERMISSION_DENIED:
        "Permission to use microphone has been denied. "
        "Check your microphone settings and try again.",
    ErrorKind.RESTART_LOOP:
        "Speech recognition is repeatedly stopping. Please try restarting the app.",
    ErrorKind.START_FAILED: "Speech recognition could not be restarted.",
    ErrorKind.ENGINE: "Speech recognition error.",
}


@dataclass(frozen=True)
class RecognitionError:
    """A classified error from the speech recognition session."""
    kind: ErrorKind
    code: str
    message: str

    @property
    def fatal(self) -> bool:
        """Whether the session has been stopped because of this error."""
        return self.kind in FATAL_KINDS

    def __str__(self) -> str:
        return self.message


def classify_error(code: str) -> RecognitionError:
    """Map a capability error code to a RecognitionError."""
    kind: ErrorKind
    if code == NETWORK:
        kind = ErrorKind.NETWORK_TRANSIENT
    elif code == AUDIO_CAPTURE:
        kind = ErrorKind.AUDIO_CAPTURE
    elif code in PERMISSION_CODES:
        kind = ErrorKind.PERMISSION_DENIED
    else:
        kind = ErrorKind.ENGINE

    message: str = MESSAGES[kind]
    if kind is ErrorKind.ENGINE:
        message = f"{message} ({code})"
    return RecognitionError(kind, code, message)


def restart_loop_error() -> RecognitionError:
    return RecognitionError(
        ErrorKind.RESTART_LOOP, "restart-loop", MESSAGES[ErrorKind.RESTART_LOOP])


class VoicecueError(Exception):
    """Base class for voicecue exceptions."""


class PermissionDeniedError(VoicecueError):
    """Microphone access was not granted, so the session did not start."""

    def __init__(self, message: str = "Microphone permission is required for speech recognition.") -> None:
        super().__init__(message)


class CapabilityError(VoicecueError):
    """The speech capability could not be started or stopped."""

"""
Base interface for speech recognition capabilities.

A capability is an external continuous speech recognizer. Once started it
reports events to a listener: start, result (the top transcript alternative
and whether it is final), error (a short error code) and end. Real engines
end sessions on their own from time to time; restarting them is the
supervisor's job, not the capability's.

All listener calls must happen on the event loop thread, one at a time.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Protocol


class SpeechEventListener(Protocol):
    """Receives events from a speech capability."""

    def handle_start(self) -> None:
        """Recognition has started."""

    def handle_result(self, transcript: str, is_final: bool) -> None:
        """A transcript fragment was recognized."""

    def handle_error(self, code: str) -> None:
        """Recognition reported an error code."""

    def handle_end(self) -> None:
        """The recognition session ended."""


class SpeechCapability(ABC):
    """Base interface for continuous speech recognizers."""

    listener: SpeechEventListener | None = None

    def set_listener(self, listener: SpeechEventListener | None) -> None:
        """Set (or clear) the object that receives recognition events."""
        self.listener = listener

    @abstractmethod
    async def request_permission(self) -> bool:
        """
        Ask for access to the microphone.

        Returns:
            True if recognition may use the microphone
        """

    @abstractmethod
    def start(self, locale: str, interim_results: bool = True, continuous: bool = True) -> None:
        """
        Begin a recognition session.

        Args:
            locale: Recognition language (e.g., "en-US")
            interim_results: Report provisional results as well as final ones
            continuous: Keep listening across pauses

        Raises:
            CapabilityError: If the recognizer could not be started
        """

    @abstractmethod
    def stop(self) -> None:
        """End the current session. An end event follows."""


@dataclass
class ModelInfo:
    """Information about an available recognition model."""

    id: str  # Unique identifier (e.g., "vosk-en-us-small")
    name: str  # Display name (e.g., "English US - Small")
    provider: str  # Provider name ("vosk")
    locale: str  # Language the model recognizes (e.g., "en-US")
    size_mb: int | None = None
    description: str | None = None

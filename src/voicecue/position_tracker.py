# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Position tracking module that follows the speaker through the script.

Ties the window matcher to a supervised recognition session: every
transcript event is matched against the script and the resulting position
is reported to the UI through callbacks.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace

from . import debug_log
from .capability import SpeechCapability
from .errors import RecognitionError, VoicecueError
from .matcher import MatchResult, WindowMatcher
from .supervisor import EventScheduler, SessionCallbacks, SessionSupervisor, SupervisorSettings
from .tokenizer import Token, get_tokens_from_text, tokenize

logger = logging.getLogger(__name__)

UNSET: int = -1


@dataclass
class Position:
    """Where the speaker is in the script. All fields are token indices."""
    start: int = UNSET  # End of the last final match (already read)
    search: int = UNSET  # Anchor for the next search region
    end: int = UNSET  # Current reading position (highlight / scroll target)
    bounds: int = UNSET  # One past the end of the current search region


@dataclass
class TrackerCallbacks:
    """Subscribers for tracker events, called synchronously."""
    on_start: Callable[[], None] | None = None
    on_position_update: Callable[[Position], None] | None = None
    on_error: Callable[[RecognitionError | VoicecueError], None] | None = None
    on_end: Callable[[], None] | None = None


class PositionTracker:
    """
    Tracks the reading position in a script from live speech.

    Final results commit the position (start, search and end collapse onto
    the match); interim results only move search and end, so the highlight
    can run ahead without rewriting what has been read.

    Usage:
        tracker = PositionTracker.from_script(text, capability, TrackerCallbacks(
            on_position_update=lambda pos: scroll_to(pos.end)))
        await tracker.start()
    """

    tokens: list[Token]
    callbacks: TrackerCallbacks
    matcher: WindowMatcher
    position: Position

    def __init__(
        self,
        tokens: Sequence[Token],
        capability: SpeechCapability,
        callbacks: TrackerCallbacks | None = None,
        matcher: WindowMatcher | None = None,
        supervisor_settings: SupervisorSettings | None = None,
        scheduler: EventScheduler | None = None
    ) -> None:
        """
        Initialize the tracker.

        Args:
            tokens: Tokenized script
            capability: Speech recognizer to listen with
            callbacks: Subscribers for position, error, start and end events
            matcher: Window matcher (default settings if None)
            supervisor_settings: Restart policy and recognition locale
            scheduler: Clock and timers for restarts (running loop if None)
        """
        self.tokens = list(tokens)
        self.callbacks = callbacks or TrackerCallbacks()
        self.matcher = matcher or WindowMatcher()
        self.session = self.matcher.new_session()
        self.position = Position()

        self.supervisor = SessionSupervisor(
            capability,
            SessionCallbacks(
                on_start=self._handle_start,
                on_result=self._handle_result,
                on_error=self._handle_error,
                on_end=self._handle_end,
            ),
            settings=supervisor_settings,
            scheduler=scheduler,
        )

    @classmethod
    def from_script(
        cls,
        script_text: str,
        capability: SpeechCapability,
        callbacks: TrackerCallbacks | None = None,
        **kwargs
    ) -> 'PositionTracker':
        """Create a tracker for raw script text."""
        return cls(tokenize(script_text), capability, callbacks, **kwargs)

    def update_tokens(self, tokens: Sequence[Token]) -> None:
        """
        Swap in a new token sequence after the script changed.

        Position fields are clamped so they never point past the new end.
        """
        self.tokens = list(tokens)
        last: int = len(self.tokens) - 1

        def clamp(value: int) -> int:
            return value if value == UNSET else min(value, last)

        self.position = Position(
            start=clamp(self.position.start),
            search=clamp(self.position.search),
            end=clamp(self.position.end),
            bounds=clamp(self.position.bounds),
        )

    def update_position(self, **fields: int) -> None:
        """Merge fields into the position and notify the subscriber."""
        old: Position = self.position
        self.position = replace(self.position, **fields)

        if debug_log.is_enabled():
            debug_log.log_position_update(
                old, self.position, self._words_between(old.end, self.position.end))

        if self.callbacks.on_position_update:
            self.callbacks.on_position_update(self.get_position())

    def get_position(self) -> Position:
        """Get a copy of the current position."""
        return replace(self.position)

    async def start(self) -> None:
        """
        Start listening and tracking.

        Raises:
            PermissionDeniedError: If microphone access was refused
            CapabilityError: If the recognizer failed to start
        """
        if self.is_running():
            return

        try:
            await self.supervisor.start()
        except VoicecueError as e:
            logger.error("Could not start tracking: %s", e)
            if self.callbacks.on_error:
                self.callbacks.on_error(e)
            raise

    def stop(self) -> None:
        """Stop listening. The last position stays as it is."""
        self.supervisor.stop()
        self.session.reset()

    def reset(self) -> None:
        """Go back to the start of the script."""
        self.position = Position()
        self.session.reset()
        bounds: int | None = self.matcher.bounds(self.tokens, 0)
        self.update_position(bounds=bounds if bounds is not None else UNSET)

    def is_running(self) -> bool:
        return self.supervisor.running

    def _words_between(self, start: int, end: int) -> list[str]:
        return [t.text for t in self.tokens[max(start + 1, 0):end + 1] if t.is_word]

    # Session events

    def _handle_start(self) -> None:
        if self.position.bounds < 0:
            bounds: int | None = self.matcher.bounds(self.tokens, 0)
            if bounds is not None:
                self.update_position(bounds=bounds)
        if self.callbacks.on_start:
            self.callbacks.on_start()

    def _handle_result(self, transcript: str, is_final: bool) -> None:
        if not transcript.strip():
            return

        if debug_log.is_enabled():
            debug_log.log_transcript(transcript, is_final)

        result: MatchResult | None = self.matcher.match(
            self.tokens,
            get_tokens_from_text(transcript),
            self.position.search,
            is_final,
            self.session,
        )
        if result is None:
            return

        fields: dict[str, int] = {}
        if result.bounds is not None:
            fields["bounds"] = result.bounds

        if is_final:
            fields.update(start=result.end, search=result.end, end=result.end)
        else:
            end: int = result.end
            if self.position.start != UNSET:
                end = max(end, self.position.start)
            fields.update(search=result.start, end=end)

        self.update_position(**fields)

    def _handle_error(self, error: RecognitionError) -> None:
        if debug_log.is_enabled():
            debug_log.log_error(error)
        if self.callbacks.on_error:
            self.callbacks.on_error(error)

    def _handle_end(self) -> None:
        self.session.reset()
        if self.callbacks.on_end:
            self.callbacks.on_end()

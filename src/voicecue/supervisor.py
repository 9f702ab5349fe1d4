# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Keeps a continuous speech recognition session alive.

Continuous recognizers stop by themselves every so often. While the caller
still wants to listen, the supervisor restarts them transparently, waiting
out the first second of a session so a recognizer that dies immediately is
not hammered with restarts. If restarts keep coming anyway (more than 60 a
minute), the recognizer is stuck in a loop and the session is abandoned.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from .capability import SpeechCapability
from .errors import (
    CapabilityError,
    ErrorKind,
    PermissionDeniedError,
    RecognitionError,
    classify_error,
    restart_loop_error,
)

logger = logging.getLogger(__name__)

# Assume more than one restart per second for a minute is an infinite loop
RESTART_WINDOW_S: float = 60.0
MAX_RESTARTS: int = 60
RESTART_DEBOUNCE_S: float = 1.0

DEFAULT_LOCALE: str = "en-US"


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None:
        ...


class EventScheduler(Protocol):
    """Clock and timer source. asyncio event loops satisfy this."""

    def time(self) -> float:
        ...

    def call_later(self, delay: float, callback: Callable[[], object]) -> TimerHandle:
        ...


@dataclass
class SupervisorSettings:
    """Restart policy for a supervised session."""
    locale: str = DEFAULT_LOCALE
    restart_window_s: float = RESTART_WINDOW_S
    max_restarts: int = MAX_RESTARTS
    restart_debounce_s: float = RESTART_DEBOUNCE_S


@dataclass
class SessionCallbacks:
    """Subscribers for supervised session events."""
    on_start: Callable[[], None] | None = None
    on_result: Callable[[str, bool], None] | None = None
    on_error: Callable[[RecognitionError], None] | None = None
    on_end: Callable[[], None] | None = None


class SessionSupervisor:
    """
    Runs a speech capability as one continuous session.

    Distinguishes a stop requested by the caller (no restart, end is
    reported) from the recognizer ending on its own (restart). Errors are
    classified here; fatal ones stop the session.

    Usage:
        supervisor = SessionSupervisor(capability, SessionCallbacks(on_result=...))
        await supervisor.start()
        ...
        supervisor.stop()
    """

    capability: SpeechCapability
    callbacks: SessionCallbacks
    settings: SupervisorSettings
    scheduler: EventScheduler | None

    running: bool
    session_started_at: float
    restart_ledger: list[float]

    def __init__(
        self,
        capability: SpeechCapability,
        callbacks: SessionCallbacks | None = None,
        settings: SupervisorSettings | None = None,
        scheduler: EventScheduler | None = None
    ) -> None:
        """
        Initialize the supervisor.

        Args:
            capability: The speech recognizer to supervise
            callbacks: Subscribers for session events
            settings: Restart policy and locale
            scheduler: Clock and timers; defaults to the running event loop
        """
        self.capability = capability
        self.callbacks = callbacks or SessionCallbacks()
        self.settings = settings or SupervisorSettings()
        self.scheduler = scheduler

        self.running = False
        self.session_started_at = 0.0
        self.restart_ledger = []
        self._pending_restart: TimerHandle | None = None
        # Capability sessions started and not yet ended, and how many of
        # those were stopped by the caller
        self._live_sessions: int = 0
        self._stopped_sessions: int = 0

        self.capability.set_listener(self)

    async def start(self) -> None:
        """
        Start listening.

        Raises:
            PermissionDeniedError: If microphone access was refused
            CapabilityError: If the recognizer failed to start
        """
        granted: bool = await self.capability.request_permission()
        if not granted:
            logger.warning("Microphone permission denied")
            raise PermissionDeniedError()

        if self.scheduler is None:
            self.scheduler = asyncio.get_running_loop()

        self.running = True
        self.session_started_at = self.scheduler.time()
        self.restart_ledger = []

        try:
            self._start_recognition()
        except Exception:
            self.running = False
            raise

    def stop(self) -> None:
        """Stop listening. The recognizer's end event is still reported."""
        # running must be cleared before stopping, or the end event restarts it
        self.running = False
        self.restart_ledger = []
        self._cancel_pending_restart()
        # Ends of these sessions still arrive, possibly after a later start()
        self._stopped_sessions = self._live_sessions

        try:
            self.capability.stop()
        except CapabilityError as e:
            logger.error("Failed to stop speech recognition: %s", e)

    def _start_recognition(self) -> None:
        logger.debug("Starting recognition (%s)", self.settings.locale)
        self.capability.start(self.settings.locale, interim_results=True, continuous=True)
        self._live_sessions += 1

    def _restart(self) -> None:
        self._pending_restart = None
        if not self.running:
            return

        try:
            self._start_recognition()
        except Exception as e:  # pylint: disable=broad-except
            logger.error("Failed to restart speech recognition: %s", e)
            self.running = False
            self.restart_ledger = []
            self._emit_error(RecognitionError(ErrorKind.START_FAILED, "start-failed", str(e)))
            self._emit_end()

    def _cancel_pending_restart(self) -> None:
        if self._pending_restart is not None:
            self._pending_restart.cancel()
            self._pending_restart = None

    def _emit_error(self, error: RecognitionError) -> None:
        if self.callbacks.on_error:
            self.callbacks.on_error(error)

    def _emit_end(self) -> None:
        if self.callbacks.on_end:
            self.callbacks.on_end()

    # Capability events

    def handle_start(self) -> None:
        if self.callbacks.on_start:
            self.callbacks.on_start()

    def handle_result(self, transcript: str, is_final: bool) -> None:
        if not self.running:
            logger.debug("Dropping result after stop: '%s'", transcript)
            return
        if self.callbacks.on_result:
            self.callbacks.on_result(transcript, is_final)

    def handle_error(self, code: str) -> None:
        error: RecognitionError = classify_error(code)

        if error.kind is ErrorKind.NETWORK_TRANSIENT:
            # Network dropouts recover by themselves
            logger.info("Ignoring transient network error")
        elif error.fatal:
            logger.error("Fatal recognition error: %s", code)
            self.stop()
        else:
            logger.warning("Recognition error: %s", code)

        self._emit_error(error)

    def handle_end(self) -> None:
        self._live_sessions = max(self._live_sessions - 1, 0)
        if self._stopped_sessions > 0:
            # End of a session the caller stopped, not a self-end to restart
            self._stopped_sessions -= 1
            self._emit_end()
            return

        if not self.running or self.scheduler is None:
            self._emit_end()
            return

        now: float = self.scheduler.time()
        cutoff: float = now - self.settings.restart_window_s
        self.restart_ledger.append(now)
        self.restart_ledger = [t for t in self.restart_ledger if t >= cutoff]

        if len(self.restart_ledger) > self.settings.max_restarts:
            logger.error(
                "Recognition restarted %d times in %.0fs, giving up",
                len(self.restart_ledger), self.settings.restart_window_s)
            self.running = False
            self.restart_ledger = []
            self._cancel_pending_restart()
            self._emit_error(restart_loop_error())
            self._emit_end()
            return

        elapsed: float = now - self.session_started_at
        if elapsed < self.settings.restart_debounce_s:
            delay: float = self.settings.restart_debounce_s - elapsed
            logger.debug("Recognition ended early, restarting in %.3fs", delay)
            self._cancel_pending_restart()
            self._pending_restart = self.scheduler.call_later(delay, self._restart)
        else:
            logger.debug("Recognition ended, restarting")
            self._restart()

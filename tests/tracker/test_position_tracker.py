# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for PositionTracker: committing final results, following interim
results, resets, and script edits.
"""

import asyncio
from unittest import mock

import pytest

from voicecue import debug_log
from voicecue.errors import ErrorKind, PermissionDeniedError, RecognitionError, VoicecueError
from voicecue.position_tracker import Position, PositionTracker, TrackerCallbacks
from voicecue.replay import ManualScheduler, ScriptedCapability
from voicecue.tokenizer import tokenize

SCRIPT: str = (
    "the quick brown fox jumps over the lazy dog "
    "and then it runs far away from the farm"
)


class TrackerHarness:
    """A tracker wired to a scripted recognizer and a manual clock."""

    def __init__(self, script: str = SCRIPT, granted: bool = True) -> None:
        self.scheduler = ManualScheduler()
        self.capability = ScriptedCapability(granted=granted)
        self.updates: list[Position] = []
        self.errors: list[RecognitionError | VoicecueError] = []
        self.started: int = 0
        self.ended: int = 0
        self.tracker = PositionTracker(
            tokenize(script),
            self.capability,
            TrackerCallbacks(
                on_start=self._on_start,
                on_position_update=self.updates.append,
                on_error=self.errors.append,
                on_end=self._on_end,
            ),
            scheduler=self.scheduler,
        )

    def _on_start(self) -> None:
        self.started += 1

    def _on_end(self) -> None:
        self.ended += 1

    def start(self) -> None:
        asyncio.run(self.tracker.start())

    def say(self, text: str, is_final: bool = True) -> None:
        self.capability.result(text, is_final)


@pytest.fixture
def harness() -> TrackerHarness:
    h = TrackerHarness()
    h.start()
    return h


class TestStart:

    def test_start_seeds_bounds(self, harness: TrackerHarness) -> None:
        assert harness.tracker.is_running()
        assert harness.started == 1
        assert harness.updates == [Position(bounds=35)]

    def test_second_start_is_ignored(self, harness: TrackerHarness) -> None:
        harness.start()
        assert harness.capability.start_count == 1

    def test_permission_denied(self) -> None:
        h = TrackerHarness(granted=False)
        with pytest.raises(PermissionDeniedError):
            h.start()
        assert not h.tracker.is_running()
        assert len(h.errors) == 1
        assert isinstance(h.errors[0], PermissionDeniedError)

    def test_empty_script(self) -> None:
        h = TrackerHarness(script="")
        h.start()
        assert h.updates == []
        h.say("the quick brown")
        assert h.tracker.get_position() == Position()


class TestTracking:

    def test_warm_up_then_final_commits(self, harness: TrackerHarness) -> None:
        harness.say("the quick brown")
        assert len(harness.updates) == 1

        harness.say("fox jumps")
        assert harness.tracker.get_position() == Position(start=7, search=7, end=7, bounds=35)
        assert harness.updates[-1] == Position(start=7, search=7, end=7, bounds=35)

    def test_interim_moves_search_and_end_only(self, harness: TrackerHarness) -> None:
        harness.say("the quick brown")
        harness.say("fox jumps")
        harness.say("over the lazy dog", is_final=False)
        assert harness.tracker.get_position() == Position(start=7, search=2, end=10, bounds=35)

    def test_no_match_leaves_position_alone(self, harness: TrackerHarness) -> None:
        harness.say("the quick brown")
        harness.say("fox jumps")
        count: int = len(harness.updates)
        harness.say("zzzz qqqq xxxx zzzz qqqq xxxx")
        assert len(harness.updates) == count
        assert harness.tracker.get_position() == Position(start=7, search=7, end=7, bounds=35)

    def test_blank_transcript_ignored(self, harness: TrackerHarness) -> None:
        harness.say("   ")
        assert len(harness.updates) == 1
        assert len(harness.tracker.session.transcript_window) == 0

    def test_get_position_returns_copy(self, harness: TrackerHarness) -> None:
        position = harness.tracker.get_position()
        position.end = 99
        assert harness.tracker.get_position().end == -1

    def test_update_position_notifies(self, harness: TrackerHarness) -> None:
        harness.tracker.update_position(end=4, search=4)
        assert harness.updates[-1] == Position(start=-1, search=4, end=4, bounds=35)


class TestSessionLifecycle:

    def test_stop_keeps_position(self, harness: TrackerHarness) -> None:
        harness.say("the quick brown")
        harness.say("fox jumps")
        harness.tracker.stop()
        assert not harness.tracker.is_running()
        assert harness.ended == 1
        assert harness.tracker.get_position().end == 7
        assert len(harness.tracker.session.transcript_window) == 0

    def test_recognizer_end_restarts_with_fresh_session(self, harness: TrackerHarness) -> None:
        harness.say("the quick brown")
        harness.scheduler.advance(2.0)
        harness.capability.end()
        assert harness.capability.start_count == 2
        assert harness.ended == 0
        assert len(harness.tracker.session.transcript_window) == 0
        assert len(harness.tracker.session.smoother) == 0

    def test_restart_keeps_bounds(self, harness: TrackerHarness) -> None:
        harness.tracker.update_position(bounds=20)
        harness.scheduler.advance(2.0)
        harness.capability.end()
        assert harness.tracker.get_position().bounds == 20

    def test_errors_are_forwarded(self, harness: TrackerHarness) -> None:
        harness.capability.error("audio-capture")
        assert [e.kind for e in harness.errors] == [ErrorKind.AUDIO_CAPTURE]
        assert not harness.tracker.is_running()
        assert harness.ended == 1

    def test_reset(self, harness: TrackerHarness) -> None:
        harness.say("the quick brown")
        harness.say("fox jumps")
        harness.tracker.reset()
        assert harness.tracker.get_position() == Position(bounds=35)
        assert harness.updates[-1] == Position(bounds=35)
        assert len(harness.tracker.session.smoother) == 0

    def test_reset_with_empty_script(self) -> None:
        h = TrackerHarness(script="")
        h.tracker.reset()
        assert h.updates == [Position()]


class TestUpdateTokens:

    def test_positions_clamped_to_new_script(self, harness: TrackerHarness) -> None:
        harness.say("the quick brown")
        harness.say("fox jumps")
        harness.say("over the lazy dog", is_final=False)
        harness.tracker.update_tokens(tokenize("the quick brown fox"))
        assert harness.tracker.get_position() == Position(start=6, search=2, end=6, bounds=6)

    def test_unset_fields_stay_unset(self) -> None:
        h = TrackerHarness()
        h.tracker.update_tokens(tokenize("one two"))
        assert h.tracker.get_position() == Position()

    def test_longer_script_keeps_position(self, harness: TrackerHarness) -> None:
        harness.say("the quick brown")
        harness.say("fox jumps")
        harness.tracker.update_tokens(tokenize(SCRIPT + " and back again"))
        assert harness.tracker.get_position() == Position(start=7, search=7, end=7, bounds=35)


def test_from_script() -> None:
    capability = ScriptedCapability()
    tracker = PositionTracker.from_script("hello world", capability)
    assert [t.text for t in tracker.tokens] == ["hello", " ", "world"]
    assert capability.listener is tracker.supervisor


class TestDebugLogging:

    def teardown_method(self) -> None:
        debug_log.disable()

    def test_updates_and_transcripts_logged(self, harness: TrackerHarness) -> None:
        debug_log.enable()
        with mock.patch.object(debug_log, "log_transcript") as log_transcript, \
                mock.patch.object(debug_log, "log_position_update") as log_update:
            harness.say("the quick brown")
            harness.say("fox jumps")

        assert log_transcript.call_count == 2
        log_transcript.assert_called_with("fox jumps", True)
        log_update.assert_called_once()
        old, new, words = log_update.call_args[0]
        assert old.end == -1
        assert new.end == 7
        assert words == ["the", "quick", "brown", "fox"]

    def test_errors_logged(self, harness: TrackerHarness) -> None:
        debug_log.enable()
        with mock.patch.object(debug_log, "log_error") as log_error:
            harness.capability.error("network")
        log_error.assert_called_once()
        assert log_error.call_args[0][0].kind is ErrorKind.NETWORK_TRANSIENT


class LoopEndCapability(ScriptedCapability):
    """Posts its end event through the event loop, like a threaded recognizer."""

    def stop(self) -> None:
        self.stop_count += 1
        if self.active:
            self.active = False
            asyncio.get_running_loop().call_soon(self.listener.handle_end)


class TestPauseAndResume:

    def test_resume_before_old_session_ends(self) -> None:
        capability = LoopEndCapability()
        ended: list[int] = []
        tracker = PositionTracker(
            tokenize(SCRIPT), capability, TrackerCallbacks(on_end=lambda: ended.append(1)))

        async def scenario() -> None:
            await tracker.start()
            tracker.stop()
            await tracker.start()
            await asyncio.sleep(0.01)

        asyncio.run(scenario())

        assert capability.start_count == 2
        assert ended == [1]
        assert tracker.is_running()
        assert tracker.supervisor.restart_ledger == []

    def test_failed_start_is_not_running(self) -> None:
        capability = ScriptedCapability()
        tracker = PositionTracker(tokenize(SCRIPT), capability, scheduler=ManualScheduler())

        with mock.patch.object(capability, "start", side_effect=RuntimeError("Failed to create a model")):
            with pytest.raises(RuntimeError):
                asyncio.run(tracker.start())
        assert not tracker.is_running()

        asyncio.run(tracker.start())
        assert tracker.is_running()
        assert capability.start_count == 1

# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tool for replaying a recorded transcript through the position tracker.

This CLI tool takes a script file and a transcript file, feeds the
transcript to a PositionTracker exactly as a live recognizer would, and
writes a log of where the tracker went. Replaying the same recordings with
different matching settings is how the matcher thresholds are calibrated.

Transcript format, one event per line:
    F: some final text      final result
    I: some interim text    interim result
    E: network              recognizer error code
    END                     recognizer ended by itself
    some text               final result
Lines starting with '===' and blank lines are ignored.
"""

import argparse
import asyncio
import heapq
import itertools
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal, TextIO

from .capability import SpeechCapability
from .config import build_matcher_settings, build_supervisor_settings, load_config
from .errors import CapabilityError, RecognitionError, VoicecueError
from .matcher import MatcherSettings, WindowMatcher
from .position_tracker import Position, PositionTracker, TrackerCallbacks
from .supervisor import SupervisorSettings
from .tokenizer import Token, tokenize

EventKind = Literal["final", "interim", "error", "end"]
StepType = Literal["advance", "jump", "regress", "no_change", "error", "end"]

# Seconds between replayed events
EVENT_INTERVAL_S: float = 0.5
# Moves further than this many tokens are reported as jumps
JUMP_TOKENS: int = 20


@dataclass
class TranscriptEvent:
    """A recorded recognizer event."""
    kind: EventKind
    text: str = ""


@dataclass
class ReplayStep:
    """What the tracker did in response to one transcript event."""
    line: int
    event: TranscriptEvent
    before: Position
    after: Position
    step_type: StepType
    script_word: str = ""


class _Timer:
    def __init__(self) -> None:
        self.cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Clock and timers that only move when advance() is called.

    Lets restart timing be replayed (and tested) without waiting.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.now: float = start
        self._counter = itertools.count()
        self._timers: list[tuple[float, int, _Timer, Callable[[], object]]] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], object]) -> _Timer:
        timer = _Timer()
        heapq.heappush(self._timers, (self.now + delay, next(self._counter), timer, callback))
        return timer

    @property
    def pending(self) -> int:
        """Number of timers that have not fired or been cancelled."""
        return sum(1 for _, _, timer, _ in self._timers if not timer.cancelled)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target: float = self.now + seconds
        while self._timers and self._timers[0][0] <= target:
            when, _, timer, callback = heapq.heappop(self._timers)
            self.now = when
            if not timer.cancelled:
                callback()
        self.now = target


class ScriptedCapability(SpeechCapability):
    """
    Speech capability driven by the caller instead of a microphone.

    Events are delivered to the listener immediately, on the calling thread.
    """

    def __init__(self, granted: bool = True) -> None:
        self.granted: bool = granted
        self.active: bool = False
        self.start_count: int = 0
        self.stop_count: int = 0
        self.locale: str | None = None
        self.fail_start: bool = False

    async def request_permission(self) -> bool:
        return self.granted

    def start(self, locale: str, interim_results: bool = True, continuous: bool = True) -> None:
        if self.fail_start:
            raise CapabilityError("Scripted start failure")
        self.start_count += 1
        self.locale = locale
        self.active = True
        if self.listener:
            self.listener.handle_start()

    def stop(self) -> None:
        self.stop_count += 1
        if self.active:
            self.end()

    def result(self, transcript: str, is_final: bool) -> None:
        if self.listener:
            self.listener.handle_result(transcript, is_final)

    def error(self, code: str) -> None:
        if self.listener:
            self.listener.handle_error(code)

    def end(self) -> None:
        """End the session as a recognizer would on its own."""
        self.active = False
        if self.listener:
            self.listener.handle_end()


def parse_transcript_line(line: str) -> TranscriptEvent | None:
    """Parse one transcript line, or return None for lines to skip."""
    stripped: str = line.strip()
    if not stripped or stripped.startswith('==='):
        return None
    if stripped == "END":
        return TranscriptEvent("end")

    prefix, sep, rest = stripped.partition(":")
    if sep:
        kinds: dict[str, EventKind] = {"F": "final", "I": "interim", "E": "error"}
        kind: EventKind | None = kinds.get(prefix.strip().upper())
        if kind is not None:
            return TranscriptEvent(kind, rest.strip())

    return TranscriptEvent("final", stripped)


def load_transcript(path: Path) -> list[tuple[int, TranscriptEvent]]:
    """Load a transcript file as (line number, event) pairs."""
    events: list[tuple[int, TranscriptEvent]] = []
    with open(path, encoding='utf-8') as f:
        for line_num, line in enumerate(f, start=1):
            event: TranscriptEvent | None = parse_transcript_line(line)
            if event is not None:
                events.append((line_num, event))
    return events


def load_script(path: Path) -> str:
    """Load script file content."""
    with open(path, encoding='utf-8') as f:
        return f.read()


def expand_word_by_word(
    events: list[tuple[int, TranscriptEvent]]
) -> list[tuple[int, TranscriptEvent]]:
    """Turn each final result into growing interim results followed by the final."""
    expanded: list[tuple[int, TranscriptEvent]] = []
    for line_num, event in events:
        if event.kind == "final":
            words: list[str] = event.text.split()
            for i in range(1, len(words)):
                expanded.append((line_num, TranscriptEvent("interim", " ".join(words[:i]))))
        expanded.append((line_num, event))
    return expanded


def _classify(before: Position, after: Position) -> StepType:
    if after.end == before.end:
        return "no_change"
    if after.end < before.end:
        return "regress"
    if before.end >= 0 and after.end - before.end > JUMP_TOKENS:
        return "jump"
    return "advance"


def _token_text(tokens: list[Token], index: int) -> str:
    if 0 <= index < len(tokens):
        return tokens[index].text
    return "<none>"


def replay_transcript(
    events: list[tuple[int, TranscriptEvent]],
    script_text: str,
    output: TextIO,
    verbose: bool = False,
    matcher_settings: MatcherSettings | None = None,
    supervisor_settings: SupervisorSettings | None = None,
    interval: float = EVENT_INTERVAL_S
) -> list[ReplayStep]:
    """Replay transcript events through a tracker and log what happened.

    Args:
        events: (line number, event) pairs from load_transcript
        script_text: The script content
        output: File handle to write log output
        verbose: If True, log every event. If False, only jumps, regressions and errors.
        matcher_settings: Matching constants to replay with
        supervisor_settings: Restart policy to replay with
        interval: Simulated seconds between events

    Returns:
        List of all replay steps
    """
    tokens: list[Token] = tokenize(script_text)
    scheduler = ManualScheduler()
    capability = ScriptedCapability()
    errors: list[RecognitionError | VoicecueError] = []

    tracker = PositionTracker(
        tokens,
        capability,
        TrackerCallbacks(on_error=errors.append),
        matcher=WindowMatcher(matcher_settings),
        supervisor_settings=supervisor_settings,
        scheduler=scheduler,
    )
    asyncio.run(tracker.start())

    word_count: int = sum(1 for t in tokens if t.is_word)

    output.write("=" * 80 + "\n")
    output.write("TRANSCRIPT REPLAY LOG\n")
    output.write(f"Generated: {datetime.now().isoformat()}\n")
    output.write(f"Script tokens: {len(tokens)} ({word_count} words)\n")
    output.write(f"Transcript events: {len(events)}\n")
    output.write("=" * 80 + "\n\n")

    output.write("SCRIPT WORDS:\n")
    output.write("-" * 40 + "\n")
    for token in tokens:
        if token.is_word:
            output.write(f"  [{token.index:4d}] {token.text}\n")
    output.write("\n" + "=" * 80 + "\n\n")

    output.write("TRACKING LOG:\n")
    output.write("-" * 40 + "\n")

    steps: list[ReplayStep] = []
    for line_num, event in events:
        scheduler.advance(interval)
        before: Position = tracker.get_position()
        errors_before: int = len(errors)

        if event.kind == "end":
            capability.end()
        elif event.kind == "error":
            capability.error(event.text)
        else:
            capability.result(event.text, event.kind == "final")

        after: Position = tracker.get_position()
        step_type: StepType
        if event.kind == "end":
            step_type = "end"
        elif len(errors) > errors_before:
            step_type = "error"
        else:
            step_type = _classify(before, after)

        step = ReplayStep(
            line=line_num,
            event=event,
            before=before,
            after=after,
            step_type=step_type,
            script_word=_token_text(tokens, after.end),
        )
        steps.append(step)

        if verbose or step_type in ("jump", "regress", "error", "end"):
            label: str = f"{event.kind}: \"{event.text[:60]}\"" if event.text else event.kind
            output.write(f"Line {line_num:4d} {label}\n")
            output.write(
                f"  [{step_type}] end {before.end} -> {after.end} "
                f"\"{step.script_word}\" (start={after.start}, search={after.search}, "
                f"bounds={after.bounds})\n"
            )
            for error in errors[errors_before:]:
                output.write(f"  error: {error}\n")

    tracker.stop()

    output.write("\n" + "=" * 80 + "\n")
    output.write("SUMMARY:\n")
    output.write("-" * 40 + "\n")
    final: Position = tracker.get_position()
    output.write(f"Total events processed: {len(events)}\n")
    output.write(f"Final position: {final.end} / {len(tokens) - 1}\n")
    for step_type in ("advance", "jump", "regress", "no_change", "error"):
        count: int = sum(1 for s in steps if s.step_type == step_type)
        output.write(f"{step_type}: {count}\n")
    output.write(f"Recognizer restarts: {capability.start_count - 1}\n")

    return steps


def main() -> None:
    """CLI entry point for the transcript replay tool."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Replay a recorded transcript through the position tracker"
    )

    parser.add_argument(
        "script",
        type=Path,
        help="Path to script file"
    )

    parser.add_argument(
        "transcript",
        type=Path,
        help="Path to transcript file"
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output log file path (default: stdout)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every event, not just jumps, regressions and errors"
    )

    parser.add_argument(
        "-w", "--word-by-word",
        action="store_true",
        help="Expand final lines into growing interim results first"
    )

    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Config file with matching settings (default: ./.voicecue.yaml)"
    )

    args: argparse.Namespace = parser.parse_args()

    for path, label in ((args.script, "Script"), (args.transcript, "Transcript")):
        if not path.exists():
            print(f"Error: {label} file not found: {path}", file=sys.stderr)
            sys.exit(1)

    try:
        events = load_transcript(args.transcript)
        script_text: str = load_script(args.script)
    except OSError as e:
        print(f"Error loading files: {e}", file=sys.stderr)
        sys.exit(1)

    if not events:
        print("Error: No transcript events found", file=sys.stderr)
        sys.exit(1)

    if args.word_by_word:
        events = expand_word_by_word(events)

    config = load_config(args.config)
    matcher_settings: MatcherSettings = build_matcher_settings(config)
    supervisor_settings: SupervisorSettings = build_supervisor_settings(config)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            replay_transcript(events, script_text, f, args.verbose,
                              matcher_settings, supervisor_settings)
        print(f"Replay log written to: {args.output}")
    else:
        replay_transcript(events, script_text, sys.stdout, args.verbose,
                          matcher_settings, supervisor_settings)


if __name__ == "__main__":
    main()

# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Sliding window matcher that locates the transcript within the script.

The most recent few transcript words are compared against every window of
the same length inside a bounded region around the current position, using
edit distance. Windows far from where the speaker is expected to be are
penalized. The chosen window is smoothed against previous matches to avoid
rapid jumps in position.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from .edit_distance import normalized_distance
from .smoother import SMOOTHING_MIN_SAMPLES, SMOOTHING_SAMPLES, TemporalSmoother
from .tokenizer import Token

logger = logging.getLogger(__name__)

MIN_WINDOW: int = 3
MATCH_WINDOW: int = 6

TEXT_REGION_PREVIOUS: int = 10
TEXT_REGION_NEXT: int = 50

# Speech usually runs a couple of tokens ahead of the highlighted word
READING_LEAD: int = 2
DISTANCE_WEIGHT: float = 0.03

# Tried in order: confident, plausible, then loose matches
MATCH_THRESHOLDS: tuple[float, ...] = (0.1, 0.3, 0.5)
REFINE_SPAN: int = 2


@dataclass
class MatcherSettings:
    """Tunable constants for window matching.

    The thresholds and distance weight were tuned by hand; recalibrate them
    against recorded transcripts (see voicecue.replay) rather than by guesswork.
    """
    min_window: int = MIN_WINDOW
    match_window: int = MATCH_WINDOW
    region_previous: int = TEXT_REGION_PREVIOUS
    region_next: int = TEXT_REGION_NEXT
    reading_lead: int = READING_LEAD
    distance_weight: float = DISTANCE_WEIGHT
    thresholds: tuple[float, ...] = MATCH_THRESHOLDS
    refine_span: int = REFINE_SPAN
    smoothing_samples: int = SMOOTHING_SAMPLES
    smoothing_min_samples: int = SMOOTHING_MIN_SAMPLES


@dataclass
class MatchResult:
    """A smoothed match of the transcript against the script."""
    start: int  # Smoothed index of the first matched token
    end: int  # Smoothed index of the last matched token
    bounds: int | None  # One past the last token of the searched region
    window: list[Token] = field(default_factory=list)  # Raw matched window


def create_text_region(
    tokens: Sequence[Token],
    index: int,
    next_tokens: int = TEXT_REGION_NEXT,
    previous_tokens: int = TEXT_REGION_PREVIOUS
) -> list[Token]:
    """
    Words of the script around index.

    Limits how far back the speaker can be tracked and how far ahead a match
    can jump, which keeps matching stable and cheap.
    """
    start: int = max(index - previous_tokens, 0)
    end: int = max(index + next_tokens, 0)
    return [token for token in tokens[start:end] if token.is_word]


def get_bounds_start(
    tokens: Sequence[Token],
    index: int,
    region: Sequence[Token] | None = None
) -> int | None:
    """One past the last token of the text region at index, or None if empty."""
    if region is None:
        region = create_text_region(tokens, index)
    if not region:
        return None
    return region[-1].index + 1


def create_text_windows(tokens: Sequence[Token], length: int) -> list[list[Token]]:
    """Every contiguous run of length tokens (or all tokens if fewer)."""
    if len(tokens) <= length:
        return [list(tokens)]
    return [list(tokens[i:i + length]) for i in range(len(tokens) - length + 1)]


def _join_words(tokens: Sequence[Token]) -> str:
    return " ".join(token.text for token in tokens).lower()


def score_windows(
    transcript: Sequence[Token],
    windows: Sequence[Sequence[Token]],
    current_index: int,
    settings: MatcherSettings | None = None
) -> list[float]:
    """
    Relative edit distance of each window to the transcript.

    Lower is better. Windows starting away from current_index + reading_lead
    are scaled up in proportion to their distance from it.
    """
    settings = settings or MatcherSettings()
    transcript_text: str = _join_words(transcript)
    expected_index: int = current_index + settings.reading_lead

    scores: list[float] = []
    for window in windows:
        first_index: int = window[0].index if window else expected_index
        weight: float = 1 + abs(expected_index - first_index) * settings.distance_weight
        window_text: str = _join_words(window)
        scores.append(
            normalized_distance(transcript_text, window_text) * weight)
    return scores


def find_best_index(scores: Sequence[float], index: int, span: int = REFINE_SPAN) -> int:
    """
    Look a little past a qualifying index for an even better score.

    Returns the index of the lowest score among index and the span entries
    after it, preferring the earliest on ties.
    """
    candidates: Sequence[float] = scores[index:index + span + 1]
    return index + candidates.index(min(candidates))


def find_best_window(
    transcript: Sequence[Token],
    windows: Sequence[Sequence[Token]],
    current_index: int,
    settings: MatcherSettings | None = None
) -> Sequence[Token] | None:
    """
    Pick the window that best matches the transcript.

    Thresholds are tried from strictest to loosest; for each, the earliest
    window in the script that qualifies wins (after local refinement).
    Scanning from the start of the region is more stable than taking the
    global minimum, as long as the speaker does not backtrack far.

    Returns:
        The selected window, or None if nothing is close enough
    """
    settings = settings or MatcherSettings()
    if not transcript or not windows:
        return None

    scores: list[float] = score_windows(transcript, windows, current_index, settings)
    best: int | None = select_window_index(scores, settings)
    if best is None:
        return None
    return windows[best]


def select_window_index(
    scores: Sequence[float],
    settings: MatcherSettings | None = None
) -> int | None:
    """Apply the threshold cascade and local refinement to window scores."""
    settings = settings or MatcherSettings()
    for threshold in settings.thresholds:
        for i, score in enumerate(scores):
            if score <= threshold:
                best: int = find_best_index(scores, i, settings.refine_span)
                logger.debug(
                    "Matched window %d (score %.3f, threshold %.1f)",
                    best, scores[best], threshold)
                return best
    return None


class TranscriptWindow:
    """
    Rolling buffer of the most recently recognized words.

    Final fragments are appended to the stored window. Interim fragments only
    produce a query: they are provisional and will be repeated, extended or
    corrected by later events.
    """

    def __init__(self, size: int = MATCH_WINDOW) -> None:
        self.size = size
        self.words: list[Token] = []

    def __len__(self) -> int:
        return len(self.words)

    def update(self, fragment: Sequence[Token], is_final: bool) -> list[Token]:
        """Fold a transcript fragment in and return the words to match."""
        if is_final:
            self.words = (self.words + list(fragment))[-self.size:]
            return list(self.words)

        if len(fragment) < self.size:
            return (self.words + list(fragment))[-self.size:]
        return list(fragment)[-self.size:]

    def clear(self) -> None:
        self.words = []


class MatchSession:
    """Matching state belonging to one tracking session."""

    def __init__(self, settings: MatcherSettings | None = None) -> None:
        settings = settings or MatcherSettings()
        self.transcript_window = TranscriptWindow(settings.match_window)
        self.smoother = TemporalSmoother(
            samples=settings.smoothing_samples,
            min_samples=settings.smoothing_min_samples
        )

    def reset(self) -> None:
        """Forget recent transcript words and smoothing history."""
        self.transcript_window.clear()
        self.smoother.reset()


class WindowMatcher:
    """
    Finds where in the script a transcript fragment was spoken.

    Stateless apart from its settings; per-session state lives in the
    MatchSession passed to match().
    """

    settings: MatcherSettings

    def __init__(self, settings: MatcherSettings | None = None) -> None:
        self.settings = settings or MatcherSettings()

    def new_session(self) -> MatchSession:
        return MatchSession(self.settings)

    def text_region(self, tokens: Sequence[Token], index: int) -> list[Token]:
        return create_text_region(
            tokens, index,
            next_tokens=self.settings.region_next,
            previous_tokens=self.settings.region_previous
        )

    def bounds(self, tokens: Sequence[Token], index: int) -> int | None:
        return get_bounds_start(tokens, index, self.text_region(tokens, index))

    def match(
        self,
        tokens: Sequence[Token],
        fragment: Sequence[Token],
        current_index: int,
        is_final: bool,
        session: MatchSession
    ) -> MatchResult | None:
        """
        Match a transcript fragment against the script near current_index.

        Args:
            tokens: The full script token sequence
            fragment: Word tokens of the new transcript fragment
            current_index: Search anchor (normally Position.search)
            is_final: Whether the fragment is a final recognition result
            session: Transcript window and smoothing state to use and update

        Returns:
            Smoothed match, or None when there is no usable match yet
        """
        region: list[Token] = self.text_region(tokens, current_index)

        transcript: list[Token] = session.transcript_window.update(fragment, is_final)
        if len(transcript) < self.settings.min_window:
            logger.debug("Not enough words to match (%d)", len(transcript))
            return None

        if not region:
            return None

        windows: list[list[Token]] = create_text_windows(
            region, min(len(transcript), self.settings.match_window))
        best: Sequence[Token] | None = find_best_window(
            transcript, windows, current_index, self.settings)
        if best is None:
            logger.debug("No window close enough to '%s'", _join_words(transcript))
            return None

        smoothed: tuple[int, int] | None = session.smoother.add(
            best[0].index, best[-1].index)
        if smoothed is None:
            return None

        return MatchResult(
            start=smoothed[0],
            end=smoothed[1],
            bounds=get_bounds_start(tokens, current_index, region),
            window=list(best),
        )

# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for locating transcript fragments within a script.
"""

import pytest

from voicecue.matcher import (
    MatcherSettings,
    WindowMatcher,
    create_text_region,
    create_text_windows,
    find_best_index,
    get_bounds_start,
    score_windows,
    select_window_index,
)
from voicecue.tokenizer import Token, get_tokens_from_text, tokenize

SCRIPT: str = (
    "the quick brown fox jumps over the lazy dog "
    "and then it runs far away from the farm"
)


@pytest.fixture
def tokens() -> list[Token]:
    return tokenize(SCRIPT)


@pytest.fixture
def long_tokens() -> list[Token]:
    # Word k sits at token index 2k
    return tokenize(" ".join(f"w{k}" for k in range(100)))


class TestTextRegion:
    """Tests for the bounded search region."""

    def test_region_around_index(self, long_tokens: list[Token]) -> None:
        region = create_text_region(long_tokens, 40)
        assert len(region) == 30
        assert region[0].index == 30
        assert region[-1].index == 88
        assert all(token.is_word for token in region)

    def test_region_before_start(self, long_tokens: list[Token]) -> None:
        region = create_text_region(long_tokens, -1)
        assert len(region) == 25
        assert region[0].index == 0
        assert region[-1].index == 48

    def test_region_past_end_is_empty(self, long_tokens: list[Token]) -> None:
        assert create_text_region(long_tokens, 1000) == []

    def test_bounds_start(self, long_tokens: list[Token]) -> None:
        assert get_bounds_start(long_tokens, 40) == 89

    def test_bounds_start_of_empty_region(self, long_tokens: list[Token]) -> None:
        assert get_bounds_start(long_tokens, 1000) is None
        assert get_bounds_start([], 0) is None

    def test_custom_region_size(self, long_tokens: list[Token]) -> None:
        matcher = WindowMatcher(MatcherSettings(region_previous=0, region_next=10))
        region = matcher.text_region(long_tokens, 20)
        assert [t.index for t in region] == [20, 22, 24, 26, 28]
        assert matcher.bounds(long_tokens, 20) == 29


class TestWindows:
    """Tests for window creation and scoring."""

    def test_windows_slide_one_word_at_a_time(self, tokens: list[Token]) -> None:
        words = [t for t in tokens if t.is_word][:5]
        windows = create_text_windows(words, 3)
        assert [[t.text for t in w] for w in windows] == [
            ["the", "quick", "brown"],
            ["quick", "brown", "fox"],
            ["brown", "fox", "jumps"],
        ]

    def test_short_region_is_single_window(self, tokens: list[Token]) -> None:
        words = [t for t in tokens if t.is_word][:2]
        assert create_text_windows(words, 6) == [words]

    def test_exact_window_scores_zero(self, tokens: list[Token]) -> None:
        words = [t for t in tokens if t.is_word]
        windows = create_text_windows(words, 3)
        transcript = get_tokens_from_text("fox jumps over")
        scores = score_windows(transcript, windows, 4)
        assert scores[3] == 0
        assert min(scores) == scores[3]

    def test_scoring_ignores_case(self, tokens: list[Token]) -> None:
        words = [t for t in tokens if t.is_word]
        windows = create_text_windows(words, 3)
        scores = score_windows(get_tokens_from_text("The Quick BROWN"), windows, -2)
        assert scores[0] == 0

    def test_distant_windows_are_penalized(self) -> None:
        tokens = tokenize("red blue red blue")
        words = [t for t in tokens if t.is_word]
        windows = create_text_windows(words, 2)
        # Anchor plus reading lead lands on token 0
        scores = score_windows(get_tokens_from_text("red blu"), windows, -2)
        assert scores[0] == pytest.approx(1 / 7)
        assert scores[2] == pytest.approx(1 / 7 * (1 + 4 * 0.03))


class TestWindowSelection:
    """Tests for the threshold cascade and local refinement."""

    def test_exact_match_wins(self) -> None:
        words = get_tokens_from_text("the quick brown fox")
        windows = create_text_windows(words, 2)
        transcript = get_tokens_from_text("quick brown")

        scores = score_windows(transcript, windows, 0)
        assert scores[1] == 0
        assert scores[0] > 0.5

        best = select_window_index(scores)
        assert best == 1
        assert [t.text for t in windows[best]] == ["quick", "brown"]
        assert [t.index for t in windows[best]] == [2, 4]

    def test_first_qualifying_window(self) -> None:
        assert select_window_index([0.4, 0.05, 0.2]) == 1

    def test_refines_to_better_neighbour(self) -> None:
        assert select_window_index([0.2, 0.09, 0.01, 0.5]) == 2

    def test_strict_threshold_beats_earlier_loose_match(self) -> None:
        assert select_window_index([0.25, 0.6, 0.6, 0.6, 0.08]) == 4

    def test_falls_back_to_loosest_threshold(self) -> None:
        assert select_window_index([0.45, 0.6]) == 0

    def test_no_match(self) -> None:
        assert select_window_index([0.7, 0.9]) is None
        assert select_window_index([]) is None

    def test_refinement_is_limited_to_span(self) -> None:
        assert find_best_index([0.09, 0.08, 0.07, 0.01], 0, 2) == 2

    def test_refinement_prefers_earliest_on_tie(self) -> None:
        assert find_best_index([0.05, 0.05], 0) == 0

    def test_refinement_at_end_of_scores(self) -> None:
        assert find_best_index([0.3, 0.2], 1) == 1

    def test_custom_thresholds(self) -> None:
        settings = MatcherSettings(thresholds=(0.2,))
        assert select_window_index([0.45, 0.15], settings) == 1
        assert select_window_index([0.45], settings) is None


class TestMatch:
    """Tests for WindowMatcher.match."""

    def test_warm_up_then_match(self, tokens: list[Token]) -> None:
        matcher = WindowMatcher()
        session = matcher.new_session()

        first = matcher.match(
            tokens, get_tokens_from_text("the quick brown"), -1, True, session)
        assert first is None
        assert len(session.smoother) == 1

        result = matcher.match(
            tokens, get_tokens_from_text("fox jumps"), -1, True, session)
        assert result is not None
        assert [t.index for t in result.window] == [0, 2, 4, 6, 8]
        assert result.start == 0
        assert result.end == 7
        assert result.bounds == 35

    def test_too_few_words(self, tokens: list[Token]) -> None:
        matcher = WindowMatcher()
        session = matcher.new_session()
        result = matcher.match(tokens, get_tokens_from_text("quick brown"), -1, True, session)
        assert result is None
        assert len(session.smoother) == 0

    def test_no_close_window(self, tokens: list[Token]) -> None:
        matcher = WindowMatcher()
        session = matcher.new_session()
        result = matcher.match(
            tokens, get_tokens_from_text("zzzz qqqq xxxx"), -1, True, session)
        assert result is None
        assert len(session.smoother) == 0

    def test_empty_region(self, tokens: list[Token]) -> None:
        matcher = WindowMatcher()
        session = matcher.new_session()
        result = matcher.match(
            tokens, get_tokens_from_text("the quick brown"), 500, True, session)
        assert result is None
        # Final words are still remembered
        assert len(session.transcript_window) == 3

    def test_interim_does_not_change_window(self, tokens: list[Token]) -> None:
        matcher = WindowMatcher()
        session = matcher.new_session()
        matcher.match(tokens, get_tokens_from_text("the quick"), -1, True, session)
        matcher.match(tokens, get_tokens_from_text("brown fox"), -1, False, session)
        assert [t.text for t in session.transcript_window.words] == ["the", "quick"]

    def test_sessions_are_independent(self, tokens: list[Token]) -> None:
        matcher = WindowMatcher()
        first = matcher.new_session()
        second = matcher.new_session()
        matcher.match(tokens, get_tokens_from_text("the quick brown"), -1, True, first)
        assert len(first.smoother) == 1
        assert len(second.smoother) == 0
        assert len(second.transcript_window) == 0

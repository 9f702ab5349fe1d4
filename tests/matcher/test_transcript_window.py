# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for the rolling window of recent transcript words.
"""

from voicecue.matcher import MatcherSettings, MatchSession, TranscriptWindow
from voicecue.tokenizer import Token, get_tokens_from_text


def texts(tokens: list[Token]) -> list[str]:
    return [t.text for t in tokens]


class TestTranscriptWindow:

    def test_final_fragments_accumulate(self) -> None:
        window = TranscriptWindow()
        window.update(get_tokens_from_text("one two three"), True)
        query = window.update(get_tokens_from_text("four"), True)
        assert texts(query) == ["one", "two", "three", "four"]
        assert len(window) == 4

    def test_final_keeps_most_recent_words(self) -> None:
        window = TranscriptWindow(size=6)
        window.update(get_tokens_from_text("one two three four"), True)
        query = window.update(get_tokens_from_text("five six seven eight"), True)
        assert texts(query) == ["three", "four", "five", "six", "seven", "eight"]
        assert texts(window.words) == texts(query)

    def test_short_interim_is_appended_to_query_only(self) -> None:
        window = TranscriptWindow()
        window.update(get_tokens_from_text("one two three"), True)
        query = window.update(get_tokens_from_text("four five"), False)
        assert texts(query) == ["one", "two", "three", "four", "five"]
        assert texts(window.words) == ["one", "two", "three"]

    def test_long_interim_replaces_query(self) -> None:
        window = TranscriptWindow(size=6)
        window.update(get_tokens_from_text("one two"), True)
        query = window.update(
            get_tokens_from_text("a b c d e f g"), False)
        assert texts(query) == ["b", "c", "d", "e", "f", "g"]
        assert texts(window.words) == ["one", "two"]

    def test_clear(self) -> None:
        window = TranscriptWindow()
        window.update(get_tokens_from_text("one two three"), True)
        window.clear()
        assert len(window) == 0


def test_session_reset_clears_all_state() -> None:
    session = MatchSession(MatcherSettings(match_window=4))
    assert session.transcript_window.size == 4
    session.transcript_window.update(get_tokens_from_text("one two"), True)
    session.smoother.add(1, 2)
    session.reset()
    assert len(session.transcript_window) == 0
    assert len(session.smoother) == 0

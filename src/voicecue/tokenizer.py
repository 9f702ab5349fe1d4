# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Script tokenizer.

Splits script text into an ordered sequence of word and delimiter tokens.
Tokenization is lossless: joining every token's text reproduces the input.
Square-bracketed spans ("[pause]", "[look at camera]") are stage directions
for the speaker and are always kept as a single delimiter token.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from re import Pattern

WORD_CHAR: Pattern[str] = re.compile(r"[A-Za-zЀ-ӿ0-9_]")

# Delimiters containing one of these end a sentence
SENTENCE_BREAKS: tuple[str, ...] = (".", "\n")


class TokenKind(Enum):
    """Classification of a token."""
    WORD = "word"
    DELIMITER = "delimiter"


@dataclass(frozen=True)
class Token:
    """A run of script text with its position in the token sequence."""
    kind: TokenKind
    text: str
    index: int

    @property
    def is_word(self) -> bool:
        return self.kind is TokenKind.WORD


def _is_word_char(char: str) -> bool:
    return WORD_CHAR.match(char) is not None


def tokenize(text: str | None) -> list[Token]:
    """
    Split text into word and delimiter tokens.

    Adjacent characters of the same class are merged into one token. A "["
    consumes everything up to and including the next "]" as one delimiter
    token; an unmatched "[" is a delimiter token on its own.

    Args:
        text: Script text, or None

    Returns:
        Tokens in order, indexed from 0
    """
    tokens: list[Token] = []
    if not text:
        return tokens

    run_kind: TokenKind | None = None
    run_chars: list[str] = []

    def close_run() -> None:
        nonlocal run_kind
        if run_kind is not None:
            tokens.append(Token(run_kind, "".join(run_chars), len(tokens)))
            run_chars.clear()
            run_kind = None

    i: int = 0
    length: int = len(text)
    while i < length:
        char: str = text[i]

        if char == "[":
            close_run()
            closing: int = text.find("]", i + 1)
            hint_end: int = closing + 1 if closing != -1 else i + 1
            tokens.append(Token(TokenKind.DELIMITER, text[i:hint_end], len(tokens)))
            i = hint_end
            continue

        kind: TokenKind = TokenKind.WORD if _is_word_char(char) else TokenKind.DELIMITER
        if kind is not run_kind:
            close_run()
            run_kind = kind
        run_chars.append(char)
        i += 1

    close_run()
    return tokens


def word_tokens(tokens: Sequence[Token]) -> list[Token]:
    """Filter a token sequence down to its words."""
    return [token for token in tokens if token.is_word]


def get_tokens_from_text(text: str | None) -> list[Token]:
    """Tokenize a transcript fragment, keeping only words."""
    return word_tokens(tokenize(text))


def _ends_sentence(token: Token) -> bool:
    return not token.is_word and any(mark in token.text for mark in SENTENCE_BREAKS)


def get_prev_sentence(tokens: Sequence[Token], index: int) -> Token | None:
    """
    Find the first word of the sentence containing the token before index.

    Walks backwards; when a sentence break is reached after having seen a
    word, that word is returned. Falls back to the first token.
    """
    prev_word: Token | None = None
    i: int = index - 1
    while 0 <= i < len(tokens):
        token: Token = tokens[i]
        if token.is_word:
            prev_word = token
        elif _ends_sentence(token) and prev_word is not None:
            return prev_word
        i -= 1

    return tokens[0] if tokens else None


def get_next_sentence(tokens: Sequence[Token], index: int) -> Token | None:
    """
    Find the first word after the next sentence break following index.

    Falls back to the last token.
    """
    seen_break: bool = False
    i: int = index + 1
    while 0 <= i < len(tokens):
        token: Token = tokens[i]
        if _ends_sentence(token):
            seen_break = True
        elif token.is_word and seen_break:
            return token
        i += 1

    return tokens[-1] if tokens else None


def get_next_word_index(tokens: Sequence[Token], index: int) -> int:
    """Index of the next word token after index, or the last index."""
    i: int = index + 1
    while 0 <= i < len(tokens):
        if tokens[i].is_word:
            return i
        i += 1
    return len(tokens) - 1

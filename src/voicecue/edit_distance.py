# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Edit distance between transcript and script text.
"""

from rapidfuzz.distance import Levenshtein


def distance(a: str, b: str) -> int:
    """
    Number of single-character insertions, deletions and substitutions
    needed to turn a into b. Comparison is case sensitive.
    """
    return Levenshtein.distance(a, b)


def normalized_distance(a: str, b: str) -> float:
    """Distance relative to the length of a (a must be non-empty)."""
    return distance(a, b) / len(a)

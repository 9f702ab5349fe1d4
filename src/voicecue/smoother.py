# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Temporal smoothing of matched script positions.

Matches from consecutive transcript events jitter by a word or two. A short
weighted moving average keeps the highlight stable, and a trend term keeps
it from lagging behind a speaker who is steadily reading forward.
"""

import math
from collections import deque

SMOOTHING_SAMPLES: int = 3
SMOOTHING_MIN_SAMPLES: int = 2


def weighted_moving_average(values: list[int]) -> float:
    """
    Average with more recent values weighted more heavily.

    Each value after the first is pushed further along by the step from its
    predecessor before weighting.
    """
    total: float = 0.0
    weights: int = 0
    prev: int | None = None

    for i, value in enumerate(values):
        bias: int = value - prev if prev is not None else 0
        weighting: int = len(values) - i
        total += (value + bias) * weighting
        weights += weighting
        prev = value

    return total / weights


class TemporalSmoother:
    """Moving average over the last few (start, end) match observations."""

    def __init__(
        self,
        samples: int = SMOOTHING_SAMPLES,
        min_samples: int = SMOOTHING_MIN_SAMPLES
    ) -> None:
        self.min_samples = min_samples
        self._positions: deque[tuple[int, int]] = deque(maxlen=samples)

    def __len__(self) -> int:
        return len(self._positions)

    def add(self, start: int, end: int) -> tuple[int, int] | None:
        """
        Record an observation and return the smoothed (start, end).

        Returns:
            Smoothed pair, or None until enough observations exist
        """
        self._positions.append((start, end))

        if len(self._positions) < self.min_samples:
            return None

        starts: list[int] = [s for s, _ in self._positions]
        ends: list[int] = [e for _, e in self._positions]
        return (
            max(math.ceil(weighted_moving_average(starts)), 0),
            max(math.ceil(weighted_moving_average(ends)), 0),
        )

    def reset(self) -> None:
        """Forget all observations."""
        self._positions.clear()

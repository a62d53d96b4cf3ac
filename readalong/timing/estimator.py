"""Synthetic timestamp estimation for audio without word-level timing.

Responsibilities:
- Build a uniform per-word time axis from word count and decoded duration.
- Map playback time to word index and word index to playback time.
- Estimate weighted paragraph/sentence durations normalized to the real duration.

The speech endpoint returns no alignment data, so every estimate here is
recomputed from the decoded duration of the assembled audio.
"""

from __future__ import annotations

from bisect import bisect_right
import math
import re
from typing import Protocol, Sequence

from ..models.datatypes import HighlightUnit

SECONDS_PER_CHARACTER = 0.06
SECONDS_PER_PUNCTUATION = 0.2
LONG_SENTENCE_CHARS = 100
SHORT_SENTENCE_CHARS = 30
LONG_SENTENCE_FACTOR = 1.2
SHORT_SENTENCE_FACTOR = 0.9

_PUNCTUATION_PATTERN = re.compile(r"[.,;:?!]")
_SENTENCE_END_PATTERN = re.compile(r"[.!?]+")


class Timeline(Protocol):
    """Bidirectional mapping between playback time and a unit index."""

    def index_at(self, time: float) -> int:
        """Return the active index for a playback time."""

    def time_at(self, index: int) -> float:
        """Return the start time of an index."""

    def __len__(self) -> int: ...


def _require_duration(duration: float) -> float:
    value = float(duration)
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise ValueError("Audio duration must be a finite, non-negative number of seconds.")
    return value


class WordTimeAxis:
    """Non-decreasing per-word timestamps starting at zero."""

    __slots__ = ("timestamps", "duration")

    def __init__(self, timestamps: Sequence[float], duration: float) -> None:
        self.timestamps = tuple(timestamps)
        self.duration = _require_duration(duration)

    def __len__(self) -> int:
        return len(self.timestamps)

    def time_at(self, index: int) -> float:
        """Return the estimated start time of word `index` (clamped to range)."""

        if not self.timestamps:
            return 0.0
        return self.timestamps[max(0, min(index, len(self.timestamps) - 1))]

    def word_index_at(self, time: float) -> int:
        """Return the greatest word index whose timestamp is at or before `time`."""

        if not self.timestamps:
            return 0
        return max(0, bisect_right(self.timestamps, time) - 1)

    index_at = word_index_at


def estimate_word_axis(word_count: int, duration: float) -> WordTimeAxis:
    """Distribute `word_count` words uniformly over `duration` seconds."""

    if word_count < 0:
        raise ValueError("`word_count` must be non-negative.")
    total = _require_duration(duration)
    return WordTimeAxis([(index / word_count) * total for index in range(word_count)], total)


def estimate_unit_weight(text: str) -> float:
    """Return the heuristic relative speaking time of one text unit.

    Character count sets the base, each punctuation mark adds a pause, and
    the average sentence length stretches or compresses the result.
    """

    weight = len(text) * SECONDS_PER_CHARACTER
    weight += len(_PUNCTUATION_PATTERN.findall(text)) * SECONDS_PER_PUNCTUATION
    sentence_count = len(_SENTENCE_END_PATTERN.findall(text)) or 1
    average_sentence_length = len(text) / sentence_count
    if average_sentence_length > LONG_SENTENCE_CHARS:
        weight *= LONG_SENTENCE_FACTOR
    elif average_sentence_length < SHORT_SENTENCE_CHARS:
        weight *= SHORT_SENTENCE_FACTOR
    return weight


def estimate_weighted_units(texts: Sequence[str], total_duration: float) -> list[HighlightUnit]:
    """Assign contiguous time spans to units, scaled to sum to `total_duration`."""

    total = _require_duration(total_duration)
    if not texts:
        return []
    weights = [estimate_unit_weight(text) for text in texts]
    weight_sum = sum(weights)
    if weight_sum <= 0:
        weights = [1.0] * len(texts)
        weight_sum = float(len(texts))
    scale = total / weight_sum

    units: list[HighlightUnit] = []
    current = 0.0
    for position, (text, weight) in enumerate(zip(texts, weights)):
        end = total if position == len(texts) - 1 else min(total, current + weight * scale)
        units.append(HighlightUnit(text=text, start_time=current, end_time=end))
        current = end
    return units

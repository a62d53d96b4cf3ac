"""Unit tests for the word time axis and weighted unit estimation."""

from __future__ import annotations

import math

import pytest

from readalong.timing.estimator import (
    WordTimeAxis,
    estimate_unit_weight,
    estimate_weighted_units,
    estimate_word_axis,
)


def test_word_axis_is_uniform_monotonic_and_starts_at_zero() -> None:
    axis = estimate_word_axis(100, 50.0)

    assert len(axis) == 100
    assert axis.time_at(0) == 0.0
    assert axis.time_at(50) == pytest.approx(25.0)
    assert all(
        earlier <= later for earlier, later in zip(axis.timestamps, axis.timestamps[1:])
    )
    assert all(0.0 <= timestamp <= 50.0 for timestamp in axis.timestamps)


def test_time_and_index_mappings_are_consistent() -> None:
    """`word_index_at(time_at(i))` should round-trip for every word."""

    axis = estimate_word_axis(37, 12.3)

    for index in range(37):
        assert axis.word_index_at(axis.time_at(index)) == index


def test_word_index_at_boundaries() -> None:
    axis = estimate_word_axis(4, 8.0)

    assert axis.word_index_at(-1.0) == 0
    assert axis.word_index_at(1.99) == 0
    assert axis.word_index_at(2.0) == 1
    assert axis.word_index_at(100.0) == 3
    assert axis.time_at(99) == 6.0
    assert axis.index_at(4.5) == axis.word_index_at(4.5)


def test_empty_and_zero_duration_axes() -> None:
    empty = estimate_word_axis(0, 10.0)
    silent = estimate_word_axis(3, 0.0)

    assert len(empty) == 0
    assert empty.word_index_at(5.0) == 0
    assert empty.time_at(2) == 0.0
    assert silent.timestamps == (0.0, 0.0, 0.0)


def test_invalid_inputs_are_rejected() -> None:
    with pytest.raises(ValueError):
        estimate_word_axis(-1, 10.0)
    with pytest.raises(ValueError):
        estimate_word_axis(10, math.nan)
    with pytest.raises(ValueError):
        WordTimeAxis([0.0], -1.0)


def test_unit_weight_grows_with_length_and_punctuation() -> None:
    plain = "A calm sentence without many pauses at all here ok"
    punctuated = "A calm sentence, with pauses; and more: pauses here."

    assert estimate_unit_weight(plain * 2) > estimate_unit_weight(plain)
    assert estimate_unit_weight(punctuated) > estimate_unit_weight(plain)


def test_weighted_units_are_contiguous_and_sum_to_duration() -> None:
    """Unit durations should sum to the real duration regardless of weights."""

    texts = [
        "Short one.",
        "A much longer paragraph, with commas; colons: and several sentences. Another one here.",
        "Middle sized paragraph of text.",
    ]

    units = estimate_weighted_units(texts, 42.0)

    assert [unit.text for unit in units] == texts
    assert units[0].start_time == 0.0
    assert units[-1].end_time == 42.0
    for earlier, later in zip(units, units[1:]):
        assert earlier.end_time == later.start_time
    assert sum(unit.duration for unit in units) == pytest.approx(42.0)
    assert units[1].duration > units[0].duration


def test_weighted_units_handle_empty_and_weightless_input() -> None:
    assert estimate_weighted_units([], 10.0) == []

    units = estimate_weighted_units(["", ""], 10.0)

    assert [unit.duration for unit in units] == [5.0, 5.0]

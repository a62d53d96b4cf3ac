"""Timestamp estimation for highlight synchronization."""

from .estimator import (
    Timeline,
    WordTimeAxis,
    estimate_unit_weight,
    estimate_weighted_units,
    estimate_word_axis,
)

__all__ = [
    "Timeline",
    "WordTimeAxis",
    "estimate_unit_weight",
    "estimate_weighted_units",
    "estimate_word_axis",
]

"""Playback state machine and highlight synchronization."""

from .controller import PlaybackController
from .highlight import (
    HIGHLIGHT_UNITS,
    HighlightSync,
    HighlightTrack,
    TimedSegment,
    active_unit_index,
    build_units,
    paragraph_units,
    scroll_offset,
    segment_units,
    sentence_units,
    word_units,
)

__all__ = [
    "HIGHLIGHT_UNITS",
    "HighlightSync",
    "HighlightTrack",
    "PlaybackController",
    "TimedSegment",
    "active_unit_index",
    "build_units",
    "paragraph_units",
    "scroll_offset",
    "segment_units",
    "sentence_units",
    "word_units",
]

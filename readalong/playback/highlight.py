"""Highlight units and their synchronization with playback position.

Responsibilities:
- Build word, sentence, paragraph, and segment highlight units over one duration.
- Resolve the active unit for a playback time.
- Keep one active unit per view in step with the playback controller.
- Compute one-directional auto-scroll offsets for the active unit.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import Callable, Sequence

from ..models.datatypes import HighlightUnit
from ..text.cleaners import detect_paragraphs, split_sentences, split_words
from ..timing.estimator import estimate_weighted_units, estimate_word_axis
from .controller import PlaybackController, Unsubscribe

HIGHLIGHT_UNITS = ("word", "sentence", "paragraph")
SEGMENT_LEAD_SECONDS = 0.3


@dataclass(frozen=True, slots=True)
class TimedSegment:
    """Externally timed text segment; `end_time` may be unknown."""

    text: str
    start_time: float
    end_time: float | None = None


def word_units(text: str, duration: float) -> list[HighlightUnit]:
    """Return one unit per word on the uniform word axis."""

    words = split_words(text)
    axis = estimate_word_axis(len(words), duration)
    return [
        HighlightUnit(
            text=word,
            start_time=axis.time_at(index),
            end_time=axis.time_at(index + 1) if index + 1 < len(words) else axis.duration,
        )
        for index, word in enumerate(words)
    ]


def sentence_units(text: str, duration: float) -> list[HighlightUnit]:
    """Return one unit per sentence, timed by the first word of each sentence."""

    sentences = split_sentences(text)
    word_counts = [len(split_words(sentence)) for sentence in sentences]
    axis = estimate_word_axis(sum(word_counts), duration)

    starts: list[float] = []
    word_offset = 0
    for count in word_counts:
        starts.append(axis.time_at(word_offset))
        word_offset += count
    return [
        HighlightUnit(
            text=sentence,
            start_time=starts[index],
            end_time=starts[index + 1] if index + 1 < len(sentences) else axis.duration,
        )
        for index, sentence in enumerate(sentences)
    ]


def paragraph_units(text: str, duration: float) -> list[HighlightUnit]:
    """Return weighted paragraph units whose spans sum to `duration`."""

    return estimate_weighted_units(detect_paragraphs(text), duration)


def segment_units(segments: Sequence[TimedSegment], duration: float) -> list[HighlightUnit]:
    """Convert timed segments into units, filling missing end times.

    A missing end becomes the next segment's start, or `duration` for the
    last segment.
    """

    units: list[HighlightUnit] = []
    previous_start = 0.0
    for position, segment in enumerate(segments):
        if segment.start_time < previous_start:
            raise ValueError("Segment start times must be non-decreasing.")
        previous_start = segment.start_time
        end = segment.end_time
        if end is None:
            end = segments[position + 1].start_time if position + 1 < len(segments) else duration
        units.append(
            HighlightUnit(text=segment.text, start_time=segment.start_time, end_time=max(end, segment.start_time))
        )
    return units


def build_units(text: str, duration: float, unit: str) -> list[HighlightUnit]:
    """Build units for one of the `HIGHLIGHT_UNITS` granularities."""

    if unit == "word":
        return word_units(text, duration)
    if unit == "sentence":
        return sentence_units(text, duration)
    if unit == "paragraph":
        return paragraph_units(text, duration)
    raise ValueError(f"Unsupported highlight unit `{unit}`; expected one of {', '.join(HIGHLIGHT_UNITS)}.")


def active_unit_index(units: Sequence[HighlightUnit], time: float) -> int:
    """Return the greatest unit index whose start is at or before `time`.

    Times before the first unit, inside gaps, or past the end resolve to the
    preceding unit; an empty sequence and early times resolve to 0.
    """

    if not units:
        return 0
    starts = [unit.start_time for unit in units]
    return max(0, bisect_right(starts, time) - 1)


class HighlightTrack:
    """Timeline over a fixed list of highlight units."""

    __slots__ = ("units", "_starts")

    def __init__(self, units: Sequence[HighlightUnit]) -> None:
        self.units = tuple(units)
        self._starts = [unit.start_time for unit in self.units]

    def __len__(self) -> int:
        return len(self.units)

    def index_at(self, time: float) -> int:
        if not self._starts:
            return 0
        return max(0, bisect_right(self._starts, time) - 1)

    def time_at(self, index: int) -> float:
        if not self.units:
            return 0.0
        return self.units[max(0, min(index, len(self.units) - 1))].start_time


class HighlightSync:
    """Track the active unit of one view against a playback controller.

    `lead_seconds` is subtracted from the reported position before lookup,
    compensating for timestamps that run ahead of the audible speech.
    """

    def __init__(
        self,
        controller: PlaybackController,
        units: Sequence[HighlightUnit],
        *,
        lead_seconds: float = 0.0,
    ) -> None:
        if lead_seconds < 0:
            raise ValueError("`lead_seconds` must be non-negative.")
        self.controller = controller
        self.lead_seconds = lead_seconds
        self._track = HighlightTrack(units)
        self._active_index = 0
        self._callbacks: list[Callable[[int], None]] = []
        self._unsubscribe: Unsubscribe | None = controller.on_tick(self._on_position)

    @property
    def units(self) -> tuple[HighlightUnit, ...]:
        return self._track.units

    @property
    def active_index(self) -> int:
        return self._active_index

    def on_change(self, callback: Callable[[int], None]) -> None:
        self._callbacks.append(callback)

    def set_units(self, units: Sequence[HighlightUnit]) -> None:
        """Replace the unit list, e.g. after the source text changed."""

        self._track = HighlightTrack(units)
        self._set_active(self._track.index_at(self._lookup_time(self.controller.get_current_time())))

    async def select(self, index: int) -> bool:
        """Seek to the start of unit `index` and play from there."""

        if not 0 <= index < len(self._track):
            raise IndexError(f"Highlight unit {index} is out of range.")
        self._set_active(index)
        return await self.controller.seek_to_time(self._track.time_at(index))

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _lookup_time(self, position: float) -> float:
        return max(0.0, position - self.lead_seconds)

    def _on_position(self, position: float) -> None:
        self._set_active(self._track.index_at(self._lookup_time(position)))

    def _set_active(self, index: int) -> None:
        if index == self._active_index:
            return
        self._active_index = index
        for callback in list(self._callbacks):
            callback(index)


def scroll_offset(
    *,
    unit_top: float,
    unit_height: float,
    viewport_height: float,
    scroll_top: float = 0.0,
) -> float | None:
    """Return a new scroll offset centering the unit, or `None` to stay put.

    `unit_top` is measured from the top of the scrolled content. Scrolling
    only happens once the unit sits in the lower half of the viewport.
    """

    visible_top = unit_top - scroll_top
    if visible_top <= viewport_height / 2:
        return None
    return max(0.0, unit_top - viewport_height / 2 + unit_height / 2)

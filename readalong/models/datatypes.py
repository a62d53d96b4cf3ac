"""Core datatypes shared across readalong modules.

Responsibilities:
- Represent immutable records exchanged between engine components.
- Provide explicit typing for chunk, audio, timing, and playback state.

Key types:
- `TextChunk`, `AudioBuffer`, `HighlightUnit`, `PlaybackState`, and
  `PrepareResult`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A bounded slice of source text submitted to speech synthesis.

    Attributes:
        index: 0-based chunk ordinal.
        content: Trimmed chunk text.
        char_start: Inclusive character offset of `content` in the source text.
        char_end: Exclusive character offset of `content` in the source text.
        boundary: Split classification (`paragraph`, `sentence`, `whitespace`,
            `forced`, or `text_end`).
    """

    index: int
    content: str
    char_start: int
    char_end: int
    boundary: str = "text_end"


@dataclass(frozen=True, slots=True)
class AudioBuffer:
    """Opaque synthesized audio payload for one chunk."""

    data: bytes
    mime_type: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class HighlightUnit:
    """A timed span of text highlighted during playback.

    Attributes:
        text: Display text of the unit.
        start_time: Inclusive start time in seconds.
        end_time: Exclusive end time in seconds.
    """

    text: str
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class PlaybackState(str, Enum):
    """Playback controller states."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"
    BLOCKED = "blocked"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class PrepareResult:
    """Outcome of one `ReadingSession.prepare` call.

    Attributes:
        resolved_text: Text actually synthesized (preprocessed or original).
        chunk_count: Number of chunks synthesized for the text.
        word_count: Number of words in `resolved_text`.
        title: Optional normalized title.
        byline: Optional normalized byline.
        preprocessed: Whether the preprocessing model rewrote the text.
        committed: `False` when a newer `prepare` superseded this call.
    """

    resolved_text: str
    chunk_count: int
    word_count: int
    title: str | None = None
    byline: str | None = None
    preprocessed: bool = False
    committed: bool = True

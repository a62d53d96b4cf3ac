"""Text-to-chunk segmentation for speech synthesis requests.

Responsibilities:
- Split arbitrarily long text into chunks the speech endpoint accepts.
- Prefer paragraph, then sentence, then word boundaries before hard cuts.
- Preserve source offsets so chunk order reconstructs the input.
"""

from __future__ import annotations

import re

from ..models.datatypes import TextChunk

DEFAULT_MAX_CHUNK_SIZE = 4000


class Chunker:
    """Create bounded chunks with paragraph/sentence/word boundary preference."""

    _PARAGRAPH_BREAK = "\n\n"
    _SENTENCE_END_PATTERN = re.compile(r"[.!?](?=\s)")
    _COMMON_ABBREVIATIONS = frozenset(
        {
            "mr.",
            "mrs.",
            "ms.",
            "dr.",
            "prof.",
            "sr.",
            "jr.",
            "st.",
            "etc.",
            "e.g.",
            "i.e.",
            "vs.",
            "no.",
        }
    )

    def chunk(self, text: str, max_size: int = DEFAULT_MAX_CHUNK_SIZE) -> list[TextChunk]:
        """Split text into ordered chunks no longer than `max_size` characters.

        Args:
            text: Source text.
            max_size: Maximum chunk length in characters.

        Returns:
            Ordered, trimmed, non-empty chunks. Blank input yields no chunks.
        """

        if max_size <= 0:
            raise ValueError("`max_size` must be a positive integer.")

        text_end = len(text.rstrip())
        start = self._skip_whitespace(text, 0)
        chunks: list[TextChunk] = []
        while start < text_end:
            if text_end - start <= max_size:
                split, boundary = text_end - start, "text_end"
            else:
                window = text[start : start + max_size + len(self._PARAGRAPH_BREAK)]
                split, boundary = self._resolve_split(window, max_size)
            content = text[start : start + split].rstrip()
            chunks.append(
                TextChunk(
                    index=len(chunks),
                    content=content,
                    char_start=start,
                    char_end=start + len(content),
                    boundary=boundary,
                )
            )
            start = self._skip_whitespace(text, start + split)
        return chunks

    def _resolve_split(self, window: str, max_size: int) -> tuple[int, str]:
        """Resolve a split offset within `[max_size / 2, max_size]` for one window."""

        min_split = max(1, (max_size + 1) // 2)

        paragraph = window.rfind(self._PARAGRAPH_BREAK, 0, max_size + len(self._PARAGRAPH_BREAK))
        if paragraph >= min_split:
            return paragraph, "paragraph"

        sentence = self._last_sentence_end(window[: max_size + 1], min_split, max_size)
        if sentence is not None:
            return sentence, "sentence"

        for index in range(min(max_size, len(window) - 1), min_split - 1, -1):
            if window[index].isspace():
                return index, "whitespace"

        return max_size, "forced"

    def _last_sentence_end(self, window: str, min_split: int, max_size: int) -> int | None:
        """Return the offset just past the last usable sentence terminator."""

        best: int | None = None
        for match in self._SENTENCE_END_PATTERN.finditer(window):
            end = match.end()
            if end < min_split or end > max_size:
                continue
            if self._is_abbreviation_period(window, match.start()):
                continue
            best = end
        return best

    def _is_abbreviation_period(self, text: str, punctuation_index: int) -> bool:
        """Return whether a period belongs to a common abbreviation token."""

        if text[punctuation_index] != ".":
            return False
        start = punctuation_index
        while start > 0 and (text[start - 1].isalpha() or text[start - 1] == "."):
            start -= 1
        token = text[start : punctuation_index + 1].lower()
        return token in self._COMMON_ABBREVIATIONS

    @staticmethod
    def _skip_whitespace(text: str, index: int) -> int:
        while index < len(text) and text[index].isspace():
            index += 1
        return index


def chunk_text(text: str, max_size: int = DEFAULT_MAX_CHUNK_SIZE) -> list[TextChunk]:
    """Split text with a default `Chunker`."""

    return Chunker().chunk(text, max_size)

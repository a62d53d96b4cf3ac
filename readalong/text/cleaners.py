"""Deterministic text cleanup and unit splitting helpers.

Responsibilities:
- Strip basic HTML markup from extracted page content.
- Split text into words, sentences, and paragraphs for highlighting.
"""

from __future__ import annotations

import html
import re

_SCRIPT_STYLE_PATTERN = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_BLOCK_TAG_PATTERN = re.compile(r"</?(p|div|br|li|h[1-6]|section|article|blockquote)\b[^>]*>", re.IGNORECASE)
_TAG_PATTERN = re.compile(r"<[^>]+>")
_PARAGRAPH_SPLIT_PATTERN = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT_PATTERN = re.compile(r"(?<=[.!?])\s+")
_INLINE_SPACE_PATTERN = re.compile(r"[ \t\f\v]+")
_EXCESS_NEWLINES_PATTERN = re.compile(r"\n{3,}")


def strip_html_tags(text: str) -> str:
    """Remove HTML tags, keeping block boundaries as paragraph breaks."""

    without_code = _SCRIPT_STYLE_PATTERN.sub(" ", text)
    with_breaks = _BLOCK_TAG_PATTERN.sub("\n\n", without_code)
    plain = html.unescape(_TAG_PATTERN.sub("", with_breaks))
    lines = [_INLINE_SPACE_PATTERN.sub(" ", line).strip() for line in plain.split("\n")]
    return _EXCESS_NEWLINES_PATTERN.sub("\n\n", "\n".join(lines)).strip()


def split_words(text: str) -> list[str]:
    """Split text into whitespace-delimited words."""

    return text.split()


def count_words(text: str) -> int:
    return len(text.split())


def detect_paragraphs(text: str) -> list[str]:
    """Split text on blank lines, falling back to single line breaks.

    When the text carries no blank-line paragraph separators, every non-empty
    line becomes its own paragraph.
    """

    paragraphs = [part.strip() for part in _PARAGRAPH_SPLIT_PATTERN.split(text) if part.strip()]
    if len(paragraphs) <= 1:
        return [line.strip() for line in text.split("\n") if line.strip()]
    return paragraphs


def split_sentences(text: str) -> list[str]:
    """Split text into sentences, never letting a sentence cross a paragraph."""

    sentences: list[str] = []
    for paragraph in _PARAGRAPH_SPLIT_PATTERN.split(text):
        sentences.extend(
            sentence.strip()
            for sentence in _SENTENCE_SPLIT_PATTERN.split(paragraph)
            if sentence.strip()
        )
    return sentences

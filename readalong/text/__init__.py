"""Text cleanup and segmentation components.

This package provides HTML stripping, unit splitting, and chunking building
blocks used before synthesis and highlighting.
"""

from .chunking import DEFAULT_MAX_CHUNK_SIZE, Chunker, chunk_text
from .cleaners import count_words, detect_paragraphs, split_sentences, split_words, strip_html_tags

__all__ = [
    "DEFAULT_MAX_CHUNK_SIZE",
    "Chunker",
    "chunk_text",
    "count_words",
    "detect_paragraphs",
    "split_sentences",
    "split_words",
    "strip_html_tags",
]

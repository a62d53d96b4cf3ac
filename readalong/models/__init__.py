"""Shared typed data models for readalong.

This package contains dataclasses used across engine modules to avoid
cross-module coupling and circular imports.
"""

from .datatypes import AudioBuffer, HighlightUnit, PlaybackState, PrepareResult, TextChunk

__all__ = [
    "AudioBuffer",
    "HighlightUnit",
    "PlaybackState",
    "PrepareResult",
    "TextChunk",
]

"""Top-level package for readalong.

This package turns article text into synthesized speech and keeps a
word, sentence, or paragraph highlight in step with playback. The main
entry point is `ReadingSession`.
"""

from .session import ReadingSession

__all__ = ["ReadingSession", "__version__"]

__version__ = "0.1.0"

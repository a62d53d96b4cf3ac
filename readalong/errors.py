"""Domain exceptions for synthesis, playback, and CLI diagnostics."""

from __future__ import annotations


class ReadalongStageError(RuntimeError):
    """Raised when a specific engine or CLI stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class SynthesisError(RuntimeError):
    """Typed speech synthesis failure surfaced by the chunk synthesizer.

    `retryable` marks recoverable failures (server errors or timeouts that
    exhausted the retry budget); permanent failures such as rejected voices or
    empty input carry `retryable=False`.
    """

    def __init__(
        self,
        message: str,
        *,
        retryable: bool,
        status_code: int | None = None,
        failure_kind: str = "unknown",
        chunk_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code
        self.failure_kind = failure_kind
        self.chunk_index = chunk_index


class PlaybackError(RuntimeError):
    """Raised when assembled audio cannot be loaded, decoded, or played."""


class AutoplayBlockedError(PlaybackError):
    """Raised by audio backends when playback requires a user gesture."""

"""Structured phase logging utilities.

Responsibilities:
- Emit concise, deterministic phase-level runtime logs through `loguru`.
- Keep secrets and text payloads out of log lines (only counts and kinds).
"""

from __future__ import annotations

import re
from typing import TextIO

from loguru import logger

_UNSAFE_TOKEN_CHARS = re.compile(r"[^A-Za-z0-9_.:/-]")


def render_fields(fields: dict[str, object]) -> str:
    """Render `key=value` pairs sorted by key, with values reduced to shell-safe tokens."""

    parts = []
    for name in sorted(fields):
        token = _UNSAFE_TOKEN_CHARS.sub("_", str(fields[name]).strip()) or "none"
        parts.append(f"{name}={token}")
    return "".join(f" {part}" for part in parts)


class RunLogger:
    """Emit deterministic phase logs for engine and CLI activity.

    Passing a `sink` reconfigures loguru to write plain message lines there;
    without one the current loguru configuration of the host is reused.
    """

    def __init__(self, sink: TextIO | None = None, level: str = "INFO") -> None:
        self._sink = sink
        if sink is not None:
            logger.remove()
            logger.add(sink, format="{message}", level=level, colorize=False)

    def _emit(self, level: str, event: str, stage: str, **context: object) -> None:
        """Emit one structured runtime log line."""

        message = f"[phase] level={level} stage={stage} event={event}{render_fields(context)}"
        logger.log(level, message)

    def log_stage_start(self, stage: str, **context: object) -> None:
        self._emit("INFO", "start", stage, **context)

    def log_stage_complete(self, stage: str, **context: object) -> None:
        self._emit("INFO", "complete", stage, **context)

    def log_stage_failure(self, stage: str, error_type: str, **context: object) -> None:
        """Emit a stage-failure event without sensitive payload details."""

        self._emit("ERROR", "failure", stage, error_type=error_type, **context)

    def log_event(self, stage: str, event: str, *, severity: str = "DEBUG", **context: object) -> None:
        """Emit a named in-stage event such as a cache hit or state transition."""

        self._emit(severity, event, stage, **context)

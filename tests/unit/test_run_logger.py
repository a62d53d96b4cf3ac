"""Unit tests for structured phase log lines."""

from __future__ import annotations

import io
from collections.abc import Iterator

import pytest
from loguru import logger

from readalong.telemetry.logger import RunLogger, render_fields


@pytest.fixture
def captured_lines() -> Iterator[io.StringIO]:
    buffer = io.StringIO()
    handler_id = logger.add(buffer, format="{message}", level="DEBUG", colorize=False)
    yield buffer
    logger.remove(handler_id)


def test_render_fields_sorts_keys_and_sanitizes_values() -> None:
    assert render_fields({}) == ""
    assert render_fields({"voice": "nova", "chunk": 2, "note": "two words;", "empty": " "}) == (
        " chunk=2 empty=none note=two_words_ voice=nova"
    )


def test_stage_events_render_as_phase_lines(captured_lines: io.StringIO) -> None:
    run_logger = RunLogger()

    run_logger.log_stage_start("synthesize", chunks=3)
    run_logger.log_event("cache", "hit", chunk_index=1)
    run_logger.log_stage_failure("synthesize", "SynthesisError", status=400)

    assert captured_lines.getvalue().splitlines() == [
        "[phase] level=INFO stage=synthesize event=start chunks=3",
        "[phase] level=DEBUG stage=cache event=hit chunk_index=1",
        "[phase] level=ERROR stage=synthesize event=failure error_type=SynthesisError status=400",
    ]

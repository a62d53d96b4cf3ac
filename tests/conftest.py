"""Shared pytest fixtures for the full readalong test suite."""

from __future__ import annotations

import pytest

from readalong.tts import cache as cache_module


class FakeClock:
    """Manually advanced monotonic clock for deterministic playback tests."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a fake clock starting at zero."""

    return FakeClock()


@pytest.fixture(autouse=True)
def _isolated_shared_audio_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    """Give every test a fresh process-wide audio cache."""

    monkeypatch.setattr(cache_module, "_shared_cache", cache_module.AudioCache())

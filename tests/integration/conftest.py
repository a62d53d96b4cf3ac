"""Integration-test fixtures for deterministic provider behavior."""

from __future__ import annotations

import sys
from typing import Iterator

import pytest
from loguru import logger

from readalong.llm.openai_client import OpenAIChatClient, OpenAISpeechClient
from tests.audio_fixtures import wav_seconds
from tests.provider_doubles import REWRITTEN_TEXT, SECONDS_PER_WORD, ProviderCalls


@pytest.fixture(autouse=True)
def provider_calls(monkeypatch: pytest.MonkeyPatch) -> ProviderCalls:
    """Mock OpenAI calls in integration tests to avoid network/key requirements."""

    calls = ProviderCalls()

    def _mock_chat_completion(self, **kwargs: object) -> str:
        """Return deterministic rewritten text for the preprocessing stage."""

        _ = self
        calls.chat.append(kwargs)
        return REWRITTEN_TEXT

    def _mock_synthesize_speech(self, **kwargs: object) -> bytes:
        """Return a silent WAV payload lasting 0.1 s per input word."""

        _ = self
        calls.speech.append(kwargs)
        return wav_seconds(SECONDS_PER_WORD * len(str(kwargs["text"]).split()))

    monkeypatch.setattr(OpenAIChatClient, "chat_completion_text", _mock_chat_completion)
    monkeypatch.setattr(OpenAISpeechClient, "synthesize_speech", _mock_synthesize_speech)
    return calls


@pytest.fixture(autouse=True)
def _restore_loguru_handlers() -> Iterator[None]:
    """Drop CLI log sinks bound to runner streams that close after each invoke."""

    yield
    logger.remove()
    logger.add(sys.stderr)

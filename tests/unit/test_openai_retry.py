"""Unit tests for OpenAI client retry boundaries and failure classification."""

from __future__ import annotations

import json

import pytest
import requests

from readalong.llm.openai_client import OpenAIChatClient, OpenAIProviderError, OpenAISpeechClient
from tests.audio_fixtures import wav_bytes


class _MockRequestsResponse:
    """Minimal requests response mock used by retry tests."""

    def __init__(
        self,
        *,
        payload: bytes,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.content = payload
        self.status_code = status_code
        self.headers = headers or {}

    def raise_for_status(self) -> None:
        """Raise HTTP error when status code indicates failure."""

        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


def _error_payload(message: str, code: str | None = None) -> bytes:
    return json.dumps({"error": {"message": message, "code": code}}).encode("utf-8")


def _install_responses(
    monkeypatch: pytest.MonkeyPatch,
    responses: list[_MockRequestsResponse | Exception],
) -> tuple[dict[str, int], list[float]]:
    calls = {"count": 0}
    sleeps: list[float] = []

    def _mock_post(_url: str, **_kwargs: object) -> _MockRequestsResponse:
        response = responses[min(calls["count"], len(responses) - 1)]
        calls["count"] += 1
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr("readalong.llm.openai_client.requests.post", _mock_post)
    monkeypatch.setattr("readalong.llm.openai_client.time.sleep", sleeps.append)
    return calls, sleeps


def _speech(client: OpenAISpeechClient) -> bytes:
    return client.synthesize_speech(model="tts-1", voice="nova", text="Hello.")


def test_speech_client_retries_server_errors_then_succeeds(monkeypatch: pytest.MonkeyPatch) -> None:
    """Two 500 responses followed by success should return audio after 1 s and 2 s backoff."""

    audio = wav_bytes(240)
    calls, sleeps = _install_responses(
        monkeypatch,
        [
            _MockRequestsResponse(payload=_error_payload("upstream"), status_code=500),
            _MockRequestsResponse(payload=_error_payload("upstream"), status_code=500),
            _MockRequestsResponse(payload=audio),
        ],
    )
    client = OpenAISpeechClient(api_key="key")

    assert _speech(client) == audio
    assert calls["count"] == 3
    assert sleeps == [1.0, 2.0]
    assert client.retry_attempt_count == 2


def test_speech_client_gives_up_after_retry_budget(monkeypatch: pytest.MonkeyPatch) -> None:
    calls, sleeps = _install_responses(
        monkeypatch,
        [_MockRequestsResponse(payload=_error_payload("down"), status_code=503)],
    )
    client = OpenAISpeechClient(api_key="key")

    with pytest.raises(OpenAIProviderError) as exc_info:
        _speech(client)

    assert exc_info.value.failure_kind == "server_error"
    assert exc_info.value.is_transient is True
    assert calls["count"] == 3
    assert sleeps == [1.0, 2.0]


def test_speech_client_does_not_retry_client_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    """A 400 response should fail after exactly one attempt."""

    calls, sleeps = _install_responses(
        monkeypatch,
        [_MockRequestsResponse(payload=_error_payload("Invalid voice"), status_code=400)],
    )
    client = OpenAISpeechClient(api_key="key")

    with pytest.raises(OpenAIProviderError) as exc_info:
        _speech(client)

    assert exc_info.value.failure_kind == "invalid_request"
    assert exc_info.value.status_code == 400
    assert exc_info.value.is_transient is False
    assert calls["count"] == 1
    assert sleeps == []


def test_speech_client_retries_timeouts(monkeypatch: pytest.MonkeyPatch) -> None:
    audio = wav_bytes(240)
    calls, sleeps = _install_responses(
        monkeypatch,
        [requests.Timeout("socket timed out"), _MockRequestsResponse(payload=audio)],
    )
    client = OpenAISpeechClient(api_key="key")

    assert _speech(client) == audio
    assert calls["count"] == 2
    assert sleeps == [1.0]


def test_rate_limit_honors_retry_after_and_quota_is_permanent(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """429 rate limits are retried (honoring Retry-After); exhausted quota is not."""

    audio = wav_bytes(240)
    calls, sleeps = _install_responses(
        monkeypatch,
        [
            _MockRequestsResponse(
                payload=_error_payload("Rate limit reached", "rate_limit_exceeded"),
                status_code=429,
                headers={"Retry-After": "3"},
            ),
            _MockRequestsResponse(payload=audio),
        ],
    )
    assert _speech(OpenAISpeechClient(api_key="key")) == audio
    assert calls["count"] == 2
    assert sleeps == [3.0]

    calls, sleeps = _install_responses(
        monkeypatch,
        [
            _MockRequestsResponse(
                payload=_error_payload("You exceeded your current quota", "insufficient_quota"),
                status_code=429,
            )
        ],
    )
    with pytest.raises(OpenAIProviderError) as exc_info:
        _speech(OpenAISpeechClient(api_key="key"))
    assert exc_info.value.failure_kind == "insufficient_quota"
    assert calls["count"] == 1
    assert sleeps == []


def test_backoff_is_capped_by_max_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    _, sleeps = _install_responses(
        monkeypatch,
        [_MockRequestsResponse(payload=b"", status_code=502)],
    )
    client = OpenAISpeechClient(
        api_key="key",
        max_retries=4,
        retry_backoff_base_seconds=1.0,
        retry_backoff_max_seconds=3.0,
    )

    with pytest.raises(OpenAIProviderError):
        _speech(client)

    assert sleeps == [1.0, 2.0, 3.0, 3.0]


def test_missing_api_key_and_empty_audio_fail_without_retry(monkeypatch: pytest.MonkeyPatch) -> None:
    calls, _ = _install_responses(monkeypatch, [_MockRequestsResponse(payload=b"")])

    with pytest.raises(OpenAIProviderError) as missing_key:
        _speech(OpenAISpeechClient(api_key=" "))
    assert missing_key.value.failure_kind == "invalid_api_key"
    assert calls["count"] == 0

    with pytest.raises(OpenAIProviderError) as empty:
        _speech(OpenAISpeechClient(api_key="key"))
    assert empty.value.failure_kind == "empty_response"
    assert calls["count"] == 1


def test_provider_error_messages_redact_api_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_responses(
        monkeypatch,
        [
            _MockRequestsResponse(
                payload=_error_payload("Incorrect API key provided: sk-abcdefghijklmnop"),
                status_code=401,
            )
        ],
    )

    with pytest.raises(OpenAIProviderError) as exc_info:
        _speech(OpenAISpeechClient(api_key="key"))

    assert exc_info.value.failure_kind == "invalid_api_key"
    assert "sk-abcdefghijklmnop" not in str(exc_info.value)
    assert "[redacted-key]" in str(exc_info.value)


def test_chat_client_returns_message_content(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_responses(
        monkeypatch,
        [
            _MockRequestsResponse(
                payload=json.dumps(
                    {"choices": [{"message": {"content": "  Listen-ready text.  "}}]}
                ).encode("utf-8")
            )
        ],
    )
    client = OpenAIChatClient(api_key="key")

    result = client.chat_completion_text(model="gpt-4o-mini", system_prompt="s", user_prompt="u")

    assert result.strip() == "Listen-ready text."

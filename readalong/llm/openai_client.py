"""OpenAI HTTP client utilities for preprocessing and speech synthesis.

Responsibilities:
- Send minimal chat-completions and speech requests to OpenAI's REST API.
- Retry transient failures with bounded exponential backoff.
- Raise actionable provider exceptions for synthesizer-level error mapping.
"""

from __future__ import annotations

import json
import re
import socket
import time
from typing import Any

import requests

DEFAULT_BASE_URL = "https://api.openai.com/v1"

_TRANSIENT_FAILURE_KINDS = frozenset({"server_error", "timeout", "transport", "rate_limited"})
_MAX_MESSAGE_CHARS = 180
_SECRET_PATTERNS = (
    (re.compile(r"\bsk-[A-Za-z0-9_-]{8,}\b"), "[redacted-key]"),
    (re.compile(r"(?i)bearer\s+[A-Za-z0-9._-]{12,}"), "Bearer [redacted-token]"),
)
_FAILURE_HEADLINES = {
    "invalid_api_key": "OpenAI authentication failed",
    "insufficient_quota": "OpenAI quota is insufficient for this request",
    "rate_limited": "OpenAI rate limit reached",
    "invalid_model": "OpenAI rejected the selected model",
    "server_error": "OpenAI server error",
    "timeout": "OpenAI request timed out",
}


class OpenAIProviderError(RuntimeError):
    """Raised when an OpenAI provider request fails or returns malformed output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_code: str | None = None,
        retry_after_seconds: float | None = None,
    ) -> None:
        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_code = provider_code
        self.retry_after_seconds = retry_after_seconds

    @property
    def is_transient(self) -> bool:
        """Return whether a later identical request could plausibly succeed."""

        return self.failure_kind in _TRANSIENT_FAILURE_KINDS


def sanitize_provider_text(text: str) -> str:
    """Collapse whitespace, mask API-key-like tokens, and cap the length."""

    masked = text
    for pattern, replacement in _SECRET_PATTERNS:
        masked = pattern.sub(replacement, masked)
    compact = " ".join(masked.split())
    if len(compact) <= _MAX_MESSAGE_CHARS:
        return compact
    return f"{compact[: _MAX_MESSAGE_CHARS - 1]}..."


def parse_error_body(body: bytes) -> tuple[str, str | None]:
    """Return `(message, code)` from an OpenAI error body, tolerating non-JSON text."""

    text = body.decode("utf-8", errors="replace").strip()
    if not text:
        return "", None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return sanitize_provider_text(text), None

    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, str):
        return sanitize_provider_text(error or text), None
    if not isinstance(error, dict):
        return sanitize_provider_text(text), None

    code = error.get("code")
    code = code.strip() if isinstance(code, str) and code.strip() else None
    message = error.get("message")
    message = message if isinstance(message, str) and message.strip() else text
    return sanitize_provider_text(message), code


def classify_http_failure(status_code: int, message: str, code: str | None) -> str:
    """Map an HTTP status plus provider message/code to a failure kind."""

    message_lower = message.lower()
    code_lower = (code or "").lower()
    if status_code == 401:
        return "invalid_api_key"
    if status_code == 429:
        quota_exhausted = code_lower == "insufficient_quota" or "quota" in message_lower
        return "insufficient_quota" if quota_exhausted else "rate_limited"
    if code_lower == "insufficient_quota":
        return "insufficient_quota"
    if status_code in (408, 504):
        return "timeout"
    if status_code >= 500:
        return "server_error"
    model_rejected = "model" in message_lower and any(
        phrase in message_lower for phrase in ("not found", "does not exist", "invalid")
    )
    if code_lower == "model_not_found" or model_rejected:
        return "invalid_model"
    return "invalid_request"


def _retry_after(response: Any) -> float | None:
    raw_value = (getattr(response, "headers", None) or {}).get("Retry-After")
    try:
        return max(0.0, float(raw_value)) if raw_value is not None else None
    except (TypeError, ValueError):
        return None


def _error_from_response(response: Any) -> OpenAIProviderError:
    status_code = int(getattr(response, "status_code", 0) or 0)
    message, code = parse_error_body(bytes(getattr(response, "content", b"") or b""))
    failure_kind = classify_http_failure(status_code, message, code)
    headline = _FAILURE_HEADLINES.get(failure_kind, "OpenAI rejected the request")
    detail = f"{headline} (HTTP {status_code}): {message}" if message else f"{headline} (HTTP {status_code})."
    return OpenAIProviderError(
        detail,
        failure_kind=failure_kind,
        status_code=status_code,
        provider_code=code,
        retry_after_seconds=_retry_after(response),
    )


class _OpenAIHTTPClient:
    """Shared OpenAI connection settings and the retrying POST helper."""

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 60.0,
        max_retries: int = 2,
        retry_backoff_base_seconds: float = 1.0,
        retry_backoff_max_seconds: float = 8.0,
    ) -> None:
        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(0, int(max_retries))
        self.retry_backoff_base_seconds = retry_backoff_base_seconds
        self.retry_backoff_max_seconds = retry_backoff_max_seconds
        self.retry_attempt_count = 0

    def _require_api_key(self) -> None:
        if not self.api_key:
            raise OpenAIProviderError(
                "Missing OpenAI API key. Set `OPENAI_API_KEY`, use `--api-key`, or "
                "store one with `readalong credentials --set-api-key`.",
                failure_kind="invalid_api_key",
            )

    def backoff_seconds(self, retry_index: int, error: OpenAIProviderError) -> float:
        """Return the sleep before retry `retry_index` (0-based), capped at the max delay."""

        delay = self.retry_backoff_base_seconds * (2**retry_index)
        if error.retry_after_seconds is not None:
            delay = max(delay, error.retry_after_seconds)
        return min(delay, self.retry_backoff_max_seconds)

    def _post(self, path: str, payload: dict[str, Any], *, empty_message: str | None = None) -> bytes:
        """POST `payload` as JSON, retrying transient failures, and return the body.

        `empty_message` turns an empty success body into a permanent error.
        """

        retries = 0
        while True:
            try:
                body = self._send(path, payload)
            except OpenAIProviderError as exc:
                if not exc.is_transient or retries >= self.max_retries:
                    raise
                delay = self.backoff_seconds(retries, exc)
                retries += 1
                self.retry_attempt_count += 1
                time.sleep(delay)
                continue
            if empty_message is not None and not body:
                raise OpenAIProviderError(empty_message, failure_kind="empty_response")
            return body

    def _send(self, path: str, payload: dict[str, Any]) -> bytes:
        try:
            response = requests.post(
                f"{self.base_url}{path}",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise _error_from_response(exc.response) from exc
        except (requests.Timeout, socket.timeout, TimeoutError) as exc:
            raise OpenAIProviderError("OpenAI request timed out.", failure_kind="timeout") from exc
        except requests.RequestException as exc:
            raise OpenAIProviderError(
                f"OpenAI request transport error: {sanitize_provider_text(str(exc))}",
                failure_kind="transport",
            ) from exc
        return bytes(response.content)


class OpenAIChatClient(_OpenAIHTTPClient):
    """Chat-completions client used for listen-ready preprocessing."""

    def chat_completion_text(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.6,
        max_tokens: int | None = 4000,
    ) -> str:
        """Return the stripped text of the first assistant choice."""

        self._require_api_key()
        payload: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return _first_choice_text(self._post("/chat/completions", payload))


def _first_choice_text(body: bytes) -> str:
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise OpenAIProviderError("OpenAI returned invalid JSON payload.") from exc

    choices = payload.get("choices") if isinstance(payload, dict) else None
    first = choices[0] if isinstance(choices, list) and choices else None
    message = first.get("message") if isinstance(first, dict) else None
    if not isinstance(message, dict):
        raise OpenAIProviderError("OpenAI response has no `choices[0].message`.")
    content = message.get("content")
    text = content.strip() if isinstance(content, str) else ""
    if not text:
        raise OpenAIProviderError("OpenAI response message content is empty.")
    return text


class OpenAISpeechClient(_OpenAIHTTPClient):
    """Speech client for `/audio/speech`; returns raw audio bytes."""

    def synthesize_speech(
        self,
        *,
        model: str,
        voice: str,
        text: str,
        response_format: str = "wav",
        speed: float = 1.0,
    ) -> bytes:
        self._require_api_key()
        return self._post(
            "/audio/speech",
            {
                "model": model,
                "voice": voice,
                "input": text,
                "response_format": response_format,
                "speed": speed,
            },
            empty_message="OpenAI speech response is empty.",
        )

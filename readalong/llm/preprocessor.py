"""Listen-ready text preprocessing through a chat model.

Responsibilities:
- Rewrite extracted article text for spoken delivery before chunking.
- Cache rewrites per (model, text) for the life of the preprocessor.
- Fall back to the original text whenever the provider fails.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
import threading
from typing import Protocol

from ..telemetry.logger import RunLogger
from ..text.cleaners import count_words
from ..tts.cache import stable_key
from .openai_client import OpenAIChatClient, OpenAIProviderError
from .prompts import PromptLibrary

_BYLINE_PREFIX_PATTERN = re.compile(r"^(by|written by|author:)\s+", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class PreprocessResult:
    """Outcome of one preprocessing request.

    Attributes:
        text: Rewritten text, or the original text on fallback.
        title: Whitespace-normalized title, when supplied.
        byline: Normalized byline without a leading "By", when supplied.
        preprocessed: Whether the model output replaced the original text.
    """

    text: str
    title: str | None = None
    byline: str | None = None
    preprocessed: bool = False


class Preprocessor(Protocol):
    """Protocol for text preprocessing providers."""

    def preprocess(
        self,
        text: str,
        *,
        title: str | None = None,
        byline: str | None = None,
    ) -> PreprocessResult:
        """Rewrite text for listening, never raising provider errors."""


def normalize_title(value: str | None) -> str | None:
    if value is None:
        return None
    collapsed = " ".join(value.split())
    return collapsed or None


def normalize_byline(value: str | None) -> str | None:
    collapsed = normalize_title(value)
    if collapsed is None:
        return None
    stripped = _BYLINE_PREFIX_PATTERN.sub("", collapsed).strip()
    return stripped or None


class OpenAITextPreprocessor:
    """Rewrite article text for narration with OpenAI chat-completions."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        client: OpenAIChatClient | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        self.model = model
        self.client = client or OpenAIChatClient(api_key=api_key)
        self.prompts = PromptLibrary()
        self.logger = logger or RunLogger()
        self.hits = 0
        self.misses = 0
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    def preprocess(
        self,
        text: str,
        *,
        title: str | None = None,
        byline: str | None = None,
    ) -> PreprocessResult:
        """Return rewritten text, falling back to `text` when the provider fails."""

        normalized_title = normalize_title(title)
        normalized_byline = normalize_byline(byline)
        cache_key = stable_key(f"preprocess:{self.model}", {"text": text, "title": normalized_title})

        with self._lock:
            cached = self._cache.get(cache_key)
            if cached is not None:
                self.hits += 1
            else:
                self.misses += 1
        if cached is not None:
            self.logger.log_event("preprocess", "cache_hit", model=self.model)
            return PreprocessResult(cached, normalized_title, normalized_byline, preprocessed=True)

        try:
            rewritten = self.client.chat_completion_text(
                model=self.model,
                system_prompt=self.prompts.preprocess_system_prompt(),
                user_prompt=self.prompts.preprocess_user_prompt(
                    text,
                    title=normalized_title,
                    word_count=count_words(text),
                ),
            )
        except OpenAIProviderError as exc:
            self.logger.log_event(
                "preprocess",
                "fallback_original_text",
                severity="WARNING",
                failure_kind=exc.failure_kind,
                status=exc.status_code or "none",
            )
            return PreprocessResult(text, normalized_title, normalized_byline, preprocessed=False)

        with self._lock:
            self._cache[cache_key] = rewritten
        return PreprocessResult(rewritten, normalized_title, normalized_byline, preprocessed=True)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

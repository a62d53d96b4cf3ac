"""Unit tests for listen-ready preprocessing, caching, and fallback."""

from __future__ import annotations

from readalong.llm.openai_client import OpenAIProviderError
from readalong.llm.preprocessor import OpenAITextPreprocessor, normalize_byline, normalize_title
from readalong.llm.prompts import PromptLibrary


class _RecordingChatClient:
    """Chat client double returning a fixed rewrite or raising a provider error."""

    def __init__(self, *, reply: str = "Rewritten for listening.", error: OpenAIProviderError | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict[str, object]] = []

    def chat_completion_text(self, **kwargs: object) -> str:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.reply


def test_preprocess_rewrites_and_caches_per_model_and_text() -> None:
    client = _RecordingChatClient()
    preprocessor = OpenAITextPreprocessor(model="gpt-4o-mini", client=client)

    first = preprocessor.preprocess("Original article text.", title="  A   Title ")
    second = preprocessor.preprocess("Original article text.", title="A Title")

    assert first.text == "Rewritten for listening."
    assert first.preprocessed is True
    assert first.title == "A Title"
    assert second == first
    assert len(client.calls) == 1
    assert preprocessor.hits == 1
    assert preprocessor.misses == 1
    assert client.calls[0]["model"] == "gpt-4o-mini"
    assert "Title: A Title" in str(client.calls[0]["user_prompt"])
    assert "Word count: 3" in str(client.calls[0]["user_prompt"])


def test_preprocess_falls_back_to_original_text_on_provider_failure() -> None:
    """Provider failures should never block synthesis of the original text."""

    client = _RecordingChatClient(
        error=OpenAIProviderError("OpenAI server error (HTTP 500).", failure_kind="server_error", status_code=500)
    )
    preprocessor = OpenAITextPreprocessor(client=client)

    result = preprocessor.preprocess("Keep me as is.", byline="By Jane Doe")

    assert result.text == "Keep me as is."
    assert result.preprocessed is False
    assert result.byline == "Jane Doe"

    client.error = None
    assert preprocessor.preprocess("Keep me as is.").preprocessed is True
    preprocessor.clear_cache()
    preprocessor.preprocess("Keep me as is.")
    assert len(client.calls) == 3


def test_title_and_byline_normalization() -> None:
    assert normalize_title("  ") is None
    assert normalize_title(None) is None
    assert normalize_byline("written by   Sam Lee") == "Sam Lee"
    assert normalize_byline("By") == "By"


def test_user_prompt_without_metadata_is_the_text() -> None:
    prompts = PromptLibrary()

    assert prompts.preprocess_user_prompt("Just text.") == "Just text."
    assert "text-to-speech" in prompts.preprocess_system_prompt()

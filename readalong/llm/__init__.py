"""LLM-facing abstractions for narration preprocessing and provider HTTP access."""

from .openai_client import OpenAIChatClient, OpenAIProviderError, OpenAISpeechClient
from .preprocessor import OpenAITextPreprocessor, PreprocessResult, Preprocessor
from .prompts import PromptLibrary

__all__ = [
    "OpenAIChatClient",
    "OpenAIProviderError",
    "OpenAISpeechClient",
    "OpenAITextPreprocessor",
    "PreprocessResult",
    "Preprocessor",
    "PromptLibrary",
]

"""Chunk-level speech synthesis with caching and typed failures.

Responsibilities:
- Define the protocol for chunk-level speech synthesis.
- Provide an OpenAI-backed synthesizer that checks the audio cache first.
- Convert provider failures into typed `SynthesisError` results.
"""

from __future__ import annotations

import threading
from typing import Protocol

from ..errors import SynthesisError
from ..llm.openai_client import OpenAIProviderError, OpenAISpeechClient
from ..models.datatypes import AudioBuffer, TextChunk
from ..telemetry.logger import RunLogger
from .cache import AudioCache, shared_audio_cache
from .voices import SynthesisSettings


class ChunkSynthesizer(Protocol):
    """Protocol for chunk synthesizer implementations."""

    def synthesize(self, chunk: TextChunk, settings: SynthesisSettings) -> AudioBuffer:
        """Synthesize one chunk, raising `SynthesisError` on failure."""

    def is_cached(self, chunk: TextChunk, settings: SynthesisSettings) -> bool:
        """Return whether audio for the chunk is already cached."""

    def cached_audio(self, chunk: TextChunk, settings: SynthesisSettings) -> AudioBuffer | None:
        """Return cached audio for the chunk, or `None` without synthesizing."""


class OpenAIChunkSynthesizer:
    """OpenAI-backed synthesizer with process-wide cache and bounded retries."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        cache: AudioCache | None = None,
        client: OpenAISpeechClient | None = None,
        max_retries: int = 2,
        retry_backoff_base_seconds: float = 1.0,
        retry_backoff_max_seconds: float = 8.0,
        timeout_seconds: float = 60.0,
        logger: RunLogger | None = None,
    ) -> None:
        """Initialize speech client, cache, and retry settings."""

        self.cache = cache if cache is not None else shared_audio_cache()
        self.client = client or OpenAISpeechClient(
            api_key=api_key,
            timeout_seconds=timeout_seconds,
            max_retries=max_retries,
            retry_backoff_base_seconds=retry_backoff_base_seconds,
            retry_backoff_max_seconds=retry_backoff_max_seconds,
        )
        self.logger = logger or RunLogger()
        self.api_call_count = 0
        self._counter_lock = threading.Lock()

    def cache_key(self, chunk: TextChunk, settings: SynthesisSettings) -> str:
        normalized = settings.normalized()
        return AudioCache.make_key(
            text=chunk.content,
            model=normalized.model,
            voice=normalized.voice,
            speed=normalized.speed,
            response_format=normalized.response_format,
        )

    def is_cached(self, chunk: TextChunk, settings: SynthesisSettings) -> bool:
        return self.cache.contains(self.cache_key(chunk, settings))

    def cached_audio(self, chunk: TextChunk, settings: SynthesisSettings) -> AudioBuffer | None:
        """Return cached audio for the chunk without ever requesting synthesis."""

        return self.cache.get(self.cache_key(chunk, settings))

    def synthesize(self, chunk: TextChunk, settings: SynthesisSettings) -> AudioBuffer:
        """Return cached audio for the chunk or synthesize and cache it."""

        normalized = settings.normalized()
        if not chunk.content.strip():
            raise SynthesisError(
                f"Chunk {chunk.index} is empty; nothing to synthesize.",
                retryable=False,
                failure_kind="invalid_request",
                chunk_index=chunk.index,
            )

        def _generate() -> AudioBuffer:
            return self._request_audio(chunk, normalized)

        return self.cache.get_or_create(self.cache_key(chunk, normalized), _generate)

    def _request_audio(self, chunk: TextChunk, settings: SynthesisSettings) -> AudioBuffer:
        """Issue one speech request (with client-level retries) for a cache miss."""

        with self._counter_lock:
            self.api_call_count += 1
        retries_before = self.client.retry_attempt_count
        try:
            audio_bytes = self.client.synthesize_speech(
                model=settings.model,
                voice=settings.voice,
                text=chunk.content,
                response_format=settings.response_format,
                speed=settings.speed,
            )
        except OpenAIProviderError as exc:
            self.logger.log_stage_failure(
                "synthesize",
                exc.failure_kind,
                chunk=chunk.index,
                status=exc.status_code or "none",
            )
            raise SynthesisError(
                str(exc),
                retryable=exc.is_transient,
                status_code=exc.status_code,
                failure_kind=exc.failure_kind,
                chunk_index=chunk.index,
            ) from exc
        self.logger.log_event(
            "synthesize",
            "chunk_ready",
            chunk=chunk.index,
            bytes=len(audio_bytes),
            retries=self.client.retry_attempt_count - retries_before,
        )
        return AudioBuffer(data=audio_bytes, mime_type=settings.mime_type)

    @property
    def retry_attempt_count(self) -> int:
        """Return retry attempt count performed by the underlying provider client."""

        return self.client.retry_attempt_count

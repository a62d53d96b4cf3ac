"""Reading session orchestration.

Responsibilities:
- Run one text through preprocessing, chunking, synthesis, assembly, and load.
- Discard results of a `prepare` superseded by a newer one.
- Own the assembled audio lifecycle and the playback controller.
- Expose playback, highlight, progress, export, and cleanup operations.

Key types:
- `ReadingSession`: explicitly constructed engine for one reading view.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from .audio.assembler import AssembledAudio, AudioAssembler
from .audio.backends import AudioBackend, ClockAudioBackend
from .config import ReadalongConfig
from .errors import PlaybackError, ReadalongStageError, SynthesisError
from .llm.preprocessor import (
    OpenAITextPreprocessor,
    PreprocessResult,
    Preprocessor,
    normalize_byline,
    normalize_title,
)
from .models.datatypes import AudioBuffer, HighlightUnit, PlaybackState, PrepareResult, TextChunk
from .playback.controller import PlaybackController, Unsubscribe
from .playback.highlight import HighlightSync, TimedSegment, build_units, segment_units
from .telemetry.logger import RunLogger
from .text.chunking import Chunker
from .text.cleaners import count_words, strip_html_tags
from .tts.cache import AudioCache, shared_audio_cache
from .tts.synthesizer import ChunkSynthesizer, OpenAIChunkSynthesizer
from .tts.voices import SynthesisSettings

PROGRESS_PREPROCESS_START = 30
PROGRESS_PREPROCESS_DONE = 60
PROGRESS_PREPROCESS_SKIPPED = 50
DEFAULT_DOWNLOAD_STEM = "readalong-audio"


@dataclass(frozen=True, slots=True)
class _PreparedText:
    text: str
    title: str | None
    byline: str | None
    preprocessed: bool


class ReadingSession:
    """Engine instance for one reading session.

    Every collaborator is injectable; unspecified ones are built from
    `config`. The audio cache defaults to the process-wide shared cache.
    """

    def __init__(
        self,
        config: ReadalongConfig | None = None,
        *,
        synthesizer: ChunkSynthesizer | None = None,
        preprocessor: Preprocessor | None = None,
        assembler: AudioAssembler | None = None,
        backend: AudioBackend | None = None,
        cache: AudioCache | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        self.config = config or ReadalongConfig()
        self.config.validate()
        runtime = self.config.resolved_runtime()
        self.logger = logger or RunLogger()
        self.settings = runtime.synthesis_settings(self.config.response_format)

        if cache is not None:
            self.cache = cache
        elif self.config.cache_max_entries is not None:
            self.cache = AudioCache(max_entries=self.config.cache_max_entries)
        else:
            self.cache = shared_audio_cache()

        self.synthesizer = synthesizer or OpenAIChunkSynthesizer(
            api_key=runtime.api_key,
            cache=self.cache,
            max_retries=self.config.max_retries,
            retry_backoff_base_seconds=self.config.retry_backoff_base_seconds,
            retry_backoff_max_seconds=self.config.retry_backoff_max_seconds,
            timeout_seconds=self.config.request_timeout_seconds,
            logger=self.logger,
        )
        if preprocessor is None and runtime.preprocess:
            preprocessor = OpenAITextPreprocessor(
                model=runtime.model_preprocess,
                api_key=runtime.api_key,
                logger=self.logger,
            )
        self.preprocessor = preprocessor
        self.assembler = assembler or AudioAssembler()
        self.controller = PlaybackController(
            backend or ClockAudioBackend(),
            poll_interval_seconds=self.config.poll_interval_seconds,
            logger=self.logger,
        )
        self.chunker = Chunker()

        self._generation = 0
        self._audio: AssembledAudio | None = None
        self._chunks: list[TextChunk] = []
        self._resolved_text = ""
        self._progress_callbacks: list[Callable[[int], None]] = []

    # Properties

    @property
    def state(self) -> PlaybackState:
        return self.controller.state

    @property
    def error_message(self) -> str | None:
        return self.controller.error_message

    @property
    def resolved_text(self) -> str:
        return self._resolved_text

    @property
    def chunks(self) -> tuple[TextChunk, ...]:
        return tuple(self._chunks)

    @property
    def audio(self) -> AssembledAudio | None:
        return self._audio

    # Preparation

    async def prepare(
        self,
        text: str,
        settings: SynthesisSettings | None = None,
        *,
        title: str | None = None,
        byline: str | None = None,
        skip_preprocessing: bool = False,
    ) -> PrepareResult:
        """Synthesize `text` and load it for playback.

        A `prepare` superseded by a newer call returns `committed=False`
        and leaves the session untouched. Failures move the controller to
        `error` and re-raise the typed error.
        """

        self._generation += 1
        generation = self._generation
        target = (settings or self.settings).normalized()
        target.validate()
        self.controller.begin_loading()
        self.logger.log_stage_start("prepare", generation=generation, voice=target.voice, model=target.model)

        try:
            source = strip_html_tags(text)
            if not source:
                raise SynthesisError(
                    "Text is empty; nothing to synthesize.",
                    retryable=False,
                    failure_kind="invalid_request",
                )

            prepared = await self._preprocess(
                source,
                title=title,
                byline=byline,
                skip=skip_preprocessing,
                generation=generation,
            )
            if self._is_stale(generation):
                return self._discarded(prepared, chunk_count=0)

            chunks = self.chunker.chunk(prepared.text, self.config.max_chunk_size)
            self.logger.log_event("chunk", "planned", severity="INFO", chunks=len(chunks), chars=len(prepared.text))
            buffers = await self._synthesize_all(chunks, target, generation)
            if self._is_stale(generation):
                return self._discarded(prepared, chunk_count=len(chunks))

            audio = self.assembler.assemble(buffers)
            if self._is_stale(generation):
                audio.release()
                return self._discarded(prepared, chunk_count=len(chunks))
            self.logger.log_stage_complete("assemble", chunks=audio.chunk_count, bytes=audio.size_bytes)

            word_count = count_words(prepared.text)
            self._commit(audio, word_count)
        except (SynthesisError, PlaybackError, ValueError) as exc:
            if self._is_stale(generation):
                self.logger.log_event("prepare", "stale_failure_discarded", generation=generation)
                return PrepareResult(resolved_text="", chunk_count=0, word_count=0, committed=False)
            self.logger.log_stage_failure("prepare", type(exc).__name__, generation=generation)
            if self.controller.state is not PlaybackState.ERROR:
                self.controller.fail(str(exc))
            raise

        self._chunks = chunks
        self._resolved_text = prepared.text
        self.settings = target
        self._emit_progress(100)
        self.logger.log_stage_complete("prepare", generation=generation, chunks=len(chunks), words=word_count)
        return PrepareResult(
            resolved_text=prepared.text,
            chunk_count=len(chunks),
            word_count=word_count,
            title=prepared.title,
            byline=prepared.byline,
            preprocessed=prepared.preprocessed,
        )

    def apply_cached_settings(self, settings: SynthesisSettings) -> bool:
        """Switch voice/speed/model instantly when every chunk is already cached.

        Never requests synthesis. Returns `False` and keeps the current audio
        and settings when a chunk is missing or the new audio cannot be built.
        """

        target = settings.normalized()
        target.validate()
        if not self._chunks or self.controller.state in (PlaybackState.LOADING, PlaybackState.IDLE):
            return False
        cached = [self.synthesizer.cached_audio(chunk, target) for chunk in self._chunks]
        buffers = [buffer for buffer in cached if buffer is not None]
        if len(buffers) != len(self._chunks):
            return False
        try:
            audio = self.assembler.assemble(buffers)
        except (PlaybackError, ValueError) as exc:
            self.logger.log_stage_failure("prepare", type(exc).__name__, reason="cached_settings")
            return False

        self._generation += 1
        previous = self._audio
        word_count = count_words(self._resolved_text)
        self.controller.pause()
        try:
            self._commit(audio, word_count)
        except PlaybackError as exc:
            self.logger.log_stage_failure("load", type(exc).__name__, reason="cached_settings")
            if previous is not None:
                self._reload(previous, word_count)
            return False
        self.settings = target
        self.logger.log_event("prepare", "cached_settings_applied", severity="INFO", voice=target.voice)
        return True

    def _reload(self, audio: AssembledAudio, word_count: int) -> None:
        try:
            self.controller.load(audio, word_count)
        except PlaybackError:
            self.logger.log_stage_failure("load", "PlaybackError", reason="restore_previous")

    async def _preprocess(
        self,
        source: str,
        *,
        title: str | None,
        byline: str | None,
        skip: bool,
        generation: int,
    ) -> _PreparedText:
        if skip or self.preprocessor is None:
            self._emit_progress(PROGRESS_PREPROCESS_SKIPPED, generation)
            return _PreparedText(source, normalize_title(title), normalize_byline(byline), False)

        self._emit_progress(PROGRESS_PREPROCESS_START, generation)
        self.logger.log_stage_start("preprocess", chars=len(source))
        result: PreprocessResult = await asyncio.to_thread(
            self.preprocessor.preprocess, source, title=title, byline=byline
        )
        self.logger.log_stage_complete("preprocess", rewritten=result.preprocessed)
        self._emit_progress(PROGRESS_PREPROCESS_DONE, generation)
        resolved = result.text.strip() or source
        return _PreparedText(resolved, result.title, result.byline, result.preprocessed)

    async def _synthesize_all(
        self,
        chunks: Sequence[TextChunk],
        settings: SynthesisSettings,
        generation: int,
    ) -> list[AudioBuffer]:
        """Synthesize chunks concurrently and return buffers in chunk order."""

        total = len(chunks)
        completed = 0

        async def _synthesize(chunk: TextChunk) -> AudioBuffer:
            nonlocal completed
            buffer = await asyncio.to_thread(self.synthesizer.synthesize, chunk, settings)
            completed += 1
            self._emit_progress(
                PROGRESS_PREPROCESS_DONE + (100 - PROGRESS_PREPROCESS_DONE) * completed // total,
                generation,
            )
            return buffer

        self.logger.log_stage_start("synthesize", chunks=total)
        buffers = await asyncio.gather(*(_synthesize(chunk) for chunk in chunks))
        self.logger.log_stage_complete("synthesize", chunks=total)
        return list(buffers)

    def _commit(self, audio: AssembledAudio, word_count: int) -> None:
        """Load the new audio, then release the one it replaces."""

        previous = self._audio
        try:
            self.controller.load(audio, word_count)
        except PlaybackError:
            audio.release()
            raise
        self._audio = audio
        if previous is not None and previous is not audio:
            previous.release()

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    def _discarded(self, prepared: _PreparedText, *, chunk_count: int) -> PrepareResult:
        self.logger.log_event("prepare", "stale_result_discarded", chunks=chunk_count)
        return PrepareResult(
            resolved_text=prepared.text,
            chunk_count=chunk_count,
            word_count=count_words(prepared.text),
            title=prepared.title,
            byline=prepared.byline,
            preprocessed=prepared.preprocessed,
            committed=False,
        )

    def _emit_progress(self, percent: int, generation: int | None = None) -> None:
        if generation is not None and self._is_stale(generation):
            return
        for callback in list(self._progress_callbacks):
            callback(percent)

    # Playback

    async def play(self, start_unit_index: int | None = None) -> bool:
        return await self.controller.play(start_unit_index)

    def pause(self) -> None:
        self.controller.pause()

    async def resume(self) -> bool:
        return await self.controller.resume()

    async def retry(self) -> bool:
        return await self.controller.retry()

    def stop(self) -> None:
        self.controller.stop()

    async def seek(self, percent: float) -> bool:
        return await self.controller.seek(percent)

    def get_current_time(self) -> float:
        return self.controller.get_current_time()

    def get_duration(self) -> float:
        return self.controller.get_duration()

    def is_paused(self) -> bool:
        return self.controller.is_paused()

    # Events

    def on_unit_change(self, callback: Callable[[int], None]) -> Unsubscribe:
        """Register a callback for active word changes."""

        return self.controller.on_word_change(callback)

    def on_finished(self, callback: Callable[[], None]) -> Unsubscribe:
        return self.controller.on_finish(callback)

    def on_autoplay_blocked(self, callback: Callable[[], None]) -> Unsubscribe:
        return self.controller.on_autoplay_blocked(callback)

    def on_state_change(self, callback: Callable[[PlaybackState], None]) -> Unsubscribe:
        return self.controller.on_state_change(callback)

    def on_progress(self, callback: Callable[[int], None]) -> Unsubscribe:
        """Register a callback for coarse preparation progress (0-100)."""

        self._progress_callbacks.append(callback)

        def _remove() -> None:
            if callback in self._progress_callbacks:
                self._progress_callbacks.remove(callback)

        return _remove

    # Highlighting

    def units(self, unit: str = "word") -> list[HighlightUnit]:
        return build_units(self._resolved_text, self.controller.get_duration(), unit)

    def highlight(self, unit: str = "word", *, lead_seconds: float = 0.0) -> HighlightSync:
        """Attach a highlight view for `word`, `sentence`, or `paragraph` units."""

        return HighlightSync(self.controller, self.units(unit), lead_seconds=lead_seconds)

    def highlight_segments(
        self,
        segments: Sequence[TimedSegment],
        *,
        lead_seconds: float = 0.3,
    ) -> HighlightSync:
        """Attach a highlight view for externally timed segments."""

        units = segment_units(segments, self.controller.get_duration())
        return HighlightSync(self.controller, units, lead_seconds=lead_seconds)

    # Export and teardown

    def download_audio(self, destination: Path | None = None) -> Path:
        """Copy the assembled audio to `destination` (a file or a directory)."""

        if self._audio is None:
            raise ReadalongStageError(
                stage="export",
                detail="No audio has been prepared yet.",
                hint="Call `prepare()` before downloading audio.",
            )
        default_name = f"{DEFAULT_DOWNLOAD_STEM}{self._audio.extension}"
        if destination is None:
            target = Path.cwd() / default_name
        elif destination.is_dir():
            target = destination / default_name
        else:
            target = destination
        saved = self._audio.save_to(target)
        self.logger.log_stage_complete("export", bytes=self._audio.size_bytes)
        return saved

    def cleanup(self) -> None:
        """Stop playback, release the assembled audio, and close the backend."""

        self._generation += 1
        self.controller.stop()
        self.controller.close()
        if self._audio is not None:
            self._audio.release()
            self._audio = None
        self._chunks = []
        self._resolved_text = ""

"""Playback state machine over one audio backend.

Responsibilities:
- Own the `PlaybackState` and every transition between states.
- Poll the backend position on a fixed cadence while playing.
- Map position to the active word through the current `WordTimeAxis`.
- Publish word-change, tick, finish, autoplay-blocked, state, and error events.

Key types:
- `PlaybackController`: the state machine consumed by every highlight view.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from ..audio.assembler import AssembledAudio
from ..audio.backends import AudioBackend
from ..errors import AutoplayBlockedError, PlaybackError
from ..models.datatypes import PlaybackState
from ..telemetry.logger import RunLogger
from ..timing.estimator import WordTimeAxis, estimate_word_axis

DEFAULT_POLL_INTERVAL_SECONDS = 0.05

_PLAYABLE_STATES = frozenset(
    {
        PlaybackState.READY,
        PlaybackState.PAUSED,
        PlaybackState.FINISHED,
        PlaybackState.BLOCKED,
    }
)

Unsubscribe = Callable[[], None]


class _Listeners:
    """Ordered callback registry returning unsubscribe handles."""

    def __init__(self) -> None:
        self._callbacks: list[Callable[..., None]] = []

    def add(self, callback: Callable[..., None]) -> Unsubscribe:
        self._callbacks.append(callback)

        def _remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _remove

    def emit(self, *args: object) -> None:
        for callback in list(self._callbacks):
            callback(*args)


class PlaybackController:
    """Drive one audio backend through load, play, pause, seek, finish, and error."""

    def __init__(
        self,
        backend: AudioBackend,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        logger: RunLogger | None = None,
    ) -> None:
        if poll_interval_seconds <= 0:
            raise ValueError("`poll_interval_seconds` must be positive.")
        self.backend = backend
        self.poll_interval_seconds = poll_interval_seconds
        self.logger = logger or RunLogger()
        self._state = PlaybackState.IDLE
        self._error_message: str | None = None
        self._axis: WordTimeAxis | None = None
        self._duration = 0.0
        self._active_word_index = 0
        self._progress_percent = 0.0
        self._poll_task: asyncio.Task[None] | None = None
        self._word_listeners = _Listeners()
        self._tick_listeners = _Listeners()
        self._finish_listeners = _Listeners()
        self._blocked_listeners = _Listeners()
        self._state_listeners = _Listeners()
        self._error_listeners = _Listeners()

    # Event registration

    def on_word_change(self, callback: Callable[[int], None]) -> Unsubscribe:
        return self._word_listeners.add(callback)

    def on_tick(self, callback: Callable[[float], None]) -> Unsubscribe:
        """Register a position listener called on every poll tick and seek."""

        return self._tick_listeners.add(callback)

    def on_finish(self, callback: Callable[[], None]) -> Unsubscribe:
        return self._finish_listeners.add(callback)

    def on_autoplay_blocked(self, callback: Callable[[], None]) -> Unsubscribe:
        return self._blocked_listeners.add(callback)

    def on_state_change(self, callback: Callable[[PlaybackState], None]) -> Unsubscribe:
        return self._state_listeners.add(callback)

    def on_error(self, callback: Callable[[str], None]) -> Unsubscribe:
        return self._error_listeners.add(callback)

    # Read-only views

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def axis(self) -> WordTimeAxis | None:
        return self._axis

    @property
    def active_word_index(self) -> int:
        return self._active_word_index

    @property
    def progress_percent(self) -> float:
        return self._progress_percent

    def get_current_time(self) -> float:
        if self._axis is None:
            return 0.0
        return self.backend.position

    def get_duration(self) -> float:
        return self._duration

    def is_paused(self) -> bool:
        return self._state is not PlaybackState.PLAYING

    # Loading

    def begin_loading(self) -> None:
        """Enter `loading`, keeping the current audio loaded until its replacement is ready."""

        if self._state is PlaybackState.PLAYING:
            self.backend.pause()
        self._stop_polling()
        self._axis = None
        self._error_message = None
        self._set_state(PlaybackState.LOADING)

    def load(self, audio: AssembledAudio, word_count: int) -> WordTimeAxis:
        """Load assembled audio, derive the word axis from its real duration, enter `ready`."""

        self._stop_polling()
        try:
            duration = self.backend.load(audio)
        except PlaybackError as exc:
            self.fail(str(exc))
            raise
        self._duration = duration
        self._axis = estimate_word_axis(word_count, duration)
        self._active_word_index = 0
        self._progress_percent = 0.0
        self.logger.log_event(
            "load",
            "axis_ready",
            words=word_count,
            duration=f"{duration:.3f}",
        )
        self._set_state(PlaybackState.READY)
        self._tick_listeners.emit(0.0)
        return self._axis

    def fail(self, message: str) -> None:
        """Enter `error` with a user-facing message."""

        self._stop_polling()
        self._error_message = message
        self._set_state(PlaybackState.ERROR)
        self._error_listeners.emit(message)

    # Transport

    async def play(self, start_word_index: int | None = None) -> bool:
        """Start playback, optionally from the estimated time of a word.

        Returns `True` when output started and `False` when it was blocked or
        failed; the reason is reflected in `state`.
        """

        axis = self._require_loaded()
        if start_word_index is not None:
            self.backend.seek(axis.time_at(start_word_index))
            self._refresh(self.backend.position)
        if self._state is PlaybackState.PLAYING:
            return True
        return self._start_output()

    async def resume(self) -> bool:
        self._require_loaded()
        if self._state is PlaybackState.PLAYING:
            return True
        return self._start_output()

    async def retry(self) -> bool:
        """Retry output after an autoplay block, as a user-initiated action."""

        self._require_loaded()
        self.backend.notify_user_gesture()
        if self._state is PlaybackState.PLAYING:
            return True
        return self._start_output()

    def pause(self) -> None:
        if self._state is not PlaybackState.PLAYING:
            return
        self.backend.pause()
        self._stop_polling()
        self._refresh(self.backend.position)
        self._set_state(PlaybackState.PAUSED)

    def stop(self) -> None:
        """Stop output and rewind to the start."""

        if self._axis is None:
            return
        self.backend.pause()
        self._stop_polling()
        self.backend.seek(0.0)
        self._refresh(0.0)
        if self._state in _PLAYABLE_STATES or self._state is PlaybackState.PLAYING:
            self._set_state(PlaybackState.READY)

    async def seek(self, percent: float) -> bool:
        """Seek to `percent` (0-100) of the duration and play from there."""

        clamped = max(0.0, min(100.0, float(percent)))
        return await self.seek_to_time((clamped / 100.0) * self._duration)

    async def seek_to_time(self, seconds: float) -> bool:
        """Seek to an absolute time, refresh the active word, and play if not playing."""

        self._require_loaded()
        target = max(0.0, min(self._duration, float(seconds)))
        self.backend.seek(target)
        self._refresh(target)
        if self._state is PlaybackState.PLAYING:
            return True
        return self._start_output()

    def close(self) -> None:
        """Stop polling and unload the backend."""

        self._stop_polling()
        self.backend.unload()
        self._axis = None
        self._duration = 0.0
        self._set_state(PlaybackState.IDLE)

    # Internals

    def _require_loaded(self) -> WordTimeAxis:
        if self._axis is None or self._state not in _PLAYABLE_STATES | {PlaybackState.PLAYING}:
            raise PlaybackError(f"Audio is not ready for playback (state: {self._state.value}).")
        return self._axis

    def _start_output(self) -> bool:
        try:
            self.backend.play()
        except AutoplayBlockedError:
            self._stop_polling()
            self._set_state(PlaybackState.BLOCKED)
            self._blocked_listeners.emit()
            return False
        except PlaybackError as exc:
            self.fail(str(exc))
            return False
        self._set_state(PlaybackState.PLAYING)
        self._start_polling()
        return True

    def _start_polling(self) -> None:
        self._stop_polling()
        self._poll_task = asyncio.get_running_loop().create_task(self._poll())

    def _stop_polling(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    async def _poll(self) -> None:
        while self._state is PlaybackState.PLAYING:
            await asyncio.sleep(self.poll_interval_seconds)
            if self._state is not PlaybackState.PLAYING:
                return
            self._tick()

    def _tick(self) -> None:
        error = self.backend.error
        if error is not None:
            self.logger.log_stage_failure("playback", "backend_error")
            self.fail(error)
            return
        self._refresh(self.backend.position)
        if self.backend.ended:
            self._finish()

    def _finish(self) -> None:
        self.backend.pause()
        self._stop_polling()
        self._refresh(self._duration)
        self._progress_percent = 100.0
        self._set_state(PlaybackState.FINISHED)
        self._finish_listeners.emit()

    def _refresh(self, position: float) -> None:
        """Recompute progress and the active word; notify only on word change."""

        if self._duration > 0:
            self._progress_percent = min(100.0, (position / self._duration) * 100.0)
        else:
            self._progress_percent = 0.0
        if self._axis is not None:
            index = self._axis.word_index_at(position)
            if index != self._active_word_index:
                self._active_word_index = index
                self._word_listeners.emit(index)
        self._tick_listeners.emit(position)

    def _set_state(self, state: PlaybackState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        self.logger.log_event("playback", "state", previous=previous.value, current=state.value)
        self._state_listeners.emit(state)

"""Audio output backends driven by the playback controller.

Responsibilities:
- Define the protocol the controller uses in place of a media element.
- Provide a clock-driven headless backend and an `ffplay` subprocess backend.
"""

from __future__ import annotations

import subprocess
from time import monotonic
from typing import Callable, Protocol

from ..errors import AutoplayBlockedError, PlaybackError
from ..runtime_tools import resolve_executable
from .assembler import AssembledAudio
from .probe import probe_duration_seconds


class AudioBackend(Protocol):
    """One playable audio handle, polled for position by the controller."""

    def load(self, audio: AssembledAudio) -> float:
        """Load a resource and return its decoded duration in seconds."""

    def play(self) -> None:
        """Start or resume output; may raise `AutoplayBlockedError`."""

    def pause(self) -> None:
        """Pause output, keeping the current position."""

    def seek(self, seconds: float) -> None:
        """Move the playback position."""

    def notify_user_gesture(self) -> None:
        """Record that the next `play` comes from an explicit user action."""

    def unload(self) -> None:
        """Stop output and drop the loaded resource."""

    @property
    def position(self) -> float:
        """Current playback position in seconds."""

    @property
    def ended(self) -> bool:
        """Whether output reached the end of the stream."""

    @property
    def error(self) -> str | None:
        """Asynchronous load/decode failure message, if any."""


class ClockAudioBackend:
    """Headless backend that advances position with a monotonic clock.

    With `require_user_gesture=True` every `play` is rejected as an autoplay
    restriction until `notify_user_gesture` is called, mirroring platforms
    that refuse unprompted audio output.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = monotonic,
        require_user_gesture: bool = False,
        duration_probe: Callable[[AssembledAudio], float] | None = None,
    ) -> None:
        self._clock = clock
        self._require_user_gesture = require_user_gesture
        self._gesture_granted = False
        self._duration_probe = duration_probe or (
            lambda audio: probe_duration_seconds(audio.path, audio.mime_type)
        )
        self._duration = 0.0
        self._base_position = 0.0
        self._started_at: float | None = None
        self._loaded = False

    def load(self, audio: AssembledAudio) -> float:
        self.unload()
        self._duration = self._duration_probe(audio)
        self._loaded = True
        return self._duration

    def play(self) -> None:
        if not self._loaded:
            raise PlaybackError("No audio is loaded.")
        if self._require_user_gesture and not self._gesture_granted:
            raise AutoplayBlockedError("Playback requires a user gesture.")
        if self._started_at is None:
            if self._base_position >= self._duration:
                self._base_position = 0.0
            self._started_at = self._clock()

    def pause(self) -> None:
        if self._started_at is not None:
            self._base_position = self.position
            self._started_at = None

    def seek(self, seconds: float) -> None:
        self._base_position = max(0.0, min(self._duration, seconds))
        if self._started_at is not None:
            self._started_at = self._clock()

    def notify_user_gesture(self) -> None:
        self._gesture_granted = True

    def unload(self) -> None:
        self._loaded = False
        self._duration = 0.0
        self._base_position = 0.0
        self._started_at = None

    @property
    def position(self) -> float:
        if self._started_at is None:
            return self._base_position
        elapsed = self._clock() - self._started_at
        return min(self._duration, self._base_position + elapsed)

    @property
    def ended(self) -> bool:
        return self._loaded and self._duration > 0 and self.position >= self._duration

    @property
    def error(self) -> str | None:
        return None


class FfplayAudioBackend:
    """Backend that plays assembled audio through an `ffplay` subprocess.

    Pausing stops the subprocess and resuming restarts it at the recorded
    position (`-ss`), so position tracking is clock-based between restarts.
    """

    def __init__(self, *, clock: Callable[[], float] = monotonic) -> None:
        self._clock = clock
        self._audio: AssembledAudio | None = None
        self._duration = 0.0
        self._base_position = 0.0
        self._started_at: float | None = None
        self._process: subprocess.Popen[bytes] | None = None
        self._error: str | None = None

    def load(self, audio: AssembledAudio) -> float:
        self.unload()
        self._duration = probe_duration_seconds(audio.path, audio.mime_type)
        self._audio = audio
        return self._duration

    def play(self) -> None:
        if self._audio is None:
            raise PlaybackError("No audio is loaded.")
        if self._started_at is not None and self._process is not None and self._process.poll() is None:
            return
        if self._base_position >= self._duration:
            self._base_position = 0.0
        command = [
            resolve_executable("ffplay"),
            "-nodisp",
            "-autoexit",
            "-loglevel",
            "error",
            "-ss",
            f"{self._base_position:.3f}",
            str(self._audio.path),
        ]
        try:
            self._process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise PlaybackError(f"Cannot start `ffplay`: {exc}") from exc
        self._error = None
        self._started_at = self._clock()

    def pause(self) -> None:
        if self._started_at is None:
            return
        self._base_position = self.position
        self._started_at = None
        self._stop_process()

    def seek(self, seconds: float) -> None:
        was_playing = self._started_at is not None
        if was_playing:
            self._started_at = None
            self._stop_process()
        self._base_position = max(0.0, min(self._duration, seconds))
        if was_playing:
            self.play()

    def notify_user_gesture(self) -> None:
        return None

    def unload(self) -> None:
        self._stop_process()
        self._audio = None
        self._duration = 0.0
        self._base_position = 0.0
        self._started_at = None

    @property
    def position(self) -> float:
        if self._started_at is None:
            return self._base_position
        return min(self._duration, self._base_position + (self._clock() - self._started_at))

    @property
    def ended(self) -> bool:
        if self._process is None or self._started_at is None:
            return False
        return self._process.poll() == 0

    @property
    def error(self) -> str | None:
        if self._error is None and self._process is not None and self._started_at is not None:
            return_code = self._process.poll()
            if return_code not in (None, 0):
                stderr = self._process.stderr.read() if self._process.stderr is not None else b""
                detail = " ".join(stderr.decode("utf-8", errors="replace").split())[:180]
                self._error = f"`ffplay` exited with code {return_code}: {detail or 'no output'}"
        return self._error

    def _stop_process(self) -> None:
        if self._process is None:
            return
        if self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=2.0)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait()
        if self._process.stderr is not None:
            self._process.stderr.close()
        self._process = None

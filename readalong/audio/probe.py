"""Audio duration probing.

Responsibilities:
- Decode WAV durations natively from frame counts.
- Delegate other containers to `ffprobe`.
"""

from __future__ import annotations

import io
from pathlib import Path
import subprocess
import wave

from ..errors import PlaybackError
from ..runtime_tools import resolve_executable


def wav_duration_seconds(audio_bytes: bytes) -> float:
    """Compute WAV duration in seconds from in-memory WAV bytes."""

    try:
        with wave.open(io.BytesIO(audio_bytes), "rb") as wav_file:
            frame_count = wav_file.getnframes()
            sample_rate = wav_file.getframerate()
    except (wave.Error, EOFError) as exc:
        raise PlaybackError("Audio payload is not a readable WAV stream.") from exc
    if sample_rate <= 0:
        raise PlaybackError("Audio payload has an invalid WAV sample rate.")
    return frame_count / float(sample_rate)


def probe_duration_seconds(path: Path, mime_type: str) -> float:
    """Return the decoded duration of an audio file in seconds."""

    if mime_type == "audio/wav" or path.suffix.lower() == ".wav":
        try:
            return wav_duration_seconds(path.read_bytes())
        except OSError as exc:
            raise PlaybackError(f"Audio file `{path}` cannot be read: {exc}") from exc

    command = [
        resolve_executable("ffprobe"),
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        str(path),
    ]
    try:
        completed = subprocess.run(command, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise PlaybackError(
            f"Cannot probe `{path}`: `ffprobe` is not available ({exc})."
        ) from exc
    if completed.returncode != 0:
        raise PlaybackError(
            f"`ffprobe` failed for `{path}`: {' '.join(completed.stderr.split())[:180]}"
        )
    try:
        duration = float(completed.stdout.strip())
    except ValueError as exc:
        raise PlaybackError(f"`ffprobe` returned no duration for `{path}`.") from exc
    if duration < 0:
        raise PlaybackError(f"`ffprobe` returned a negative duration for `{path}`.")
    return duration

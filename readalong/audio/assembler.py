"""Audio assembly from ordered chunk buffers.

Responsibilities:
- Concatenate chunk audio in chunk-index order into one playable resource.
- Merge WAV payloads frame-wise so the result carries one valid header.
- Own the resource lifecycle so replaced audio is explicitly released.
"""

from __future__ import annotations

from dataclasses import dataclass
import io
import os
from pathlib import Path
import shutil
import tempfile
import wave

from ..errors import PlaybackError
from ..models.datatypes import AudioBuffer

_EXTENSIONS = {
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/ogg": ".opus",
    "audio/aac": ".aac",
    "audio/flac": ".flac",
    "audio/L16": ".pcm",
}


@dataclass(slots=True)
class AssembledAudio:
    """One playable resource built from a text's chunk buffers.

    Attributes:
        path: File backing the resource until `release` is called.
        mime_type: MIME type shared by every source buffer.
        size_bytes: Size of the assembled payload.
        chunk_count: Number of chunk buffers merged into the resource.
    """

    path: Path
    mime_type: str
    size_bytes: int
    chunk_count: int
    released: bool = False

    @property
    def uri(self) -> str:
        return self.path.as_uri()

    @property
    def extension(self) -> str:
        return self.path.suffix

    def read_bytes(self) -> bytes:
        if self.released:
            raise ValueError("Assembled audio has already been released.")
        return self.path.read_bytes()

    def save_to(self, destination: Path) -> Path:
        """Copy the resource to `destination` and return the written path."""

        if self.released:
            raise ValueError("Assembled audio has already been released.")
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.path, destination)
        return destination

    def release(self) -> None:
        """Delete the backing file; safe to call more than once."""

        if self.released:
            return
        self.path.unlink(missing_ok=True)
        self.released = True


class AudioAssembler:
    """Merge ordered chunk buffers into one assembled audio resource."""

    def __init__(self, work_dir: Path | None = None) -> None:
        self.work_dir = work_dir

    def assemble(self, buffers: list[AudioBuffer]) -> AssembledAudio:
        """Concatenate buffers (already in chunk-index order) into one resource."""

        if not buffers:
            raise ValueError("Cannot assemble audio from an empty buffer list.")
        mime_type = buffers[0].mime_type
        if any(buffer.mime_type != mime_type for buffer in buffers):
            raise ValueError("Cannot assemble audio buffers with mixed MIME types.")

        if mime_type == "audio/wav":
            payload = self._merge_wav(buffers)
        else:
            payload = b"".join(buffer.data for buffer in buffers)

        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        descriptor, raw_path = tempfile.mkstemp(
            prefix="readalong-",
            suffix=_EXTENSIONS.get(mime_type, ".bin"),
            dir=self.work_dir,
        )
        with os.fdopen(descriptor, "wb") as handle:
            handle.write(payload)
        return AssembledAudio(
            path=Path(raw_path),
            mime_type=mime_type,
            size_bytes=len(payload),
            chunk_count=len(buffers),
        )

    def _merge_wav(self, buffers: list[AudioBuffer]) -> bytes:
        """Merge WAV buffers that share channel count, sample width, and rate."""

        try:
            with wave.open(io.BytesIO(buffers[0].data), "rb") as first:
                channels = first.getnchannels()
                sample_width = first.getsampwidth()
                framerate = first.getframerate()

            output = io.BytesIO()
            with wave.open(output, "wb") as merged:
                merged.setnchannels(channels)
                merged.setsampwidth(sample_width)
                merged.setframerate(framerate)
                for index, buffer in enumerate(buffers):
                    with wave.open(io.BytesIO(buffer.data), "rb") as chunk:
                        if (
                            chunk.getnchannels() != channels
                            or chunk.getsampwidth() != sample_width
                            or chunk.getframerate() != framerate
                        ):
                            raise ValueError(f"Incompatible WAV parameters for chunk {index}.")
                        merged.writeframes(chunk.readframes(chunk.getnframes()))
        except (wave.Error, EOFError) as exc:
            raise PlaybackError("Synthesized audio is not a readable WAV stream.") from exc
        return output.getvalue()

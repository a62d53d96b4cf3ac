"""Synthesis settings for the OpenAI speech endpoint.

Responsibilities:
- Represent voice, speed, and model selection for one synthesis run.
- Validate provider-native identifiers and clamp speaking rate.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

SUPPORTED_VOICES = frozenset(
    {"alloy", "ash", "ballad", "coral", "echo", "fable", "nova", "onyx", "sage", "shimmer"}
)
SUPPORTED_TTS_MODELS = frozenset({"tts-1", "tts-1-hd", "gpt-4o-mini-tts"})
MIN_SPEED = 0.25
MAX_SPEED = 4.0

_MIME_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "opus": "audio/ogg",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "pcm": "audio/L16",
}


@dataclass(frozen=True, slots=True)
class SynthesisSettings:
    """Declarative speech settings used by the chunk synthesizer.

    Attributes:
        voice: Provider-native voice identifier.
        speed: Relative speaking rate multiplier.
        model: Speech model identifier.
        response_format: Audio container requested from the provider.
    """

    voice: str = "nova"
    speed: float = 1.0
    model: str = "tts-1"
    response_format: str = "wav"

    def normalized(self) -> SynthesisSettings:
        """Return settings with trimmed identifiers and speed clamped to the provider range."""

        return replace(
            self,
            voice=self.voice.strip().lower(),
            model=self.model.strip(),
            speed=max(MIN_SPEED, min(MAX_SPEED, float(self.speed))),
            response_format=self.response_format.strip().lower(),
        )

    def validate(self) -> None:
        """Reject identifiers the speech endpoint is known not to accept."""

        if self.voice.strip().lower() not in SUPPORTED_VOICES:
            supported = ", ".join(sorted(SUPPORTED_VOICES))
            raise ValueError(f"Unsupported voice `{self.voice}`; supported: {supported}.")
        if self.model.strip() not in SUPPORTED_TTS_MODELS:
            supported = ", ".join(sorted(SUPPORTED_TTS_MODELS))
            raise ValueError(f"Unsupported TTS model `{self.model}`; supported: {supported}.")
        if self.response_format.strip().lower() not in _MIME_TYPES:
            supported = ", ".join(sorted(_MIME_TYPES))
            raise ValueError(
                f"Unsupported response format `{self.response_format}`; supported: {supported}."
            )

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES.get(self.response_format.strip().lower(), "application/octet-stream")

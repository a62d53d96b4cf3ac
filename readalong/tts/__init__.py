"""Text-to-speech synthesis components.

This package contains synthesis settings, the process-wide audio cache, and
chunk synthesizer implementations.
"""

from .cache import AudioCache, shared_audio_cache
from .synthesizer import ChunkSynthesizer, OpenAIChunkSynthesizer
from .voices import SUPPORTED_TTS_MODELS, SUPPORTED_VOICES, SynthesisSettings

__all__ = [
    "AudioCache",
    "ChunkSynthesizer",
    "OpenAIChunkSynthesizer",
    "SUPPORTED_TTS_MODELS",
    "SUPPORTED_VOICES",
    "SynthesisSettings",
    "shared_audio_cache",
]

"""Audio assembly, probing, and output backends."""

from .assembler import AssembledAudio, AudioAssembler
from .backends import AudioBackend, ClockAudioBackend, FfplayAudioBackend
from .probe import probe_duration_seconds, wav_duration_seconds

__all__ = [
    "AssembledAudio",
    "AudioAssembler",
    "AudioBackend",
    "ClockAudioBackend",
    "FfplayAudioBackend",
    "probe_duration_seconds",
    "wav_duration_seconds",
]

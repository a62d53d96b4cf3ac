"""Configuration model and loaders for readalong.

Responsibilities:
- Define engine configuration as a typed dataclass.
- Resolve runtime synthesis settings with deterministic source precedence.
- Provide loader entry points for YAML- and environment-based configuration.

Key types:
- `ReadalongConfig`: normalized settings for one engine instance.
- `RuntimeSettings`: resolved synthesis/preprocessing values for one run.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `ReadalongConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .text.chunking import DEFAULT_MAX_CHUNK_SIZE
from .tts.voices import MAX_SPEED, MIN_SPEED, SUPPORTED_TTS_MODELS, SUPPORTED_VOICES, SynthesisSettings

_DEFAULT_TTS_MODEL = "tts-1"
_DEFAULT_TTS_VOICE = "nova"
_DEFAULT_PREPROCESS_MODEL = "gpt-4o-mini"
_SUPPORTED_RESPONSE_FORMATS = frozenset({"wav", "mp3", "opus", "aac", "flac", "pcm"})
_TRUE_TOKENS = frozenset({"1", "true", "yes", "on"})
_FALSE_TOKENS = frozenset({"0", "false", "no", "off"})


def normalize_optional_string(value: object) -> str | None:
    """Return a stripped string, or `None` for missing/blank values."""

    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_boolean(value: object) -> bool | None:
    """Parse `true`/`false`, `1`/`0`, `yes`/`no`, `on`/`off`; `None` when invalid."""

    if isinstance(value, bool):
        return value
    normalized = normalize_optional_string(value)
    if normalized is None:
        return None
    token = normalized.lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return None


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RuntimeSettings:
    """Resolved runtime values for one preparation run."""

    model_tts: str
    tts_voice: str
    tts_speed: float
    model_preprocess: str
    preprocess: bool
    api_key: str | None = None

    def synthesis_settings(self, response_format: str) -> SynthesisSettings:
        return SynthesisSettings(
            voice=self.tts_voice,
            speed=self.tts_speed,
            model=self.model_tts,
            response_format=response_format,
        )


# (field, env key) pairs resolved with CLI > secure > env > default precedence.
_RUNTIME_KEYS = (
    ("model_tts", "READALONG_MODEL_TTS"),
    ("tts_voice", "READALONG_TTS_VOICE"),
    ("tts_speed", "READALONG_TTS_SPEED"),
    ("model_preprocess", "READALONG_MODEL_PREPROCESS"),
    ("preprocess", "READALONG_PREPROCESS"),
    ("api_key", "OPENAI_API_KEY"),
)


@dataclass(slots=True)
class ReadalongConfig:
    """Engine configuration.

    Attributes:
        model_tts: Speech model identifier.
        tts_voice: Speech voice identifier.
        tts_speed: Speech speed multiplier, clamped to the provider range.
        response_format: Audio container requested from the speech endpoint.
        preprocess: Whether text is rewritten for listening before chunking.
        model_preprocess: Chat model used for preprocessing.
        max_chunk_size: Maximum characters per synthesis request.
        poll_interval_seconds: Playback position polling cadence.
        max_retries: Retries after the first attempt for transient failures.
        retry_backoff_base_seconds: First backoff delay, doubled per retry.
        retry_backoff_max_seconds: Upper bound for a single backoff delay.
        request_timeout_seconds: HTTP timeout per provider request.
        cache_max_entries: Audio cache bound, `None` for unbounded.
        api_key: Optional provider API key.
        runtime_sources: Optional runtime source overrides injected by the CLI.
        extra: Additional metadata for future extensions.
    """

    model_tts: str = _DEFAULT_TTS_MODEL
    tts_voice: str = _DEFAULT_TTS_VOICE
    tts_speed: float = 1.0
    response_format: str = "wav"
    preprocess: bool = True
    model_preprocess: str = _DEFAULT_PREPROCESS_MODEL
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE
    poll_interval_seconds: float = 0.05
    max_retries: int = 2
    retry_backoff_base_seconds: float = 1.0
    retry_backoff_max_seconds: float = 8.0
    request_timeout_seconds: float = 60.0
    cache_max_entries: int | None = None
    api_key: str | None = None
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)
    extra: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate configuration values before the engine is built."""

        self._validate_model(self.model_tts)
        self._validate_voice(self.tts_voice)
        if self.response_format not in _SUPPORTED_RESPONSE_FORMATS:
            supported = ", ".join(sorted(_SUPPORTED_RESPONSE_FORMATS))
            raise ValueError(
                f"Unsupported `response_format` value `{self.response_format}`; supported: {supported}."
            )
        if not self.model_preprocess.strip():
            raise ValueError("`model_preprocess` must be a non-empty string.")
        if self.max_chunk_size <= 0:
            raise ValueError("`max_chunk_size` must be a positive integer.")
        if self.poll_interval_seconds <= 0:
            raise ValueError("`poll_interval_seconds` must be positive.")
        if self.max_retries < 0:
            raise ValueError("`max_retries` must be zero or greater.")
        if self.retry_backoff_base_seconds < 0 or self.retry_backoff_max_seconds < 0:
            raise ValueError("Retry backoff values must be zero or greater.")
        if self.request_timeout_seconds <= 0:
            raise ValueError("`request_timeout_seconds` must be positive.")
        if self.cache_max_entries is not None and self.cache_max_entries <= 0:
            raise ValueError("`cache_max_entries` must be a positive integer when set.")

    def resolved_runtime(self, sources: RuntimeConfigSources | None = None) -> RuntimeSettings:
        """Resolve runtime values with precedence `cli` > `secure` > `env` > field default."""

        resolved_sources = sources if sources is not None else self.runtime_sources
        values: dict[str, str | None] = {}
        for key, env_key in _RUNTIME_KEYS:
            values[key] = self._resolve_runtime_value(key, env_key, resolved_sources)

        speed_text = values["tts_speed"]
        try:
            speed = float(speed_text) if speed_text is not None else self.tts_speed
        except ValueError as exc:
            raise ValueError("`tts_speed` must be a number.") from exc
        preprocess_text = values["preprocess"]
        preprocess = self.preprocess if preprocess_text is None else parse_boolean(preprocess_text)
        if preprocess is None:
            raise ValueError(
                "`preprocess` must be a boolean value (`true`/`false`, `1`/`0`, `yes`/`no`)."
            )

        resolved = RuntimeSettings(
            model_tts=values["model_tts"] or self.model_tts,
            tts_voice=values["tts_voice"] or self.tts_voice,
            tts_speed=min(MAX_SPEED, max(MIN_SPEED, speed)),
            model_preprocess=values["model_preprocess"] or self.model_preprocess,
            preprocess=preprocess,
            api_key=values["api_key"] if values["api_key"] is not None else normalize_optional_string(self.api_key),
        )
        self._validate_model(resolved.model_tts)
        self._validate_voice(resolved.tts_voice)
        return resolved

    @staticmethod
    def _resolve_runtime_value(
        key: str, env_key: str, sources: RuntimeConfigSources
    ) -> str | None:
        for mapping, lookup_key in ((sources.cli, key), (sources.secure, key), (sources.env, env_key)):
            if lookup_key in mapping:
                value = normalize_optional_string(mapping.get(lookup_key))
                if value is not None:
                    return value
        return None

    @staticmethod
    def _validate_model(model: str) -> None:
        if model not in SUPPORTED_TTS_MODELS:
            supported = ", ".join(sorted(SUPPORTED_TTS_MODELS))
            raise ValueError(f"Unsupported `model_tts` value `{model}`; supported: {supported}.")

    @staticmethod
    def _validate_voice(voice: str) -> None:
        if voice not in SUPPORTED_VOICES:
            supported = ", ".join(sorted(SUPPORTED_VOICES))
            raise ValueError(f"Unsupported `tts_voice` value `{voice}`; supported: {supported}.")


class ConfigLoader:
    """Factory methods for creating `ReadalongConfig` from external sources."""

    _STRING_KEYS = ("model_tts", "tts_voice", "response_format", "model_preprocess", "api_key")
    _POSITIVE_INT_KEYS = ("max_chunk_size",)
    _FLOAT_KEYS = (
        "tts_speed",
        "poll_interval_seconds",
        "retry_backoff_base_seconds",
        "retry_backoff_max_seconds",
        "request_timeout_seconds",
    )
    _SUPPORTED_YAML_KEYS = frozenset(
        {
            *_STRING_KEYS,
            *_POSITIVE_INT_KEYS,
            *_FLOAT_KEYS,
            "preprocess",
            "max_retries",
            "cache_max_entries",
            "extra",
        }
    )
    _ENV_PREFIX = "READALONG_"
    _RUNTIME_ENV_KEYS = frozenset(env_key for _, env_key in _RUNTIME_KEYS)

    @staticmethod
    def from_yaml(path: Path) -> ReadalongConfig:
        """Create a validated config from a YAML file."""

        source_label = f"YAML `{path}`"
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ValueError(f"{source_label} is not valid YAML: {exc}") from exc
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"{source_label} must contain a top-level mapping/object.")

        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            raise ValueError(f"{source_label} includes unsupported key(s): {', '.join(unknown)}.")
        return ConfigLoader._build(payload, source_label)

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> ReadalongConfig:
        """Create a validated config from `READALONG_*` and `OPENAI_API_KEY` variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        payload: dict[str, Any] = {}
        for key in ConfigLoader._SUPPORTED_YAML_KEYS - {"extra", "api_key"}:
            env_key = f"{ConfigLoader._ENV_PREFIX}{key.upper()}"
            value = normalize_optional_string(env_map.get(env_key))
            if value is not None:
                payload[key] = value
        api_key = normalize_optional_string(env_map.get("OPENAI_API_KEY"))
        if api_key is not None:
            payload["api_key"] = api_key

        runtime_env = {
            key: value
            for key, value in env_map.items()
            if key in ConfigLoader._RUNTIME_ENV_KEYS and normalize_optional_string(value) is not None
        }
        config = ConfigLoader._build(payload, "Environment")
        config.runtime_sources = RuntimeConfigSources(env=runtime_env)
        return config

    @staticmethod
    def _build(payload: Mapping[str, Any], source_label: str) -> ReadalongConfig:
        values: dict[str, Any] = {}
        for key in ConfigLoader._STRING_KEYS:
            if key in payload:
                value = normalize_optional_string(payload[key])
                if value is not None:
                    values[key] = value
        for key in ConfigLoader._POSITIVE_INT_KEYS:
            if key in payload:
                values[key] = ConfigLoader._int_value(payload[key], key, source_label, minimum=1)
        if "max_retries" in payload:
            values["max_retries"] = ConfigLoader._int_value(
                payload["max_retries"], "max_retries", source_label, minimum=0
            )
        if normalize_optional_string(payload.get("cache_max_entries")) is not None:
            values["cache_max_entries"] = ConfigLoader._int_value(
                payload["cache_max_entries"], "cache_max_entries", source_label, minimum=1
            )
        for key in ConfigLoader._FLOAT_KEYS:
            if key in payload:
                values[key] = ConfigLoader._float_value(payload[key], key, source_label)
        if "preprocess" in payload:
            parsed = parse_boolean(payload["preprocess"])
            if parsed is None:
                raise ValueError(
                    f"{source_label} field `preprocess` must be a boolean value "
                    "(`true`/`false`, `1`/`0`, `yes`/`no`)."
                )
            values["preprocess"] = parsed
        if "extra" in payload:
            values["extra"] = ConfigLoader._string_map(payload["extra"], source_label)

        config = ReadalongConfig(**values)
        config.validate()
        return config

    @staticmethod
    def _int_value(raw_value: object, key: str, source_label: str, *, minimum: int) -> int:
        message = f"{source_label} field `{key}` must be an integer of at least {minimum}."
        if isinstance(raw_value, bool):
            raise ValueError(message)
        try:
            parsed = raw_value if isinstance(raw_value, int) else int(str(raw_value).strip())
        except ValueError as exc:
            raise ValueError(message) from exc
        if parsed < minimum:
            raise ValueError(message)
        return parsed

    @staticmethod
    def _float_value(raw_value: object, key: str, source_label: str) -> float:
        if isinstance(raw_value, bool):
            raise ValueError(f"{source_label} field `{key}` must be a number.")
        try:
            return float(str(raw_value).strip())
        except ValueError as exc:
            raise ValueError(f"{source_label} field `{key}` must be a number.") from exc

    @staticmethod
    def _string_map(raw: object, source_label: str) -> dict[str, str]:
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"{source_label} field `extra` must be a mapping/object.")
        normalized: dict[str, str] = {}
        for raw_key, raw_value in raw.items():
            key_value = normalize_optional_string(raw_key)
            value_value = normalize_optional_string(raw_value)
            if key_value is None or value_value is None:
                raise ValueError(f"{source_label} field `extra` contains a blank key or value.")
            normalized[key_value] = value_value
        return normalized

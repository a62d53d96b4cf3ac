"""Unit tests for YAML/environment configuration loading and runtime precedence."""

from __future__ import annotations

from pathlib import Path

import pytest

from readalong.config import ConfigLoader, ReadalongConfig, RuntimeConfigSources, parse_boolean


def test_config_loader_from_yaml_loads_and_normalizes_values(tmp_path: Path) -> None:
    config_path = tmp_path / "readalong.yml"
    config_path.write_text(
        """
model_tts: " tts-1-hd "
tts_voice: " onyx "
tts_speed: "1.25"
response_format: wav
preprocess: " no "
model_preprocess: gpt-4o-mini
max_chunk_size: " 2500 "
poll_interval_seconds: 0.1
max_retries: 3
retry_backoff_base_seconds: 0.5
retry_backoff_max_seconds: 4
request_timeout_seconds: 30
cache_max_entries: 64
api_key: " test-key "
extra:
  profile: " nightly "
""".strip(),
        encoding="utf-8",
    )

    config = ConfigLoader.from_yaml(config_path)

    assert config.model_tts == "tts-1-hd"
    assert config.tts_voice == "onyx"
    assert config.tts_speed == 1.25
    assert config.preprocess is False
    assert config.max_chunk_size == 2500
    assert config.poll_interval_seconds == 0.1
    assert config.max_retries == 3
    assert config.retry_backoff_base_seconds == 0.5
    assert config.retry_backoff_max_seconds == 4.0
    assert config.request_timeout_seconds == 30.0
    assert config.cache_max_entries == 64
    assert config.api_key == "test-key"
    assert config.extra == {"profile": "nightly"}


def test_empty_yaml_uses_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "empty.yml"
    config_path.write_text("", encoding="utf-8")

    config = ConfigLoader.from_yaml(config_path)

    assert config == ReadalongConfig()
    assert config.model_tts == "tts-1"
    assert config.tts_voice == "nova"
    assert config.response_format == "wav"
    assert config.max_chunk_size == 4000
    assert config.max_retries == 2
    assert config.cache_max_entries is None


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("voice: nova", "unsupported key"),
        ("tts_voice: robot", "Unsupported `tts_voice`"),
        ("model_tts: tts-9", "Unsupported `model_tts`"),
        ("max_chunk_size: 0", "max_chunk_size"),
        ("max_retries: -1", "max_retries"),
        ("preprocess: maybe", "preprocess"),
        ("- a\n- b", "top-level mapping"),
        ("tts_speed: fast", "tts_speed"),
    ],
)
def test_config_loader_rejects_invalid_yaml(tmp_path: Path, content: str, message: str) -> None:
    config_path = tmp_path / "bad.yml"
    config_path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError, match=message):
        ConfigLoader.from_yaml(config_path)


def test_config_loader_from_env_reads_prefixed_values() -> None:
    env = {
        "READALONG_TTS_VOICE": "shimmer",
        "READALONG_MAX_CHUNK_SIZE": "1200",
        "READALONG_PREPROCESS": "false",
        "OPENAI_API_KEY": " env-key ",
        "UNRELATED": "x",
    }

    config = ConfigLoader.from_env(env)

    assert config.tts_voice == "shimmer"
    assert config.max_chunk_size == 1200
    assert config.preprocess is False
    assert config.api_key == "env-key"
    assert dict(config.runtime_sources.env) == {
        "READALONG_TTS_VOICE": "shimmer",
        "READALONG_PREPROCESS": "false",
        "OPENAI_API_KEY": " env-key ",
    }


def test_runtime_resolution_precedence_cli_secure_env_default() -> None:
    """CLI values beat keyring values, which beat env values, which beat defaults."""

    config = ReadalongConfig(api_key="default-key")
    sources = RuntimeConfigSources(
        cli={"tts_voice": "onyx"},
        secure={"api_key": "secure-key", "tts_voice": "echo"},
        env={
            "OPENAI_API_KEY": "env-key",
            "READALONG_TTS_VOICE": "fable",
            "READALONG_MODEL_TTS": "tts-1-hd",
            "READALONG_TTS_SPEED": "9",
        },
    )

    runtime = config.resolved_runtime(sources)

    assert runtime.tts_voice == "onyx"
    assert runtime.api_key == "secure-key"
    assert runtime.model_tts == "tts-1-hd"
    assert runtime.tts_speed == 4.0
    assert runtime.preprocess is True
    assert runtime.model_preprocess == "gpt-4o-mini"

    defaults = ReadalongConfig(api_key="default-key").resolved_runtime(RuntimeConfigSources())
    assert defaults.api_key == "default-key"
    assert defaults.synthesis_settings("wav").voice == "nova"


def test_runtime_resolution_validates_resolved_values() -> None:
    config = ReadalongConfig()

    with pytest.raises(ValueError, match="tts_voice"):
        config.resolved_runtime(RuntimeConfigSources(cli={"tts_voice": "robot"}))
    with pytest.raises(ValueError, match="preprocess"):
        config.resolved_runtime(RuntimeConfigSources(env={"READALONG_PREPROCESS": "sometimes"}))


def test_parse_boolean_tokens() -> None:
    assert parse_boolean(" YES ") is True
    assert parse_boolean("off") is False
    assert parse_boolean(False) is False
    assert parse_boolean("") is None
    assert parse_boolean("maybe") is None

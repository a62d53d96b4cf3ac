"""Command-line interface for readalong.

Responsibilities:
- Expose commands for chunk planning, audio export, and read-along playback.
- Convert CLI arguments into `ReadalongConfig` with runtime source precedence.
- Manage the securely stored API key.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
import os
from pathlib import Path
import sys
from typing import Annotated

import typer

from .audio.backends import AudioBackend, FfplayAudioBackend
from .cli_rendering import (
    ProgressPrinter,
    echo_chunk_plan,
    echo_prepare_summary,
    exit_with_command_error,
)
from .config import ConfigLoader, ReadalongConfig, RuntimeConfigSources, normalize_optional_string
from .credentials import create_credential_store
from .errors import PlaybackError, ReadalongStageError, SynthesisError
from .models.datatypes import PlaybackState
from .playback.highlight import HIGHLIGHT_UNITS
from .session import ReadingSession
from .telemetry.logger import RunLogger
from .text.chunking import Chunker
from .text.cleaners import strip_html_tags

app = typer.Typer(
    name="readalong",
    no_args_is_help=True,
    help="Read-along speech synthesis with synchronized highlighting.",
)

InputArgument = Annotated[
    str,
    typer.Argument(help="Text or HTML file to read, or `-` for stdin."),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to YAML config file with engine defaults."),
]
VoiceOption = Annotated[
    str | None,
    typer.Option("--voice", help="Speech voice id override."),
]
SpeedOption = Annotated[
    float | None,
    typer.Option("--speed", help="Speaking rate multiplier (0.25-4.0)."),
]
ModelOption = Annotated[
    str | None,
    typer.Option("--model-tts", help="Speech model id override."),
]
ApiKeyOption = Annotated[
    str | None,
    typer.Option("--api-key", help="Provider API key override."),
]
PreprocessOption = Annotated[
    bool | None,
    typer.Option(
        "--preprocess/--no-preprocess",
        help="Rewrite text for listening with a chat model before synthesis.",
    ),
]


def _read_input_text(source: str) -> str:
    """Read INPUT (a path or `-`) and strip HTML markup."""

    try:
        if source == "-":
            raw = typer.get_text_stream("stdin").read()
        else:
            raw = Path(source).read_text(encoding="utf-8")
    except OSError as exc:
        raise ReadalongStageError(
            stage="input",
            detail=f"Cannot read input `{source}`: {exc.strerror or exc}.",
            hint="Pass an existing text/HTML file or `-` to read stdin.",
        ) from exc
    text = strip_html_tags(raw)
    if not text:
        raise ReadalongStageError(
            stage="input",
            detail="Input contains no readable text.",
            hint="Check that the file is not empty or markup-only.",
        )
    return text


def _load_yaml_config(config_path: Path | None) -> ReadalongConfig:
    """Load a YAML config file when requested and map failures to stage errors."""

    if config_path is None:
        return ReadalongConfig()
    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise ReadalongStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise ReadalongStageError(
            stage="config",
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc


def _resolve_config(
    *,
    config_file: Path | None,
    voice: str | None,
    speed: float | None,
    model_tts: str | None,
    api_key: str | None,
    preprocess: bool | None,
) -> ReadalongConfig:
    """Attach CLI, keyring, and environment sources to the base config."""

    base_config = _load_yaml_config(config_file)
    cli_values: dict[str, str] = {}
    for key, value in (("tts_voice", voice), ("model_tts", model_tts), ("api_key", api_key)):
        normalized = normalize_optional_string(value)
        if normalized is not None:
            cli_values[key] = normalized
    if speed is not None:
        cli_values["tts_speed"] = str(speed)
    if preprocess is not None:
        cli_values["preprocess"] = "true" if preprocess else "false"

    secure_values: dict[str, str] = {}
    if "api_key" not in cli_values:
        stored_api_key = create_credential_store().get_api_key()
        if stored_api_key is not None:
            secure_values["api_key"] = stored_api_key

    config = replace(
        base_config,
        runtime_sources=RuntimeConfigSources(cli=cli_values, secure=secure_values, env=os.environ),
    )
    try:
        config.resolved_runtime()
    except ValueError as exc:
        raise ReadalongStageError(
            stage="config",
            detail=str(exc),
            hint="Check `--voice`, `--model-tts`, and `--speed` values.",
        ) from exc
    return config


def _as_stage_error(exc: Exception) -> Exception:
    """Map engine errors to stage-scoped diagnostics."""

    if isinstance(exc, SynthesisError):
        hint = None
        if exc.failure_kind == "invalid_api_key":
            hint = "Set `OPENAI_API_KEY` or run `readalong credentials --set-api-key`."
        elif exc.retryable:
            hint = "The provider failed temporarily; retry later."
        return ReadalongStageError(stage="synthesize", detail=str(exc), hint=hint)
    if isinstance(exc, PlaybackError):
        return ReadalongStageError(
            stage="playback",
            detail=str(exc),
            hint="Verify that FFmpeg tools (`ffprobe`, `ffplay`) are installed.",
        )
    return exc


def _create_session(config: ReadalongConfig, backend: AudioBackend | None = None) -> ReadingSession:
    return ReadingSession(config, backend=backend, logger=RunLogger(sink=sys.stderr))


@app.command("chunks")
def chunks_command(
    input_path: InputArgument,
    max_chunk_size: Annotated[
        int | None,
        typer.Option("--max-chunk-size", min=1, help="Maximum characters per chunk."),
    ] = None,
    config_file: ConfigOption = None,
) -> None:
    """Print the chunk plan for a text without calling any provider."""

    try:
        config = _load_yaml_config(config_file)
        text = _read_input_text(input_path)
        chunks = Chunker().chunk(text, max_chunk_size or config.max_chunk_size)
    except Exception as exc:
        exit_with_command_error("chunks", exc)

    echo_chunk_plan(chunks)


@app.command("export")
def export_command(
    input_path: InputArgument,
    out: Annotated[Path, typer.Option("--out", help="Destination file or directory.")],
    title: Annotated[str | None, typer.Option("--title", help="Optional article title.")] = None,
    config_file: ConfigOption = None,
    voice: VoiceOption = None,
    speed: SpeedOption = None,
    model_tts: ModelOption = None,
    api_key: ApiKeyOption = None,
    preprocess: PreprocessOption = None,
) -> None:
    """Synthesize a text and save the assembled audio."""

    async def _export(session: ReadingSession, text: str) -> Path:
        try:
            result = await session.prepare(text, title=title)
            echo_prepare_summary(result, session.get_duration())
            return session.download_audio(out)
        finally:
            session.cleanup()

    try:
        config = _resolve_config(
            config_file=config_file,
            voice=voice,
            speed=speed,
            model_tts=model_tts,
            api_key=api_key,
            preprocess=preprocess,
        )
        text = _read_input_text(input_path)
        session = _create_session(config)
        session.on_progress(ProgressPrinter("export"))
        saved = asyncio.run(_export(session, text))
    except Exception as exc:
        exit_with_command_error("export", _as_stage_error(exc))

    typer.echo(f"Audio: {saved}")


@app.command("speak")
def speak_command(
    input_path: InputArgument,
    unit: Annotated[
        str,
        typer.Option("--unit", help=f"Highlight granularity: {', '.join(HIGHLIGHT_UNITS)}."),
    ] = "sentence",
    title: Annotated[str | None, typer.Option("--title", help="Optional article title.")] = None,
    config_file: ConfigOption = None,
    voice: VoiceOption = None,
    speed: SpeedOption = None,
    model_tts: ModelOption = None,
    api_key: ApiKeyOption = None,
    preprocess: PreprocessOption = None,
) -> None:
    """Synthesize a text and play it, printing each newly active unit."""

    if unit not in HIGHLIGHT_UNITS:
        exit_with_command_error(
            "speak",
            ReadalongStageError(
                stage="config",
                detail=f"Unsupported highlight unit `{unit}`.",
                hint=f"Use one of: {', '.join(HIGHLIGHT_UNITS)}.",
            ),
        )

    async def _speak(session: ReadingSession, text: str) -> None:
        try:
            await session.prepare(text, title=title)
            sync = session.highlight(unit)
            units = sync.units
            sync.on_change(lambda index: typer.echo(units[index].text))
            if units:
                typer.echo(units[0].text)
            await session.play()
            while session.state is PlaybackState.PLAYING:
                await asyncio.sleep(session.config.poll_interval_seconds)
            if session.state is PlaybackState.ERROR:
                raise PlaybackError(session.error_message or "Playback failed.")
        finally:
            session.cleanup()

    try:
        config = _resolve_config(
            config_file=config_file,
            voice=voice,
            speed=speed,
            model_tts=model_tts,
            api_key=api_key,
            preprocess=preprocess,
        )
        text = _read_input_text(input_path)
        session = _create_session(config, backend=FfplayAudioBackend())
        session.on_progress(ProgressPrinter("speak"))
        asyncio.run(_speak(session, text))
    except Exception as exc:
        exit_with_command_error("speak", _as_stage_error(exc))


@app.command("credentials")
def credentials_command(
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key with hidden input and store it securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage the securely stored OpenAI API key."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            ReadalongStageError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                "OpenAI API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                ReadalongStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except (RuntimeError, ValueError) as exc:
            exit_with_command_error(
                "credentials",
                ReadalongStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        if credential_store.clear_api_key():
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    status = "present" if credential_store.get_api_key() is not None else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored OpenAI API key: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()

"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
chunk plans, preparation progress, and prepared-audio summaries.
"""

from __future__ import annotations

from typing import NoReturn, Sequence

import typer

from .errors import ReadalongStageError
from .models.datatypes import PrepareResult, TextChunk


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, ReadalongStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_chunk_plan(chunks: Sequence[TextChunk]) -> None:
    """Print one deterministic row per chunk: index, char range, length, boundary."""

    for chunk in chunks:
        typer.echo(
            f"{chunk.index}. chars={chunk.char_start}-{chunk.char_end} "
            f"length={len(chunk.content)} boundary={chunk.boundary}"
        )
    typer.echo(f"Chunks: {len(chunks)}")


class ProgressPrinter:
    """Print preparation progress lines, skipping repeated percentages."""

    def __init__(self, command_name: str) -> None:
        self._command_name = command_name
        self._last: int | None = None

    def __call__(self, percent: int) -> None:
        if percent == self._last:
            return
        self._last = percent
        typer.echo(f"[progress] command={self._command_name} percent={percent}", err=True)


def echo_prepare_summary(result: PrepareResult, duration_seconds: float) -> None:
    """Print the outcome of a completed preparation."""

    if result.title:
        typer.echo(f"Title: {result.title}")
    if result.byline:
        typer.echo(f"Byline: {result.byline}")
    typer.echo(f"Preprocessed: {'yes' if result.preprocessed else 'no'}")
    typer.echo(f"Chunks: {result.chunk_count}")
    typer.echo(f"Words: {result.word_count}")
    typer.echo(f"Duration (s): {duration_seconds:.2f}")

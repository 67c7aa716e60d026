"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
job reports, book status summaries, and single-scene match results.
"""

from __future__ import annotations

import json
from typing import NoReturn

import typer

from .errors import PipelineStageError
from .matching.matcher import NoMatch, SoundscapeMatch
from .models.datatypes import BookRecord, JobResult, Scene


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
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


def echo_job_report(result: JobResult) -> None:
    """Print the JSON job report on stdout."""

    typer.echo(json.dumps(result.as_payload(), indent=2, sort_keys=True))


def exit_if_job_failed(command_name: str, result: JobResult) -> None:
    """Exit with code 1 after a failed job, printing its failure detail."""

    if result.success:
        if result.warning:
            typer.secho(f"Warning: {result.warning}", fg=typer.colors.YELLOW, err=True)
        return
    attempts = f" after {result.attempts} attempt(s)" if result.attempts > 1 else ""
    typer.secho(
        f"{command_name} failed{attempts}: {result.failure or 'unknown error'}",
        fg=typer.colors.RED,
        err=True,
    )
    raise typer.Exit(code=1)


def echo_book_status(record: BookRecord, scenes: list[Scene]) -> None:
    """Print book status, error count, and one row per scene."""

    typer.echo(f"Book: {record.book_id}")
    typer.echo(f"Title: {record.title}")
    typer.echo(f"Status: {record.status.value}")
    typer.echo(f"Pages: {record.total_pages}")
    typer.echo(f"Errors: {len(record.processing_errors)}")
    typer.echo(f"Estimated cost (USD): {record.processing_cost_usd:.6f}")
    typer.echo(f"Scenes: {len(scenes)}")
    for scene in scenes:
        soundscape = scene.soundscape_id or "(none)"
        typer.echo(
            f"{scene.scene_number}. pages {scene.start_page}-{scene.end_page} "
            f"setting={scene.descriptors.setting} soundscape={soundscape}"
        )


def echo_book_list(records: list[BookRecord]) -> None:
    """Print one row per stored book."""

    if not records:
        typer.echo("No books found.")
        return
    for record in records:
        typer.echo(
            f"{record.book_id}\t{record.status.value}\tpages={record.total_pages} "
            f"errors={len(record.processing_errors)} title={record.title}"
        )


def echo_match_result(result: SoundscapeMatch | NoMatch, threshold: float) -> None:
    """Print the outcome of matching one descriptor set."""

    if isinstance(result, SoundscapeMatch):
        typer.echo(f"Match: {result.asset.name}")
        typer.echo(f"Category: {result.category}")
        typer.echo(f"Score: {result.score:.4f} (threshold {threshold:.2f})")
        return
    typer.echo(f"No match: {result.reason}")
    if result.best_asset:
        typer.echo(f"Best candidate: {result.best_asset}")
    typer.echo(f"Best score: {result.best_score:.4f} (threshold {threshold:.2f})")

"""Command-line interface for Storia.

Responsibilities:
- Expose user-facing commands for page import, pipeline runs, and review.
- Convert CLI arguments into `StoriaConfig` and execute pipeline operations.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

from dataclasses import replace
import os
from pathlib import Path
from typing import Annotated

import typer

from .cli_rendering import (
    echo_book_list,
    echo_book_status,
    echo_job_report,
    echo_match_result,
    exit_if_job_failed,
    exit_with_command_error,
)
from .cli_runtime import resolve_provider_runtime_sources
from .config import ConfigLoader, RuntimeConfigSources, StoriaConfig
from .credentials import create_credential_store
from .errors import PipelineStageError
from .io.catalog import create_catalog_loader
from .io.page_source import import_book
from .io.repository import FileBookRepository
from .matching.matcher import SoundscapeMatcher
from .models.datatypes import DescriptorSet
from .parsing import normalize_optional_string
from .pipeline import SoundscapePipeline
from .telemetry.logger import RunLogger

app = typer.Typer(
    name="storia",
    no_args_is_help=True,
    help="Storia CLI: scene segmentation and soundscape matching for illustrated books.",
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to YAML config file with command defaults."),
]
StoreDirOption = Annotated[
    Path | None,
    typer.Option("--store-dir", help="Book repository directory (overrides config value)."),
]
CatalogOption = Annotated[
    Path | None,
    typer.Option(
        "--catalog",
        help="Curated catalog directory or YAML manifest (overrides config value).",
    ),
]


class RunProgressIndicator:
    """Render deterministic per-stage progress lines for long-running commands."""

    _SPINNER_FRAMES = "|/-\\"

    def __init__(self, command_name: str) -> None:
        """Initialize progress indicator metadata for a command invocation."""

        self._command_name = command_name

    def on_stage_start(self, stage_name: str, stage_index: int, stage_total: int) -> None:
        """Print one progress line for a stage start transition."""

        spinner = self._SPINNER_FRAMES[(stage_index - 1) % len(self._SPINNER_FRAMES)]
        typer.secho(
            f"[progress] command={self._command_name} "
            f"{spinner} {stage_index}/{stage_total} stage={stage_name}",
            err=True,
        )


def _load_yaml_config(config_path: Path | None) -> StoriaConfig | None:
    """Load a YAML config file when requested and map failures to stage errors."""

    if config_path is None:
        return None

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc
    except Exception as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Failed to load config file `{config_path}`: {exc}",
            hint="Verify YAML syntax and file permissions.",
        ) from exc


def _resolve_command_base_config(
    config_file: Path | None,
    store_dir: Path | None,
    catalog: Path | None = None,
    **overrides: object,
) -> StoriaConfig:
    """Resolve effective config from YAML or env defaults and explicit CLI overrides."""

    loaded_config = _load_yaml_config(config_file)
    if loaded_config is None:
        try:
            loaded_config = ConfigLoader.from_env()
        except ValueError as exc:
            raise PipelineStageError(
                stage="config",
                detail=str(exc),
                hint="Fix the `STORIA_*` environment variables and rerun.",
            ) from exc

    changes: dict[str, object] = {
        key: value for key, value in overrides.items() if value is not None
    }
    if store_dir is not None:
        changes["store_dir"] = store_dir
    if catalog is not None:
        changes["catalog_path"] = catalog
    resolved = replace(loaded_config, **changes)
    try:
        resolved.validate()
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=str(exc),
            hint="Fix the CLI option values and rerun.",
        ) from exc
    return resolved


def _apply_runtime_sources(
    base_config: StoriaConfig,
    runtime_cli_values: dict[str, str],
    runtime_secure_values: dict[str, str],
) -> StoriaConfig:
    """Attach runtime source mappings while keeping base config defaults intact."""

    return replace(
        base_config,
        runtime_sources=RuntimeConfigSources(
            cli=runtime_cli_values,
            secure=runtime_secure_values,
            env=os.environ,
        ),
    )


@app.command("import-pages")
def import_pages_command(
    book_id: Annotated[str, typer.Argument(help="Identifier for the new book.")],
    pages_file: Annotated[
        Path,
        typer.Argument(help="JSON page list or form-feed separated text file."),
    ],
    title: Annotated[
        str | None, typer.Option("--title", help="Book title (defaults to the id).")
    ] = None,
    config_file: ConfigOption = None,
    store_dir: StoreDirOption = None,
) -> None:
    """Import extracted page texts as a new `pending` book."""

    try:
        config = _resolve_command_base_config(config_file, store_dir)
        repository = FileBookRepository(config.store_dir)
        record = import_book(
            repository,
            book_id=book_id,
            pages_path=pages_file,
            title=normalize_optional_string(title),
        )
    except Exception as exc:
        exit_with_command_error("import-pages", exc)

    typer.echo(f"Imported book: {record.book_id}")
    typer.echo(f"Title: {record.title}")
    typer.echo(f"Pages: {record.total_pages}")
    typer.echo(f"Status: {record.status.value}")


@app.command("run")
def run_command(
    book_id: Annotated[str, typer.Argument(help="Identifier of the book to process.")],
    config_file: ConfigOption = None,
    store_dir: StoreDirOption = None,
    catalog: CatalogOption = None,
    unit_mode: Annotated[
        str | None,
        typer.Option("--unit-mode", help="Classification unit: `page` or `spread`."),
    ] = None,
    match_policy: Annotated[
        str | None,
        typer.Option(
            "--match-policy",
            help="Confidence policy: `best_effort` (0.25) or `curated_only` (0.35).",
        ),
    ] = None,
    completion_status: Annotated[
        str | None,
        typer.Option(
            "--completion-status",
            help="Status on success: `ready`, `ready_for_review`, or `published`.",
        ),
    ] = None,
    max_concurrency: Annotated[
        int | None,
        typer.Option("--max-concurrency", help="Classification worker pool size."),
    ] = None,
    provider_classifier: Annotated[
        str | None,
        typer.Option("--provider-classifier", help="Classifier provider id."),
    ] = None,
    model_classify: Annotated[
        str | None,
        typer.Option("--model-classify", help="Classifier model id override."),
    ] = None,
    api_key: Annotated[
        str | None,
        typer.Option(
            "--api-key",
            help="Provider API key override. Prefer `--prompt-api-key` to avoid shell history.",
        ),
    ] = None,
    prompt_api_key: Annotated[
        bool,
        typer.Option(
            "--prompt-api-key",
            help="Prompt for API key with hidden input (never echoed).",
        ),
    ] = False,
    store_api_key: Annotated[
        bool,
        typer.Option(
            "--store-api-key/--no-store-api-key",
            help="Persist CLI-entered API key to secure credential storage.",
        ),
    ] = True,
    job_retries: Annotated[
        bool,
        typer.Option(
            "--job-retries/--no-job-retries",
            help="Re-run the whole job on retryable fatal failures.",
        ),
    ] = True,
) -> None:
    """Segment a book into scenes and match each scene to a soundscape."""

    try:
        base_config = _resolve_command_base_config(
            config_file,
            store_dir,
            catalog,
            unit_mode=unit_mode,
            match_policy=match_policy,
            completion_status=completion_status,
            max_concurrency=max_concurrency,
        )
        runtime_cli_values, runtime_secure_values = resolve_provider_runtime_sources(
            provider_classifier=provider_classifier,
            model_classify=model_classify,
            api_key=api_key,
            prompt_api_key=prompt_api_key,
            store_api_key=store_api_key,
        )
        config = _apply_runtime_sources(base_config, runtime_cli_values, runtime_secure_values)
        run_logger = RunLogger()
        progress = RunProgressIndicator(command_name="run")
        pipeline = SoundscapePipeline(
            repository=FileBookRepository(config.store_dir),
            catalog=create_catalog_loader(config.catalog_path, run_logger=run_logger),
            config=config,
            run_logger=run_logger,
            stage_progress_callback=progress.on_stage_start,
        )
        if job_retries:
            result = pipeline.run_with_job_retries(book_id)
        else:
            result = pipeline.run_pipeline(book_id)
    except Exception as exc:
        exit_with_command_error("run", exc)

    echo_job_report(result)
    exit_if_job_failed("run", result)


@app.command("status")
def status_command(
    book_id: Annotated[
        str | None,
        typer.Argument(help="Identifier of the book to inspect. Omit to list all books."),
    ] = None,
    config_file: ConfigOption = None,
    store_dir: StoreDirOption = None,
) -> None:
    """Show one book with its scenes, or list every stored book."""

    try:
        config = _resolve_command_base_config(config_file, store_dir)
        repository = FileBookRepository(config.store_dir)
        if book_id is None:
            records = repository.list_books()
        else:
            record = repository.get_book(book_id)
            if record is None:
                raise PipelineStageError(
                    stage="status",
                    detail=f"Book `{book_id}` was not found in `{config.store_dir}`.",
                    hint="Import pages first with `storia import-pages <book-id> <pages-file>`.",
                )
            scenes = repository.list_scenes(book_id)
    except Exception as exc:
        exit_with_command_error("status", exc)

    if book_id is None:
        echo_book_list(records)
        return
    echo_book_status(record, scenes)


@app.command("approve")
def approve_command(
    book_id: Annotated[str, typer.Argument(help="Identifier of the book to publish.")],
    config_file: ConfigOption = None,
    store_dir: StoreDirOption = None,
) -> None:
    """Publish a book waiting in `ready_for_review`."""

    try:
        config = _resolve_command_base_config(config_file, store_dir)
        pipeline = SoundscapePipeline(
            repository=FileBookRepository(config.store_dir),
            catalog=create_catalog_loader(None),
            config=config,
            run_logger=RunLogger(),
        )
        record = pipeline.approve(book_id)
    except Exception as exc:
        exit_with_command_error("approve", exc)

    typer.echo(f"Book: {record.book_id}")
    typer.echo(f"Status: {record.status.value}")


@app.command("match")
def match_command(
    setting: Annotated[str, typer.Option("--setting", help="Scene setting, e.g. `forest`.")],
    mood: Annotated[str | None, typer.Option("--mood", help="Scene mood.")] = None,
    element: Annotated[
        list[str] | None,
        typer.Option("--element", help="Dominant sound element; repeat for several."),
    ] = None,
    activity_level: Annotated[
        str | None, typer.Option("--activity-level", help="Scene activity level.")
    ] = None,
    config_file: ConfigOption = None,
    catalog: CatalogOption = None,
    match_policy: Annotated[
        str | None,
        typer.Option(
            "--match-policy",
            help="Confidence policy: `best_effort` (0.25) or `curated_only` (0.35).",
        ),
    ] = None,
) -> None:
    """Match one descriptor set against the curated catalog."""

    try:
        config = _resolve_command_base_config(
            config_file, None, catalog, match_policy=match_policy
        )
        if config.catalog_path is None:
            raise PipelineStageError(
                stage="catalog",
                detail="No curated catalog is configured.",
                hint="Pass `--catalog <dir-or-yaml>` or set `catalog_path` in config.",
            )
        descriptors = DescriptorSet.from_mapping(
            {
                "setting": setting,
                "mood": mood,
                "dominant_elements": ", ".join(element) if element else None,
                "activity_level": activity_level,
            }
        )
        loader = create_catalog_loader(config.catalog_path)
        result = SoundscapeMatcher(config.policy).match(
            descriptors, loader.list_curated_assets()
        )
    except Exception as exc:
        exit_with_command_error("match", exc)

    echo_match_result(result, config.policy.threshold)


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
    """Manage securely stored CLI credentials."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
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
                PipelineStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        removed = credential_store.clear_api_key()
        if removed:
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

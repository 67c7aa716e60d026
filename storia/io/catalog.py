"""Curated soundscape catalog loaders.

Responsibilities:
- List curated ambient audio assets grouped by category.
- Support a category-per-folder directory layout and a YAML manifest.
- Skip unreadable category folders instead of failing the whole listing.

Key types:
- `CatalogLoader`: protocol consumed by the pipeline orchestrator.
- `DirectoryCatalog`, `YamlCatalog`, `StaticCatalog`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol

import yaml

from ..models.datatypes import SoundscapeAsset
from ..telemetry.logger import RunLogger

AUDIO_EXTENSIONS = frozenset({".mp3", ".wav", ".ogg", ".m4a", ".flac"})

Catalog = dict[str, list[SoundscapeAsset]]


class CatalogLoader(Protocol):
    """Read-only source of curated soundscape assets."""

    def list_curated_assets(self) -> Catalog:
        """Return assets grouped by category; may be empty."""


class StaticCatalog:
    """Catalog over an in-memory mapping of category to filenames."""

    def __init__(self, entries: Mapping[str, Sequence[str]]) -> None:
        """Store category/filename entries."""

        self._entries = {category: list(names) for category, names in entries.items()}

    def list_curated_assets(self) -> Catalog:
        """Return assets for every category with at least one file."""

        return {
            category: [SoundscapeAsset(name=name, category=category) for name in names]
            for category, names in self._entries.items()
            if names
        }


class DirectoryCatalog:
    """Catalog where each subdirectory of `root` is a category of audio files."""

    def __init__(self, root: Path, run_logger: RunLogger | None = None) -> None:
        """Initialize catalog root and optional logger."""

        self.root = root
        self._run_logger = run_logger

    def list_curated_assets(self) -> Catalog:
        """List audio files per category folder, sorted by filename."""

        if not self.root.is_dir():
            raise FileNotFoundError(f"Catalog directory not found: `{self.root}`.")

        catalog: Catalog = {}
        for folder in sorted(self.root.iterdir(), key=lambda path: path.name):
            if not folder.is_dir():
                continue
            try:
                files = sorted(
                    child
                    for child in folder.iterdir()
                    if child.is_file() and child.suffix.lower() in AUDIO_EXTENSIONS
                )
            except OSError as exc:
                if self._run_logger is not None:
                    self._run_logger.log_event(
                        "map",
                        "catalog_folder_skipped",
                        level="WARNING",
                        category=folder.name,
                        error_type=type(exc).__name__,
                    )
                continue
            if files:
                catalog[folder.name] = [
                    SoundscapeAsset(name=path.name, category=folder.name, path=path)
                    for path in files
                ]
        return catalog


class YamlCatalog:
    """Catalog described by a YAML manifest.

    Accepted shapes are `{categories: {name: [file, ...]}}` or the bare
    `{name: [file, ...]}` mapping.
    """

    def __init__(self, path: Path) -> None:
        """Initialize the manifest path."""

        self.path = path

    def list_curated_assets(self) -> Catalog:
        """Parse the manifest and return assets grouped by category."""

        payload: Any = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        if payload is None:
            return {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"Catalog manifest `{self.path}` must contain a mapping.")
        categories = payload.get("categories", payload)
        if not isinstance(categories, Mapping):
            raise ValueError(f"Catalog manifest `{self.path}` field `categories` must be a mapping.")

        catalog: Catalog = {}
        for category, names in categories.items():
            if names is None:
                continue
            if not isinstance(names, list):
                raise ValueError(
                    f"Catalog manifest `{self.path}` category `{category}` must list filenames."
                )
            assets = [
                SoundscapeAsset(
                    name=str(name).strip(),
                    category=str(category),
                    path=self.path.parent / str(category) / str(name).strip(),
                )
                for name in names
                if str(name).strip()
            ]
            if assets:
                catalog[str(category)] = assets
        return catalog


def create_catalog_loader(path: Path | None, run_logger: RunLogger | None = None) -> CatalogLoader:
    """Choose a catalog loader for a directory, a YAML manifest, or nothing."""

    if path is None:
        return StaticCatalog({})
    if path.suffix.lower() in {".yaml", ".yml"}:
        return YamlCatalog(path)
    return DirectoryCatalog(path, run_logger=run_logger)

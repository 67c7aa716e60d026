"""Filesystem artifact storage.

Responsibilities:
- Provide deterministic JSON and text persistence under one root directory.
- Write atomically so concurrent readers never observe a partial file.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any


class ArtifactStore:
    """Filesystem-backed store for JSON and text artifacts."""

    def __init__(self, root: Path) -> None:
        """Initialize the store with a root directory."""

        self.root = root

    def _write_atomic(self, path: Path, content: str) -> Path:
        """Write `content` through a sibling temp file and rename it into place."""

        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_name(f".{path.name}.tmp")
        temp_path.write_text(content, encoding="utf-8")
        os.replace(temp_path, path)
        return path

    def save_text(self, relative_path: Path, content: str) -> Path:
        """Save text content and return the final path."""

        return self._write_atomic(self.root / relative_path, content)

    def save_json(self, relative_path: Path, payload: Any) -> Path:
        """Save a JSON-serializable payload and return the final path."""

        return self._write_atomic(
            self.root / relative_path,
            json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True),
        )

    def load_text(self, relative_path: Path) -> str:
        """Load text content from the store."""

        return (self.root / relative_path).read_text(encoding="utf-8")

    def load_json(self, relative_path: Path, default: Any = None) -> Any:
        """Load a JSON payload, returning `default` when the file is absent."""

        path = self.root / relative_path
        if not path.exists():
            return default
        return json.loads(path.read_text(encoding="utf-8"))

    def exists(self, relative_path: Path) -> bool:
        """Return whether the given artifact exists."""

        return (self.root / relative_path).exists()

    def list_directories(self, relative_path: Path) -> list[str]:
        """Return sorted child directory names under `relative_path`."""

        path = self.root / relative_path
        if not path.is_dir():
            return []
        return sorted(child.name for child in path.iterdir() if child.is_dir())

"""Book persistence collaborators.

Responsibilities:
- Define the repository contract the orchestrator writes through.
- Provide an in-memory implementation for tests and embedding.
- Provide a JSON-file implementation backed by `ArtifactStore`.

Key types:
- `BookRepository`: persistence protocol for books, pages, scenes, and assignments.
- `InMemoryBookRepository`: dictionary-backed repository.
- `FileBookRepository`: `books/<book_id>/*.json` repository.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from threading import Lock
from typing import Protocol

from ..models.datatypes import (
    BookRecord,
    Page,
    ProcessingError,
    Scene,
    SoundscapeAssignment,
)
from ..errors import ValidationError
from ..models.status import BookStatus
from .storage import ArtifactStore


class BookRepository(Protocol):
    """Persistence operations used by the pipeline and CLI."""

    def create_book(self, book_id: str, title: str, pages: Sequence[Page]) -> BookRecord:
        """Create or replace a book with its extracted pages, status `pending`."""

    def get_book(self, book_id: str) -> BookRecord | None:
        """Return the book record, or `None` when it does not exist."""

    def list_books(self) -> list[BookRecord]:
        """Return every stored book ordered by id."""

    def list_pages(self, book_id: str) -> list[Page]:
        """Return the book's pages ordered by page number."""

    def update_status(
        self,
        book_id: str,
        status: BookStatus,
        errors: Sequence[ProcessingError] = (),
    ) -> BookRecord:
        """Persist status and the accumulated error list."""

    def update_cost(self, book_id: str, cost_usd: float) -> BookRecord:
        """Persist the estimated processing cost of the latest run."""

    def replace_scenes(self, book_id: str, scenes: Sequence[Scene]) -> None:
        """Replace all scenes and assignments of a book."""

    def list_scenes(self, book_id: str) -> list[Scene]:
        """Return the book's scenes ordered by scene number."""

    def save_assignment(self, book_id: str, assignment: SoundscapeAssignment) -> None:
        """Store one scene's soundscape assignment, replacing an earlier one."""

    def list_assignments(self, book_id: str) -> list[SoundscapeAssignment]:
        """Return the book's assignments ordered by scene id."""

    def keep_alive(self) -> None:
        """Issue a lightweight no-op to keep the backing connection warm."""


def _require(record: BookRecord | None, book_id: str) -> BookRecord:
    """Return `record` or raise `KeyError` for an unknown book."""

    if record is None:
        raise KeyError(f"Unknown book `{book_id}`.")
    return record


def _attach_assignment(scenes: list[Scene], assignment: SoundscapeAssignment) -> list[Scene]:
    """Return scenes with the assignment's asset set on the matching scene."""

    return [
        scene.with_soundscape(assignment.asset_name)
        if scene.scene_id == assignment.scene_id
        else scene
        for scene in scenes
    ]


class InMemoryBookRepository:
    """Dictionary-backed repository; all methods are guarded by one lock."""

    def __init__(self) -> None:
        """Initialize empty storage."""

        self._books: dict[str, BookRecord] = {}
        self._pages: dict[str, list[Page]] = {}
        self._scenes: dict[str, list[Scene]] = {}
        self._assignments: dict[str, dict[str, SoundscapeAssignment]] = {}
        self._lock = Lock()
        self.keep_alive_count = 0

    def create_book(self, book_id: str, title: str, pages: Sequence[Page]) -> BookRecord:
        """Create or replace a book with its pages."""

        ordered = sorted(pages, key=lambda page: page.page_number)
        record = BookRecord(book_id=book_id, title=title, total_pages=len(ordered))
        with self._lock:
            self._books[book_id] = record
            self._pages[book_id] = ordered
            self._scenes[book_id] = []
            self._assignments[book_id] = {}
        return record

    def get_book(self, book_id: str) -> BookRecord | None:
        """Return the book record if present."""

        with self._lock:
            return self._books.get(book_id)

    def list_books(self) -> list[BookRecord]:
        """Return books ordered by id."""

        with self._lock:
            return [self._books[book_id] for book_id in sorted(self._books)]

    def list_pages(self, book_id: str) -> list[Page]:
        """Return pages ordered by page number."""

        with self._lock:
            return list(self._pages.get(book_id, []))

    def update_status(
        self,
        book_id: str,
        status: BookStatus,
        errors: Sequence[ProcessingError] = (),
    ) -> BookRecord:
        """Persist status and errors on the book record."""

        with self._lock:
            record = _require(self._books.get(book_id), book_id)
            updated = replace(record, status=status, processing_errors=tuple(errors))
            self._books[book_id] = updated
            return updated

    def update_cost(self, book_id: str, cost_usd: float) -> BookRecord:
        """Persist the cost estimate on the book record."""

        with self._lock:
            record = _require(self._books.get(book_id), book_id)
            updated = replace(record, processing_cost_usd=cost_usd)
            self._books[book_id] = updated
            return updated

    def replace_scenes(self, book_id: str, scenes: Sequence[Scene]) -> None:
        """Replace scenes and drop stale assignments."""

        with self._lock:
            _require(self._books.get(book_id), book_id)
            self._scenes[book_id] = list(scenes)
            self._assignments[book_id] = {}

    def list_scenes(self, book_id: str) -> list[Scene]:
        """Return scenes ordered by scene number."""

        with self._lock:
            return list(self._scenes.get(book_id, []))

    def save_assignment(self, book_id: str, assignment: SoundscapeAssignment) -> None:
        """Store an assignment and attach it to its scene."""

        with self._lock:
            _require(self._books.get(book_id), book_id)
            self._assignments.setdefault(book_id, {})[assignment.scene_id] = assignment
            self._scenes[book_id] = _attach_assignment(self._scenes.get(book_id, []), assignment)

    def list_assignments(self, book_id: str) -> list[SoundscapeAssignment]:
        """Return assignments ordered by scene id."""

        with self._lock:
            stored = self._assignments.get(book_id, {})
            return [stored[scene_id] for scene_id in sorted(stored)]

    def keep_alive(self) -> None:
        """Count keep-alive calls; nothing to refresh in memory."""

        with self._lock:
            self.keep_alive_count += 1


class FileBookRepository:
    """JSON-file repository rooted at a store directory.

    Layout per book: `books/<book_id>/book.json`, `pages.json`, `scenes.json`,
    and `assignments.json`.
    """

    def __init__(self, root: Path) -> None:
        """Initialize the repository under `root`."""

        self.store = ArtifactStore(root)
        self._lock = Lock()

    @staticmethod
    def _book_dir(book_id: str) -> Path:
        """Relative directory holding one book's files.

        Ids must name a single directory under `books/`; separators and `..` are rejected.
        """

        if not book_id or book_id in {".", ".."} or any(sep in book_id for sep in ("/", "\\")):
            raise ValidationError(f"Invalid book id `{book_id}`.")
        return Path("books") / book_id

    def _save_record(self, record: BookRecord) -> None:
        """Write the book record file."""

        self.store.save_json(
            self._book_dir(record.book_id) / "book.json",
            {
                "book_id": record.book_id,
                "title": record.title,
                "status": record.status.value,
                "total_pages": record.total_pages,
                "processing_errors": [error.as_payload() for error in record.processing_errors],
                "processing_cost_usd": round(record.processing_cost_usd, 6),
            },
        )

    def _load_record(self, book_id: str) -> BookRecord | None:
        """Read the book record file if present."""

        payload = self.store.load_json(self._book_dir(book_id) / "book.json")
        if payload is None:
            return None
        return BookRecord(
            book_id=str(payload["book_id"]),
            title=str(payload.get("title", book_id)),
            status=BookStatus(payload.get("status", BookStatus.PENDING.value)),
            total_pages=int(payload.get("total_pages", 0)),
            processing_errors=tuple(
                ProcessingError.from_payload(item)
                for item in payload.get("processing_errors", [])
            ),
            processing_cost_usd=float(payload.get("processing_cost_usd", 0.0)),
        )

    def _save_scenes(self, book_id: str, scenes: Sequence[Scene]) -> None:
        """Write the scene list file."""

        self.store.save_json(
            self._book_dir(book_id) / "scenes.json",
            [scene.as_payload() for scene in scenes],
        )

    def _load_assignments(self, book_id: str) -> dict[str, SoundscapeAssignment]:
        """Read assignments keyed by scene id."""

        payload = self.store.load_json(self._book_dir(book_id) / "assignments.json", default=[])
        return {
            str(item["scene_id"]): SoundscapeAssignment(
                scene_id=str(item["scene_id"]),
                asset_name=str(item["asset_name"]),
                category=str(item["category"]),
                match_score=float(item["match_score"]),
            )
            for item in payload
        }

    def _save_assignments(self, book_id: str, assignments: dict[str, SoundscapeAssignment]) -> None:
        """Write assignments ordered by scene id."""

        self.store.save_json(
            self._book_dir(book_id) / "assignments.json",
            [assignments[scene_id].as_payload() for scene_id in sorted(assignments)],
        )

    def create_book(self, book_id: str, title: str, pages: Sequence[Page]) -> BookRecord:
        """Create or replace a book with its pages."""

        ordered = sorted(pages, key=lambda page: page.page_number)
        record = BookRecord(book_id=book_id, title=title, total_pages=len(ordered))
        with self._lock:
            self.store.save_json(
                self._book_dir(book_id) / "pages.json",
                [
                    {"page_number": page.page_number, "text_content": page.text_content}
                    for page in ordered
                ],
            )
            self._save_scenes(book_id, [])
            self._save_assignments(book_id, {})
            self._save_record(record)
        return record

    def get_book(self, book_id: str) -> BookRecord | None:
        """Return the book record if present."""

        with self._lock:
            return self._load_record(book_id)

    def list_books(self) -> list[BookRecord]:
        """Return books ordered by id."""

        with self._lock:
            records = [
                self._load_record(book_id)
                for book_id in self.store.list_directories(Path("books"))
            ]
        return [record for record in records if record is not None]

    def list_pages(self, book_id: str) -> list[Page]:
        """Return pages ordered by page number."""

        with self._lock:
            payload = self.store.load_json(self._book_dir(book_id) / "pages.json", default=[])
        pages = [
            Page(page_number=int(item["page_number"]), text_content=str(item["text_content"]))
            for item in payload
        ]
        return sorted(pages, key=lambda page: page.page_number)

    def update_status(
        self,
        book_id: str,
        status: BookStatus,
        errors: Sequence[ProcessingError] = (),
    ) -> BookRecord:
        """Persist status and errors on the book record."""

        with self._lock:
            record = _require(self._load_record(book_id), book_id)
            updated = replace(record, status=status, processing_errors=tuple(errors))
            self._save_record(updated)
            return updated

    def update_cost(self, book_id: str, cost_usd: float) -> BookRecord:
        """Persist the cost estimate in the book record file."""

        with self._lock:
            record = _require(self._load_record(book_id), book_id)
            updated = replace(record, processing_cost_usd=cost_usd)
            self._save_record(updated)
            return updated

    def replace_scenes(self, book_id: str, scenes: Sequence[Scene]) -> None:
        """Replace scenes and drop stale assignments."""

        with self._lock:
            _require(self._load_record(book_id), book_id)
            self._save_scenes(book_id, scenes)
            self._save_assignments(book_id, {})

    def list_scenes(self, book_id: str) -> list[Scene]:
        """Return scenes ordered by scene number."""

        with self._lock:
            payload = self.store.load_json(self._book_dir(book_id) / "scenes.json", default=[])
        scenes = [Scene.from_payload(book_id, item) for item in payload]
        return sorted(scenes, key=lambda scene: scene.scene_number)

    def save_assignment(self, book_id: str, assignment: SoundscapeAssignment) -> None:
        """Store an assignment and attach it to its scene."""

        with self._lock:
            _require(self._load_record(book_id), book_id)
            assignments = self._load_assignments(book_id)
            assignments[assignment.scene_id] = assignment
            self._save_assignments(book_id, assignments)
            payload = self.store.load_json(self._book_dir(book_id) / "scenes.json", default=[])
            scenes = [Scene.from_payload(book_id, item) for item in payload]
            self._save_scenes(book_id, _attach_assignment(scenes, assignment))

    def list_assignments(self, book_id: str) -> list[SoundscapeAssignment]:
        """Return assignments ordered by scene id."""

        with self._lock:
            assignments = self._load_assignments(book_id)
        return [assignments[scene_id] for scene_id in sorted(assignments)]

    def keep_alive(self) -> None:
        """Touch the store root so a missing or unmounted directory surfaces early."""

        self.store.root.mkdir(parents=True, exist_ok=True)

"""Unit tests for the in-memory and JSON-file book repositories."""

from __future__ import annotations

from pathlib import Path

import pytest

from storia.errors import ValidationError
from storia.io.repository import BookRepository, FileBookRepository, InMemoryBookRepository
from storia.models.datatypes import (
    DescriptorSet,
    Page,
    ProcessingError,
    Scene,
    SoundscapeAssignment,
)
from storia.models.status import BookStatus


@pytest.fixture(params=["memory", "file"])
def repository(request: pytest.FixtureRequest, tmp_path: Path) -> BookRepository:
    """Provide each repository implementation in turn."""

    if request.param == "memory":
        return InMemoryBookRepository()
    return FileBookRepository(tmp_path / "store")


def _scene(number: int, start: int, end: int, setting: str) -> Scene:
    """Build a scene for book `b1`."""

    return Scene(
        scene_number=number,
        start_page=start,
        end_page=end,
        descriptors=DescriptorSet(setting=setting, mood="calm"),
        book_id="b1",
    )


def test_create_and_read_book(repository: BookRepository) -> None:
    """Created books should start pending with pages ordered by number."""

    pages = [Page(page_number=2, text_content="two"), Page(page_number=1, text_content="one")]

    created = repository.create_book("b1", "Moss Path", pages)

    assert created.status is BookStatus.PENDING
    assert repository.get_book("b1") == created
    assert [page.page_number for page in repository.list_pages("b1")] == [1, 2]
    assert repository.get_book("missing") is None
    assert [record.book_id for record in repository.list_books()] == ["b1"]


def test_update_status_persists_errors(repository: BookRepository) -> None:
    """Status updates should store the accumulated error list."""

    repository.create_book("b1", "Moss Path", [Page(page_number=1, text_content="one")])
    error = ProcessingError(
        timestamp="2026-01-01T00:00:00+00:00",
        unit_index=0,
        page_numbers=(1,),
        error_kind="timeout",
        message="Unit 0 exceeded 60s deadline.",
    )

    repository.update_status("b1", BookStatus.EXTRACTING, [error])

    record = repository.get_book("b1")
    assert record is not None
    assert record.status is BookStatus.EXTRACTING
    assert record.processing_errors == (error,)


def test_update_status_of_unknown_book_raises(repository: BookRepository) -> None:
    """Writes for an unknown book should raise `KeyError`."""

    with pytest.raises(KeyError):
        repository.update_status("ghost", BookStatus.FAILED)


def test_assignments_attach_to_scenes_and_reset_on_replace(repository: BookRepository) -> None:
    """Assignments should mark their scene and be dropped when scenes are replaced."""

    pages = [Page(page_number=number, text_content="x") for number in (1, 2, 3)]
    repository.create_book("b1", "Moss Path", pages)
    repository.replace_scenes("b1", [_scene(1, 1, 2, "forest"), _scene(2, 3, 3, "cave")])
    assignment = SoundscapeAssignment(
        scene_id="b1-scene-0002",
        asset_name="Echoing_Cave.mp3",
        category="nature",
        match_score=0.65,
    )

    repository.save_assignment("b1", assignment)

    scenes = repository.list_scenes("b1")
    assert [scene.soundscape_id for scene in scenes] == [None, "Echoing_Cave.mp3"]
    assert scenes[1].descriptors.setting == "cave"
    assert repository.list_assignments("b1") == [assignment]

    repository.replace_scenes("b1", [_scene(1, 1, 3, "forest")])

    assert repository.list_assignments("b1") == []
    assert [scene.soundscape_id for scene in repository.list_scenes("b1")] == [None]


def test_update_cost_stores_estimate(repository: BookRepository) -> None:
    """The cost estimate should be stored on the record without touching its status."""

    repository.create_book("b1", "Moss Path", [Page(page_number=1, text_content="one")])

    updated = repository.update_cost("b1", 0.00018)

    record = repository.get_book("b1")
    assert record == updated
    assert record is not None
    assert record.processing_cost_usd == pytest.approx(0.00018)
    assert record.status is BookStatus.PENDING
    with pytest.raises(KeyError):
        repository.update_cost("ghost", 0.1)


def test_keep_alive_is_safe_to_call(repository: BookRepository) -> None:
    """Keep-alive should succeed on a fresh repository."""

    repository.keep_alive()


def test_file_repository_survives_reopen(tmp_path: Path) -> None:
    """A new repository over the same directory should read the stored book."""

    FileBookRepository(tmp_path).create_book("b1", "Moss Path", [Page(1, "one")])
    FileBookRepository(tmp_path).update_status("b1", BookStatus.EXTRACTING)

    record = FileBookRepository(tmp_path).get_book("b1")

    assert record is not None
    assert record.title == "Moss Path"
    assert record.status is BookStatus.EXTRACTING
    assert (tmp_path / "books" / "b1" / "book.json").exists()
    assert record.processing_cost_usd == 0.0


def test_file_repository_reads_cost_after_reopen(tmp_path: Path) -> None:
    """The stored cost estimate should round-trip through `book.json`."""

    FileBookRepository(tmp_path).create_book("b1", "Moss Path", [Page(1, "one")])
    FileBookRepository(tmp_path).update_cost("b1", 0.009)

    record = FileBookRepository(tmp_path).get_book("b1")

    assert record is not None
    assert record.processing_cost_usd == pytest.approx(0.009)


@pytest.mark.parametrize("book_id", ["", ".", "..", "../escape", "nested/book", "win\\book"])
def test_file_repository_rejects_unsafe_book_ids(tmp_path: Path, book_id: str) -> None:
    """Ids that would leave `books/` or nest directories should be rejected."""

    repository = FileBookRepository(tmp_path / "store")

    with pytest.raises(ValidationError, match="Invalid book id"):
        repository.create_book(book_id, "Escape", [Page(1, "one")])
    assert not (tmp_path / "escape").exists()
    assert repository.list_books() == []

"""Unit tests for curated catalog loaders and page import."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from storia.errors import ValidationError
from storia.io import (
    DirectoryCatalog,
    InMemoryBookRepository,
    StaticCatalog,
    YamlCatalog,
    create_catalog_loader,
    import_book,
    load_pages,
)


def test_directory_catalog_lists_audio_files_per_category(tmp_path: Path) -> None:
    """Each subfolder should become a category of sorted audio files."""

    (tmp_path / "nature").mkdir()
    (tmp_path / "nature" / "Forest_Birds.mp3").write_bytes(b"")
    (tmp_path / "nature" / "Echoing_Cave.wav").write_bytes(b"")
    (tmp_path / "nature" / "notes.txt").write_text("not audio", encoding="utf-8")
    (tmp_path / "empty").mkdir()
    (tmp_path / "README.md").write_text("catalog", encoding="utf-8")

    catalog = DirectoryCatalog(tmp_path).list_curated_assets()

    assert list(catalog) == ["nature"]
    assert [asset.name for asset in catalog["nature"]] == ["Echoing_Cave.wav", "Forest_Birds.mp3"]
    assert catalog["nature"][0].path == tmp_path / "nature" / "Echoing_Cave.wav"


def test_directory_catalog_requires_existing_root(tmp_path: Path) -> None:
    """A missing catalog directory should raise `FileNotFoundError`."""

    with pytest.raises(FileNotFoundError):
        DirectoryCatalog(tmp_path / "missing").list_curated_assets()


def test_yaml_catalog_accepts_categories_mapping(tmp_path: Path) -> None:
    """YAML manifests should accept a `categories` mapping and skip blank entries."""

    manifest = tmp_path / "catalog.yaml"
    manifest.write_text(
        "categories:\n"
        "  nature:\n"
        "    - Echoing_Cave.mp3\n"
        "    - ''\n"
        "  weather: []\n",
        encoding="utf-8",
    )

    catalog = create_catalog_loader(manifest).list_curated_assets()

    assert isinstance(create_catalog_loader(manifest), YamlCatalog)
    assert list(catalog) == ["nature"]
    assert catalog["nature"][0].name == "Echoing_Cave.mp3"


def test_yaml_catalog_rejects_non_list_category(tmp_path: Path) -> None:
    """A category that is not a filename list should be rejected."""

    manifest = tmp_path / "catalog.yml"
    manifest.write_text("nature: Echoing_Cave.mp3\n", encoding="utf-8")

    with pytest.raises(ValueError, match="must list filenames"):
        YamlCatalog(manifest).list_curated_assets()


def test_catalog_loader_without_path_is_empty() -> None:
    """No configured catalog should behave as an empty catalog."""

    loader = create_catalog_loader(None)

    assert isinstance(loader, StaticCatalog)
    assert loader.list_curated_assets() == {}


def test_load_pages_from_json_objects_and_strings(tmp_path: Path) -> None:
    """JSON page lists should accept strings, objects, and a `pages` wrapper."""

    strings_path = tmp_path / "strings.json"
    strings_path.write_text(json.dumps(["first", "second"]), encoding="utf-8")
    objects_path = tmp_path / "objects.json"
    objects_path.write_text(
        json.dumps({"pages": [{"pageNumber": 2, "text": "b"}, {"page_number": 1, "text": "a"}]}),
        encoding="utf-8",
    )

    assert [page.text_content for page in load_pages(strings_path)] == ["first", "second"]
    assert [(page.page_number, page.text_content) for page in load_pages(objects_path)] == [
        (1, "a"),
        (2, "b"),
    ]


def test_load_pages_from_form_feed_text(tmp_path: Path) -> None:
    """Plain text should split on form feeds, keeping blank image-only pages."""

    text_path = tmp_path / "book.txt"
    text_path.write_text("Once upon a time.\f\fThe end.\f", encoding="utf-8")

    pages = load_pages(text_path)

    assert [(page.page_number, page.text_content) for page in pages] == [
        (1, "Once upon a time."),
        (2, ""),
        (3, "The end."),
    ]


def test_load_pages_rejects_invalid_json(tmp_path: Path) -> None:
    """Broken JSON and bad page numbers should raise `ValidationError`."""

    broken = tmp_path / "broken.json"
    broken.write_text("[", encoding="utf-8")
    bad_number = tmp_path / "bad.json"
    bad_number.write_text(json.dumps([{"page_number": "one", "text": "a"}]), encoding="utf-8")

    with pytest.raises(ValidationError, match="not valid JSON"):
        load_pages(broken)
    with pytest.raises(ValidationError, match="invalid page number"):
        load_pages(bad_number)


def test_import_book_creates_pending_book(tmp_path: Path) -> None:
    """Importing pages should create a pending book titled by id by default."""

    pages_path = tmp_path / "pages.json"
    pages_path.write_text(json.dumps(["a", "b", "c"]), encoding="utf-8")
    empty_path = tmp_path / "empty.json"
    empty_path.write_text("[]", encoding="utf-8")
    repository = InMemoryBookRepository()

    record = import_book(repository, book_id="b1", pages_path=pages_path)

    assert record.title == "b1"
    assert record.total_pages == 3
    assert record.status.value == "pending"
    with pytest.raises(ValidationError, match="contains no pages"):
        import_book(repository, book_id="b2", pages_path=empty_path)

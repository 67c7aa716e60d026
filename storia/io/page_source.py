"""Import already-extracted page text into a book repository.

PDF parsing happens upstream; this module accepts its text output as either a
JSON page list or a plain-text file with form-feed (`\\f`) page breaks.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..errors import ValidationError
from ..models.datatypes import BookRecord, Page
from .repository import BookRepository

_FORM_FEED = "\f"


def _page_from_item(index: int, item: Any, source: Path) -> Page:
    """Convert one JSON list item into a page."""

    if isinstance(item, str):
        return Page(page_number=index + 1, text_content=item)
    if isinstance(item, dict):
        number = item.get("page_number", item.get("pageNumber", index + 1))
        text = item.get("text_content", item.get("textContent", item.get("text", "")))
        try:
            page_number = int(number)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                f"Page entry {index} in `{source}` has invalid page number `{number}`."
            ) from exc
        return Page(page_number=page_number, text_content=str(text or ""))
    raise ValidationError(f"Page entry {index} in `{source}` must be a string or an object.")


def load_pages(path: Path) -> list[Page]:
    """Read pages from a `.json` page list or a form-feed separated text file."""

    raw_text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        try:
            payload = json.loads(raw_text)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Pages file `{path}` is not valid JSON: {exc.msg}.") from exc
        if isinstance(payload, dict):
            payload = payload.get("pages", [])
        if not isinstance(payload, list):
            raise ValidationError(f"Pages file `{path}` must contain a list of pages.")
        pages = [_page_from_item(index, item, path) for index, item in enumerate(payload)]
    else:
        chunks = raw_text.split(_FORM_FEED)
        if chunks and not chunks[-1].strip():
            chunks = chunks[:-1]
        pages = [
            Page(page_number=index + 1, text_content=chunk.strip())
            for index, chunk in enumerate(chunks)
        ]
    return sorted(pages, key=lambda page: page.page_number)


def import_book(
    repository: BookRepository,
    *,
    book_id: str,
    pages_path: Path,
    title: str | None = None,
) -> BookRecord:
    """Load pages from `pages_path` and store them as a new `pending` book."""

    pages = load_pages(pages_path)
    if not pages:
        raise ValidationError(f"Pages file `{pages_path}` contains no pages.")
    return repository.create_book(book_id, title or book_id, pages)

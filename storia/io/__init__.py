"""Persistence, catalog, and page import collaborators."""

from .catalog import (
    CatalogLoader,
    DirectoryCatalog,
    StaticCatalog,
    YamlCatalog,
    create_catalog_loader,
)
from .page_source import import_book, load_pages
from .repository import BookRepository, FileBookRepository, InMemoryBookRepository
from .storage import ArtifactStore

__all__ = [
    "ArtifactStore",
    "BookRepository",
    "CatalogLoader",
    "DirectoryCatalog",
    "FileBookRepository",
    "InMemoryBookRepository",
    "StaticCatalog",
    "YamlCatalog",
    "create_catalog_loader",
    "import_book",
    "load_pages",
]

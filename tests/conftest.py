"""Shared pytest fixtures for the full Storia test suite."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from threading import Lock

import pytest

from storia.errors import ClassificationError
from storia.io.catalog import StaticCatalog
from storia.models.datatypes import ClassificationUnit, DescriptorSet, Page

FOREST_CALM = DescriptorSet(
    mood="calm",
    setting="forest",
    time_of_day="morning",
    weather="clear",
    activity_level="calm",
    atmosphere="serene",
    dominant_elements="birds, wind",
    scene_type="description",
)


class ScriptedClassifier:
    """Classifier double returning fixed descriptors and failing chosen units."""

    def __init__(
        self,
        descriptors_by_page: Mapping[int, DescriptorSet] | None = None,
        failing_units: Iterable[int] = (),
        default: DescriptorSet = FOREST_CALM,
    ) -> None:
        """Store per-page descriptors and the unit indexes that must fail."""

        self.descriptors_by_page = dict(descriptors_by_page or {})
        self.failing_units = frozenset(failing_units)
        self.default = default
        self.calls: list[ClassificationUnit] = []
        self._lock = Lock()

    def classify_unit(self, unit: ClassificationUnit) -> DescriptorSet:
        """Record the call and return scripted descriptors for the first page."""

        with self._lock:
            self.calls.append(unit)
        if unit.unit_index in self.failing_units:
            raise ClassificationError(
                f"scripted failure for unit {unit.unit_index}",
                failure_kind="http_error",
                attempts=3,
            )
        return self.descriptors_by_page.get(unit.page_numbers[0], self.default)


def _page_text(page_number: int) -> str:
    """Return deterministic page prose long enough to be classified."""

    return (
        f"Page {page_number}. The children walked along the mossy path, "
        "listening to the birds singing high above the old oak trees."
    )


@pytest.fixture
def make_pages() -> Callable[..., list[Page]]:
    """Build contiguous pages; numbers in `image_only` get no text."""

    def _make(count: int, image_only: Iterable[int] = ()) -> list[Page]:
        blank = set(image_only)
        return [
            Page(
                page_number=number,
                text_content="" if number in blank else _page_text(number),
            )
            for number in range(1, count + 1)
        ]

    return _make


@pytest.fixture
def scripted_classifier() -> Callable[..., ScriptedClassifier]:
    """Provide a factory for scripted classifier doubles."""

    return ScriptedClassifier


@pytest.fixture
def sample_catalog() -> StaticCatalog:
    """Provide a small curated catalog with forest, cave, and weather assets."""

    return StaticCatalog(
        {
            "nature": ["Echoing_Cave.mp3", "Forest_Birds.mp3"],
            "weather": ["Heavy_Rain.wav"],
        }
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Collect requested sleep durations instead of sleeping."""

    return []


@pytest.fixture
def record_sleep(sleeps: list[float]) -> Callable[[float], None]:
    """Provide a sleeper that records durations into `sleeps`."""

    return sleeps.append

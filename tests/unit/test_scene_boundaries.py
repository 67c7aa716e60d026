"""Unit tests for scene boundary detection and scene construction."""

from __future__ import annotations

import pytest

from storia.errors import InvalidBoundaryError
from storia.models.datatypes import DescriptorSet
from storia.scenes import (
    build_scenes,
    detect_boundaries,
    normalize_label,
    normalize_mood,
    validate_boundaries,
)


def _descriptors(**values: str) -> DescriptorSet:
    """Build descriptors from snake_case, camelCase, or `intensity` keys."""

    return DescriptorSet.from_mapping(values)


def test_one_level_activity_jump_keeps_scene() -> None:
    """Calm to moderate in the same forest and mood should not open a scene."""

    pages = [
        _descriptors(setting="forest", mood="calm", activityLevel="low"),
        _descriptors(setting="forest", mood="calm", activityLevel="moderate"),
    ]

    assert detect_boundaries(pages) == [1]


def test_large_intensity_jump_opens_scene() -> None:
    """A jump of two or more activity levels should open a new scene."""

    pages = [
        _descriptors(setting="forest", mood="calm", intensity="low"),
        _descriptors(setting="forest", mood="calm", intensity="high"),
    ]

    assert detect_boundaries(pages) == [1, 2]


@pytest.mark.parametrize(
    ("previous", "current"),
    [("medium", "high"), ("low", "medium"), ("high", "medium")],
)
def test_one_step_on_intensity_scale_keeps_scene(previous: str, current: str) -> None:
    """Adjacent `low/medium/high` intensities are one level apart and should not split."""

    pages = [
        _descriptors(setting="forest", mood="calm", intensity=previous),
        _descriptors(setting="forest", mood="calm", intensity=current),
    ]

    assert detect_boundaries(pages) == [1]


def test_mixed_vocabularies_use_activity_scale() -> None:
    """`medium` maps to `moderate` when compared against a five-level label."""

    pages = [
        _descriptors(setting="forest", mood="calm", intensity="medium"),
        _descriptors(setting="forest", mood="calm", activity_level="active"),
        _descriptors(setting="forest", mood="calm", activity_level="high"),
    ]

    assert detect_boundaries(pages) == [1, 3]


def test_setting_change_always_opens_scene() -> None:
    """A setting change should split even when mood and activity are equal."""

    pages = [
        _descriptors(setting="forest", mood="calm", activity_level="calm"),
        _descriptors(setting="castle", mood="calm", activity_level="calm"),
        _descriptors(setting="castle", mood="calm", activity_level="calm"),
        _descriptors(setting="forest", mood="calm", activity_level="calm"),
    ]

    assert detect_boundaries(pages) == [1, 2, 4]


def test_mood_change_opens_scene_and_labels_are_normalized() -> None:
    """Mood changes split; case, whitespace, and leading articles do not."""

    pages = [
        _descriptors(setting="The  Forest", mood="Calm"),
        _descriptors(setting="forest", mood="calm "),
        _descriptors(setting="forest", mood="tense"),
    ]

    assert normalize_label(" The  Dark   Forest ") == "dark forest"
    assert detect_boundaries(pages) == [1, 3]


def test_mood_keeps_leading_article_while_setting_drops_it() -> None:
    """Only settings lose a leading article; `the calm` and `calm` are different moods."""

    pages = [
        _descriptors(setting="the forest", mood="calm"),
        _descriptors(setting="forest", mood="the calm"),
        _descriptors(setting="a forest", mood="The  Calm"),
    ]

    assert normalize_mood(" The  Calm ") == "the calm"
    assert detect_boundaries(pages) == [1, 2]


def test_unranked_activity_levels_do_not_split() -> None:
    """Unknown activity labels should not count as an activity jump."""

    pages = [
        _descriptors(setting="forest", mood="calm", activity_level="unknown"),
        _descriptors(setting="forest", mood="calm", activity_level="high"),
    ]

    assert detect_boundaries(pages) == [1]


def test_boundaries_are_sorted_unique_and_start_at_one() -> None:
    """Boundary output should be a strictly increasing list starting with page 1."""

    settings = ["forest", "forest", "cave", "cave", "river", "forest", "forest", "hall"]
    pages = [_descriptors(setting=setting, mood="calm") for setting in settings]

    boundaries = detect_boundaries(pages)

    assert boundaries[0] == 1
    assert boundaries == sorted(set(boundaries))
    assert all(1 <= page <= len(pages) for page in boundaries)
    assert boundaries == [1, 3, 5, 6, 8]


def test_empty_input_yields_no_boundaries_or_scenes() -> None:
    """An empty page sequence should yield no boundaries and no scenes."""

    assert detect_boundaries([]) == []
    assert build_scenes([], []) == []


def test_build_scenes_partitions_pages_contiguously() -> None:
    """Scenes should cover every page exactly once in order."""

    settings = ["forest", "forest", "cave", "cave", "cave", "river"]
    pages = [_descriptors(setting=setting, mood="calm") for setting in settings]

    scenes = build_scenes(pages, detect_boundaries(pages), book_id="book-1")

    assert [(scene.start_page, scene.end_page) for scene in scenes] == [(1, 2), (3, 5), (6, 6)]
    assert [scene.scene_number for scene in scenes] == [1, 2, 3]
    assert sum(scene.page_count for scene in scenes) == len(pages)
    assert scenes[1].descriptors.setting == "cave"
    assert scenes[0].scene_id == "book-1-scene-0001"


@pytest.mark.parametrize(
    ("boundaries", "message"),
    [
        ([], "empty"),
        ([2, 3], "First boundary"),
        ([1, 3, 3], "Duplicate"),
        ([1, 4, 3], "not sorted"),
        ([1, 7], "past the last page"),
    ],
)
def test_validate_boundaries_rejects_invalid_lists(boundaries: list[int], message: str) -> None:
    """Malformed boundary lists should raise `InvalidBoundaryError`."""

    with pytest.raises(InvalidBoundaryError, match=message):
        validate_boundaries(boundaries, total_pages=5)

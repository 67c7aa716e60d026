"""Scene boundary detection over per-page descriptors.

Responsibilities:
- Walk consecutive page descriptors in document order.
- Start a new scene on a setting change, a mood change, or an activity jump of
  two or more levels; a one-level jump stays in the same scene.
"""

from __future__ import annotations

from collections.abc import Sequence
import re

from ..models.datatypes import DescriptorSet, intensity_rank

MIN_ACTIVITY_JUMP = 2

_LEADING_ARTICLE = re.compile(r"^(a|an|the)\s+")


def normalize_mood(value: str) -> str:
    """Lowercase, trim, and collapse whitespace."""

    return " ".join(value.strip().lower().split())


def normalize_label(value: str) -> str:
    """Normalize a setting label; a leading article is dropped."""

    return _LEADING_ARTICLE.sub("", normalize_mood(value))


def activity_jump(previous: DescriptorSet, current: DescriptorSet) -> int:
    """Absolute ordinal distance between two activity levels, `0` when unranked.

    Two labels from the `low/medium/high` intensity vocabulary are compared on
    that three-level scale; any other pair uses `ACTIVITY_SCALE`.
    """

    previous_intensity = intensity_rank(previous.activity_level)
    current_intensity = intensity_rank(current.activity_level)
    if previous_intensity is not None and current_intensity is not None:
        return abs(current_intensity - previous_intensity)
    previous_rank = previous.activity_rank
    current_rank = current.activity_rank
    if previous_rank is None or current_rank is None:
        return 0
    return abs(current_rank - previous_rank)


def is_scene_change(previous: DescriptorSet, current: DescriptorSet) -> bool:
    """Whether `current` opens a new scene after `previous`."""

    if normalize_label(previous.setting) != normalize_label(current.setting):
        return True
    if normalize_mood(previous.mood) != normalize_mood(current.mood):
        return True
    return activity_jump(previous, current) >= MIN_ACTIVITY_JUMP


def detect_boundaries(descriptors: Sequence[DescriptorSet]) -> list[int]:
    """Return sorted 1-based page numbers where a new scene starts.

    `descriptors[i]` belongs to page `i + 1`; page 1 is always a boundary when
    any page exists.
    """

    if not descriptors:
        return []
    boundaries = [1]
    for index in range(1, len(descriptors)):
        if is_scene_change(descriptors[index - 1], descriptors[index]):
            boundaries.append(index + 1)
    return boundaries

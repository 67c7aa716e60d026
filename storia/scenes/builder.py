"""Build contiguous scenes from a finalized boundary list."""

from __future__ import annotations

from collections.abc import Sequence

from ..errors import InvalidBoundaryError
from ..models.datatypes import DescriptorSet, Scene


def validate_boundaries(boundaries: Sequence[int], total_pages: int) -> None:
    """Raise `InvalidBoundaryError` unless boundaries partition `[1, total_pages]`."""

    if total_pages <= 0:
        if boundaries:
            raise InvalidBoundaryError("Boundaries were given for a book without pages.")
        return
    if not boundaries:
        raise InvalidBoundaryError("Boundary list is empty for a non-empty book.")
    if boundaries[0] != 1:
        raise InvalidBoundaryError(f"First boundary must be page 1, got {boundaries[0]}.")
    for previous, current in zip(boundaries, boundaries[1:]):
        if current == previous:
            raise InvalidBoundaryError(f"Duplicate boundary at page {current}.")
        if current < previous:
            raise InvalidBoundaryError(
                f"Boundaries are not sorted: page {current} follows page {previous}."
            )
    if boundaries[-1] > total_pages:
        raise InvalidBoundaryError(
            f"Boundary page {boundaries[-1]} is past the last page {total_pages}."
        )


def build_scenes(
    descriptors: Sequence[DescriptorSet],
    boundaries: Sequence[int],
    book_id: str = "",
) -> list[Scene]:
    """Open one scene per boundary, using that page's descriptors as representative."""

    total_pages = len(descriptors)
    validate_boundaries(boundaries, total_pages)

    scenes: list[Scene] = []
    for scene_index, start_page in enumerate(boundaries):
        if scene_index + 1 < len(boundaries):
            end_page = boundaries[scene_index + 1] - 1
        else:
            end_page = total_pages
        scenes.append(
            Scene(
                scene_number=scene_index + 1,
                start_page=start_page,
                end_page=end_page,
                descriptors=descriptors[start_page - 1],
                book_id=book_id,
            )
        )
    return scenes

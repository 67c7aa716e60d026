"""Unit tests for the book lifecycle state machine."""

from __future__ import annotations

import pytest

from storia.errors import IllegalStatusTransitionError
from storia.models.status import BookStatus


@pytest.mark.parametrize(
    ("source", "target"),
    [
        (BookStatus.PENDING, BookStatus.EXTRACTING),
        (BookStatus.EXTRACTING, BookStatus.ANALYZING),
        (BookStatus.ANALYZING, BookStatus.MAPPING),
        (BookStatus.MAPPING, BookStatus.READY),
        (BookStatus.MAPPING, BookStatus.READY_FOR_REVIEW),
        (BookStatus.MAPPING, BookStatus.PUBLISHED),
        (BookStatus.READY_FOR_REVIEW, BookStatus.PUBLISHED),
        (BookStatus.ANALYZING, BookStatus.FAILED),
        (BookStatus.FAILED, BookStatus.PENDING),
        (BookStatus.READY, BookStatus.PENDING),
    ],
)
def test_allowed_transitions(source: BookStatus, target: BookStatus) -> None:
    """Forward pipeline moves, failure, and reprocessing should be allowed."""

    assert source.can_transition_to(target)
    assert source.transition_to(target) is target


@pytest.mark.parametrize(
    ("source", "target"),
    [
        (BookStatus.PENDING, BookStatus.MAPPING),
        (BookStatus.EXTRACTING, BookStatus.READY),
        (BookStatus.READY, BookStatus.PUBLISHED),
        (BookStatus.FAILED, BookStatus.READY),
        (BookStatus.FAILED, BookStatus.FAILED),
        (BookStatus.PUBLISHED, BookStatus.READY_FOR_REVIEW),
    ],
)
def test_illegal_transitions_raise(source: BookStatus, target: BookStatus) -> None:
    """Skipped or backwards transitions should be rejected."""

    with pytest.raises(IllegalStatusTransitionError) as excinfo:
        source.transition_to(target)

    assert excinfo.value.current == source.value
    assert excinfo.value.target == target.value


def test_terminal_statuses() -> None:
    """Only completion and failure statuses should be terminal."""

    assert BookStatus.READY.is_terminal
    assert BookStatus.FAILED.is_terminal
    assert not BookStatus.ANALYZING.is_terminal
    assert BookStatus("ready_for_review") is BookStatus.READY_FOR_REVIEW

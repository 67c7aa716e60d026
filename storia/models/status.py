"""Book lifecycle status and its transition table.

Responsibilities:
- Enumerate every lifecycle status a book can be in.
- Reject status changes that the processing workflow does not allow.
"""

from __future__ import annotations

from enum import Enum

from ..errors import IllegalStatusTransitionError


class BookStatus(str, Enum):
    """Lifecycle status persisted on a book record."""

    PENDING = "pending"
    EXTRACTING = "extracting"
    ANALYZING = "analyzing"
    MAPPING = "mapping"
    READY = "ready"
    READY_FOR_REVIEW = "ready_for_review"
    PUBLISHED = "published"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether a job run ends in this status."""

        return self in _TERMINAL_STATUSES

    def can_transition_to(self, target: BookStatus) -> bool:
        """Return whether moving to `target` is allowed."""

        return target in _TRANSITIONS[self]

    def transition_to(self, target: BookStatus) -> BookStatus:
        """Return `target` or raise when the transition is illegal."""

        if not self.can_transition_to(target):
            raise IllegalStatusTransitionError(self.value, target.value)
        return target


_TERMINAL_STATUSES = frozenset(
    {
        BookStatus.READY,
        BookStatus.READY_FOR_REVIEW,
        BookStatus.PUBLISHED,
        BookStatus.FAILED,
    }
)

COMPLETION_STATUSES = frozenset(
    {BookStatus.READY, BookStatus.READY_FOR_REVIEW, BookStatus.PUBLISHED}
)

_TRANSITIONS: dict[BookStatus, frozenset[BookStatus]] = {
    BookStatus.PENDING: frozenset({BookStatus.EXTRACTING, BookStatus.FAILED}),
    BookStatus.EXTRACTING: frozenset({BookStatus.ANALYZING, BookStatus.FAILED}),
    BookStatus.ANALYZING: frozenset({BookStatus.MAPPING, BookStatus.FAILED}),
    BookStatus.MAPPING: frozenset(
        {
            BookStatus.READY,
            BookStatus.READY_FOR_REVIEW,
            BookStatus.PUBLISHED,
            BookStatus.FAILED,
        }
    ),
    BookStatus.READY: frozenset({BookStatus.PENDING, BookStatus.FAILED}),
    BookStatus.READY_FOR_REVIEW: frozenset(
        {BookStatus.PUBLISHED, BookStatus.PENDING, BookStatus.FAILED}
    ),
    BookStatus.PUBLISHED: frozenset({BookStatus.PENDING, BookStatus.FAILED}),
    BookStatus.FAILED: frozenset({BookStatus.PENDING}),
}

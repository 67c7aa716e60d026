"""Domain exceptions for pipeline and CLI diagnostics.

Key types:
- `StoriaError`: common base for every domain failure.
- `PipelineStageError`: stage-scoped failure rendered by the CLI.
- `ValidationError`, `ClassificationError`, `InvalidBoundaryError`,
  `HighFailureRateError`, `PersistenceError`, `IllegalStatusTransitionError`.
"""

from __future__ import annotations


class StoriaError(RuntimeError):
    """Base class for Storia domain failures."""


class PipelineStageError(StoriaError):
    """Raised when a specific pipeline stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped pipeline error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class ValidationError(StoriaError):
    """Raised when book input is missing, empty, has non-contiguous pages, or uses an unsafe id."""


class ClassificationError(StoriaError):
    """Raised when a page or spread cannot be classified into descriptors."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        attempts: int = 1,
    ) -> None:
        """Initialize classification failure metadata."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.attempts = attempts


class InvalidBoundaryError(StoriaError):
    """Raised when scene boundaries do not form a valid page partition."""


class HighFailureRateError(StoriaError):
    """Raised when too many classification units fail within one job."""

    def __init__(self, *, failed_units: int, total_units: int, threshold: float) -> None:
        """Initialize circuit-breaker failure counts."""

        rate = failed_units / float(total_units) if total_units else 0.0
        super().__init__(
            f"High failure rate: {failed_units}/{total_units} units failed "
            f"({rate:.0%} > {threshold:.0%})."
        )
        self.failed_units = failed_units
        self.total_units = total_units
        self.threshold = threshold


class PersistenceError(StoriaError):
    """Raised when repository writes keep failing after retries."""


class IllegalStatusTransitionError(StoriaError):
    """Raised when a book status change is not allowed by the state machine."""

    def __init__(self, current: str, target: str) -> None:
        """Initialize transition endpoints for diagnostics."""

        super().__init__(f"Illegal status transition `{current}` -> `{target}`.")
        self.current = current
        self.target = target

"""Pipeline orchestration for Storia.

Responsibilities:
- Drive one book through extract, analyze, detect, build, map, and report.
- Persist every status transition together with the accumulated unit errors.
- Turn any fatal failure into a `failed` status and a structured job report.

Key types:
- `SoundscapePipeline`: orchestration facade.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace
import time

from ..config import StoriaConfig
from ..errors import (
    IllegalStatusTransitionError,
    PipelineStageError,
    StoriaError,
    ValidationError,
)
from ..io.catalog import CatalogLoader
from ..io.repository import BookRepository
from ..llm.classifier import PageClassifier
from ..models.datatypes import BookRecord, DescriptorSet, JobResult, Page, Scene
from ..models.status import BookStatus
from ..retry import RetryPolicy
from ..scenes import build_scenes, detect_boundaries
from ..telemetry.logger import RunLogger
from .context import JobContext
from .execution import PipelineExecutionMixin
from .runtime import PipelineRuntimeMixin
from .telemetry import PipelineTelemetryMixin

PARTIAL_FAILURE_WARNING = "Some units failed to process"

_IN_PROGRESS_STATUSES = frozenset(
    {BookStatus.EXTRACTING, BookStatus.ANALYZING, BookStatus.MAPPING}
)
_NON_RETRYABLE_FAILURES = frozenset(
    {
        ValidationError.__name__,
        IllegalStatusTransitionError.__name__,
        PipelineStageError.__name__,
    }
)


class SoundscapePipeline(
    PipelineTelemetryMixin,
    PipelineRuntimeMixin,
    PipelineExecutionMixin,
):
    """Coordinate scene segmentation and soundscape matching for one book."""

    def __init__(
        self,
        repository: BookRepository,
        catalog: CatalogLoader,
        config: StoriaConfig | None = None,
        classifier: PageClassifier | None = None,
        run_logger: RunLogger | None = None,
        stage_progress_callback: Callable[[str, int, int], None] | None = None,
        sleeper: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize collaborators plus optional logging and progress hooks."""

        self.config = config or StoriaConfig()
        self._repository = repository
        self._catalog = catalog
        self._classifier = classifier
        self._run_logger = run_logger
        self._stage_progress_callback = stage_progress_callback
        self._sleeper = sleeper

    def run_pipeline(self, book_id: str) -> JobResult:
        """Run the full job for `book_id` and return its report.

        Fatal failures never escape: they are written as `failed` status and
        returned as an unsuccessful `JobResult`.
        """

        record = self._repository.get_book(book_id)
        if record is None:
            self._log_event("job", "book_missing", level="ERROR", book=book_id)
            return JobResult(
                success=False,
                book_id=book_id,
                status=BookStatus.FAILED,
                failure=f"Book `{book_id}` was not found.",
                failure_kind=ValidationError.__name__,
            )

        context = JobContext(book_id=book_id, status=record.status)
        self._log_event("job", "job_start", book=book_id, status=record.status.value)
        try:
            self._validate_config(self.config)
            self._reset_for_run(context)
            self._execute(context)
        except Exception as exc:
            return self._fail(context, exc)
        return self._succeed(context)

    def run_with_job_retries(
        self, book_id: str, max_job_attempts: int | None = None
    ) -> JobResult:
        """Re-run the whole job while it fails with a retryable fatal failure."""

        attempts = (
            max_job_attempts if max_job_attempts is not None else self.config.max_job_attempts
        )
        if attempts <= 0:
            raise ValueError("`max_job_attempts` must be a positive integer.")
        policy = RetryPolicy(
            max_attempts=attempts,
            base_delay_seconds=self.config.retry_base_delay_seconds,
            jitter_seconds=self.config.retry_jitter_seconds,
        )

        attempt = 1
        while True:
            result = self.run_pipeline(book_id)
            if (
                result.success
                or result.failure_kind in _NON_RETRYABLE_FAILURES
                or attempt >= attempts
            ):
                return replace(result, attempts=attempt)
            delay = policy.delay_for(attempt)
            self._log_event(
                "job",
                "job_retry",
                level="WARNING",
                book=book_id,
                attempt=attempt,
                failure=result.failure_kind or "unknown",
                delay_seconds=delay,
            )
            self._sleeper(delay)
            attempt += 1

    def approve(self, book_id: str) -> BookRecord:
        """Publish a book that is waiting in `ready_for_review`."""

        record = self._repository.get_book(book_id)
        if record is None:
            raise ValidationError(f"Book `{book_id}` was not found.")
        if record.status is not BookStatus.READY_FOR_REVIEW:
            raise IllegalStatusTransitionError(record.status.value, BookStatus.PUBLISHED.value)
        self._persist(
            "update_status:published",
            lambda: self._repository.update_status(
                book_id, BookStatus.PUBLISHED, record.processing_errors
            ),
        )
        self._log_event(
            "status",
            "transition",
            book=book_id,
            source=record.status.value,
            target=BookStatus.PUBLISHED.value,
            errors=len(record.processing_errors),
        )
        approved = self._repository.get_book(book_id)
        return approved if approved is not None else replace(record, status=BookStatus.PUBLISHED)

    def _reset_for_run(self, context: JobContext) -> None:
        """Move a previously processed or interrupted book back to `pending`."""

        if context.status is BookStatus.PENDING:
            return
        if context.status in _IN_PROGRESS_STATUSES:
            self._log_event(
                "job", "stale_run_detected", level="WARNING", status=context.status.value
            )
            self._transition(context, BookStatus.FAILED)
        self._transition(context, BookStatus.PENDING)

    def _execute(self, context: JobContext) -> None:
        """Run every stage in order, transitioning status between them."""

        self._transition(context, BookStatus.EXTRACTING)
        pages = self._run_stage("extract", lambda: self._extract_pages(context.book_id))

        self._transition(context, BookStatus.ANALYZING)
        classifier = self._resolve_classifier()
        units = self._build_units(pages)
        unit_descriptors = self._run_stage(
            "analyze", lambda: self._classify_units(context, classifier, units)
        )
        page_descriptors = self._expand_to_pages(pages, units, unit_descriptors)
        boundaries = self._run_stage("detect", lambda: detect_boundaries(page_descriptors))
        scenes = self._run_stage(
            "build",
            lambda: self._build_and_store_scenes(context, page_descriptors, boundaries),
        )

        self._transition(context, BookStatus.MAPPING)
        self._run_stage("map", lambda: self._match_scenes(context, scenes))
        self._run_stage(
            "report",
            lambda: self._transition(context, self.config.completion_book_status),
        )

    def _extract_pages(self, book_id: str) -> list[Page]:
        """Load and validate the ordered page list of a book."""

        pages = self._repository.list_pages(book_id)
        self._validate_pages(book_id, pages)
        self._log_event("extract", "pages_loaded", pages=len(pages))
        return pages

    def _build_and_store_scenes(
        self,
        context: JobContext,
        page_descriptors: Sequence[DescriptorSet],
        boundaries: Sequence[int],
    ) -> list[Scene]:
        """Build scenes from boundaries and replace the book's stored scenes."""

        scenes = build_scenes(page_descriptors, boundaries, book_id=context.book_id)
        if not scenes:
            raise ValidationError(
                f"No scenes could be created for book `{context.book_id}`: "
                "no page had enough text to classify."
            )
        self._persist(
            "replace_scenes",
            lambda: self._repository.replace_scenes(context.book_id, scenes),
        )
        context.scenes_created = len(scenes)
        self._log_event("build", "scenes_built", scenes=len(scenes))
        return scenes

    def _succeed(self, context: JobContext) -> JobResult:
        """Build the report of a job that reached its completion status."""

        result = JobResult(
            success=True,
            book_id=context.book_id,
            status=context.status,
            stats=context.stats(),
            errors=tuple(context.errors),
            warning=PARTIAL_FAILURE_WARNING if context.errors else None,
        )
        self._log_event(
            "job",
            "job_complete",
            book=context.book_id,
            status=context.status.value,
            errors=len(context.errors),
        )
        return result

    def _fail(self, context: JobContext, exc: Exception) -> JobResult:
        """Write `failed` status where possible and build the failure report."""

        self._log_event(
            "job",
            "job_failed",
            level="ERROR",
            book=context.book_id,
            status=context.status.value,
            error_type=type(exc).__name__,
        )
        try:
            if context.status is BookStatus.FAILED:
                errors = tuple(context.errors)
                self._persist(
                    "update_status:failed",
                    lambda: self._repository.update_status(
                        context.book_id, BookStatus.FAILED, errors
                    ),
                )
            else:
                self._transition(context, BookStatus.FAILED)
        except StoriaError as write_exc:
            self._log_event(
                "job",
                "failed_status_not_written",
                level="ERROR",
                book=context.book_id,
                error_type=type(write_exc).__name__,
            )

        return JobResult(
            success=False,
            book_id=context.book_id,
            status=BookStatus.FAILED,
            stats=context.stats(),
            errors=tuple(context.errors),
            failure=str(exc),
            failure_kind=type(exc).__name__,
        )

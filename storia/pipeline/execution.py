"""Stage execution helpers for the soundscape pipeline.

Responsibilities:
- Validate page input and build page or spread classification units.
- Classify units on the bounded worker pool, record their cost estimate, and
  apply the failure-rate breaker.
- Expand unit descriptors back to one descriptor set per page.
- Match scenes against the curated catalog, isolating per-scene failures.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..errors import HighFailureRateError, ValidationError
from ..io.catalog import Catalog
from ..llm.classifier import PageClassifier
from ..matching.matcher import SoundscapeMatch, SoundscapeMatcher
from ..models.datatypes import (
    ClassificationUnit,
    DescriptorSet,
    Page,
    ProcessingError,
    Scene,
    SoundscapeAssignment,
)
from .context import JobContext
from .costs import add_classification_costs, unit_attempts
from .workers import BoundedWorkerPool, UnitOutcome

_SPREAD_SIZE = 2


class PipelineExecutionMixin:
    """Provide stage-level pipeline helper methods."""

    @staticmethod
    def _validate_pages(book_id: str, pages: Sequence[Page]) -> None:
        """Require at least one page and contiguous 1-based numbering."""

        if not pages:
            raise ValidationError(f"Book `{book_id}` has no pages to process.")
        for expected, page in enumerate(pages, start=1):
            if page.page_number != expected:
                raise ValidationError(
                    f"Book `{book_id}` pages are not contiguous: expected page {expected}, "
                    f"found page {page.page_number}."
                )

    def _is_classifiable(self, page: Page) -> bool:
        """Whether a page has enough text to classify, i.e. is not image-only."""

        return len(page.text_content.strip()) >= self.config.min_page_chars

    def _build_units(self, pages: Sequence[Page]) -> list[ClassificationUnit]:
        """Group classifiable pages into page or 2-page spread units.

        Spreads pair pages `(1, 2)`, `(3, 4)`, ... by page number, so a spread is
        never split; image-only pages are left out of their spread's texts.
        """

        size = _SPREAD_SIZE if self.config.unit_mode == "spread" else 1
        units: list[ClassificationUnit] = []
        for offset in range(0, len(pages), size):
            group = [page for page in pages[offset : offset + size] if self._is_classifiable(page)]
            if not group:
                continue
            units.append(
                ClassificationUnit(
                    unit_index=len(units),
                    page_numbers=tuple(page.page_number for page in group),
                    texts=tuple(page.text_content for page in group),
                )
            )
        return units

    def _unit_error(
        self, unit: ClassificationUnit, outcome: UnitOutcome[DescriptorSet]
    ) -> ProcessingError:
        """Convert a failed unit outcome into an error record."""

        error = outcome.error
        if outcome.timed_out:
            error_kind = "timeout"
        else:
            error_kind = getattr(error, "failure_kind", type(error).__name__)
        return ProcessingError.now(
            unit_index=unit.unit_index,
            page_numbers=unit.page_numbers,
            error_kind=error_kind,
            message=str(error),
            attempt_number=unit_attempts(outcome),
        )

    def _record_cost(self, context: JobContext) -> None:
        """Persist the classification cost estimate on the book record."""

        cost_usd = round(context.costs.classification_cost_usd, 6)
        self._persist(
            "update_cost",
            lambda: self._repository.update_cost(context.book_id, cost_usd),
        )
        self._log_event("analyze", "cost_recorded", book=context.book_id, cost_usd=cost_usd)

    def _classify_units(
        self,
        context: JobContext,
        classifier: PageClassifier,
        units: Sequence[ClassificationUnit],
    ) -> list[DescriptorSet]:
        """Classify units concurrently, substituting defaults for failed units.

        Raises:
            HighFailureRateError: If the failed-unit ratio exceeds the threshold.
        """

        pool = BoundedWorkerPool(
            max_workers=self.config.max_concurrency,
            unit_timeout_seconds=self.config.unit_timeout_seconds,
            thread_name_prefix="storia-classify",
        )
        keepalive_every = self.config.keepalive_every_units

        def _on_complete(outcome: UnitOutcome[DescriptorSet], completed: int) -> None:
            if not outcome.ok:
                self._log_event(
                    "analyze",
                    "unit_timeout" if outcome.timed_out else "unit_failed",
                    level="WARNING",
                    unit=outcome.index,
                    error_type=type(outcome.error).__name__,
                )
            if completed % keepalive_every == 0:
                self._keep_alive("analyze", completed)

        outcomes = pool.map(classifier.classify_unit, units, on_complete=_on_complete)
        add_classification_costs(units, outcomes, context.costs)

        descriptors: list[DescriptorSet] = []
        failed = 0
        for unit, outcome in zip(units, outcomes):
            if outcome.ok and outcome.value is not None:
                descriptors.append(outcome.value)
                continue
            failed += 1
            context.errors.append(self._unit_error(unit, outcome))
            descriptors.append(DescriptorSet.default())

        context.total_units = len(units)
        context.processed_units = len(units) - failed
        self._log_event(
            "analyze",
            "units_classified",
            total=len(units),
            failed=failed,
            attempts=context.costs.classification_attempts,
            cost_usd=context.costs.classification_cost_usd,
        )
        self._record_cost(context)
        if units and failed / len(units) > self.config.failure_rate_threshold:
            raise HighFailureRateError(
                failed_units=failed,
                total_units=len(units),
                threshold=self.config.failure_rate_threshold,
            )
        return descriptors

    @staticmethod
    def _expand_to_pages(
        pages: Sequence[Page],
        units: Sequence[ClassificationUnit],
        unit_descriptors: Sequence[DescriptorSet],
    ) -> list[DescriptorSet]:
        """Return one descriptor set per page, filling image-only pages.

        A skipped page inherits the previous page's descriptors; leading skipped
        pages take the first classified page's. Returns `[]` when no unit exists.
        """

        by_page: dict[int, DescriptorSet] = {}
        for unit, descriptors in zip(units, unit_descriptors):
            for page_number in unit.page_numbers:
                by_page[page_number] = descriptors
        if not by_page:
            return []

        first_known = by_page[min(by_page)]
        expanded: list[DescriptorSet] = []
        for page in pages:
            if page.page_number in by_page:
                expanded.append(by_page[page.page_number])
            elif expanded:
                expanded.append(expanded[-1])
            else:
                expanded.append(first_known)
        return expanded

    def _load_catalog(self) -> Catalog:
        """Load the curated catalog, treating a loader failure as an empty catalog."""

        try:
            catalog = self._catalog.list_curated_assets()
        except Exception as exc:
            self._log_event(
                "map",
                "catalog_load_failed",
                level="WARNING",
                error_type=type(exc).__name__,
            )
            return {}
        if not catalog:
            self._log_event("map", "catalog_empty", level="WARNING")
        else:
            self._log_event(
                "map",
                "catalog_loaded",
                categories=len(catalog),
                assets=sum(len(assets) for assets in catalog.values()),
            )
        return catalog

    def _match_scenes(self, context: JobContext, scenes: Sequence[Scene]) -> None:
        """Match every scene in order; failures are recorded and skipped."""

        catalog = self._load_catalog()
        matcher = SoundscapeMatcher(self.config.policy)
        keepalive_every = self.config.keepalive_every_units

        for position, scene in enumerate(scenes, start=1):
            try:
                result = matcher.match(scene.descriptors, catalog)
                if isinstance(result, SoundscapeMatch):
                    assignment = SoundscapeAssignment(
                        scene_id=scene.scene_id,
                        asset_name=result.asset.name,
                        category=result.category,
                        match_score=result.score,
                    )
                    self._persist(
                        "save_assignment",
                        lambda: self._repository.save_assignment(context.book_id, assignment),
                    )
                    context.soundscapes_matched += 1
                    self._log_event(
                        "map",
                        "scene_matched",
                        scene=scene.scene_number,
                        asset=result.asset.name,
                        score=result.score,
                    )
                else:
                    self._log_event(
                        "map",
                        "scene_unmatched",
                        scene=scene.scene_number,
                        reason=result.reason,
                        best_score=result.best_score,
                    )
            except Exception as exc:
                context.errors.append(
                    ProcessingError.now(
                        unit_index=scene.scene_number,
                        page_numbers=tuple(range(scene.start_page, scene.end_page + 1)),
                        error_kind="matching",
                        message=str(exc),
                    )
                )
                self._log_event(
                    "map",
                    "scene_failed",
                    level="WARNING",
                    scene=scene.scene_number,
                    error_type=type(exc).__name__,
                )
            if position % keepalive_every == 0:
                self._keep_alive("map", position)

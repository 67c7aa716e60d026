"""Mutable per-job bookkeeping for one pipeline run."""

from __future__ import annotations

from dataclasses import dataclass, field
import time

from ..models.datatypes import JobStats, ProcessingError
from ..models.status import BookStatus
from ..telemetry.cost_tracker import CostTracker


@dataclass(slots=True)
class JobContext:
    """Status, counters, and accumulated errors of the running job."""

    book_id: str
    status: BookStatus
    errors: list[ProcessingError] = field(default_factory=list)
    total_units: int = 0
    processed_units: int = 0
    scenes_created: int = 0
    soundscapes_matched: int = 0
    costs: CostTracker = field(default_factory=CostTracker)
    started_at: float = field(default_factory=time.monotonic)

    def stats(self) -> JobStats:
        """Snapshot counters into report stats."""

        return JobStats(
            total_units=self.total_units,
            processed_units=self.processed_units,
            scenes_created=self.scenes_created,
            soundscapes_matched=self.soundscapes_matched,
            error_count=len(self.errors),
            classification_attempts=self.costs.classification_attempts,
            estimated_cost_usd=self.costs.classification_cost_usd,
            processing_time_seconds=time.monotonic() - self.started_at,
        )

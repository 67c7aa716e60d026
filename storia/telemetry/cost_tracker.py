"""Cost accounting for classification provider usage.

Responsibilities:
- Track classified units, provider attempts, and estimated cost per job.
- Provide summary output for job reports and the book record.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class CostTracker:
    """Collect and summarize job-level classification counters."""

    classified_units: int = 0
    classification_attempts: int = 0
    classification_cost_usd: float = 0.0

    def add_classification(self, *, succeeded: bool, attempts: int, cost_usd: float) -> None:
        """Add one unit's provider attempts and their estimated cost in USD."""

        if succeeded:
            self.classified_units += 1
        self.classification_attempts += max(0, attempts)
        self.classification_cost_usd += max(0.0, cost_usd)

    def summary(self) -> dict[str, int | float]:
        """Return a summary dictionary for reporting."""

        return {
            "classified_units": self.classified_units,
            "classification_attempts": self.classification_attempts,
            "classification_cost_usd": round(self.classification_cost_usd, 6),
        }

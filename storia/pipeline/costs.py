"""Deterministic cost estimation for the classification stage.

Every provider attempt is billed per page it covers, so spreads cost twice a
single page and retried units cost once per attempt. Cached responses are
billed like fresh ones.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..models.datatypes import ClassificationUnit, DescriptorSet
from ..telemetry.cost_tracker import CostTracker
from .workers import UnitOutcome

_CLASSIFY_COST_PER_PAGE_USD = 0.00006


def unit_attempts(outcome: UnitOutcome[DescriptorSet]) -> int:
    """Provider attempts spent on one unit; timeouts count as one attempt."""

    if outcome.ok:
        return 1
    return max(1, int(getattr(outcome.error, "attempts", 1)))


def add_classification_costs(
    units: Sequence[ClassificationUnit],
    outcomes: Sequence[UnitOutcome[DescriptorSet]],
    cost_tracker: CostTracker,
) -> None:
    """Accumulate the classification cost estimate for every unit outcome."""

    for unit, outcome in zip(units, outcomes):
        attempts = unit_attempts(outcome)
        cost_tracker.add_classification(
            succeeded=outcome.ok,
            attempts=attempts,
            cost_usd=attempts * len(unit.page_numbers) * _CLASSIFY_COST_PER_PAGE_USD,
        )

"""Unit tests for classification cost accounting."""

from __future__ import annotations

import pytest

from storia.errors import ClassificationError
from storia.models.datatypes import ClassificationUnit, DescriptorSet
from storia.pipeline.costs import add_classification_costs, unit_attempts
from storia.pipeline.workers import UnitOutcome, UnitTimeoutError
from storia.telemetry import CostTracker


def test_cost_tracker_counts_units_attempts_and_cost() -> None:
    """Only successful units count as classified; attempts and cost always add up."""

    tracker = CostTracker()

    tracker.add_classification(succeeded=True, attempts=1, cost_usd=0.00006)
    tracker.add_classification(succeeded=False, attempts=3, cost_usd=0.00018)
    tracker.add_classification(succeeded=False, attempts=-2, cost_usd=-1.0)

    assert tracker.summary() == {
        "classified_units": 1,
        "classification_attempts": 4,
        "classification_cost_usd": 0.00024,
    }


def test_unit_attempts_reads_classifier_retries() -> None:
    """Failed units report their retry count; timeouts and successes count once."""

    failed = UnitOutcome(index=0, error=ClassificationError("boom", attempts=3))
    timed_out = UnitOutcome(index=1, error=UnitTimeoutError("late"))
    succeeded = UnitOutcome(index=2, value=DescriptorSet.default())

    assert [unit_attempts(outcome) for outcome in (failed, timed_out, succeeded)] == [3, 1, 1]


def test_spreads_and_retries_scale_the_estimate() -> None:
    """Each attempt is billed once per page it covers."""

    units = [
        ClassificationUnit(unit_index=0, page_numbers=(1, 2), texts=("one", "two")),
        ClassificationUnit(unit_index=1, page_numbers=(3,), texts=("three",)),
    ]
    outcomes = [
        UnitOutcome(index=0, value=DescriptorSet.default()),
        UnitOutcome(index=1, error=ClassificationError("boom", attempts=3)),
    ]
    tracker = CostTracker()

    add_classification_costs(units, outcomes, tracker)

    assert tracker.classified_units == 1
    assert tracker.classification_attempts == 4
    assert tracker.classification_cost_usd == pytest.approx((2 + 3) * 0.00006)

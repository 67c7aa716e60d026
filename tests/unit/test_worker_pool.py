"""Unit tests for the bounded worker pool and its per-unit deadline."""

from __future__ import annotations

import threading
import time

import pytest

from storia.pipeline.workers import BoundedWorkerPool, UnitOutcome, UnitTimeoutError


def test_outcomes_keep_input_order_and_capture_errors() -> None:
    """Outcomes should be returned in input order with failures captured."""

    def _square(value: int) -> int:
        if value == 3:
            raise ValueError("three is not allowed")
        time.sleep(0.01 * (5 - value))
        return value * value

    pool = BoundedWorkerPool(max_workers=3, unit_timeout_seconds=5.0)

    outcomes = pool.map(_square, [1, 2, 3, 4])

    assert [outcome.index for outcome in outcomes] == [0, 1, 2, 3]
    assert [outcome.value for outcome in outcomes] == [1, 4, None, 16]
    assert not outcomes[2].ok
    assert isinstance(outcomes[2].error, ValueError)
    assert not outcomes[2].timed_out


def test_slow_unit_times_out_without_blocking_others() -> None:
    """A unit past its deadline should be reported while the rest complete."""

    release = threading.Event()

    def _work(value: int) -> int:
        if value == 0:
            release.wait(5.0)
        return value

    pool = BoundedWorkerPool(max_workers=2, unit_timeout_seconds=0.2)
    try:
        outcomes = pool.map(_work, [0, 1, 2])
    finally:
        release.set()

    assert outcomes[0].timed_out
    assert isinstance(outcomes[0].error, UnitTimeoutError)
    assert [outcome.value for outcome in outcomes[1:]] == [1, 2]


def test_concurrency_never_exceeds_pool_size() -> None:
    """No more than `max_workers` units should run at the same time."""

    lock = threading.Lock()
    active = 0
    peak = 0

    def _work(value: int) -> int:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1
        return value

    BoundedWorkerPool(max_workers=2, unit_timeout_seconds=5.0).map(_work, list(range(8)))

    assert 1 <= peak <= 2


def test_timed_out_calls_keep_their_slot_until_they_finish() -> None:
    """Abandoned calls should still count against the pool size."""

    lock = threading.Lock()
    active = 0
    peak = 0

    def _slow(value: int) -> int:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.2)
        with lock:
            active -= 1
        return value

    outcomes = BoundedWorkerPool(max_workers=1, unit_timeout_seconds=0.05).map(
        _slow, [0, 1, 2, 3]
    )

    assert all(outcome.timed_out for outcome in outcomes)
    assert peak == 1


def test_timed_out_calls_do_not_exceed_larger_pool() -> None:
    """With several slots, in-flight calls should stay within `max_workers`."""

    lock = threading.Lock()
    active = 0
    peak = 0

    def _slow(value: int) -> int:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.1)
        with lock:
            active -= 1
        return value

    outcomes = BoundedWorkerPool(max_workers=2, unit_timeout_seconds=0.02).map(
        _slow, list(range(6))
    )

    assert len(outcomes) == 6
    assert peak <= 2


def test_on_complete_counts_every_unit() -> None:
    """The completion callback should run once per unit with a running count."""

    seen: list[tuple[int, int]] = []

    def _record(outcome: UnitOutcome[int], completed: int) -> None:
        seen.append((outcome.index, completed))

    BoundedWorkerPool(max_workers=4).map(lambda value: value, [10, 20, 30], on_complete=_record)

    assert sorted(index for index, _ in seen) == [0, 1, 2]
    assert [completed for _, completed in seen] == [1, 2, 3]


def test_empty_input_and_invalid_sizes() -> None:
    """Empty input should return no outcomes and bad sizes should be rejected."""

    assert BoundedWorkerPool().map(lambda value: value, []) == []
    with pytest.raises(ValueError):
        BoundedWorkerPool(max_workers=0)
    with pytest.raises(ValueError):
        BoundedWorkerPool(unit_timeout_seconds=0)

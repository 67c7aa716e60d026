"""Bounded worker pool with a per-unit deadline.

Responsibilities:
- Run independent units on a fixed-size `ThreadPoolExecutor`.
- Give every unit its own deadline; a unit that misses it is abandoned and
  reported as timed out while the rest of the batch continues.
- Keep at most `max_workers` calls in flight, abandoned calls included.
- Return outcomes in input order and report completions on the calling thread.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
import threading
import time
from typing import Generic, TypeVar

_Item = TypeVar("_Item")
_Result = TypeVar("_Result")


class UnitTimeoutError(TimeoutError):
    """Raised into an outcome when a unit exceeds its deadline."""


@dataclass(frozen=True, slots=True)
class UnitOutcome(Generic[_Result]):
    """Result of one unit run.

    Attributes:
        index: Position of the unit in the submitted sequence.
        value: Returned value on success.
        error: Raised exception, or `UnitTimeoutError` on deadline expiry.
        elapsed_seconds: Wall time spent waiting for the unit.
    """

    index: int
    value: _Result | None = None
    error: Exception | None = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        """Whether the unit produced a value."""

        return self.error is None

    @property
    def timed_out(self) -> bool:
        """Whether the unit was abandoned at its deadline."""

        return isinstance(self.error, UnitTimeoutError)


class _DeadlineCall(threading.Thread, Generic[_Item, _Result]):
    """Daemon thread holding the result or error of one call.

    The call owns one pool slot and releases it only when `fn` returns, so an
    abandoned call keeps counting against the pool size.
    """

    def __init__(
        self,
        fn: Callable[[_Item], _Result],
        item: _Item,
        name: str,
        slot: threading.BoundedSemaphore,
    ) -> None:
        """Store the call to run and the slot it holds."""

        super().__init__(name=name, daemon=True)
        self._fn = fn
        self._item = item
        self._slot = slot
        self.value: _Result | None = None
        self.error: Exception | None = None

    def run(self) -> None:
        """Execute the call and capture its outcome."""

        try:
            self.value = self._fn(self._item)
        except Exception as exc:
            self.error = exc
        finally:
            self._slot.release()


class BoundedWorkerPool:
    """Fixed-size pool that enforces a deadline on every unit."""

    def __init__(
        self,
        max_workers: int = 5,
        unit_timeout_seconds: float = 60.0,
        thread_name_prefix: str = "storia-unit",
    ) -> None:
        """Initialize pool size, per-unit deadline, and thread naming."""

        if max_workers <= 0:
            raise ValueError("`max_workers` must be a positive integer.")
        if unit_timeout_seconds <= 0:
            raise ValueError("`unit_timeout_seconds` must be positive.")
        self.max_workers = max_workers
        self.unit_timeout_seconds = unit_timeout_seconds
        self.thread_name_prefix = thread_name_prefix
        self._slots = threading.BoundedSemaphore(max_workers)

    def _run_unit(
        self, index: int, fn: Callable[[_Item], _Result], item: _Item
    ) -> UnitOutcome[_Result]:
        """Run one unit on a daemon thread and wait at most the deadline.

        Blocks until a slot is free; slots held by timed-out calls are freed only
        when those calls finish.
        """

        self._slots.acquire()
        started = time.monotonic()
        call: _DeadlineCall[_Item, _Result] = _DeadlineCall(
            fn, item, name=f"{self.thread_name_prefix}-call-{index}", slot=self._slots
        )
        try:
            call.start()
        except RuntimeError:
            self._slots.release()
            raise
        call.join(self.unit_timeout_seconds)
        elapsed = time.monotonic() - started
        if call.is_alive():
            return UnitOutcome(
                index=index,
                error=UnitTimeoutError(
                    f"Unit {index} exceeded {self.unit_timeout_seconds:g}s deadline."
                ),
                elapsed_seconds=elapsed,
            )
        if call.error is not None:
            return UnitOutcome(index=index, error=call.error, elapsed_seconds=elapsed)
        return UnitOutcome(index=index, value=call.value, elapsed_seconds=elapsed)

    def map(
        self,
        fn: Callable[[_Item], _Result],
        items: Sequence[_Item],
        on_complete: Callable[[UnitOutcome[_Result], int], None] | None = None,
    ) -> list[UnitOutcome[_Result]]:
        """Run `fn` over `items` and return outcomes in input order.

        `on_complete(outcome, completed_count)` runs on the calling thread as each
        unit finishes, in completion order.
        """

        if not items:
            return []
        outcomes: list[UnitOutcome[_Result] | None] = [None] * len(items)
        workers = min(self.max_workers, len(items))
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix=self.thread_name_prefix
        ) as executor:
            futures = [
                executor.submit(self._run_unit, index, fn, item)
                for index, item in enumerate(items)
            ]
            for completed, future in enumerate(as_completed(futures), start=1):
                outcome = future.result()
                outcomes[outcome.index] = outcome
                if on_complete is not None:
                    on_complete(outcome, completed)
        return [outcome for outcome in outcomes if outcome is not None]

"""Generic retry policy shared by classifier calls and repository writes.

Responsibilities:
- Describe attempt limits and linear backoff with random jitter.
- Run an operation until it succeeds, fails permanently, or exhausts attempts.
- Return a typed outcome instead of raising, so callers decide the fallback.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import random
import time
from typing import Generic, TypeVar

_T = TypeVar("_T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt limit and backoff settings.

    Attributes:
        max_attempts: Total attempts including the first call.
        base_delay_seconds: Delay multiplied by the attempt number after each failure.
        jitter_seconds: Upper bound of uniform random delay added to each wait.
    """

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    jitter_seconds: float = 0.5

    def __post_init__(self) -> None:
        """Validate policy bounds."""

        if self.max_attempts <= 0:
            raise ValueError("`max_attempts` must be a positive integer.")
        if self.base_delay_seconds < 0.0 or self.jitter_seconds < 0.0:
            raise ValueError("Retry delays must be non-negative.")

    def delay_for(self, attempt: int, rng: Callable[[float, float], float] = random.uniform) -> float:
        """Return the wait before the attempt following failed `attempt` (1-based)."""

        jitter = rng(0.0, self.jitter_seconds) if self.jitter_seconds > 0.0 else 0.0
        return self.base_delay_seconds * attempt + jitter


@dataclass(frozen=True, slots=True)
class RetryOutcome(Generic[_T]):
    """Result of a retried operation.

    Attributes:
        value: Operation result when successful.
        error: Last raised exception when unsuccessful.
        attempts: Number of attempts actually made.
    """

    value: _T | None = None
    error: Exception | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        """Whether the operation eventually succeeded."""

        return self.error is None

    def unwrap(self) -> _T:
        """Return the value or re-raise the last error."""

        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def _always_retryable(_: Exception) -> bool:
    """Treat every exception as retryable."""

    return True


@dataclass(slots=True)
class RetryRunner:
    """Execute operations under a `RetryPolicy` with injectable sleep/jitter."""

    policy: RetryPolicy = field(default_factory=RetryPolicy)
    sleeper: Callable[[float], None] = time.sleep
    rng: Callable[[float, float], float] = random.uniform

    def run(
        self,
        operation: Callable[[], _T],
        *,
        is_retryable: Callable[[Exception], bool] = _always_retryable,
        on_retry: Callable[[int, Exception, float], None] | None = None,
    ) -> RetryOutcome[_T]:
        """Run `operation` until success, a non-retryable error, or exhaustion."""

        last_error: Exception | None = None
        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                return RetryOutcome(value=operation(), attempts=attempt)
            except Exception as exc:
                last_error = exc
                if not is_retryable(exc) or attempt >= self.policy.max_attempts:
                    return RetryOutcome(error=exc, attempts=attempt)
                delay = self.policy.delay_for(attempt, self.rng)
                if on_retry is not None:
                    on_retry(attempt, exc, delay)
                self.sleeper(delay)
        return RetryOutcome(error=last_error, attempts=self.policy.max_attempts)


def with_retry(
    operation: Callable[[], _T],
    policy: RetryPolicy | None = None,
    *,
    is_retryable: Callable[[Exception], bool] = _always_retryable,
    on_retry: Callable[[int, Exception, float], None] | None = None,
    sleeper: Callable[[float], None] = time.sleep,
) -> RetryOutcome[_T]:
    """Run `operation` under `policy` and return a typed outcome."""

    runner = RetryRunner(policy=policy or RetryPolicy(), sleeper=sleeper)
    return runner.run(operation, is_retryable=is_retryable, on_retry=on_retry)

"""Unit tests for provider request pacing."""

from __future__ import annotations

from storia.llm import RateLimiter


class _FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        """Start at time zero."""

        self.now = 0.0

    def __call__(self) -> float:
        """Return the current fake time."""

        return self.now


def test_rate_limiter_spaces_requests_per_key() -> None:
    """Back-to-back acquisitions for one key should wait out the interval."""

    clock = _FakeClock()
    waits: list[float] = []
    limiter = RateLimiter(min_interval_seconds=0.5, clock=clock, sleeper=waits.append)

    limiter.acquire("openai:gpt-4o-mini")
    limiter.acquire("openai:gpt-4o-mini")
    limiter.acquire("openai:gpt-4o-mini")

    assert waits == [0.5, 1.0]


def test_rate_limiter_keys_are_independent() -> None:
    """Different keys should not delay each other."""

    clock = _FakeClock()
    waits: list[float] = []
    limiter = RateLimiter(min_interval_seconds=0.5, clock=clock, sleeper=waits.append)

    limiter.acquire("openai:model-a")
    limiter.acquire("openai:model-b")

    assert waits == []


def test_rate_limiter_does_not_wait_after_interval_elapsed() -> None:
    """A request after the interval should proceed immediately."""

    clock = _FakeClock()
    waits: list[float] = []
    limiter = RateLimiter(min_interval_seconds=0.5, clock=clock, sleeper=waits.append)

    limiter.acquire("key")
    clock.now = 2.0
    limiter.acquire("key")

    assert waits == []


def test_rate_limiter_disabled_with_zero_interval() -> None:
    """A zero interval should never sleep."""

    waits: list[float] = []
    limiter = RateLimiter(min_interval_seconds=0.0, sleeper=waits.append)

    for _ in range(5):
        limiter.acquire("key")

    assert waits == []

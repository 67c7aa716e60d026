"""Storia pipeline package.

This package contains the orchestration facade and its helper mixins for stage
telemetry, runtime/persistence handling, and concurrent unit execution.
"""

from .orchestrator import PARTIAL_FAILURE_WARNING, SoundscapePipeline
from .workers import BoundedWorkerPool, UnitOutcome, UnitTimeoutError

__all__ = [
    "BoundedWorkerPool",
    "PARTIAL_FAILURE_WARNING",
    "SoundscapePipeline",
    "UnitOutcome",
    "UnitTimeoutError",
]

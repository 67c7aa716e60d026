"""Runtime telemetry helpers for Storia."""

from .cost_tracker import CostTracker
from .logger import RunLogger

__all__ = ["CostTracker", "RunLogger"]

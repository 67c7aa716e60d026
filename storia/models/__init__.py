"""Shared datatypes and lifecycle status for Storia."""

from .datatypes import (
    BookRecord,
    ClassificationUnit,
    DescriptorSet,
    JobResult,
    JobStats,
    Page,
    ProcessingError,
    Scene,
    SoundscapeAsset,
    SoundscapeAssignment,
)
from .status import BookStatus

__all__ = [
    "BookRecord",
    "BookStatus",
    "ClassificationUnit",
    "DescriptorSet",
    "JobResult",
    "JobStats",
    "Page",
    "ProcessingError",
    "Scene",
    "SoundscapeAsset",
    "SoundscapeAssignment",
]

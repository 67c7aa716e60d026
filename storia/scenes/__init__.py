"""Scene segmentation: boundary detection and scene construction."""

from .boundaries import detect_boundaries, is_scene_change, normalize_label, normalize_mood
from .builder import build_scenes, validate_boundaries

__all__ = [
    "build_scenes",
    "detect_boundaries",
    "is_scene_change",
    "normalize_label",
    "normalize_mood",
    "validate_boundaries",
]

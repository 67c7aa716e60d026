"""Top-level package for Storia.

This package segments illustrated books into scenes from per-page classifier
descriptors and pairs each scene with a curated ambient soundscape. The main
orchestration entry point is `SoundscapePipeline`.
"""

from .pipeline import SoundscapePipeline

__all__ = ["SoundscapePipeline", "__version__"]

__version__ = "0.1.0"

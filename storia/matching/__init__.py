"""Soundscape matching: synonym table, scoring, and policy-bound selection."""

from .matcher import (
    MatchPolicy,
    NoMatch,
    SoundscapeMatch,
    SoundscapeMatcher,
    calculate_match_score,
    extract_keywords,
)
from .synonyms import SYNONYMS, synonyms_of

__all__ = [
    "MatchPolicy",
    "NoMatch",
    "SYNONYMS",
    "SoundscapeMatch",
    "SoundscapeMatcher",
    "calculate_match_score",
    "extract_keywords",
    "synonyms_of",
]

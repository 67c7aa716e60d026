"""Soundscape scoring and best-match selection.

Responsibilities:
- Derive search keywords from curated asset filenames.
- Score one asset against a scene's descriptors with weighted keyword/synonym rules.
- Select the best asset across a catalog under an explicit confidence policy.

Key types:
- `MatchPolicy`: named confidence threshold (best-effort or curated-only).
- `SoundscapeMatch`: accepted asset, category, and score.
- `NoMatch`: valid "no confident soundscape" outcome.
- `SoundscapeMatcher`: policy-bound catalog matcher.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
import re

from ..models.datatypes import UNKNOWN, DescriptorSet, SoundscapeAsset
from .synonyms import expand_terms, synonyms_of

SETTING_WEIGHT = 0.4
ELEMENT_WEIGHT = 0.15
MOOD_WEIGHT = 0.25
CATEGORY_WEIGHT = 0.2

_AUDIO_EXTENSION = re.compile(r"\.(mp3|wav|ogg|m4a|flac)$")
_SEPARATORS = re.compile(r"[._-]")
_NOISE_WORDS = frozenset({"sound", "audio", "ambience", "ambient"})


class MatchPolicy(str, Enum):
    """Workflow-specific confidence policy for accepting a match."""

    BEST_EFFORT = "best_effort"
    CURATED_ONLY = "curated_only"

    @property
    def threshold(self) -> float:
        """Score that a best match must strictly exceed to be accepted."""

        return _POLICY_THRESHOLDS[self]


_POLICY_THRESHOLDS = {
    MatchPolicy.BEST_EFFORT: 0.25,
    MatchPolicy.CURATED_ONLY: 0.35,
}


@dataclass(frozen=True, slots=True)
class SoundscapeMatch:
    """Accepted best match for a scene."""

    asset: SoundscapeAsset
    category: str
    score: float


@dataclass(frozen=True, slots=True)
class NoMatch:
    """No asset cleared the confidence threshold.

    Attributes:
        reason: `empty_catalog` or `low_confidence`.
        best_score: Highest score seen, `0.0` for an empty catalog.
        best_asset: Name of the highest-scoring asset, when any was scored.
    """

    reason: str
    best_score: float = 0.0
    best_asset: str | None = None


def extract_keywords(filename: str) -> list[str]:
    """Split an asset filename into lowercase keywords without noise words."""

    stem = _AUDIO_EXTENSION.sub("", filename.strip().lower())
    words = _SEPARATORS.sub(" ", stem).split()
    return [word for word in words if word not in _NOISE_WORDS]


def _known(value: str) -> str | None:
    """Return a lowercased descriptor value, or `None` for blank/unknown."""

    normalized = value.strip().lower()
    if not normalized or normalized == UNKNOWN:
        return None
    return normalized


def _term_matches(search_terms: Sequence[str], value: str | None) -> bool:
    """Whether any search term equals `value` or is one of its synonyms."""

    if value is None:
        return False
    related = set(synonyms_of(value))
    return any(term == value or term in related for term in search_terms)


def _category_matches(category: str, value: str | None) -> bool:
    """Two-way substring test between a category and a descriptor value."""

    if value is None or not category:
        return False
    return category in value or value in category


def _element_hits(descriptors: DescriptorSet, search_terms: Sequence[str]) -> int:
    """Count expanded dominant-element terms found inside any search term."""

    hits = 0
    for element in descriptors.element_list():
        for candidate in (element, *synonyms_of(element)):
            if any(candidate in term for term in search_terms):
                hits += 1
    return hits


def calculate_match_score(
    descriptors: DescriptorSet,
    asset: SoundscapeAsset,
    category: str | None = None,
) -> float:
    """Score how well `asset` fits `descriptors`, clamped to `[0, 1]`."""

    category_lower = (category if category is not None else asset.category).strip().lower()
    search_terms = expand_terms(extract_keywords(asset.name))
    setting = _known(descriptors.setting)

    score = 0.0
    if _term_matches(search_terms, setting):
        score += SETTING_WEIGHT
    score += ELEMENT_WEIGHT * _element_hits(descriptors, search_terms)
    if _term_matches(search_terms, _known(descriptors.mood)) or _term_matches(
        search_terms, _known(descriptors.atmosphere)
    ):
        score += MOOD_WEIGHT
    if _category_matches(category_lower, setting) or _category_matches(
        category_lower, _known(descriptors.scene_type)
    ):
        score += CATEGORY_WEIGHT
    return round(min(score, 1.0), 6)


class SoundscapeMatcher:
    """Pick the best curated asset for scene descriptors under one policy."""

    def __init__(self, policy: MatchPolicy = MatchPolicy.BEST_EFFORT) -> None:
        """Bind the matcher to a confidence policy."""

        self.policy = policy

    def match(
        self,
        descriptors: DescriptorSet,
        catalog: Mapping[str, Sequence[SoundscapeAsset]],
    ) -> SoundscapeMatch | NoMatch:
        """Return the highest-scoring asset if it clears the policy threshold.

        Categories are visited in sorted order and assets in listing order; on a
        score tie the first candidate wins, so results are reproducible.
        """

        best: SoundscapeMatch | None = None
        for category in sorted(catalog):
            for asset in catalog[category]:
                score = calculate_match_score(descriptors, asset, category)
                if best is None or score > best.score:
                    best = SoundscapeMatch(asset=asset, category=category, score=score)

        if best is None:
            return NoMatch(reason="empty_catalog")
        if best.score > self.policy.threshold:
            return best
        return NoMatch(
            reason="low_confidence",
            best_score=best.score,
            best_asset=best.asset.name,
        )

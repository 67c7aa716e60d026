"""Static synonym table used to widen descriptor and filename terms.

The table is an immutable mapping built once at import time. Lookups are
bidirectional: a term expands to its own listed synonyms plus every head term
that lists it.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

SYNONYMS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "riverside": ("river", "stream", "brook", "creek", "water", "flow", "babbling", "nature"),
        "underground": (
            "cave", "cavern", "echo", "echoing", "deep", "earth", "subterranean", "rock",
        ),
        "hall": ("castle", "grand", "interior", "corridor", "chamber", "room", "palace", "echo"),
        "chamber": ("room", "hall", "interior", "house", "echo", "cozy", "cabin"),
        "forest": (
            "wood", "grove", "trees", "nature", "glade", "enchanted", "eerie", "serene", "snowy",
        ),
        "garden": ("nature", "flowers", "park", "meadow", "plants", "quiet", "grassy"),
        "meadow": ("grass", "grassy", "field", "nature", "flowers", "sun", "quiet"),
        "library": ("quiet", "books", "study", "interior", "silence"),
        "city": ("bustling", "medieval", "modern", "street", "town", "urban"),
        "magic": (
            "fantasy", "ethereal", "spell", "enchanted", "wizard", "mystical", "supernatural",
            "fairy",
        ),
        "magical_realm": (
            "fantasy", "magic", "ethereal", "wonder", "dream", "enchanted", "forest",
        ),
        "whimsical": ("playful", "wonder", "curious", "fun", "light", "fairy", "chimes"),
        "tense": (
            "suspense", "danger", "ominous", "scary", "fear", "dark", "anxious", "heartbeat",
        ),
        "water": ("ocean", "sea", "river", "lake", "rain", "brook", "splash", "underwater"),
        "wind": ("breeze", "storm", "air", "blow", "howl", "howling", "mountain"),
        "footsteps": ("walk", "run", "step", "movement", "pace", "gravel", "snow"),
        "voices": (
            "speak", "talk", "whisper", "shout", "dialogue", "conversation", "crowd", "murmur",
        ),
        "silence": ("quiet", "calm", "still", "serene", "peace"),
        "birds": ("chirp", "sing", "nature", "wings"),
        "rain": ("light", "gentle", "heavy", "storm", "thunder"),
        "storm": ("heavy", "thunderstorm", "rain", "lightning", "raging", "blizzard"),
        "giant": ("monster", "heavy", "loud", "thud", "stomp"),
    }
)


def _build_reverse_index(table: Mapping[str, tuple[str, ...]]) -> Mapping[str, tuple[str, ...]]:
    """Map every listed synonym back to the head terms that list it."""

    reverse: dict[str, list[str]] = {}
    for head, synonyms in table.items():
        for synonym in synonyms:
            reverse.setdefault(synonym, []).append(head)
    return MappingProxyType({term: tuple(heads) for term, heads in reverse.items()})


_REVERSE_SYNONYMS = _build_reverse_index(SYNONYMS)


def synonyms_of(term: str) -> tuple[str, ...]:
    """Return forward and reverse synonyms of `term`, without `term` itself.

    Order is deterministic: listed synonyms first, then head terms that list
    `term`, with duplicates removed.
    """

    key = term.strip().lower()
    if not key:
        return ()
    ordered: dict[str, None] = {}
    for candidate in (*SYNONYMS.get(key, ()), *_REVERSE_SYNONYMS.get(key, ())):
        if candidate != key:
            ordered.setdefault(candidate, None)
    return tuple(ordered)


def expand_terms(terms: list[str] | tuple[str, ...]) -> list[str]:
    """Return `terms` followed by the synonyms of each term, deduplicated in order."""

    ordered: dict[str, None] = {}
    for term in terms:
        ordered.setdefault(term, None)
    for term in terms:
        for synonym in synonyms_of(term):
            ordered.setdefault(synonym, None)
    return list(ordered)

"""Deterministic in-memory cache for classification responses.

Responsibilities:
- Build stable cache keys from provider, model, and normalized unit text.
- Reuse descriptor payloads for repeated units, e.g. across wholesale job retries.
- Track hit/miss counters for run telemetry.

Entries are guarded by a lock because classification units run on a worker pool.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from hashlib import sha256
import json
from threading import Lock
from typing import Any


def _normalize_identity(value: Any) -> Any:
    """Collapse whitespace and order mapping keys for stable hashing."""

    if isinstance(value, str):
        return " ".join(value.split())
    if isinstance(value, list | tuple):
        return [_normalize_identity(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _normalize_identity(value[key]) for key in sorted(value, key=str)}
    return value


@dataclass(slots=True)
class ResponseCache:
    """Thread-safe cache keyed by provider/model/operation/input identity."""

    entries: dict[str, str] = field(default_factory=dict)
    hits: int = 0
    misses: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False)

    @staticmethod
    def make_key(*, provider: str, model: str, operation: str, input_identity: Any) -> str:
        """Build a deterministic cache key with a sha256 identity suffix."""

        canonical = json.dumps(
            _normalize_identity(input_identity),
            sort_keys=True,
            ensure_ascii=True,
            separators=(",", ":"),
        )
        digest = sha256(canonical.encode("utf-8")).hexdigest()
        return f"{provider.strip().lower()}:{model.strip()}:{operation.strip().lower()}:{digest}"

    def get(self, cache_key: str) -> str | None:
        """Return a cached payload and update hit/miss counters."""

        with self._lock:
            if cache_key in self.entries:
                self.hits += 1
                return self.entries[cache_key]
            self.misses += 1
            return None

    def set(self, cache_key: str, value: str) -> None:
        """Store a payload under a cache key."""

        with self._lock:
            self.entries[cache_key] = value

    def hit_rate(self) -> float:
        """Return the hit rate for the cache lifetime."""

        total = self.hits + self.misses
        return self.hits / float(total) if total else 0.0

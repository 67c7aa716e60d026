"""Core datatypes shared across Storia modules.

Responsibilities:
- Represent immutable records exchanged between pipeline stages.
- Keep descriptor fields always present, using `"unknown"` instead of `None`.
- Serialize job results into the camelCase report consumed by UI collaborators.

Key types:
- `Page`, `DescriptorSet`, `ClassificationUnit`, `Scene`, `SoundscapeAsset`,
  `SoundscapeAssignment`, `ProcessingError`, `BookRecord`, `JobStats`,
  and `JobResult`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from .status import BookStatus

UNKNOWN = "unknown"

ACTIVITY_SCALE: tuple[str, ...] = ("calm", "moderate", "active", "energetic", "high")
INTENSITY_SCALE: tuple[str, ...] = ("low", "medium", "high")

_ACTIVITY_ALIASES: dict[str, str] = {
    "low": "calm",
    "quiet": "calm",
    "peaceful": "calm",
    "still": "calm",
    "medium": "moderate",
    "intense": "high",
    "frantic": "high",
}

_DESCRIPTOR_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "mood": ("mood",),
    "setting": ("setting",),
    "time_of_day": ("time_of_day", "timeOfDay"),
    "weather": ("weather",),
    "activity_level": ("activity_level", "activityLevel", "intensity"),
    "atmosphere": ("atmosphere",),
    "dominant_elements": ("dominant_elements", "dominantElements"),
    "scene_type": ("scene_type", "sceneType"),
}


def activity_rank(value: str) -> int | None:
    """Return the 0-based ordinal of an activity level, or `None` when unranked."""

    token = value.strip().lower()
    token = _ACTIVITY_ALIASES.get(token, token)
    try:
        return ACTIVITY_SCALE.index(token)
    except ValueError:
        return None


def intensity_rank(value: str) -> int | None:
    """Return the ordinal on the three-level `INTENSITY_SCALE`, or `None`."""

    token = value.strip().lower()
    return INTENSITY_SCALE.index(token) if token in INTENSITY_SCALE else None


def _descriptor_text(value: Any) -> str:
    """Coerce one raw descriptor value into a non-empty string."""

    if value is None:
        return UNKNOWN
    if isinstance(value, list | tuple):
        parts = [str(item).strip() for item in value if str(item).strip()]
        return ", ".join(parts) if parts else UNKNOWN
    text = str(value).strip()
    return text or UNKNOWN


@dataclass(frozen=True, slots=True)
class Page:
    """One page of extracted book text.

    Attributes:
        page_number: 1-based page number.
        text_content: Extracted page text, possibly empty for image-only pages.
    """

    page_number: int
    text_content: str


@dataclass(frozen=True, slots=True)
class DescriptorSet:
    """Categorical scene descriptors produced for one page or spread.

    Attributes:
        mood: Emotional tone, e.g. `calm` or `tense`.
        setting: Physical location, e.g. `forest`.
        time_of_day: Time of day label.
        weather: Weather label.
        activity_level: Ordinal activity label on `ACTIVITY_SCALE`.
        atmosphere: Overall feel, e.g. `whimsical`.
        dominant_elements: Comma-separated list of notable sound sources.
        scene_type: Narrative scene type, e.g. `dialogue` or `description`.
    """

    mood: str = UNKNOWN
    setting: str = UNKNOWN
    time_of_day: str = UNKNOWN
    weather: str = UNKNOWN
    activity_level: str = UNKNOWN
    atmosphere: str = UNKNOWN
    dominant_elements: str = UNKNOWN
    scene_type: str = UNKNOWN

    @classmethod
    def default(cls) -> DescriptorSet:
        """Return the neutral descriptor set used when classification fails."""

        return cls(
            mood="neutral",
            setting=UNKNOWN,
            time_of_day=UNKNOWN,
            weather=UNKNOWN,
            activity_level="moderate",
            atmosphere="neutral",
            dominant_elements=UNKNOWN,
            scene_type="description",
        )

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> DescriptorSet:
        """Build descriptors from snake_case, camelCase, or legacy `intensity` keys."""

        values: dict[str, str] = {}
        for field_name, aliases in _DESCRIPTOR_FIELD_ALIASES.items():
            raw_value = None
            for alias in aliases:
                if alias in payload and payload[alias] is not None:
                    raw_value = payload[alias]
                    break
            values[field_name] = _descriptor_text(raw_value)
        return cls(**values)

    @property
    def activity_rank(self) -> int | None:
        """Ordinal position of `activity_level`, `None` when not on the scale."""

        return activity_rank(self.activity_level)

    def element_list(self) -> list[str]:
        """Return trimmed, lowercased dominant elements without blanks or `unknown`."""

        elements = [item.strip().lower() for item in self.dominant_elements.split(",")]
        return [item for item in elements if item and item != UNKNOWN]

    def as_payload(self) -> dict[str, str]:
        """Serialize descriptors into a snake_case JSON-compatible mapping."""

        return {
            "mood": self.mood,
            "setting": self.setting,
            "time_of_day": self.time_of_day,
            "weather": self.weather,
            "activity_level": self.activity_level,
            "atmosphere": self.atmosphere,
            "dominant_elements": self.dominant_elements,
            "scene_type": self.scene_type,
        }


@dataclass(frozen=True, slots=True)
class ClassificationUnit:
    """One classification request: a single page or a 2-page spread.

    Attributes:
        unit_index: 0-based index in classification order.
        page_numbers: Page numbers covered by this unit.
        texts: Page texts aligned with `page_numbers`.
    """

    unit_index: int
    page_numbers: tuple[int, ...]
    texts: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Scene:
    """A contiguous page range sharing one representative descriptor set.

    Attributes:
        scene_number: 1-based sequential scene number.
        start_page: Inclusive first page.
        end_page: Inclusive last page.
        descriptors: Descriptors copied from the scene's first page.
        book_id: Owning book identifier.
        soundscape_id: Matched asset name, when a soundscape was assigned.
    """

    scene_number: int
    start_page: int
    end_page: int
    descriptors: DescriptorSet
    book_id: str = ""
    soundscape_id: str | None = None

    @property
    def scene_id(self) -> str:
        """Deterministic scene identifier derived from book id and scene number."""

        return f"{self.book_id}-scene-{self.scene_number:04d}"

    @property
    def page_count(self) -> int:
        """Number of pages covered by this scene."""

        return self.end_page - self.start_page + 1

    def with_soundscape(self, soundscape_id: str | None) -> Scene:
        """Return a copy with the soundscape reference attached."""

        return replace(self, soundscape_id=soundscape_id)

    def as_payload(self) -> dict[str, object]:
        """Serialize scene for repository persistence."""

        return {
            "scene_id": self.scene_id,
            "scene_number": self.scene_number,
            "start_page": self.start_page,
            "end_page": self.end_page,
            "descriptors": self.descriptors.as_payload(),
            "soundscape_id": self.soundscape_id,
        }

    @classmethod
    def from_payload(cls, book_id: str, payload: Mapping[str, Any]) -> Scene:
        """Rebuild a scene from its persisted payload."""

        return cls(
            scene_number=int(payload["scene_number"]),
            start_page=int(payload["start_page"]),
            end_page=int(payload["end_page"]),
            descriptors=DescriptorSet.from_mapping(payload.get("descriptors") or {}),
            book_id=book_id,
            soundscape_id=payload.get("soundscape_id"),
        )


@dataclass(frozen=True, slots=True)
class SoundscapeAsset:
    """Curated ambient audio file available for matching.

    Attributes:
        name: Asset filename, e.g. `Echoing_Cave.mp3`.
        category: Catalog category the asset is listed under.
        path: Optional filesystem location.
    """

    name: str
    category: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class SoundscapeAssignment:
    """Best soundscape match accepted for one scene."""

    scene_id: str
    asset_name: str
    category: str
    match_score: float

    def as_payload(self) -> dict[str, object]:
        """Serialize assignment for repository persistence."""

        return {
            "scene_id": self.scene_id,
            "asset_name": self.asset_name,
            "category": self.category,
            "match_score": round(self.match_score, 4),
        }


@dataclass(frozen=True, slots=True)
class ProcessingError:
    """One recorded per-unit or per-scene failure.

    Attributes:
        timestamp: ISO-8601 UTC timestamp of the failure.
        unit_index: Classification unit index, or scene number for matching errors.
        page_numbers: Pages affected by the failure.
        error_kind: Short failure category, e.g. `timeout` or `classification`.
        message: Human-readable failure detail.
        attempt_number: Attempt on which the failure was final.
    """

    timestamp: str
    unit_index: int
    page_numbers: tuple[int, ...]
    error_kind: str
    message: str
    attempt_number: int = 1

    @classmethod
    def now(
        cls,
        *,
        unit_index: int,
        page_numbers: tuple[int, ...],
        error_kind: str,
        message: str,
        attempt_number: int = 1,
    ) -> ProcessingError:
        """Create an error record stamped with the current UTC time."""

        return cls(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            unit_index=unit_index,
            page_numbers=tuple(page_numbers),
            error_kind=error_kind,
            message=message,
            attempt_number=attempt_number,
        )

    def as_payload(self) -> dict[str, object]:
        """Serialize the full error record for the book's error list."""

        return {
            "timestamp": self.timestamp,
            "unitIndex": self.unit_index,
            "pageNumbers": list(self.page_numbers),
            "errorKind": self.error_kind,
            "errorMessage": self.message,
            "attemptNumber": self.attempt_number,
        }

    def as_report_entry(self) -> dict[str, object]:
        """Serialize the compact entry used in job reports."""

        return {
            "unitIndex": self.unit_index,
            "pageNumbers": list(self.page_numbers),
            "errorMessage": self.message,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ProcessingError:
        """Rebuild an error record from its persisted payload."""

        return cls(
            timestamp=str(payload.get("timestamp", "")),
            unit_index=int(payload.get("unitIndex", 0)),
            page_numbers=tuple(int(item) for item in payload.get("pageNumbers", [])),
            error_kind=str(payload.get("errorKind", "unknown")),
            message=str(payload.get("errorMessage", "")),
            attempt_number=int(payload.get("attemptNumber", 1)),
        )


@dataclass(frozen=True, slots=True)
class BookRecord:
    """Persisted book state visible to polling collaborators.

    Attributes:
        book_id: Stable book identifier.
        title: Human-readable title.
        status: Current lifecycle status.
        total_pages: Number of stored pages.
        processing_errors: Accumulated error list of the latest run.
        processing_cost_usd: Estimated classification cost of the latest run.
    """

    book_id: str
    title: str
    status: BookStatus = BookStatus.PENDING
    total_pages: int = 0
    processing_errors: tuple[ProcessingError, ...] = ()
    processing_cost_usd: float = 0.0


@dataclass(frozen=True, slots=True)
class JobStats:
    """Counters reported for one pipeline job."""

    total_units: int = 0
    processed_units: int = 0
    scenes_created: int = 0
    soundscapes_matched: int = 0
    error_count: int = 0
    classification_attempts: int = 0
    estimated_cost_usd: float = 0.0
    processing_time_seconds: float = 0.0

    def as_payload(self) -> dict[str, object]:
        """Serialize stats using report field names."""

        return {
            "totalUnits": self.total_units,
            "processedUnits": self.processed_units,
            "scenesCreated": self.scenes_created,
            "soundscapesMatched": self.soundscapes_matched,
            "errorCount": self.error_count,
            "classificationAttempts": self.classification_attempts,
            "estimatedCostUsd": round(self.estimated_cost_usd, 6),
            "processingTimeSeconds": round(self.processing_time_seconds, 3),
        }


@dataclass(frozen=True, slots=True)
class JobResult:
    """Structured outcome of one pipeline job.

    Attributes:
        success: Whether the job reached a non-failed terminal status.
        book_id: Processed book identifier.
        status: Terminal status written for the book.
        stats: Job counters.
        errors: Accumulated processing errors.
        warning: Warning text for success-with-warnings outcomes.
        failure: Fatal failure detail when `success` is false.
        failure_kind: Exception class name of the fatal failure.
        attempts: Number of wholesale job attempts made.
    """

    success: bool
    book_id: str
    status: BookStatus
    stats: JobStats = field(default_factory=JobStats)
    errors: tuple[ProcessingError, ...] = ()
    warning: str | None = None
    failure: str | None = None
    failure_kind: str | None = None
    attempts: int = 1

    def as_payload(self) -> dict[str, object]:
        """Serialize the job report consumed by UI and monitoring collaborators."""

        payload: dict[str, object] = {
            "success": self.success,
            "bookId": self.book_id,
            "status": self.status.value,
            "stats": self.stats.as_payload(),
        }
        if self.warning:
            payload["warning"] = self.warning
        if self.errors:
            payload["errors"] = [error.as_report_entry() for error in self.errors]
        if self.failure:
            payload["error"] = self.failure
        return payload

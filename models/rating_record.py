"""Rating record data model and helpers."""

from __future__ import annotations

import json
import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

MIN_SCORE = 0.0
MAX_SCORE = 10.0


def _ensure_suggestions(value: Any) -> List[str]:
    """Coerce stored or model-provided suggestions into a list of strings."""

    if value is None:
        return []
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                value = json.loads(stripped)
            except json.JSONDecodeError:
                value = [stripped]
        else:
            value = [stripped]
    if not isinstance(value, (list, tuple)):
        value = [value]
    return [str(item).strip() for item in value if str(item).strip()]


def _validate_score(name: str, value: Any) -> float:
    score = float(value)
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ValueError(f"{name} must be within [{MIN_SCORE}, {MAX_SCORE}], got {score}")
    return score


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RatingFields:
    """Evaluative fields produced by the stylist model for one outfit."""

    outfit_vibe: str
    look_score: float
    look_comment: str
    color_score: float
    color_comment: str
    suggestions: List[str] = field(default_factory=list)
    observations: str = ""

    def __post_init__(self) -> None:
        self.outfit_vibe = str(self.outfit_vibe).strip()
        self.look_score = _validate_score("look_score", self.look_score)
        self.color_score = _validate_score("color_score", self.color_score)
        self.look_comment = str(self.look_comment or "")
        self.color_comment = str(self.color_comment or "")
        self.suggestions = _ensure_suggestions(self.suggestions)
        self.observations = str(self.observations or "")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RatingRecord:
    """One evaluated outfit as held in the session list and the backing store."""

    id: int
    image_url: str
    created_at: str
    outfit_vibe: str
    look_score: float
    look_comment: str
    color_score: float
    color_comment: str
    suggestions: List[str] = field(default_factory=list)
    observations: str = ""
    user_id: Optional[str] = None

    def __post_init__(self) -> None:
        self.id = int(self.id)
        self.look_score = _validate_score("look_score", self.look_score)
        self.color_score = _validate_score("color_score", self.color_score)
        self.suggestions = _ensure_suggestions(self.suggestions)
        self.observations = str(self.observations or "")

    @classmethod
    def from_fields(
        cls,
        record_id: int,
        image_url: str,
        fields: RatingFields,
        created_at: str | None = None,
    ) -> "RatingRecord":
        return cls(
            id=record_id,
            image_url=image_url,
            created_at=created_at or utc_now_iso(),
            outfit_vibe=fields.outfit_vibe,
            look_score=fields.look_score,
            look_comment=fields.look_comment,
            color_score=fields.color_score,
            color_comment=fields.color_comment,
            suggestions=list(fields.suggestions),
            observations=fields.observations,
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "RatingRecord":
        """Build a record from a backing-store row."""

        return cls(
            id=row["id"],
            image_url=row["image_url"],
            created_at=str(row["created_at"]),
            outfit_vibe=row["outfit_vibe"],
            look_score=row["look_score"],
            look_comment=row.get("look_comment") or "",
            color_score=row["color_score"],
            color_comment=row.get("color_comment") or "",
            suggestions=row.get("suggestions"),
            observations=row.get("observations") or "",
            user_id=row.get("user_id"),
        )

    @property
    def fields(self) -> RatingFields:
        return RatingFields(
            outfit_vibe=self.outfit_vibe,
            look_score=self.look_score,
            look_comment=self.look_comment,
            color_score=self.color_score,
            color_comment=self.color_comment,
            suggestions=list(self.suggestions),
            observations=self.observations,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PendingSubmission:
    """A rating whose durable write failed, kept for later replay.

    The image must already be an inline ``data:`` URL so the item survives a
    reload; short-lived references such as ``blob:`` URLs are rejected.
    """

    image_url: str
    rating: RatingFields
    placeholder_id: Optional[int] = None

    def __post_init__(self) -> None:
        if isinstance(self.rating, dict):
            self.rating = RatingFields(**self.rating)
        if not self.image_url.startswith("data:"):
            raise ValueError("pending submissions must carry an inline data: URL image")

    def to_row(self) -> Dict[str, Any]:
        """Render the insert payload expected by the backing store."""

        return {"image_url": self.image_url, **self.rating.to_dict()}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "image_url": self.image_url,
            "rating": self.rating.to_dict(),
            "placeholder_id": self.placeholder_id,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PendingSubmission":
        return cls(
            image_url=str(payload["image_url"]),
            rating=RatingFields(**payload["rating"]),
            placeholder_id=payload.get("placeholder_id"),
        )


class PlaceholderIds:
    """Clock-derived, strictly increasing identifiers for optimistic records."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            candidate = int(self._clock() * 1000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return candidate


__all__ = [
    "RatingFields",
    "RatingRecord",
    "PendingSubmission",
    "PlaceholderIds",
    "utc_now_iso",
]

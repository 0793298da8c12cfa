"""
Module: types
Purpose: Shared domain types for the discovery pipeline.
Dependencies: concierge.config (tier thresholds only)

Stable import boundary: scorer, run recorder, approval queue, backfill and
routes all use these types. Keeping them in a leaf module prevents circular
imports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from concierge.config import TIER_BALANCED, TIER_BROAD, TIER_CONSERVATIVE

# ---------------------------------------------------------------------------
# Closed enumerations
# ---------------------------------------------------------------------------


class RejectionReason(str, Enum):
    """Why a scanned message did not become a pending approval item."""

    DOMAIN = "domain"
    KEYWORD_NO_MATCH = "keyword_no_match"
    LOW_SCORE = "low_score"
    DUPLICATE = "duplicate"
    OTHER = "other"


class SensitivityTier(str, Enum):
    """Named confidence-threshold preset applied per category."""

    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    BROAD = "broad"
    OFF = "off"

    @property
    def threshold(self) -> float | None:
        """Minimum score for inclusion; None means the category is never included."""
        return {
            SensitivityTier.CONSERVATIVE: TIER_CONSERVATIVE,
            SensitivityTier.BALANCED: TIER_BALANCED,
            SensitivityTier.BROAD: TIER_BROAD,
            SensitivityTier.OFF: None,
        }[self]


class Category(str, Enum):
    """Household categories a discovered message can fall into."""

    SCHOOL = "school"
    SPORTS_ACTIVITIES = "sports_activities"
    MEDICAL_HEALTH = "medical_health"
    FRIENDS_SOCIAL = "friends_social"
    LOGISTICS = "logistics"
    FORMS_ADMIN = "forms_admin"
    FINANCIAL_BILLING = "financial_billing"
    COMMUNITY_OPTIONAL = "community_optional"


DEFAULT_CATEGORY_SENSITIVITY: dict[Category, SensitivityTier] = {
    Category.SCHOOL: SensitivityTier.BALANCED,
    Category.SPORTS_ACTIVITIES: SensitivityTier.BALANCED,
    Category.MEDICAL_HEALTH: SensitivityTier.CONSERVATIVE,
    Category.FRIENDS_SOCIAL: SensitivityTier.CONSERVATIVE,
    Category.LOGISTICS: SensitivityTier.BALANCED,
    Category.FORMS_ADMIN: SensitivityTier.BALANCED,
    Category.FINANCIAL_BILLING: SensitivityTier.CONSERVATIVE,
    Category.COMMUNITY_OPTIONAL: SensitivityTier.OFF,
}


class ItemType(str, Enum):
    """Whether a discovered item asks something of the household."""

    OBLIGATION = "obligation"  # deadline, RSVP, form to sign
    ANNOUNCEMENT = "announcement"  # informational


class ConfidenceBucket(str, Enum):
    """Five-way histogram bucket for included scores."""

    VERY_LOW = "very_low"  # < 0.2
    LOW = "low"  # < 0.4
    MEDIUM = "medium"  # < 0.6
    HIGH = "high"  # < 0.8
    VERY_HIGH = "very_high"  # >= 0.8

    @classmethod
    def for_score(cls, score: float) -> ConfidenceBucket:
        if score < 0.2:
            return cls.VERY_LOW
        if score < 0.4:
            return cls.LOW
        if score < 0.6:
            return cls.MEDIUM
        if score < 0.8:
            return cls.HIGH
        return cls.VERY_HIGH


# ---------------------------------------------------------------------------
# Messages and event intents
# ---------------------------------------------------------------------------


class Message(BaseModel):
    """A message as returned by the message source collaborator."""

    model_config = ConfigDict(frozen=True)

    id: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""
    internal_date: datetime | None = None

    def header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    @property
    def from_address(self) -> str:
        return self.header("From")

    @property
    def subject(self) -> str:
        return self.header("Subject")


class EventIntent(BaseModel):
    """
    Candidate event extracted from a message.

    Immutable: reprocessing a message regenerates a new EventIntent instead of
    mutating the old one. Naive start/end values are interpreted in
    ``timezone``. When ``end`` is omitted it defaults to one hour after start,
    or one day for all-day events.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    timezone: str = "UTC"
    all_day: bool = False
    start: datetime
    end: datetime | None = Field(default=None, validate_default=True)
    location: str | None = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("title cannot be empty")
        return v.strip()

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone: {v}") from e
        return v

    @field_validator("start")
    @classmethod
    def localize_start(cls, v: datetime, info: ValidationInfo) -> datetime:
        return _localize(v, info.data.get("timezone", "UTC"))

    @field_validator("end")
    @classmethod
    def localize_end(cls, v: datetime | None, info: ValidationInfo) -> datetime | None:
        start = info.data.get("start")
        if v is None:
            if start is None:
                return None
            return start + (timedelta(days=1) if info.data.get("all_day") else timedelta(hours=1))
        end = _localize(v, info.data.get("timezone", "UTC"))
        if start is not None and end < start:
            raise ValueError("end must not be before start")
        return end

    @property
    def start_date(self) -> date:
        return self.start.astimezone(ZoneInfo(self.timezone)).date()

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "timezone": self.timezone,
            "all_day": self.all_day,
            "start": self.start.isoformat(),
            "end": self.end.isoformat() if self.end else None,
            "location": self.location,
        }


def _localize(value: datetime, timezone: str) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=ZoneInfo(timezone))
    return value


# ---------------------------------------------------------------------------
# Classifier and scorer results
# ---------------------------------------------------------------------------


@dataclass
class Classification:
    """Output of a RelevanceClassifier."""

    score: float
    category: Category
    extracted_intent: EventIntent | None = None
    category_scores: dict[str, float] = field(default_factory=dict)
    method: str = "heuristic"  # "heuristic" | "llm"


@dataclass
class ScoreResult:
    """Result of scoring one message against one pack."""

    included: bool
    score: float
    rejection_reason: RejectionReason | None = None
    category: Category | None = None
    extracted_intent: EventIntent | None = None
    needs_manual_completion: bool = False
    item_type: ItemType = ItemType.ANNOUNCEMENT
    obligation_date: date | None = None
    person: str | None = None
    from_domain: str = ""
    matched_keywords: list[str] = field(default_factory=list)

    @classmethod
    def excluded(
        cls,
        reason: RejectionReason,
        score: float = 0.0,
        from_domain: str = "",
        matched_keywords: list[str] | None = None,
        category: Category | None = None,
    ) -> ScoreResult:
        return cls(
            included=False,
            score=score,
            rejection_reason=reason,
            category=category,
            from_domain=from_domain,
            matched_keywords=matched_keywords or [],
        )

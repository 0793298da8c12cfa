"""
Domain suggestion models.

A SuggestedDomain aggregates evidence that an off-list sender keeps writing
about things a pack cares about, so a reviewer can add it to the allow-list.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(UTC)


class SuggestionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SuggestedDomain(BaseModel):
    """One (domain, pack) suggestion and its accumulated evidence."""

    model_config = ConfigDict(frozen=True)

    id: str
    domain: str
    pack_id: str
    email_count: int = Field(default=1, ge=1)
    matched_keywords: list[str] = Field(default_factory=list)
    sample_subjects: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    first_seen_at: datetime = Field(default_factory=utc_now)
    last_seen_at: datetime = Field(default_factory=utc_now)
    status: SuggestionStatus = SuggestionStatus.PENDING
    rejection_reason: str | None = None
    permanent: bool = False
    decided_at: datetime | None = None

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "domain": self.domain,
            "pack_id": self.pack_id,
            "email_count": self.email_count,
            "matched_keywords": json.dumps(self.matched_keywords),
            "sample_subjects": json.dumps(self.sample_subjects),
            "confidence": self.confidence,
            "first_seen_at": self.first_seen_at.isoformat(),
            "last_seen_at": self.last_seen_at.isoformat(),
            "status": self.status.value,
            "rejection_reason": self.rejection_reason,
            "permanent": int(self.permanent),
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> SuggestedDomain:
        return cls(
            id=row["id"],
            domain=row["domain"],
            pack_id=row["pack_id"],
            email_count=row["email_count"],
            matched_keywords=json.loads(row["matched_keywords"] or "[]"),
            sample_subjects=json.loads(row["sample_subjects"] or "[]"),
            confidence=row["confidence"],
            first_seen_at=datetime.fromisoformat(row["first_seen_at"]),
            last_seen_at=datetime.fromisoformat(row["last_seen_at"]),
            status=SuggestionStatus(row["status"]),
            rejection_reason=row.get("rejection_reason"),
            permanent=bool(row.get("permanent")),
            decided_at=datetime.fromisoformat(row["decided_at"]) if row.get("decided_at") else None,
        )

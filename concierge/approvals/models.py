"""
Approval queue domain models.

A PendingApprovalItem is created by discovery on first sight of a
(fingerprint, pack) pair and changes only through disposition. Dismissal
removes the row and leaves a write-once DismissalRecord behind.
"""

from __future__ import annotations

import json
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from concierge.config import DEFAULT_PERSON, ESCALATION_DAYS
from concierge.discovery.types import Category, EventIntent, ItemType


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def _to_db_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def _from_db_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class DispositionState(str, Enum):
    """Lifecycle of an approval item. Everything but PENDING is terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISMISSED = "dismissed"


class PendingApprovalItem(BaseModel):
    """
    A discovered candidate awaiting human disposition.

    ``id`` is an opaque uuid4 hex token that doubles as the capability token
    in approve/reject links.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    message_id: str
    pack_id: str
    fingerprint: str
    relevance_score: float = Field(ge=0.0, le=1.0)
    from_email: str
    from_name: str = ""
    subject: str
    snippet: str = ""
    person: str = DEFAULT_PERSON
    primary_category: Category
    item_type: ItemType = ItemType.ANNOUNCEMENT
    obligation_date: date | None = None
    state: DispositionState = DispositionState.PENDING
    discovered_at: datetime = Field(default_factory=utc_now)
    disposed_at: datetime | None = None
    disposed_by: str | None = None
    needs_manual_completion: bool = False
    event: EventIntent | None = None
    digest_included: bool = False

    @field_validator("fingerprint")
    @classmethod
    def fingerprint_is_hex(cls, v: str) -> str:
        if len(v) != 64 or any(c not in "0123456789abcdef" for c in v):
            raise ValueError("fingerprint must be a 64-char lowercase hex digest")
        return v

    @field_validator("discovered_at", "disposed_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    def days_pending(self, now: datetime | None = None) -> int:
        now = now or utc_now()
        return (now - self.discovered_at).days

    def is_escalated(self, now: datetime | None = None, threshold_days: int = ESCALATION_DAYS) -> bool:
        """Pending for at least threshold_days. Derived on read, never stored."""
        return self.state == DispositionState.PENDING and self.days_pending(now) >= threshold_days

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "message_id": self.message_id,
            "pack_id": self.pack_id,
            "fingerprint": self.fingerprint,
            "relevance_score": self.relevance_score,
            "from_email": self.from_email,
            "from_name": self.from_name,
            "subject": self.subject,
            "snippet": self.snippet,
            "person": self.person,
            "primary_category": self.primary_category.value,
            "item_type": self.item_type.value,
            "obligation_date": self.obligation_date.isoformat() if self.obligation_date else None,
            "state": self.state.value,
            "discovered_at": _to_db_time(self.discovered_at),
            "disposed_at": _to_db_time(self.disposed_at),
            "disposed_by": self.disposed_by,
            "needs_manual_completion": int(self.needs_manual_completion),
            "event_json": json.dumps(self.event.to_json_dict()) if self.event else None,
            "digest_included": int(self.digest_included),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> PendingApprovalItem:
        event_json = row.get("event_json")
        obligation_date = row.get("obligation_date")
        return cls(
            id=row["id"],
            message_id=row["message_id"],
            pack_id=row["pack_id"],
            fingerprint=row["fingerprint"],
            relevance_score=row["relevance_score"],
            from_email=row["from_email"],
            from_name=row.get("from_name") or "",
            subject=row["subject"],
            snippet=row.get("snippet") or "",
            person=row.get("person") or DEFAULT_PERSON,
            primary_category=Category(row["primary_category"]),
            item_type=ItemType(row.get("item_type") or ItemType.ANNOUNCEMENT.value),
            obligation_date=date.fromisoformat(obligation_date) if obligation_date else None,
            state=DispositionState(row["state"]),
            discovered_at=_from_db_time(row["discovered_at"]),
            disposed_at=_from_db_time(row.get("disposed_at")),
            disposed_by=row.get("disposed_by"),
            needs_manual_completion=bool(row.get("needs_manual_completion")),
            event=EventIntent.model_validate(json.loads(event_json)) if event_json else None,
            digest_included=bool(row.get("digest_included")),
        )


class DismissalRecord(BaseModel):
    """Write-once audit entry left behind when an item is dismissed."""

    model_config = ConfigDict(frozen=True)

    id: str
    item_type: ItemType
    item_id: str
    original_subject: str = ""
    original_from: str = ""
    original_date: datetime | None = None
    person: str = DEFAULT_PERSON
    pack_id: str
    reason: str
    dismissed_by: str | None = None
    dismissed_at: datetime = Field(default_factory=utc_now)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("reason cannot be empty")
        return v.strip()

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "item_type": self.item_type.value,
            "item_id": self.item_id,
            "original_subject": self.original_subject,
            "original_from": self.original_from,
            "original_date": _to_db_time(self.original_date),
            "person": self.person,
            "pack_id": self.pack_id,
            "reason": self.reason,
            "dismissed_by": self.dismissed_by,
            "dismissed_at": _to_db_time(self.dismissed_at),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> DismissalRecord:
        return cls(
            id=row["id"],
            item_type=ItemType(row["item_type"]),
            item_id=row["item_id"],
            original_subject=row.get("original_subject") or "",
            original_from=row.get("original_from") or "",
            original_date=_from_db_time(row.get("original_date")),
            person=row.get("person") or DEFAULT_PERSON,
            pack_id=row["pack_id"],
            reason=row["reason"],
            dismissed_by=row.get("dismissed_by"),
            dismissed_at=_from_db_time(row["dismissed_at"]),
        )

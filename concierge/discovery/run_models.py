"""
Discovery run audit models.

DiscoveryRunStats is one immutable row per run. RejectedSample rows keep a
small, expiring sample of excluded messages for threshold tuning.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from concierge.discovery.types import ConfidenceBucket, RejectionReason


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


class DiscoveryRunStats(BaseModel):
    """
    Counters for one discovery run.

    Invariants, enforced at construction:
    - sum(histogram) == flagged
    - scanned == flagged + sum(rejections)
    """

    model_config = ConfigDict(frozen=True)

    id: str
    pack_id: str
    run_at: datetime
    finished_at: datetime
    scanned: int = Field(ge=0)
    flagged: int = Field(ge=0)
    histogram: dict[ConfidenceBucket, int]
    rejections: dict[RejectionReason, int]
    sampled_for_review: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def counters_balance(self) -> DiscoveryRunStats:
        if sum(self.histogram.values()) != self.flagged:
            raise ValueError("histogram buckets must sum to flagged")
        if self.flagged + sum(self.rejections.values()) != self.scanned:
            raise ValueError("scanned must equal flagged plus rejections")
        return self

    @property
    def discovery_yield(self) -> float:
        """flagged / scanned, derived on read and never stored."""
        return self.flagged / self.scanned if self.scanned else 0.0

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "pack_id": self.pack_id,
            "run_at": self.run_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "scanned": self.scanned,
            "flagged": self.flagged,
            "sampled_for_review": self.sampled_for_review,
            **{f"bucket_{b.value}": self.histogram.get(b, 0) for b in ConfidenceBucket},
            **{f"rejected_{r.value}": self.rejections.get(r, 0) for r in RejectionReason},
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> DiscoveryRunStats:
        return cls(
            id=row["id"],
            pack_id=row["pack_id"],
            run_at=datetime.fromisoformat(row["run_at"]),
            finished_at=datetime.fromisoformat(row["finished_at"]),
            scanned=row["scanned"],
            flagged=row["flagged"],
            sampled_for_review=row["sampled_for_review"],
            histogram={b: row[f"bucket_{b.value}"] for b in ConfidenceBucket},
            rejections={r: row[f"rejected_{r.value}"] for r in RejectionReason},
        )


class SampleBand(str, Enum):
    """Score band a rejected sample was drawn from."""

    NEAR_THRESHOLD = "near_threshold"  # 0.50 - 0.70, highest scores first
    WEAK = "weak"  # 0.30 - 0.50, random
    VERY_WEAK = "very_weak"  # 0.10 - 0.30, random


class RejectedSample(BaseModel):
    """One excluded message retained for audit."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    run_id: str
    pack_id: str
    message_id: str
    from_domain: str = ""
    subject: str = ""
    score: float
    reason: RejectionReason
    sample_band: SampleBand
    sampled_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "run_id": self.run_id,
            "pack_id": self.pack_id,
            "message_id": self.message_id,
            "from_domain": self.from_domain,
            "subject": self.subject,
            "score": self.score,
            "reason": self.reason,
            "sample_band": self.sample_band,
            "sampled_at": self.sampled_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> RejectedSample:
        return cls(
            id=row["id"],
            run_id=row["run_id"],
            pack_id=row["pack_id"],
            message_id=row["message_id"],
            from_domain=row.get("from_domain") or "",
            subject=row.get("subject") or "",
            score=row["score"],
            reason=RejectionReason(row["reason"]),
            sample_band=SampleBand(row["sample_band"]),
            sampled_at=datetime.fromisoformat(row["sampled_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
        )

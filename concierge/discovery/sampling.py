"""
Rejected-message sampling for threshold tuning.

From every run, keep the near misses (highest scores just under typical
thresholds) plus a few random weak and very weak rejections, so reviewers
can see what the scorer is dropping without storing every message.
"""

from __future__ import annotations

import random
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from concierge.config import (
    SAMPLE_NEAR_THRESHOLD_LIMIT,
    SAMPLE_RETENTION_DAYS,
    SAMPLE_VERY_WEAK_LIMIT,
    SAMPLE_WEAK_LIMIT,
)
from concierge.discovery.run_models import RejectedSample, SampleBand
from concierge.discovery.types import RejectionReason

# (band, low inclusive, high exclusive)
BANDS: tuple[tuple[SampleBand, float, float], ...] = (
    (SampleBand.NEAR_THRESHOLD, 0.50, 0.70),
    (SampleBand.WEAK, 0.30, 0.50),
    (SampleBand.VERY_WEAK, 0.10, 0.30),
)


@dataclass(frozen=True)
class RejectedCandidate:
    """An excluded message that carried a score, eligible for sampling."""

    message_id: str
    from_domain: str
    subject: str
    score: float
    reason: RejectionReason


def band_for(score: float) -> SampleBand | None:
    for band, low, high in BANDS:
        if low <= score < high:
            return band
    return None


def select_samples(
    candidates: list[RejectedCandidate],
    run_id: str,
    pack_id: str,
    now: datetime,
    rng: random.Random | None = None,
) -> list[RejectedSample]:
    """
    Pick the audit sample for one run.

    near_threshold: top SAMPLE_NEAR_THRESHOLD_LIMIT by score
    weak / very_weak: SAMPLE_WEAK_LIMIT / SAMPLE_VERY_WEAK_LIMIT at random
    """
    rng = rng or random.Random()
    by_band: dict[SampleBand, list[RejectedCandidate]] = {band: [] for band, _, _ in BANDS}
    for candidate in candidates:
        band = band_for(candidate.score)
        if band is not None:
            by_band[band].append(candidate)

    picked: list[tuple[SampleBand, RejectedCandidate]] = []
    near = sorted(by_band[SampleBand.NEAR_THRESHOLD], key=lambda c: c.score, reverse=True)
    picked.extend((SampleBand.NEAR_THRESHOLD, c) for c in near[:SAMPLE_NEAR_THRESHOLD_LIMIT])

    for band, limit in ((SampleBand.WEAK, SAMPLE_WEAK_LIMIT), (SampleBand.VERY_WEAK, SAMPLE_VERY_WEAK_LIMIT)):
        pool = by_band[band]
        chosen = pool if len(pool) <= limit else rng.sample(pool, limit)
        picked.extend((band, c) for c in chosen)

    expires_at = now + timedelta(days=SAMPLE_RETENTION_DAYS)
    return [
        RejectedSample(
            id=uuid.uuid4().hex,
            run_id=run_id,
            pack_id=pack_id,
            message_id=c.message_id,
            from_domain=c.from_domain,
            subject=c.subject,
            score=c.score,
            reason=c.reason,
            sample_band=band,
            sampled_at=now,
            expires_at=expires_at,
        )
        for band, c in picked
    ]

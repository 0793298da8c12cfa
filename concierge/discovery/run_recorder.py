"""
Discovery Run Recorder - per-run counters for audit and tuning.

A RunHandle is an explicit accumulator passed to every scoring call instead
of module-level counters. Workers share one handle per run; every update is
an additive increment under the handle's lock, so concurrent scoring never
loses counts. finalize_run turns the handle into one immutable
DiscoveryRunStats row.
"""

from __future__ import annotations

import threading
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime

from concierge.config import SAMPLED_FOR_REVIEW_CAP
from concierge.discovery.run_models import DiscoveryRunStats, utc_now
from concierge.discovery.run_repository import DiscoveryRunRepository
from concierge.discovery.sampling import RejectedCandidate, select_samples
from concierge.discovery.types import ConfidenceBucket, RejectionReason
from concierge.errors import ValidationError
from concierge.observability.logging import get_logger
from concierge.observability.telemetry import counter, log_event

logger = get_logger(__name__)


@dataclass(eq=False)
class RunHandle:
    """Accumulator for one discovery run. Mutate only through DiscoveryRunRecorder."""

    pack_id: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=utc_now)
    histogram: Counter = field(default_factory=Counter)
    rejections: Counter = field(default_factory=Counter)
    rejected_candidates: list[RejectedCandidate] = field(default_factory=list)
    finalized: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def flagged(self) -> int:
        with self._lock:
            return sum(self.histogram.values())

    @property
    def scanned(self) -> int:
        with self._lock:
            return sum(self.histogram.values()) + sum(self.rejections.values())

    def rejection_count(self, reason: RejectionReason) -> int:
        with self._lock:
            return self.rejections[reason]


class DiscoveryRunRecorder:
    """
    startRun / recordIncluded / recordExcluded / finalizeRun.

    Every evaluated message must produce exactly one record_* call.
    """

    def __init__(self, repository: type[DiscoveryRunRepository] = DiscoveryRunRepository):
        self.repository = repository

    def start_run(self, pack_id: str) -> RunHandle:
        handle = RunHandle(pack_id=pack_id)
        log_event("discovery.run.started", run_id=handle.run_id, pack_id=pack_id)
        return handle

    def record_included(self, handle: RunHandle, score: float) -> ConfidenceBucket:
        if not 0.0 <= score <= 1.0:
            raise ValidationError(f"score out of range: {score}")
        bucket = ConfidenceBucket.for_score(score)
        with handle._lock:
            self._ensure_open(handle)
            handle.histogram[bucket] += 1
        counter(f"discovery.included.{bucket.value}")
        return bucket

    def record_excluded(
        self,
        handle: RunHandle,
        reason: RejectionReason,
        candidate: RejectedCandidate | None = None,
    ) -> None:
        """
        Count one excluded message.

        ``candidate`` (score and redacted metadata) makes the message eligible
        for the run's rejected-sample audit.
        """
        reason = RejectionReason(reason)
        with handle._lock:
            self._ensure_open(handle)
            handle.rejections[reason] += 1
            if candidate is not None:
                handle.rejected_candidates.append(candidate)
        counter(f"discovery.rejected.{reason.value}")

    def finalize_run(self, handle: RunHandle, persist: bool = True) -> DiscoveryRunStats:
        """
        Freeze the handle and persist one DiscoveryRunStats row.

        Raises:
            ValidationError: If the handle was already finalized
        """
        with handle._lock:
            self._ensure_open(handle)
            handle.finalized = True
            histogram = {b: handle.histogram[b] for b in ConfidenceBucket}
            rejections = {r: handle.rejections[r] for r in RejectionReason}
            candidates = list(handle.rejected_candidates)

        flagged = sum(histogram.values())
        finished_at = utc_now()
        stats = DiscoveryRunStats(
            id=handle.run_id,
            pack_id=handle.pack_id,
            run_at=handle.started_at,
            finished_at=finished_at,
            scanned=flagged + sum(rejections.values()),
            flagged=flagged,
            histogram=histogram,
            rejections=rejections,
            sampled_for_review=min(flagged, SAMPLED_FOR_REVIEW_CAP),
        )

        if persist:
            samples = select_samples(candidates, handle.run_id, handle.pack_id, finished_at)
            self.repository.insert(stats, samples)

        log_event(
            "discovery.run.finalized",
            run_id=stats.id,
            pack_id=stats.pack_id,
            scanned=stats.scanned,
            flagged=stats.flagged,
            rejections={r.value: n for r, n in rejections.items() if n},
        )
        return stats

    @staticmethod
    def _ensure_open(handle: RunHandle) -> None:
        if handle.finalized:
            raise ValidationError(f"run {handle.run_id} already finalized")

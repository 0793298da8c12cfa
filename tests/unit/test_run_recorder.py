"""
Tests for the discovery run recorder and rejected-sample selection.

Recorder tests use persist=False unless they need the database.
"""

from __future__ import annotations

import random
import threading
from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from concierge.discovery.run_models import DiscoveryRunStats, SampleBand
from concierge.discovery.run_recorder import DiscoveryRunRecorder
from concierge.discovery.run_repository import DiscoveryRunRepository
from concierge.discovery.sampling import RejectedCandidate, band_for, select_samples
from concierge.discovery.types import ConfidenceBucket, RejectionReason
from concierge.errors import ValidationError


def _candidate(score: float, n: int = 0) -> RejectedCandidate:
    return RejectedCandidate(
        message_id=f"m{n}-{score}",
        from_domain="school.org",
        subject="Subject",
        score=score,
        reason=RejectionReason.LOW_SCORE,
    )


class TestRecorder:
    def test_counts_balance(self):
        recorder = DiscoveryRunRecorder()
        handle = recorder.start_run("school")
        recorder.record_included(handle, 0.9)
        recorder.record_included(handle, 0.5)
        recorder.record_excluded(handle, RejectionReason.DOMAIN)
        recorder.record_excluded(handle, RejectionReason.DUPLICATE)
        recorder.record_excluded(handle, RejectionReason.OTHER)

        stats = recorder.finalize_run(handle, persist=False)

        assert stats.flagged == 2
        assert stats.scanned == 5
        assert stats.histogram[ConfidenceBucket.VERY_HIGH] == 1
        assert stats.histogram[ConfidenceBucket.MEDIUM] == 1
        assert stats.rejections[RejectionReason.DOMAIN] == 1
        assert stats.rejections[RejectionReason.LOW_SCORE] == 0
        assert stats.discovery_yield == pytest.approx(0.4)

    def test_empty_run_has_zero_yield(self):
        recorder = DiscoveryRunRecorder()
        stats = recorder.finalize_run(recorder.start_run("school"), persist=False)
        assert stats.scanned == 0
        assert stats.discovery_yield == 0.0

    def test_second_finalize_rejected(self):
        recorder = DiscoveryRunRecorder()
        handle = recorder.start_run("school")
        recorder.finalize_run(handle, persist=False)
        with pytest.raises(ValidationError):
            recorder.finalize_run(handle, persist=False)

    def test_recording_after_finalize_rejected(self):
        recorder = DiscoveryRunRecorder()
        handle = recorder.start_run("school")
        recorder.finalize_run(handle, persist=False)
        with pytest.raises(ValidationError):
            recorder.record_excluded(handle, RejectionReason.OTHER)

    def test_score_out_of_range_rejected(self):
        recorder = DiscoveryRunRecorder()
        with pytest.raises(ValidationError):
            recorder.record_included(recorder.start_run("school"), 1.2)

    def test_sampled_for_review_is_capped(self):
        recorder = DiscoveryRunRecorder()
        handle = recorder.start_run("school")
        for _ in range(25):
            recorder.record_included(handle, 0.9)
        assert recorder.finalize_run(handle, persist=False).sampled_for_review == 20

    def test_concurrent_increments_are_not_lost(self):
        recorder = DiscoveryRunRecorder()
        handle = recorder.start_run("school")

        def work():
            for _ in range(200):
                recorder.record_included(handle, 0.7)
                recorder.record_excluded(handle, RejectionReason.LOW_SCORE)

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stats = recorder.finalize_run(handle, persist=False)
        assert stats.flagged == 1600
        assert stats.scanned == 3200

    def test_finalize_persists_stats_and_samples(self, db):
        recorder = DiscoveryRunRecorder()
        handle = recorder.start_run("school")
        recorder.record_included(handle, 0.9)
        recorder.record_excluded(handle, RejectionReason.LOW_SCORE, _candidate(0.6))
        recorder.record_excluded(handle, RejectionReason.LOW_SCORE, _candidate(0.05))

        stats = recorder.finalize_run(handle)

        assert DiscoveryRunRepository.get(stats.id) == stats
        assert [r.id for r in DiscoveryRunRepository.list_runs(pack_id="school")] == [stats.id]
        samples = DiscoveryRunRepository.list_samples(stats.id)
        assert len(samples) == 1
        assert samples[0].sample_band == SampleBand.NEAR_THRESHOLD.value


def test_stats_model_rejects_unbalanced_counters():
    now = datetime.now(UTC)
    with pytest.raises(PydanticValidationError):
        DiscoveryRunStats(
            id="r1",
            pack_id="school",
            run_at=now,
            finished_at=now,
            scanned=3,
            flagged=1,
            histogram={ConfidenceBucket.HIGH: 1},
            rejections={RejectionReason.DOMAIN: 1},
        )


class TestSampling:
    @pytest.mark.parametrize(
        "score,band",
        [
            (0.69, SampleBand.NEAR_THRESHOLD),
            (0.5, SampleBand.NEAR_THRESHOLD),
            (0.49, SampleBand.WEAK),
            (0.3, SampleBand.WEAK),
            (0.1, SampleBand.VERY_WEAK),
            (0.09, None),
            (0.7, None),
        ],
    )
    def test_band_for(self, score, band):
        assert band_for(score) == band

    def test_near_threshold_keeps_highest_scores(self):
        candidates = [_candidate(0.5 + i * 0.005, i) for i in range(30)]
        now = datetime.now(UTC)
        samples = select_samples(candidates, "run", "school", now, rng=random.Random(1))
        near = [s for s in samples if s.sample_band == SampleBand.NEAR_THRESHOLD.value]
        assert len(near) == 20
        assert min(s.score for s in near) == pytest.approx(0.5 + 10 * 0.005)

    def test_weak_bands_are_capped(self):
        candidates = [_candidate(0.4, i) for i in range(12)] + [_candidate(0.2, i) for i in range(12)]
        samples = select_samples(candidates, "run", "school", datetime.now(UTC), rng=random.Random(1))
        assert sum(1 for s in samples if s.sample_band == SampleBand.WEAK.value) == 5
        assert sum(1 for s in samples if s.sample_band == SampleBand.VERY_WEAK.value) == 5

    def test_samples_expire_after_retention(self, db):
        now = datetime.now(UTC)
        samples = select_samples([_candidate(0.6)], "run", "school", now)
        assert samples[0].expires_at == now + timedelta(days=30)

        recorder = DiscoveryRunRecorder()
        handle = recorder.start_run("school")
        recorder.record_excluded(handle, RejectionReason.LOW_SCORE, _candidate(0.6))
        recorder.finalize_run(handle)

        assert DiscoveryRunRepository.purge_expired_samples(now + timedelta(days=31)) == 1

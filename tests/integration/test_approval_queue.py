"""
Integration tests for the approval queue against a real SQLite database.

Covers duplicate suppression, single-winner dispositions, dismissal audit
records, reclassification, escalation and digest hand-off.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta

import pytest

from concierge.approvals import ApprovalQueue, DispositionState, PendingApprovalRepository
from concierge.discovery.types import Category
from concierge.errors import AlreadyDisposed, NotFound, ValidationError
from concierge.infrastructure.database import get_db_connection
from concierge.observability.telemetry import get_counter


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.included: list[str] = []

    def include(self, item):
        if self.fail:
            raise RuntimeError("digest store offline")
        self.included.append(item.id)


def _row_count(table: str) -> int:
    with get_db_connection() as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


class TestEnqueue:
    def test_duplicate_fingerprint_is_suppressed(self, db, make_item):
        queue = ApprovalQueue()
        first = make_item(message_id="m1")
        again = make_item(message_id="m1")
        assert first.fingerprint == again.fingerprint

        assert queue.enqueue(first) == first
        assert queue.enqueue(again) is None
        assert _row_count("pending_approvals") == 1
        assert PendingApprovalRepository.get_by_fingerprint(first.fingerprint, "school").id == first.id
        assert PendingApprovalRepository.get_by_fingerprint(first.fingerprint, "sports") is None

    def test_same_fingerprint_in_another_pack_is_kept(self, db, make_item):
        queue = ApprovalQueue()
        assert queue.enqueue(make_item(message_id="m1")) is not None
        assert queue.enqueue(make_item(message_id="m1", pack_id="sports")) is not None

    def test_concurrent_enqueue_creates_one_row(self, db, make_item):
        queue = ApprovalQueue()
        items = [make_item(message_id="same") for _ in range(8)]
        barrier = threading.Barrier(len(items))

        def enqueue(item):
            barrier.wait()
            return queue.enqueue(item)

        with ThreadPoolExecutor(max_workers=len(items)) as pool:
            results = list(pool.map(enqueue, items))

        assert sum(1 for r in results if r is not None) == 1
        assert _row_count("pending_approvals") == 1

    def test_only_pending_items_enqueue(self, db, make_item):
        with pytest.raises(ValidationError):
            ApprovalQueue().enqueue(make_item(state=DispositionState.APPROVED))


class TestDisposition:
    def test_approve_then_second_disposition_fails(self, db, make_item):
        queue = ApprovalQueue()
        item = queue.enqueue(make_item())

        approved = queue.approve(item.id, actor="parent")
        assert approved.state == DispositionState.APPROVED
        assert approved.disposed_by == "parent"
        assert approved.disposed_at is not None

        with pytest.raises(AlreadyDisposed) as exc_info:
            queue.reject(item.id)
        assert exc_info.value.state == "approved"
        with pytest.raises(AlreadyDisposed):
            queue.approve(item.id)

    def test_unknown_token(self, db):
        with pytest.raises(NotFound):
            ApprovalQueue().approve("no-such-token")

    def test_concurrent_approve_and_reject_have_one_winner(self, db, make_item):
        queue = ApprovalQueue()
        item = queue.enqueue(make_item())
        barrier = threading.Barrier(6)

        def act(i):
            barrier.wait()
            try:
                (queue.approve if i % 2 else queue.reject)(item.id)
                return "won"
            except AlreadyDisposed:
                return "lost"

        with ThreadPoolExecutor(max_workers=6) as pool:
            outcomes = list(pool.map(act, range(6)))

        assert outcomes.count("won") == 1
        assert queue.get(item.id).state != DispositionState.PENDING

    def test_concurrent_dismiss_races_other_dispositions(self, db, make_item):
        queue = ApprovalQueue()
        item = queue.enqueue(make_item())
        actions = [
            lambda: queue.dismiss(item.id, "noise"),
            lambda: queue.approve(item.id),
            lambda: queue.dismiss(item.id, "duplicate"),
            lambda: queue.reject(item.id),
            lambda: queue.dismiss(item.id, "not ours"),
            lambda: queue.approve(item.id),
        ]
        barrier = threading.Barrier(len(actions))

        def act(action):
            barrier.wait()
            try:
                action()
                return "won"
            except AlreadyDisposed:
                return "lost"

        with ThreadPoolExecutor(max_workers=len(actions)) as pool:
            outcomes = list(pool.map(act, actions))

        assert outcomes.count("won") == 1
        dismissals = _row_count("dismissed_items")
        assert dismissals <= 1
        if dismissals:
            assert _row_count("pending_approvals") == 0
        else:
            assert queue.get(item.id).state in (DispositionState.APPROVED, DispositionState.REJECTED)

    def test_pending_list_excludes_disposed(self, db, make_item):
        queue = ApprovalQueue()
        keep = queue.enqueue(make_item())
        gone = queue.enqueue(make_item())
        queue.reject(gone.id)
        assert [i.id for i in queue.list_pending(pack_id="school")] == [keep.id]


class TestDismiss:
    def test_missing_reason_writes_nothing(self, db, make_item):
        queue = ApprovalQueue()
        item = queue.enqueue(make_item())
        for reason in (None, "", "   "):
            with pytest.raises(ValidationError):
                queue.dismiss(item.id, reason)
        assert queue.get(item.id).state == DispositionState.PENDING
        assert _row_count("dismissed_items") == 0

    def test_dismiss_removes_item_and_records_audit(self, db, make_item):
        queue = ApprovalQueue()
        item = queue.enqueue(make_item(subject="Spirit week"))

        record = queue.dismiss(item.id, "  not relevant  ", actor="parent")

        assert record.reason == "not relevant"
        assert record.item_id == item.id
        assert record.original_subject == "Spirit week"
        assert record.dismissed_by == "parent"
        with pytest.raises(NotFound):
            queue.get(item.id)

        with pytest.raises(AlreadyDisposed) as exc_info:
            queue.dismiss(item.id, "again")
        assert exc_info.value.state == "dismissed"
        with pytest.raises(AlreadyDisposed):
            queue.approve(item.id)

    def test_dismissing_approved_item_fails(self, db, make_item):
        queue = ApprovalQueue()
        item = queue.enqueue(make_item())
        queue.approve(item.id)
        with pytest.raises(AlreadyDisposed):
            queue.dismiss(item.id, "changed my mind")

    def test_dismissed_fingerprint_can_be_rediscovered(self, db, make_item):
        queue = ApprovalQueue()
        item = queue.enqueue(make_item(message_id="m1"))
        queue.dismiss(item.id, "noise")
        assert queue.enqueue(make_item(message_id="m1")) is not None

    def test_list_dismissed_since(self, db, make_item):
        queue = ApprovalQueue()
        school = queue.enqueue(make_item())
        sports = queue.enqueue(make_item(pack_id="sports"))
        before = datetime.now(UTC) - timedelta(minutes=1)
        queue.dismiss(school.id, "noise")
        queue.dismiss(sports.id, "noise")

        assert len(queue.list_dismissed_since(before)) == 2
        assert [r.item_id for r in queue.list_dismissed_since(before, pack_id="sports")] == [sports.id]
        assert queue.list_dismissed_since(datetime.now(UTC) + timedelta(minutes=1)) == []
        assert len(queue.list_recently_dismissed()) == 2


class TestReclassify:
    def test_changes_category_only(self, db, make_item):
        queue = ApprovalQueue()
        item = queue.enqueue(make_item())
        updated = queue.reclassify(item.id, "sports_activities")
        assert updated.primary_category == Category.SPORTS_ACTIVITIES
        assert updated.state == DispositionState.PENDING

    def test_unknown_category(self, db, make_item):
        queue = ApprovalQueue()
        item = queue.enqueue(make_item())
        with pytest.raises(ValidationError):
            queue.reclassify(item.id, "pets")

    def test_unknown_token(self, db):
        with pytest.raises(NotFound):
            ApprovalQueue().reclassify("missing", Category.SCHOOL)


class TestEscalation:
    def test_escalates_after_threshold(self, db, make_item):
        queue = ApprovalQueue(escalation_days=7)
        now = datetime.now(UTC)
        old = queue.enqueue(make_item(discovered_at=now - timedelta(days=8)))
        fresh = queue.enqueue(make_item(discovered_at=now - timedelta(days=2)))

        assert [i.id for i in queue.list_escalated(now=now)] == [old.id]
        view = queue.view(queue.get(old.id), now=now)
        assert view.escalated
        assert view.days_pending == 8
        assert not queue.view(queue.get(fresh.id), now=now).escalated

    def test_escalation_reads_past_one_page(self, db, make_item):
        queue = ApprovalQueue(escalation_days=7)
        now = datetime.now(UTC)
        old = [
            queue.enqueue(make_item(discovered_at=now - timedelta(days=30 - i))).id for i in range(7)
        ]
        queue.enqueue(make_item(discovered_at=now - timedelta(days=1)))

        assert [i.id for i in queue.list_escalated(now=now, page_size=3)] == old

    def test_disposed_items_never_escalate(self, db, make_item):
        queue = ApprovalQueue()
        item = queue.enqueue(make_item(discovered_at=datetime.now(UTC) - timedelta(days=30)))
        queue.approve(item.id)
        assert not queue.view(queue.get(item.id)).escalated


class TestDigest:
    def test_approved_item_handed_to_notifier(self, db, make_item):
        notifier = RecordingNotifier()
        queue = ApprovalQueue(digest_notifier=notifier)
        item = queue.enqueue(make_item())

        queue.approve(item.id)

        assert notifier.included == [item.id]
        assert PendingApprovalRepository.get(item.id).digest_included
        assert queue.list_awaiting_digest() == []

    def test_rejected_item_not_handed_to_notifier(self, db, make_item):
        notifier = RecordingNotifier()
        queue = ApprovalQueue(digest_notifier=notifier)
        queue.reject(queue.enqueue(make_item()).id)
        assert notifier.included == []

    def test_notifier_failure_keeps_approval(self, db, make_item):
        queue = ApprovalQueue(digest_notifier=RecordingNotifier(fail=True))
        item = queue.enqueue(make_item())

        approved = queue.approve(item.id)

        assert approved.state == DispositionState.APPROVED
        assert [i.id for i in queue.list_awaiting_digest()] == [item.id]

    def test_hung_notifier_does_not_block_approval(self, db, make_item):
        class HungNotifier:
            def __init__(self):
                self.release = threading.Event()

            def include(self, item):
                self.release.wait(timeout=5)

        notifier = HungNotifier()
        queue = ApprovalQueue(digest_notifier=notifier, timeout_seconds=0.2)
        item = queue.enqueue(make_item())

        started = time.monotonic()
        try:
            approved = queue.approve(item.id)
        finally:
            notifier.release.set()

        assert time.monotonic() - started < 2
        assert approved.state == DispositionState.APPROVED
        assert [i.id for i in queue.list_awaiting_digest()] == [item.id]
        assert get_counter("external.digest_include.timeout") == 1
        assert get_counter("approvals.digest_notify_failed") == 1

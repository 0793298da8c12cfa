"""Approval queue service - the disposition state machine.

pending -> approved | rejected | dismissed, each exactly once per item.
Transport-agnostic: HTTP routes, CLI commands and email links all call in
here with the opaque token.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import NoReturn

from concierge.approvals.models import (
    DismissalRecord,
    DispositionState,
    PendingApprovalItem,
    utc_now,
)
from concierge.approvals.repository import DismissalRepository, PendingApprovalRepository
from concierge.config import DISMISSED_RECENCY_DAYS, ESCALATION_DAYS
from concierge.contracts import DigestNotifier
from concierge.discovery.types import Category
from concierge.errors import AlreadyDisposed, ExternalCallFailure, NotFound, ValidationError
from concierge.infrastructure.timeout import run_with_timeout
from concierge.observability.logging import get_logger
from concierge.observability.telemetry import counter, log_event
from concierge.utils.redaction import redact_subject

logger = get_logger(__name__)


@dataclass
class QueueView:
    """An item as presented to reviewers, with derived escalation."""

    item: PendingApprovalItem
    escalated: bool
    days_pending: int


class ApprovalQueue:
    """
    Facade over the approval repositories.

    Args:
        digest_notifier: Called with each newly approved item
        escalation_days: Age at which a pending item is shown as escalated
        timeout_seconds: Deadline for the digest notifier call
    """

    def __init__(
        self,
        digest_notifier: DigestNotifier | None = None,
        escalation_days: int = ESCALATION_DAYS,
        dismissed_recency_days: int = DISMISSED_RECENCY_DAYS,
        timeout_seconds: float | None = None,
    ):
        self.digest_notifier = digest_notifier
        self.timeout_seconds = timeout_seconds
        self.escalation_days = escalation_days
        self.dismissed_recency_days = dismissed_recency_days

    # ------------------------------------------------------------------
    # Pipeline side
    # ------------------------------------------------------------------

    def enqueue(self, item: PendingApprovalItem) -> PendingApprovalItem | None:
        """
        Insert a new pending item unless its fingerprint is already queued for the pack.

        Returns:
            The stored item, or None when suppressed as a duplicate. The
            caller records the ``duplicate`` rejection.
        """
        if item.state != DispositionState.PENDING:
            raise ValidationError("only pending items can be enqueued")

        if PendingApprovalRepository.insert_if_absent(item):
            counter("approvals.enqueued")
            return item

        counter("approvals.duplicate_suppressed")
        logger.debug("Duplicate fingerprint %s for pack %s", item.fingerprint[:12], item.pack_id)
        return None

    # ------------------------------------------------------------------
    # Dispositions
    # ------------------------------------------------------------------

    def approve(self, token: str, actor: str = "user") -> PendingApprovalItem:
        """
        Approve a pending item and hand it to the digest builder.

        Raises:
            NotFound: Unknown token
            AlreadyDisposed: Item is no longer pending
        """
        item = self._transition(token, DispositionState.APPROVED, actor)
        self._notify_digest(item)
        return item

    def reject(self, token: str, actor: str = "user") -> PendingApprovalItem:
        """
        Reject a pending item. No digest inclusion.

        Raises:
            NotFound: Unknown token
            AlreadyDisposed: Item is no longer pending
        """
        return self._transition(token, DispositionState.REJECTED, actor)

    def dismiss(self, token: str, reason: str | None, actor: str = "user") -> DismissalRecord:
        """
        Remove a pending item from the queue, leaving an audit record.

        Raises:
            ValidationError: Missing or blank reason (checked before any write)
            NotFound: Unknown token
            AlreadyDisposed: Item is no longer pending (including already dismissed)
        """
        if reason is None or not reason.strip():
            raise ValidationError("dismissal reason is required")

        item = PendingApprovalRepository.get(token)
        if item is None:
            self._raise_missing(token)
        if item.state != DispositionState.PENDING:
            raise AlreadyDisposed("approval item", token, item.state.value)

        record = DismissalRecord(
            id=uuid.uuid4().hex,
            item_type=item.item_type,
            item_id=item.id,
            original_subject=item.subject,
            original_from=item.from_email,
            original_date=item.discovered_at,
            person=item.person,
            pack_id=item.pack_id,
            reason=reason,
            dismissed_by=actor,
        )

        if not PendingApprovalRepository.dismiss(token, record):
            # Lost a race with another disposition
            self._raise_disposed(token)

        counter("approvals.dismissed")
        log_event(
            "approvals.dismissed",
            token=token,
            pack_id=item.pack_id,
            subject=redact_subject(item.subject),
        )
        return record

    def reclassify(self, token: str, category: Category | str) -> PendingApprovalItem:
        """
        Change primary_category without touching disposition state.

        Raises:
            ValidationError: Unknown category
            NotFound: Unknown token (or dismissed item)
        """
        try:
            category = Category(category)
        except ValueError:
            raise ValidationError(f"unknown category: {category}") from None

        if not PendingApprovalRepository.update_category(token, category):
            raise NotFound("approval item", token)

        counter("approvals.reclassified")
        item = PendingApprovalRepository.get(token)
        if item is None:
            raise NotFound("approval item", token)
        log_event("approvals.reclassified", token=token, category=category.value)
        return item

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, token: str) -> PendingApprovalItem:
        item = PendingApprovalRepository.get(token)
        if item is None:
            raise NotFound("approval item", token)
        return item

    def list_pending(
        self,
        pack_id: str | None = None,
        person: str | None = None,
        category: Category | str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[PendingApprovalItem]:
        if category is not None:
            try:
                category = Category(category)
            except ValueError:
                raise ValidationError(f"unknown category: {category}") from None
        return PendingApprovalRepository.list_by_state(
            DispositionState.PENDING,
            pack_id=pack_id,
            person=person,
            category=category,
            limit=limit,
            offset=offset,
        )

    def view(self, item: PendingApprovalItem, now: datetime | None = None) -> QueueView:
        now = now or utc_now()
        return QueueView(
            item=item,
            escalated=item.is_escalated(now, self.escalation_days),
            days_pending=item.days_pending(now),
        )

    def list_escalated(
        self, pack_id: str | None = None, now: datetime | None = None, page_size: int = 500
    ) -> list[PendingApprovalItem]:
        """Every escalated item, oldest first, read page by page."""
        now = now or utc_now()
        escalated: list[PendingApprovalItem] = []
        offset = 0
        while True:
            page = self.list_pending(pack_id=pack_id, limit=page_size, offset=offset)
            for item in page:
                # Pages are oldest first, so the first fresh item ends the scan
                if not item.is_escalated(now, self.escalation_days):
                    return escalated
                escalated.append(item)
            if len(page) < page_size:
                return escalated
            offset += page_size

    def list_dismissed_since(self, since: datetime, pack_id: str | None = None) -> list[DismissalRecord]:
        return DismissalRepository.list_since(since, pack_id=pack_id)

    def list_recently_dismissed(self, now: datetime | None = None) -> list[DismissalRecord]:
        """Dismissals inside the recency window (default 7 days)."""
        now = now or utc_now()
        return DismissalRepository.list_since(now - timedelta(days=self.dismissed_recency_days))

    def list_awaiting_digest(self) -> list[PendingApprovalItem]:
        return PendingApprovalRepository.list_awaiting_digest()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, token: str, new_state: DispositionState, actor: str) -> PendingApprovalItem:
        if not PendingApprovalRepository.transition(token, new_state, actor, utc_now()):
            self._raise_disposed(token)

        counter(f"approvals.{new_state.value}")
        item = PendingApprovalRepository.get(token)
        if item is None:
            raise NotFound("approval item", token)
        log_event(
            f"approvals.{new_state.value}",
            token=token,
            pack_id=item.pack_id,
            actor=actor,
            subject=redact_subject(item.subject),
        )
        return item

    def _raise_disposed(self, token: str) -> NoReturn:
        """Explain a failed conditional write: unknown token or already disposed."""
        item = PendingApprovalRepository.get(token)
        if item is not None:
            counter("approvals.already_disposed")
            raise AlreadyDisposed("approval item", token, item.state.value)
        self._raise_missing(token)

    @staticmethod
    def _raise_missing(token: str) -> NoReturn:
        if DismissalRepository.get_for_item(token) is not None:
            counter("approvals.already_disposed")
            raise AlreadyDisposed("approval item", token, DispositionState.DISMISSED.value)
        raise NotFound("approval item", token)

    def _notify_digest(self, item: PendingApprovalItem) -> None:
        """
        Hand an approved item to the digest builder.

        A notifier failure does not undo the approval: the item stays in
        list_awaiting_digest() for the next build.
        """
        if self.digest_notifier is None:
            return
        try:
            run_with_timeout(
                "digest_include",
                self.digest_notifier.include,
                item,
                timeout_seconds=self.timeout_seconds,
            )
        except ExternalCallFailure as e:
            counter("approvals.digest_notify_failed")
            logger.error("Digest notifier failed for %s: %s", item.id, e)
            return
        PendingApprovalRepository.mark_digest_included(item.id)

"""
Discovery pipeline - one scan of the mailbox for one pack.

list ids -> fetch + score concurrently -> fingerprint -> enqueue -> finalize

Each message is handled by one worker and ends in exactly one run counter:
an exclusion reason (domain, keyword_no_match, low_score, duplicate, other)
or an included bucket. Per-item failures are logged, counted as ``other``
and never abort sibling items. Store errors abort the run.
"""

from __future__ import annotations

import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed

from concierge.approvals.models import PendingApprovalItem, utc_now
from concierge.approvals.service import ApprovalQueue
from concierge.config import DEFAULT_PERSON, MAX_WORKERS, SNIPPET_MAX_CHARS
from concierge.contracts import MessageSource, RelevanceClassifier
from concierge.discovery import fingerprint
from concierge.discovery.filters import SenderDomainFilter
from concierge.discovery.packs import PackConfig
from concierge.discovery.run_models import DiscoveryRunStats
from concierge.discovery.run_recorder import DiscoveryRunRecorder, RunHandle
from concierge.discovery.scorer import RelevanceScorer
from concierge.discovery.types import Message, RejectionReason, ScoreResult
from concierge.domains.repository import SuggestedDomainRepository
from concierge.domains.suggestion_engine import DomainSuggestionEngine
from concierge.errors import ExternalCallFailure
from concierge.infrastructure.timeout import run_with_timeout
from concierge.observability.logging import get_logger
from concierge.observability.telemetry import counter, log_event, time_block
from concierge.utils.email import extract_display_name, extract_email_address
from concierge.utils.redaction import redact_subject

logger = get_logger(__name__)


def build_snippet(body: str, max_chars: int = SNIPPET_MAX_CHARS) -> str:
    """First max_chars of the body with whitespace collapsed."""
    text = " ".join((body or "").split())
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 3].rstrip() + "..."


class DiscoveryPipeline:
    """
    Orchestrates a discovery run.

    Args:
        message_source: Mail provider collaborator
        classifier: RelevanceClassifier (heuristic by default)
        queue: Approval queue the included items go to
        recorder: Run recorder (persists DiscoveryRunStats)
        suggestion_engine: Receives off-list senders with keyword matches; None disables
        max_workers: Worker pool size
        timeout_seconds: Deadline for each fetch and classify call
    """

    def __init__(
        self,
        message_source: MessageSource,
        classifier: RelevanceClassifier | None = None,
        queue: ApprovalQueue | None = None,
        recorder: DiscoveryRunRecorder | None = None,
        suggestion_engine: DomainSuggestionEngine | None = None,
        max_workers: int = MAX_WORKERS,
        timeout_seconds: float | None = None,
    ):
        self.message_source = message_source
        self.queue = queue or ApprovalQueue()
        self.recorder = recorder or DiscoveryRunRecorder()
        self.suggestion_engine = suggestion_engine
        self.max_workers = max(1, max_workers)
        self.timeout_seconds = timeout_seconds
        # Suggestions approved since the pack was loaded count as allow-listed
        repository = suggestion_engine.repository if suggestion_engine else SuggestedDomainRepository
        self.scorer = RelevanceScorer(
            classifier=classifier,
            recorder=self.recorder,
            domain_filter=SenderDomainFilter(approved_domains=repository.is_approved),
            timeout_seconds=timeout_seconds,
        )

    def run(self, pack: PackConfig, query: str = "", limit: int = 100) -> DiscoveryRunStats:
        """
        Scan up to ``limit`` messages matching ``query`` for ``pack``.

        Returns:
            The finalized, persisted DiscoveryRunStats

        Raises:
            ExternalCallFailure: If the message listing itself fails
            sqlite3.Error: On store failure (committed rows are kept)
        """
        handle = self.recorder.start_run(pack.pack_id)

        message_ids = run_with_timeout(
            "list_messages",
            self.message_source.list_messages,
            query,
            limit,
            timeout_seconds=self.timeout_seconds,
        )
        message_ids = list(dict.fromkeys(message_ids))[:limit]
        logger.info(
            "Discovery run %s for pack %s: %d message(s)", handle.run_id, pack.pack_id, len(message_ids)
        )

        with time_block("discovery.run"):
            with ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="discovery"
            ) as executor:
                futures = {
                    executor.submit(self._process, message_id, pack, handle): message_id
                    for message_id in message_ids
                }
                for future in as_completed(futures):
                    # Store errors propagate and abort the run
                    future.result()

        stats = self.recorder.finalize_run(handle)
        log_event(
            "discovery.run.completed",
            run_id=stats.id,
            pack_id=pack.pack_id,
            scanned=stats.scanned,
            flagged=stats.flagged,
            discovery_yield=round(stats.discovery_yield, 4),
        )
        return stats

    def _process(self, message_id: str, pack: PackConfig, handle: RunHandle) -> None:
        try:
            message = run_with_timeout(
                "get_message",
                self.message_source.get_message,
                message_id,
                timeout_seconds=self.timeout_seconds,
            )
        except ExternalCallFailure as e:
            counter("discovery.item_failed")
            logger.warning("Fetch failed for message %s: %s", message_id, e)
            self.recorder.record_excluded(handle, RejectionReason.OTHER)
            return

        result = self.scorer.score(message, pack, handle)

        if not result.included:
            if result.rejection_reason == RejectionReason.DOMAIN and result.matched_keywords:
                self._suggest_domain(result, pack, message)
            return

        item = self._build_item(message, pack, result)
        if self.queue.enqueue(item) is None:
            self.recorder.record_excluded(handle, RejectionReason.DUPLICATE)
            return

        self.recorder.record_included(handle, result.score)
        logger.info(
            "Flagged %s for pack %s (score=%.2f, category=%s)",
            redact_subject(message.subject),
            pack.pack_id,
            result.score,
            result.category.value if result.category else None,
        )

    def _build_item(self, message: Message, pack: PackConfig, result: ScoreResult) -> PendingApprovalItem:
        intent = result.extracted_intent
        if intent is not None:
            digest = fingerprint.generate(message.id, intent)
        else:
            digest = fingerprint.generate_for_message(message.id, message.subject)

        return PendingApprovalItem(
            id=uuid.uuid4().hex,
            message_id=message.id,
            pack_id=pack.pack_id,
            fingerprint=digest,
            relevance_score=result.score,
            from_email=extract_email_address(message.from_address),
            from_name=extract_display_name(message.from_address),
            subject=message.subject,
            snippet=build_snippet(message.body),
            person=result.person or DEFAULT_PERSON,
            primary_category=result.category,
            item_type=result.item_type,
            obligation_date=result.obligation_date,
            discovered_at=utc_now(),
            needs_manual_completion=result.needs_manual_completion,
            event=intent,
        )

    def _suggest_domain(self, result: ScoreResult, pack: PackConfig, message: Message) -> None:
        if self.suggestion_engine is None or not result.from_domain:
            return
        self.suggestion_engine.observe(
            result.from_domain,
            pack.pack_id,
            result.matched_keywords,
            subject_sample=message.subject,
        )

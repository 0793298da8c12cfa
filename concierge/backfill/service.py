"""
Backfill runner - extract events from historical mail for one pack.

Each message passes the same gates as discovery before extraction: sender
allow-list, pack keyword and exclude rules, and the category tier threshold.
Messages that fail a gate count as scanned and skipped.

Dry run reports what would be created and writes nothing. A live run sends
high-confidence events to the calendar sink; a failure on one message is
collected in ``errors`` and the run moves on.
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, Field

from concierge.backfill.gate import BackfillOptions, ValidatedBackfill, validate
from concierge.config import BACKFILL_HIGH_CONFIDENCE, BACKFILL_MAX_EVENTS
from concierge.contracts import CalendarSink, MessageSource, RelevanceClassifier
from concierge.discovery import fingerprint
from concierge.discovery.extractor import EventExtractor
from concierge.discovery.filters import SenderDomainFilter
from concierge.discovery.packs import PackConfig
from concierge.discovery.relevance_classifier import (
    HeuristicRelevanceClassifier,
    render_message_text,
)
from concierge.discovery.types import Classification, EventIntent, Message, RejectionReason
from concierge.errors import ExternalCallFailure, ValidationError
from concierge.infrastructure.timeout import run_with_timeout
from concierge.observability.logging import get_logger
from concierge.observability.telemetry import counter, log_event

logger = get_logger(__name__)


class BackfillResult(BaseModel):
    """
    Counters for one backfill run.

    ``would_create`` counts the high-confidence events a live run writes. It
    is filled in both modes, so a dry run previews the live run exactly.
    """

    messages_scanned: int = 0
    skipped: int = 0
    events_extracted: int = 0
    high_confidence: int = 0
    low_confidence: int = 0
    would_create: int = 0
    events_created: int = 0
    errors: list[str] = Field(default_factory=list)


def build_query(gate: ValidatedBackfill) -> str:
    """Provider date-range query; ``before:`` is exclusive so it is pushed a day out."""
    after = gate.start.strftime("%Y/%m/%d")
    before = (gate.end + timedelta(days=1)).strftime("%Y/%m/%d")
    return f"after:{after} before:{before}"


class BackfillRunner:
    """
    Args:
        message_source: Mail provider collaborator
        calendar_sink: Receives created events in live mode
        classifier: Scores each message (heuristic by default)
        domain_filter: Sender allow-list and keyword gate
        timeout_seconds: Deadline per external call
    """

    def __init__(
        self,
        message_source: MessageSource,
        calendar_sink: CalendarSink | None = None,
        classifier: RelevanceClassifier | None = None,
        extractor: EventExtractor | None = None,
        domain_filter: SenderDomainFilter | None = None,
        timeout_seconds: float | None = None,
    ):
        self.message_source = message_source
        self.calendar_sink = calendar_sink
        self.classifier = classifier or HeuristicRelevanceClassifier()
        self.extractor = extractor or EventExtractor()
        self.domain_filter = domain_filter or SenderDomainFilter()
        self.timeout_seconds = timeout_seconds

    def run(self, options: BackfillOptions, pack: PackConfig) -> BackfillResult:
        """
        Validate, then scan the date range.

        Raises:
            ValidationError: From the safety gate, before any fetch
            ExternalCallFailure: If listing messages fails
        """
        gate = validate(options)
        if not gate.dry_run and self.calendar_sink is None:
            raise ValidationError("live backfill needs a calendar sink")

        mode = "dry_run" if gate.dry_run else "live"
        log_event(
            "backfill.started",
            pack_id=pack.pack_id,
            mode=mode,
            start=gate.start.date().isoformat(),
            end=gate.end.date().isoformat(),
            max_events=gate.max_events,
        )

        message_ids = run_with_timeout(
            "list_messages",
            self.message_source.list_messages,
            build_query(gate),
            BACKFILL_MAX_EVENTS,
            timeout_seconds=self.timeout_seconds,
        )

        result = BackfillResult()
        seen: set[str] = set()

        for message_id in message_ids:
            if result.events_extracted >= gate.max_events:
                logger.info("Backfill reached max_events=%d, stopping", gate.max_events)
                break

            try:
                message = run_with_timeout(
                    "get_message",
                    self.message_source.get_message,
                    message_id,
                    timeout_seconds=self.timeout_seconds,
                )
            except ExternalCallFailure as e:
                result.errors.append(f"{message_id}: {e}")
                continue
            result.messages_scanned += 1

            filtered = self.domain_filter.filter(
                pack, message.from_address, message.subject, message.body or ""
            )
            if not filtered.passed:
                self._skip(result, filtered.reason or RejectionReason.OTHER)
                continue

            try:
                classification = self._classify(message, pack)
            except ExternalCallFailure as e:
                result.errors.append(f"{message_id}: {e}")
                continue

            score = max(0.0, min(float(classification.score), 1.0))
            threshold = pack.threshold_for(classification.category)
            if threshold is None or score < threshold:
                self._skip(result, RejectionReason.LOW_SCORE)
                continue

            intent = self._extract(message, pack, classification)
            if intent is None:
                continue

            digest = fingerprint.generate(message.id, intent)
            if digest in seen:
                continue
            seen.add(digest)

            result.events_extracted += 1
            if score < BACKFILL_HIGH_CONFIDENCE:
                result.low_confidence += 1
                continue
            result.high_confidence += 1
            result.would_create += 1

            if gate.dry_run:
                continue

            try:
                run_with_timeout(
                    "create_event",
                    self.calendar_sink.create_event,
                    intent,
                    timeout_seconds=self.timeout_seconds,
                )
            except ExternalCallFailure as e:
                result.errors.append(f"{message_id}: {e}")
                continue
            result.events_created += 1

        counter(f"backfill.{mode}")
        log_event(
            "backfill.completed",
            pack_id=pack.pack_id,
            mode=mode,
            messages_scanned=result.messages_scanned,
            skipped=result.skipped,
            events_extracted=result.events_extracted,
            would_create=result.would_create,
            events_created=result.events_created,
            errors=len(result.errors),
        )
        return result

    @staticmethod
    def _skip(result: BackfillResult, reason: RejectionReason) -> None:
        result.skipped += 1
        counter(f"backfill.skipped.{reason.value}")

    def _classify(self, message: Message, pack: PackConfig) -> Classification:
        return run_with_timeout(
            "classify",
            self.classifier.classify,
            render_message_text(message),
            pack,
            timeout_seconds=self.timeout_seconds,
        )

    def _extract(
        self, message: Message, pack: PackConfig, classification: Classification
    ) -> EventIntent | None:
        if classification.extracted_intent is not None:
            return classification.extracted_intent
        try:
            return self.extractor.extract(
                message.subject,
                message.body or "",
                timezone=pack.timezone,
                reference=message.internal_date,
            )
        except ValueError as e:
            logger.debug("Extraction failed for %s: %s", message.id, e)
            return None

"""
Relevance Scorer - decides whether one message becomes a pending approval item.

Stages run cheapest first and stop at the first miss:

1. Sender domain allow-list        -> ``domain``
2. Pack keyword / exclude rules    -> ``keyword_no_match``
3. Relevance classifier (timed)    -> ``other`` on failure or timeout
4. Category sensitivity threshold  -> ``low_score``
5. EventIntent extraction          -> never excludes; a miss sets
                                      needs_manual_completion

Exclusions are recorded on the run handle here. Inclusions are NOT: whether
an included message is flagged or a ``duplicate`` is only known after the
enqueue attempt, so the pipeline records that outcome. Either way each
message lands in exactly one run counter.
"""

from __future__ import annotations

from concierge.config import DEFAULT_PERSON
from concierge.contracts import RelevanceClassifier
from concierge.discovery.category_classifier import assign_person, detect_item_type
from concierge.discovery.extractor import EventExtractor
from concierge.discovery.filters import SenderDomainFilter
from concierge.discovery.packs import PackConfig
from concierge.discovery.relevance_classifier import (
    HeuristicRelevanceClassifier,
    render_message_text,
)
from concierge.discovery.run_recorder import DiscoveryRunRecorder, RunHandle
from concierge.discovery.sampling import RejectedCandidate
from concierge.discovery.types import (
    Classification,
    EventIntent,
    ItemType,
    Message,
    RejectionReason,
    ScoreResult,
)
from concierge.errors import ExternalCallFailure
from concierge.infrastructure.timeout import run_with_timeout
from concierge.observability.logging import get_logger
from concierge.observability.telemetry import counter
from concierge.utils.redaction import redact_subject

logger = get_logger(__name__)


class RelevanceScorer:
    """
    Score messages for a pack.

    Args:
        classifier: Any RelevanceClassifier (heuristic by default)
        recorder: Run recorder that owns the handle passed to score()
        timeout_seconds: Deadline for the classifier call (None = configured default)
    """

    def __init__(
        self,
        classifier: RelevanceClassifier | None = None,
        recorder: DiscoveryRunRecorder | None = None,
        domain_filter: SenderDomainFilter | None = None,
        extractor: EventExtractor | None = None,
        timeout_seconds: float | None = None,
    ):
        self.classifier = classifier or HeuristicRelevanceClassifier()
        self.recorder = recorder or DiscoveryRunRecorder()
        self.domain_filter = domain_filter or SenderDomainFilter()
        self.extractor = extractor or EventExtractor()
        self.timeout_seconds = timeout_seconds

    def score(self, message: Message, pack: PackConfig, run: RunHandle) -> ScoreResult:
        """
        Run every stage for one message.

        Returns:
            ScoreResult. Excluded results are already recorded on ``run``;
            included results must be recorded by the caller.
        """
        subject = message.subject
        body = message.body or ""

        filtered = self.domain_filter.filter(pack, message.from_address, subject, body)
        if not filtered.passed:
            reason = filtered.reason or RejectionReason.OTHER
            self.recorder.record_excluded(run, reason)
            return ScoreResult.excluded(
                reason,
                from_domain=filtered.domain,
                matched_keywords=filtered.matched_keywords,
            )

        try:
            classification = self._classify(message, pack)
        except ExternalCallFailure as e:
            counter("discovery.item_failed")
            logger.warning(
                "Classifier failed for message %s (%s): %s",
                message.id,
                redact_subject(subject),
                e,
            )
            self.recorder.record_excluded(run, RejectionReason.OTHER)
            return ScoreResult.excluded(RejectionReason.OTHER, from_domain=filtered.domain)

        score = max(0.0, min(float(classification.score), 1.0))
        threshold = pack.threshold_for(classification.category)
        if threshold is None or score < threshold:
            candidate = RejectedCandidate(
                message_id=message.id,
                from_domain=filtered.domain,
                subject=redact_subject(subject, max_length=80),
                score=score,
                reason=RejectionReason.LOW_SCORE,
            )
            self.recorder.record_excluded(run, RejectionReason.LOW_SCORE, candidate)
            return ScoreResult.excluded(
                RejectionReason.LOW_SCORE,
                score=score,
                from_domain=filtered.domain,
                matched_keywords=filtered.matched_keywords,
                category=classification.category,
            )

        intent = self._extract(message, pack, classification)
        item_type = detect_item_type(subject, body, has_date=intent is not None)
        if intent is None:
            counter("discovery.needs_manual_completion")

        return ScoreResult(
            included=True,
            score=score,
            category=classification.category,
            extracted_intent=intent,
            needs_manual_completion=intent is None,
            item_type=item_type,
            obligation_date=intent.start_date if intent and item_type == ItemType.OBLIGATION else None,
            person=assign_person(pack, subject, body, DEFAULT_PERSON),
            from_domain=filtered.domain,
            matched_keywords=filtered.matched_keywords,
        )

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

"""
Domain Suggestion Engine.

Senders outside a pack's allow-list whose messages still match pack keywords
are aggregated per (domain, pack). The more often a domain shows up, and the
more distinct keywords it hits, the higher its confidence. Reviewers approve
or reject suggestions; a permanent rejection silences the domain for that
pack for good.
"""

from __future__ import annotations

import uuid

from concierge.config import (
    SUGGESTION_KEYWORD_CAP,
    SUGGESTION_SAMPLE_CAP,
    SUGGESTION_SUBJECT_MAX_CHARS,
)
from concierge.domains.models import SuggestedDomain, SuggestionStatus, utc_now
from concierge.domains.repository import SuggestedDomainRepository
from concierge.errors import AlreadyDisposed, NotFound, ValidationError
from concierge.observability.logging import get_logger
from concierge.observability.telemetry import counter, log_event

logger = get_logger(__name__)

# Concurrent observers of the same domain retry the compare-and-set this many times
_MAX_OBSERVE_ATTEMPTS = 5


def compute_confidence(email_count: int, distinct_keywords: int) -> float:
    """
    0.5 base, up to +0.2 for volume (0.05 per message) and up to +0.2 for
    keyword variety (0.1 per keyword beyond the first), capped at 0.95.
    """
    volume = min(0.2, email_count * 0.05)
    variety = min(0.2, max(0, distinct_keywords - 1) * 0.1)
    return round(min(0.95, 0.5 + volume + variety), 4)


def _merge_keywords(existing: list[str], new: list[str]) -> list[str]:
    merged = list(existing)
    for kw in new:
        if len(merged) >= SUGGESTION_KEYWORD_CAP:
            break
        if kw not in merged:
            merged.append(kw)
    return merged


def _merge_samples(existing: list[str], subject: str | None) -> list[str]:
    if not subject or len(existing) >= SUGGESTION_SAMPLE_CAP:
        return list(existing)
    return [*existing, subject[:SUGGESTION_SUBJECT_MAX_CHARS]]


class DomainSuggestionEngine:
    """observe / approve / reject / list_by_status over SuggestedDomainRepository."""

    def __init__(self, repository: type[SuggestedDomainRepository] = SuggestedDomainRepository):
        self.repository = repository

    def observe(
        self,
        domain: str,
        pack_id: str,
        matched_keywords: list[str],
        subject_sample: str | None = None,
    ) -> SuggestedDomain | None:
        """
        Record one off-list message with keyword matches.

        Returns:
            The updated suggestion, or None when the observation was ignored
            (permanently rejected domain, or a suggestion already decided)
        """
        domain = (domain or "").strip().lower()
        if not domain:
            raise ValidationError("domain is required")
        if not pack_id:
            raise ValidationError("pack_id is required")

        if self.repository.is_permanently_rejected(domain, pack_id):
            counter("domains.observe.permanently_rejected")
            return None

        keywords = _merge_keywords([], [kw.lower() for kw in matched_keywords])

        for _ in range(_MAX_OBSERVE_ATTEMPTS):
            now = utc_now()
            existing = self.repository.get_by_domain(domain, pack_id)

            if existing is None:
                suggestion = SuggestedDomain(
                    id=uuid.uuid4().hex,
                    domain=domain,
                    pack_id=pack_id,
                    email_count=1,
                    matched_keywords=keywords,
                    sample_subjects=_merge_samples([], subject_sample),
                    confidence=compute_confidence(1, len(keywords)),
                    first_seen_at=now,
                    last_seen_at=now,
                )
                if self.repository.insert_if_absent(suggestion):
                    counter("domains.suggested")
                    log_event("domains.suggested", domain=domain, pack_id=pack_id)
                    return suggestion
                continue

            if existing.status != SuggestionStatus.PENDING:
                counter("domains.observe.already_decided")
                return None

            count = existing.email_count + 1
            merged_keywords = _merge_keywords(existing.matched_keywords, keywords)
            samples = _merge_samples(existing.sample_subjects, subject_sample)
            confidence = compute_confidence(count, len(merged_keywords))

            if self.repository.update_evidence(
                existing.id,
                expected_count=existing.email_count,
                email_count=count,
                matched_keywords=merged_keywords,
                sample_subjects=samples,
                confidence=confidence,
                last_seen_at=now,
            ):
                counter("domains.observed")
                return existing.model_copy(
                    update={
                        "email_count": count,
                        "matched_keywords": merged_keywords,
                        "sample_subjects": samples,
                        "confidence": confidence,
                        "last_seen_at": now,
                    }
                )

        logger.warning("Gave up observing %s for pack %s after contention", domain, pack_id)
        counter("domains.observe.contention")
        return None

    def approve(self, suggestion_id: str) -> SuggestedDomain:
        """
        Raises:
            NotFound: Unknown suggestion
            AlreadyDisposed: Suggestion already approved or rejected
        """
        return self._decide(suggestion_id, SuggestionStatus.APPROVED)

    def reject(
        self, suggestion_id: str, reason: str | None = None, permanent: bool = False
    ) -> SuggestedDomain:
        """
        Reject a suggestion. ``permanent`` also blocks every future
        observation of the domain for the pack.

        Raises:
            NotFound: Unknown suggestion
            AlreadyDisposed: Suggestion already approved or rejected
        """
        return self._decide(
            suggestion_id,
            SuggestionStatus.REJECTED,
            rejection_reason=reason.strip() if reason and reason.strip() else None,
            permanent=permanent,
        )

    def get(self, suggestion_id: str) -> SuggestedDomain:
        suggestion = self.repository.get(suggestion_id)
        if suggestion is None:
            raise NotFound("domain suggestion", suggestion_id)
        return suggestion

    def list_by_status(
        self,
        status: SuggestionStatus | str | None = SuggestionStatus.PENDING,
        pack_id: str | None = None,
        limit: int = 100,
    ) -> list[SuggestedDomain]:
        if status is not None:
            try:
                status = SuggestionStatus(status)
            except ValueError:
                raise ValidationError(f"unknown suggestion status: {status}") from None
        return self.repository.list_by_status(status, pack_id=pack_id, limit=limit)

    def _decide(
        self,
        suggestion_id: str,
        status: SuggestionStatus,
        rejection_reason: str | None = None,
        permanent: bool = False,
    ) -> SuggestedDomain:
        if not self.repository.decide(
            suggestion_id, status, utc_now(), rejection_reason=rejection_reason, permanent=permanent
        ):
            existing = self.get(suggestion_id)
            raise AlreadyDisposed("domain suggestion", suggestion_id, existing.status.value)

        counter(f"domains.{status.value}")
        decided = self.get(suggestion_id)
        log_event(
            f"domains.{status.value}",
            domain=decided.domain,
            pack_id=decided.pack_id,
            permanent=permanent,
        )
        return decided

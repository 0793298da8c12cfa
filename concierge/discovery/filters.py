"""
Sender-domain and keyword pre-filters.

Stages 1 and 2 of relevance scoring. Both are free (no LLM calls) and run
before the classifier so obvious misses never cost a model call.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from concierge.discovery.packs import PackConfig
from concierge.discovery.types import RejectionReason
from concierge.utils.email import extract_domain_only


@dataclass
class FilterResult:
    """Result of the domain + keyword pre-filter."""

    passed: bool
    domain: str
    reason: RejectionReason | None = None
    matched_keywords: list[str] = field(default_factory=list)
    excluded_by: str | None = None  # exclude keyword that vetoed the message


class SenderDomainFilter:
    """
    Pre-filter messages by sender domain, then by pack keywords.

    1. Sender domain must be on the pack allow-list, otherwise ``domain``
    2. Subject/body must contain at least one pack keyword and no exclude
       keyword, otherwise ``keyword_no_match``

    Matched keywords are reported even on a domain miss: off-list senders
    whose content matches are what the domain suggestion engine aggregates.

    Args:
        approved_domains: Optional lookup ``(domain, pack_id) -> bool`` for
            domains approved after the pack was loaded, consulted on an
            allow-list miss
    """

    def __init__(self, approved_domains: Callable[[str, str], bool] | None = None):
        self.approved_domains = approved_domains

    def filter(self, pack: PackConfig, from_address: str, subject: str, body: str) -> FilterResult:
        domain = extract_domain_only(from_address)
        text_lower = f"{subject} {body}".lower()
        matched = self.match_keywords(pack, text_lower)

        if not self.allows_domain(pack, domain):
            return FilterResult(
                passed=False,
                domain=domain,
                reason=RejectionReason.DOMAIN,
                matched_keywords=matched,
            )

        for excluded in pack.exclude_keywords:
            if excluded in text_lower:
                return FilterResult(
                    passed=False,
                    domain=domain,
                    reason=RejectionReason.KEYWORD_NO_MATCH,
                    matched_keywords=matched,
                    excluded_by=excluded,
                )

        # A pack without keyword rules accepts everything from its domains
        if pack.keywords and not matched:
            return FilterResult(passed=False, domain=domain, reason=RejectionReason.KEYWORD_NO_MATCH)

        return FilterResult(passed=True, domain=domain, matched_keywords=matched)

    @staticmethod
    def match_keywords(pack: PackConfig, text_lower: str) -> list[str]:
        return [kw for kw in pack.keywords if kw in text_lower]

    def allows_domain(self, pack: PackConfig, domain: str) -> bool:
        if pack.matches_domain(domain):
            return True
        if not domain or self.approved_domains is None:
            return False
        return self.approved_domains(domain, pack.pack_id)

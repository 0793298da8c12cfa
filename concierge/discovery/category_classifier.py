"""
Rule-based category classification and item typing.

No LLM calls. Every category is scored independently from keyword, domain,
sender-pattern and negative-keyword signals; the highest wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from concierge.discovery.category_signals import CATEGORY_SIGNALS, CategorySignals
from concierge.discovery.packs import PackConfig
from concierge.discovery.types import Category, ItemType

# Signal weights
KEYWORD_WEIGHT = 0.1
KEYWORD_CAP = 0.4
DOMAIN_BONUS = 0.3
SENDER_PATTERN_WEIGHT = 0.1
SENDER_PATTERN_CAP = 0.2
NEGATIVE_WEIGHT = 0.1
NEGATIVE_CAP = 0.3

SECONDARY_MIN_SCORE = 0.5

OBLIGATION_PATTERNS = re.compile(
    r"\b(due|deadline|rsvp|sign(ed)?\b|signature|submit|register|registration closes|"
    r"permission slip|please (complete|return|reply|confirm)|must|required|"
    r"no later than|by (mon|tues|wednes|thurs|fri|satur|sun)day)\b",
    re.IGNORECASE,
)


@dataclass
class CategoryResult:
    primary: Category
    score: float
    scores: dict[str, float] = field(default_factory=dict)
    secondary: list[Category] = field(default_factory=list)


class CategoryClassifier:
    """
    Categorize a message into one of the household categories.

    ``trusted_sender`` is set when the sender is on the pack allow-list; it
    earns the same bonus as a known category domain.
    """

    def categorize(
        self, subject: str, from_address: str, body: str, trusted_sender: bool = False
    ) -> CategoryResult:
        text_lower = f"{subject} {body}".lower()
        from_lower = from_address.lower()

        scores = {
            category: self._score(text_lower, from_lower, signals, trusted_sender)
            for category, signals in CATEGORY_SIGNALS.items()
        }

        # Stable order on ties: enum declaration order
        ranked = sorted(scores.items(), key=lambda kv: -kv[1])
        primary, primary_score = ranked[0]
        secondary = [c for c, s in ranked[1:3] if s > SECONDARY_MIN_SCORE]

        return CategoryResult(
            primary=primary,
            score=primary_score,
            scores={c.value: round(s, 4) for c, s in scores.items()},
            secondary=secondary,
        )

    @staticmethod
    def _score(
        text_lower: str, from_lower: str, signals: CategorySignals, trusted_sender: bool
    ) -> float:
        score = 0.0

        keyword_hits = sum(1 for kw in signals.keywords if _contains_term(text_lower, kw))
        score += min(keyword_hits * KEYWORD_WEIGHT, KEYWORD_CAP)

        if keyword_hits and (trusted_sender or any(d in from_lower for d in signals.domains)):
            score += DOMAIN_BONUS

        pattern_hits = sum(1 for p in signals.sender_patterns if p in from_lower)
        score += min(pattern_hits * SENDER_PATTERN_WEIGHT, SENDER_PATTERN_CAP)

        negative_hits = sum(1 for nk in signals.negative_keywords if _contains_term(text_lower, nk))
        score -= min(negative_hits * NEGATIVE_WEIGHT, NEGATIVE_CAP)

        return max(0.0, min(score, 1.0))


def _contains_term(text_lower: str, term: str) -> bool:
    return re.search(rf"\b{re.escape(term)}\b", text_lower) is not None


def detect_item_type(subject: str, body: str, has_date: bool) -> ItemType:
    """Obligation when the message asks for action and carries a date."""
    if has_date and OBLIGATION_PATTERNS.search(f"{subject} {body}"):
        return ItemType.OBLIGATION
    return ItemType.ANNOUNCEMENT


def assign_person(pack: PackConfig, subject: str, body: str, default: str) -> str:
    """First household member named in the message, else the shared default."""
    text_lower = f"{subject} {body}".lower()
    for person in pack.people:
        if person.matches(text_lower):
            return person.name
    return default

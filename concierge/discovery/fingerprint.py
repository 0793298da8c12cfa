"""
Content-addressed identity for an event mention.

generate(message_id, intent) is pure and deterministic across processes:
the title is case- and whitespace-normalized and start/end are reduced to
their absolute UTC instant, so "3pm America/New_York" and "19:00Z" on the
same day collapse to the same fingerprint while any change to the title
text, start or end yields a different one.
"""

from __future__ import annotations

import hashlib
import re
from datetime import UTC, datetime

from concierge.discovery.types import EventIntent

# ASCII unit separator; cannot appear in a normalized title or ISO timestamp
_SEPARATOR = "\x1f"
_WHITESPACE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    """Lower-case, trim and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", title.strip().lower())


def canonical_instant(value: datetime) -> str:
    """Render an aware datetime as a UTC instant with second precision."""
    if value.tzinfo is None:
        raise ValueError("fingerprint timestamps must be timezone-aware")
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def generate(message_id: str, intent: EventIntent) -> str:
    """
    Fingerprint an event mention.

    Args:
        message_id: Originating message identity
        intent: Extracted event

    Returns:
        64-character lowercase SHA-256 hex digest
    """
    if not message_id:
        raise ValueError("message_id is required")

    parts = [
        message_id,
        normalize_title(intent.title),
        canonical_instant(intent.start),
        canonical_instant(intent.end) if intent.end else "",
        "all_day" if intent.all_day else "timed",
    ]
    return hashlib.sha256(_SEPARATOR.join(parts).encode("utf-8")).hexdigest()


def generate_for_message(message_id: str, subject: str) -> str:
    """
    Fingerprint a message that yielded no structured event.

    Items flagged for manual completion still need a dedup key; the subject
    stands in for the event tuple.
    """
    if not message_id:
        raise ValueError("message_id is required")
    parts = [message_id, normalize_title(subject), "no_event"]
    return hashlib.sha256(_SEPARATOR.join(parts).encode("utf-8")).hexdigest()

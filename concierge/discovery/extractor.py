"""
Rule-based EventIntent extraction from message text.

Finds the first explicit date in the subject (then the body), an optional
time or time range near it, and builds an EventIntent in the pack's
timezone. Returns None when no date is found; the caller queues the item
for manual completion instead of dropping it.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

from concierge.discovery.types import EventIntent
from concierge.observability.logging import get_logger
from concierge.observability.telemetry import counter

logger = get_logger(__name__)

_MONTHS = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?|"
    r"sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)

DATE_PATTERNS = [
    # 2025-03-14
    re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"),
    # March 14, 2025 / Mar 14th / Friday, March 14
    re.compile(rf"\b({_MONTHS}\.?\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?)\b", re.IGNORECASE),
    # 14 March 2025
    re.compile(rf"\b(\d{{1,2}}\s+{_MONTHS}(?:\s+\d{{4}})?)\b", re.IGNORECASE),
    # 3/14/2025 or 3/14
    re.compile(r"\b(\d{1,2}/\d{1,2}(?:/\d{2,4})?)\b"),
]

_TIME = r"\d{1,2}(?::\d{2})?\s*(?:[ap]\.?m\.?)?"
TIME_RANGE_PATTERN = re.compile(
    rf"\b({_TIME})\s*(?:-|–|to|until)\s*({_TIME})", re.IGNORECASE
)
TIME_PATTERN = re.compile(r"\b(\d{1,2}(?::\d{2})?\s*[ap]\.?m\.?|\d{1,2}:\d{2})\b", re.IGNORECASE)

SUBJECT_PREFIXES = re.compile(r"^\s*((re|fwd?|fw|reminder|update|save the date)\s*:\s*)+", re.IGNORECASE)

# How far past the reference a yearless date may be before it rolls to next year
_PAST_TOLERANCE = timedelta(days=1)
# Only look this far past the date mention for a time
_TIME_WINDOW_CHARS = 80


class EventExtractor:
    """Extract a single EventIntent from subject and body text."""

    def extract(
        self,
        subject: str,
        body: str,
        timezone: str = "UTC",
        reference: datetime | None = None,
    ) -> EventIntent | None:
        """
        Args:
            subject: Message subject (used as the event title)
            body: Message body text
            timezone: IANA timezone the message's local times are in
            reference: When the message was sent; anchors yearless dates

        Returns:
            EventIntent, or None when no date could be found
        """
        tz = ZoneInfo(timezone)
        reference = (reference or datetime.now(tz)).astimezone(tz)

        for text in (subject, body):
            found = self._find_date(text, reference)
            if found is None:
                continue
            day, end_index = found
            window = text[end_index : end_index + _TIME_WINDOW_CHARS]
            start_time, end_time = self._find_times(window)

            title = self._title(subject)
            try:
                if start_time is None:
                    start = datetime(day.year, day.month, day.day, tzinfo=tz)
                    counter("discovery.extractor.all_day")
                    return EventIntent(title=title, timezone=timezone, all_day=True, start=start)

                start = datetime.combine(day, start_time, tzinfo=tz)
                end = datetime.combine(day, end_time, tzinfo=tz) if end_time else None
                if end is not None and end <= start:
                    end = None
                counter("discovery.extractor.timed")
                return EventIntent(title=title, timezone=timezone, start=start, end=end)
            except ValueError as e:
                logger.debug("Discarding unusable extraction: %s", e)
                return None

        counter("discovery.extractor.no_date")
        return None

    @staticmethod
    def _title(subject: str) -> str:
        title = SUBJECT_PREFIXES.sub("", subject or "").strip()
        return title or "Untitled event"

    @staticmethod
    def _find_date(text: str, reference: datetime):
        """First parseable date in text, with the index just past the match."""
        if not text:
            return None
        candidates = []
        for pattern in DATE_PATTERNS:
            for match in pattern.finditer(text):
                candidates.append(match)
        for match in sorted(candidates, key=lambda m: m.start()):
            raw = match.group(1)
            has_year = re.search(r"\d{4}", raw) is not None or raw.count("/") == 2
            try:
                parsed = date_parser.parse(
                    raw, default=reference.replace(tzinfo=None), fuzzy=False
                )
            except (ValueError, OverflowError):
                continue
            day = parsed.date()
            if not has_year and day < (reference - _PAST_TOLERANCE).date():
                day = day.replace(year=day.year + 1)
            return day, match.end()
        return None

    @staticmethod
    def _find_times(window: str):
        """(start, end) times from text following a date; either may be None."""
        range_match = TIME_RANGE_PATTERN.search(window)
        if range_match:
            start_raw, end_raw = range_match.group(1), range_match.group(2)
            meridiem = re.search(r"[ap]\.?m\.?", end_raw, re.IGNORECASE)
            # "3-4pm": the start inherits the end's meridiem
            if meridiem and not re.search(r"[ap]\.?m", start_raw, re.IGNORECASE):
                start_raw = f"{start_raw}{meridiem.group(0)}"
            start, end = _parse_time(start_raw), _parse_time(end_raw)
            if start is not None:
                return start, end

        single = TIME_PATTERN.search(window)
        if single:
            return _parse_time(single.group(1)), None
        return None, None


def _parse_time(raw: str):
    raw = raw.strip().replace(".", "")
    if not re.search(r"[ap]m|:", raw, re.IGNORECASE):
        return None
    try:
        return date_parser.parse(raw).time()
    except (ValueError, OverflowError):
        return None

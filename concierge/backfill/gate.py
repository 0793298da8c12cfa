"""
Backfill safety gate.

Backfill writes events for historical mail straight into the calendar, so
every run is validated before anything is fetched: a bounded date range, a
capped event count, and an explicit confirmation for anything that is not a
dry run.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field

from concierge.config import (
    BACKFILL_DEFAULT_MAX_EVENTS,
    BACKFILL_MAX_EVENTS,
    BACKFILL_MAX_RANGE_DAYS,
)
from concierge.errors import ValidationError


class BackfillOptions(BaseModel):
    """Caller-supplied backfill request. ``from``/``to`` are free-form dates."""

    model_config = ConfigDict(populate_by_name=True)

    from_date: str | None = Field(default=None, alias="from")
    to_date: str | None = Field(default=None, alias="to")
    dry_run: bool = True
    confirm: bool = False
    max_events: int | None = None


@dataclass(frozen=True)
class ValidatedBackfill:
    """Options after the gate: parsed range and effective event cap."""

    start: datetime
    end: datetime
    dry_run: bool
    max_events: int


def _parse(label: str, value: str | None) -> datetime:
    if value is None or not str(value).strip():
        raise ValidationError(f"'{label}' date is required")
    try:
        parsed = date_parser.parse(str(value))
    except (ValueError, OverflowError):
        raise ValidationError(f"Invalid {label} date: {value}. Use format: YYYY-MM-DD") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def validate(options: BackfillOptions, now: datetime | None = None) -> ValidatedBackfill:
    """
    Check a backfill request before any side effect.

    Raises:
        ValidationError: Missing/unparseable dates, from after to, to in the
            future (beyond tomorrow), range over BACKFILL_MAX_RANGE_DAYS,
            live run without confirm, or max_events outside 1..BACKFILL_MAX_EVENTS
    """
    now = now or datetime.now(UTC)
    start = _parse("from", options.from_date)
    end = _parse("to", options.to_date)

    if start > end:
        raise ValidationError("from date must be before to date")
    if end > now + timedelta(days=1):
        raise ValidationError("to date cannot be in the future")

    span_days = math.ceil((end - start).total_seconds() / 86400)
    if span_days > BACKFILL_MAX_RANGE_DAYS:
        raise ValidationError(
            f"Date range cannot exceed {BACKFILL_MAX_RANGE_DAYS} days. Break into smaller batches."
        )

    if not options.dry_run and not options.confirm:
        raise ValidationError(
            "Cannot run backfill without dry-run. Preview with dry_run first, then set confirm."
        )

    max_events = BACKFILL_DEFAULT_MAX_EVENTS if options.max_events is None else options.max_events
    if max_events < 1:
        raise ValidationError("max_events must be at least 1")
    if max_events > BACKFILL_MAX_EVENTS:
        raise ValidationError(
            f"Maximum {BACKFILL_MAX_EVENTS} events per backfill run. Break into smaller batches."
        )

    return ValidatedBackfill(start=start, end=end, dry_run=options.dry_run, max_events=max_events)

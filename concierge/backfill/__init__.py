"""
Backfill of historical mail into the calendar, behind a safety gate.
"""

from concierge.backfill.gate import BackfillOptions, ValidatedBackfill, validate
from concierge.backfill.service import BackfillResult, BackfillRunner

__all__ = ["BackfillOptions", "BackfillResult", "BackfillRunner", "ValidatedBackfill", "validate"]

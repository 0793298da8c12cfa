"""
Tests for shared discovery types: EventIntent defaults, tiers, buckets.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError as PydanticValidationError

from concierge.discovery.types import (
    Category,
    ConfidenceBucket,
    EventIntent,
    Message,
    SensitivityTier,
)


class TestEventIntent:
    def test_naive_start_is_localized_to_timezone(self):
        intent = EventIntent(title="Game", timezone="America/Chicago", start=datetime(2026, 5, 2, 10, 0))
        assert intent.start.tzinfo == ZoneInfo("America/Chicago")

    def test_timed_event_defaults_to_one_hour(self):
        intent = EventIntent(title="Game", start=datetime(2026, 5, 2, 10, 0))
        assert intent.end - intent.start == timedelta(hours=1)

    def test_all_day_event_defaults_to_one_day(self):
        intent = EventIntent(title="Picture day", all_day=True, start=datetime(2026, 5, 2))
        assert intent.end - intent.start == timedelta(days=1)

    def test_end_before_start_rejected(self):
        with pytest.raises(PydanticValidationError):
            EventIntent(title="Game", start=datetime(2026, 5, 2, 10), end=datetime(2026, 5, 2, 9))

    def test_blank_title_rejected(self):
        with pytest.raises(PydanticValidationError):
            EventIntent(title="   ", start=datetime(2026, 5, 2, 10))

    def test_unknown_timezone_rejected(self):
        with pytest.raises(PydanticValidationError):
            EventIntent(title="Game", timezone="Mars/Olympus", start=datetime(2026, 5, 2, 10))

    def test_frozen(self):
        intent = EventIntent(title="Game", start=datetime(2026, 5, 2, 10))
        with pytest.raises(PydanticValidationError):
            intent.title = "Other"

    def test_round_trips_through_json_dict(self):
        intent = EventIntent(title="Game", timezone="America/Chicago", start=datetime(2026, 5, 2, 10))
        assert EventIntent.model_validate(intent.to_json_dict()) == intent


def test_tier_thresholds():
    assert SensitivityTier.CONSERVATIVE.threshold == 0.85
    assert SensitivityTier.BALANCED.threshold == 0.75
    assert SensitivityTier.BROAD.threshold == 0.65
    assert SensitivityTier.OFF.threshold is None


@pytest.mark.parametrize(
    "score,bucket",
    [
        (0.0, ConfidenceBucket.VERY_LOW),
        (0.19, ConfidenceBucket.VERY_LOW),
        (0.2, ConfidenceBucket.LOW),
        (0.59, ConfidenceBucket.MEDIUM),
        (0.6, ConfidenceBucket.HIGH),
        (0.8, ConfidenceBucket.VERY_HIGH),
        (1.0, ConfidenceBucket.VERY_HIGH),
    ],
)
def test_confidence_buckets(score, bucket):
    assert ConfidenceBucket.for_score(score) == bucket


def test_message_header_lookup_is_case_insensitive():
    message = Message(id="m1", headers={"from": "a@b.com", "SUBJECT": "Hi"})
    assert message.from_address == "a@b.com"
    assert message.subject == "Hi"
    assert message.header("X-Missing", "none") == "none"


def test_eight_categories():
    assert len(list(Category)) == 8

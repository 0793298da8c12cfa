"""
Tests for event fingerprinting.

Validates:
1. Same message + equivalent event -> same digest, across timezones
2. Title case/whitespace is ignored, any other title change is not
3. Start, end and message id all participate
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

import pytest

from concierge.discovery.fingerprint import (
    canonical_instant,
    generate,
    generate_for_message,
    normalize_title,
)
from concierge.discovery.types import EventIntent

HEX64 = re.compile(r"^[0-9a-f]{64}$")


def _intent(**overrides) -> EventIntent:
    fields = {
        "title": "Field Trip to the Aquarium",
        "timezone": "America/New_York",
        "start": datetime(2026, 4, 10, 9, 0),
        "end": datetime(2026, 4, 10, 14, 0),
    }
    fields.update(overrides)
    return EventIntent(**fields)


def test_digest_is_64_lowercase_hex():
    assert HEX64.match(generate("msg-1", _intent()))


def test_deterministic():
    assert generate("msg-1", _intent()) == generate("msg-1", _intent())


def test_title_case_and_whitespace_ignored():
    a = generate("msg-1", _intent(title="Field Trip to the Aquarium"))
    b = generate("msg-1", _intent(title="  field   trip to THE aquarium "))
    assert a == b


def test_title_text_change_changes_digest():
    a = generate("msg-1", _intent(title="Field Trip to the Aquarium"))
    b = generate("msg-1", _intent(title="Field Trip to the Zoo"))
    assert a != b


def test_equivalent_instants_in_different_timezones_collide():
    """9am New York and 13:00 UTC are the same instant (EDT, UTC-4)."""
    local = _intent(timezone="America/New_York", start=datetime(2026, 4, 10, 9, 0), end=None)
    utc = _intent(
        timezone="UTC",
        start=datetime(2026, 4, 10, 13, 0, tzinfo=UTC),
        end=None,
    )
    assert generate("msg-1", local) == generate("msg-1", utc)


@pytest.mark.parametrize(
    "change",
    [
        {"start": datetime(2026, 4, 10, 9, 30)},
        {"end": datetime(2026, 4, 10, 15, 0)},
    ],
)
def test_start_or_end_change_changes_digest(change):
    assert generate("msg-1", _intent()) != generate("msg-1", _intent(**change))


def test_message_id_participates():
    assert generate("msg-1", _intent()) != generate("msg-2", _intent())


def test_empty_message_id_rejected():
    with pytest.raises(ValueError):
        generate("", _intent())


def test_normalize_title():
    assert normalize_title("  Picture   DAY\t") == "picture day"


def test_canonical_instant_requires_aware_datetime():
    with pytest.raises(ValueError):
        canonical_instant(datetime(2026, 1, 1, 12, 0))


def test_canonical_instant_format():
    assert canonical_instant(datetime(2026, 1, 1, 12, 0, 5, 999, tzinfo=UTC)) == "2026-01-01T12:00:05Z"


def test_message_fingerprint_without_event():
    digest = generate_for_message("msg-1", "Lunch menu")
    assert HEX64.match(digest)
    assert digest == generate_for_message("msg-1", "  LUNCH menu ")
    assert digest != generate_for_message("msg-1", "Supply list")

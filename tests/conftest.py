"""
Pytest configuration for Concierge tests

Provides a throwaway SQLite database per test, pack and message builders,
and an in-memory message source.
"""

from __future__ import annotations

import threading
import uuid
from datetime import UTC, datetime

import pytest

from concierge.approvals.models import PendingApprovalItem
from concierge.discovery import fingerprint
from concierge.discovery.packs import PackConfig, PersonRule
from concierge.discovery.types import Category, EventIntent, Message
from concierge.errors import NotFound
from concierge.infrastructure.database import init_database, reset_pools
from concierge.observability.telemetry import reset_counters

SCHOOL_DOMAIN = "lincoln.k12.ca.us"


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """No test talks to Vertex AI, and counters start at zero."""
    monkeypatch.setenv("CONCIERGE_USE_LLM", "false")
    reset_counters()
    yield
    reset_counters()


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Fresh schema in a temp file, selected through CONCIERGE_DB_PATH."""
    db_path = tmp_path / "concierge.db"
    monkeypatch.setenv("CONCIERGE_DB_PATH", str(db_path))
    reset_pools()
    init_database()
    yield db_path
    reset_pools()


@pytest.fixture
def school_pack() -> PackConfig:
    return PackConfig(
        pack_id="school",
        name="School",
        domains=[SCHOOL_DOMAIN, "*.parentsquare.com"],
        keywords=["field trip", "conference", "teacher", "report card"],
        exclude_keywords=["fundraiser"],
        people=[PersonRule(name="Maya", aliases=["maya r"])],
        timezone="America/Los_Angeles",
    )


@pytest.fixture
def make_message():
    """Build a Message with sensible defaults."""

    def _make(
        message_id: str | None = None,
        from_address: str = f"Lincoln Office <office@{SCHOOL_DOMAIN}>",
        subject: str = "Parent-teacher conference on March 14 at 3:30pm",
        body: str = "Please come to the classroom for your report card conference.",
        internal_date: datetime | None = datetime(2026, 3, 1, 9, 0, tzinfo=UTC),
    ) -> Message:
        return Message(
            id=message_id or uuid.uuid4().hex,
            headers={"From": from_address, "Subject": subject},
            body=body,
            internal_date=internal_date,
        )

    return _make


@pytest.fixture
def make_item():
    """Build a pending PendingApprovalItem with a real fingerprint."""

    def _make(
        message_id: str | None = None,
        pack_id: str = "school",
        title: str = "Parent-teacher conference",
        start: datetime = datetime(2026, 3, 14, 15, 30),
        category: Category = Category.SCHOOL,
        discovered_at: datetime | None = None,
        **overrides,
    ) -> PendingApprovalItem:
        message_id = message_id or uuid.uuid4().hex
        intent = EventIntent(title=title, timezone="America/Los_Angeles", start=start)
        fields = {
            "id": uuid.uuid4().hex,
            "message_id": message_id,
            "pack_id": pack_id,
            "fingerprint": fingerprint.generate(message_id, intent),
            "relevance_score": 0.8,
            "from_email": f"office@{SCHOOL_DOMAIN}",
            "from_name": "Lincoln Office",
            "subject": title,
            "primary_category": category,
            "event": intent,
        }
        if discovered_at is not None:
            fields["discovered_at"] = discovered_at
        fields.update(overrides)
        return PendingApprovalItem(**fields)

    return _make


class FakeMessageSource:
    """
    In-memory MessageSource.

    ``slow`` ids block until ``release`` is set; ``broken`` ids raise.
    """

    def __init__(self, messages: list[Message]):
        self.messages = {m.id: m for m in messages}
        self.order = [m.id for m in messages]
        self.slow: set[str] = set()
        self.broken: set[str] = set()
        self.release = threading.Event()
        self.queries: list[tuple[str, int]] = []

    def list_messages(self, query: str, limit: int) -> list[str]:
        self.queries.append((query, limit))
        return self.order[:limit]

    def get_message(self, message_id: str) -> Message:
        if message_id in self.broken:
            raise ConnectionError(f"provider error for {message_id}")
        if message_id in self.slow:
            self.release.wait(timeout=5)
        if message_id not in self.messages:
            raise NotFound("message", message_id)
        return self.messages[message_id]


@pytest.fixture
def message_source_factory():
    return FakeMessageSource

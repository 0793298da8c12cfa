"""
Collaborator Protocols

Design Principles:
- Side effects are named in each docstring
- Dependencies explicit in signatures, no hidden globals
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from concierge.approvals.models import PendingApprovalItem
    from concierge.discovery.packs import PackConfig
    from concierge.discovery.types import Classification, EventIntent, Message


class MessageSource(Protocol):
    """Mail provider (e.g. a Gmail client wrapper)."""

    def list_messages(self, query: str, limit: int) -> list[str]:
        """Return up to ``limit`` message ids matching a provider query.

        Side Effects:
            Network call to the mail provider
        """
        ...

    def get_message(self, message_id: str) -> Message:
        """Fetch one message (headers, body, internal date).

        Side Effects:
            Network call to the mail provider
        """
        ...


class CalendarSink(Protocol):
    """Calendar provider that receives approved or backfilled events."""

    def create_event(self, intent: EventIntent) -> str:
        """Create the event and return the provider's event id.

        Side Effects:
            Writes an event to the external calendar
        """
        ...


class RelevanceClassifier(Protocol):
    """Heuristic or model-backed relevance scorer."""

    def classify(self, message_text: str, pack: PackConfig) -> Classification:
        """Score rendered message text for a pack.

        Returns:
            Classification with score in [0, 1], primary category and an
            optional extracted EventIntent

        Side Effects:
            May call an external model
        """
        ...


class DigestNotifier(Protocol):
    """Digest builder hook invoked when an item is approved."""

    def include(self, item: PendingApprovalItem) -> None:
        """Mark the item for inclusion in the next digest build.

        Side Effects:
            Implementation-defined (queue, table, email)
        """
        ...

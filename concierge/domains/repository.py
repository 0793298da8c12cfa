"""
Domain suggestion repository - CRUD for suggested_domains and rejected_domains.
"""

from __future__ import annotations

import json
from datetime import datetime

from concierge.domains.models import SuggestedDomain, SuggestionStatus
from concierge.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from concierge.observability.logging import get_logger

logger = get_logger(__name__)


class SuggestedDomainRepository:
    """Repository for domain suggestions."""

    @staticmethod
    def get(suggestion_id: str) -> SuggestedDomain | None:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM suggested_domains WHERE id = ?", (suggestion_id,)
            ).fetchone()
        return SuggestedDomain.from_db_row(dict(row)) if row else None

    @staticmethod
    def get_by_domain(domain: str, pack_id: str) -> SuggestedDomain | None:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM suggested_domains WHERE domain = ? AND pack_id = ?",
                (domain, pack_id),
            ).fetchone()
        return SuggestedDomain.from_db_row(dict(row)) if row else None

    @staticmethod
    @retry_on_db_lock()
    def insert_if_absent(suggestion: SuggestedDomain) -> bool:
        """
        Create the suggestion unless (domain, pack_id) already exists.

        Returns:
            True if this call created the row
        """
        row = suggestion.to_db_dict()
        columns = ", ".join(row)
        placeholders = ", ".join(f":{key}" for key in row)
        with db_transaction() as conn:
            cursor = conn.execute(
                f"INSERT OR IGNORE INTO suggested_domains ({columns}) VALUES ({placeholders})",
                row,
            )
            return cursor.rowcount == 1

    @staticmethod
    @retry_on_db_lock()
    def update_evidence(
        suggestion_id: str,
        expected_count: int,
        email_count: int,
        matched_keywords: list[str],
        sample_subjects: list[str],
        confidence: float,
        last_seen_at: datetime,
    ) -> bool:
        """
        Write new evidence if the row is still pending and unchanged since read.

        ``expected_count`` makes the update a compare-and-set: a concurrent
        observer that got there first causes this call to return False.
        """
        with db_transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE suggested_domains
                SET email_count = ?, matched_keywords = ?, sample_subjects = ?,
                    confidence = ?, last_seen_at = ?
                WHERE id = ? AND status = 'pending' AND email_count = ?
                """,
                (
                    email_count,
                    json.dumps(matched_keywords),
                    json.dumps(sample_subjects),
                    confidence,
                    last_seen_at.isoformat(),
                    suggestion_id,
                    expected_count,
                ),
            )
            return cursor.rowcount == 1

    @staticmethod
    @retry_on_db_lock()
    def decide(
        suggestion_id: str,
        status: SuggestionStatus,
        decided_at: datetime,
        rejection_reason: str | None = None,
        permanent: bool = False,
    ) -> bool:
        """
        Move a pending suggestion to approved or rejected.

        A permanent rejection also lands in rejected_domains, in the same
        transaction, so future observations of the domain are ignored.

        Returns:
            True if this call made the decision
        """
        with db_transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE suggested_domains
                SET status = ?, rejection_reason = ?, permanent = ?, decided_at = ?
                WHERE id = ? AND status = 'pending'
                """,
                (status.value, rejection_reason, int(permanent), decided_at.isoformat(), suggestion_id),
            )
            if cursor.rowcount != 1:
                return False

            if status == SuggestionStatus.REJECTED and permanent:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO rejected_domains (domain, pack_id, reason, rejected_at)
                    SELECT domain, pack_id, ?, ? FROM suggested_domains WHERE id = ?
                    """,
                    (rejection_reason, decided_at.isoformat(), suggestion_id),
                )
        logger.info("Domain suggestion %s %s", suggestion_id, status.value)
        return True

    @staticmethod
    def list_by_status(
        status: SuggestionStatus | None = SuggestionStatus.PENDING,
        pack_id: str | None = None,
        limit: int = 100,
    ) -> list[SuggestedDomain]:
        """Suggestions ordered by confidence, then volume."""
        query = "SELECT * FROM suggested_domains WHERE 1 = 1"
        params: list[object] = []
        if status is not None:
            query += " AND status = ?"
            params.append(SuggestionStatus(status).value)
        if pack_id:
            query += " AND pack_id = ?"
            params.append(pack_id)
        query += " ORDER BY confidence DESC, email_count DESC LIMIT ?"
        params.append(limit)

        with get_db_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [SuggestedDomain.from_db_row(dict(row)) for row in rows]

    @staticmethod
    def is_permanently_rejected(domain: str, pack_id: str) -> bool:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM rejected_domains WHERE domain = ? AND pack_id = ?",
                (domain, pack_id),
            ).fetchone()
        return row is not None

    @staticmethod
    def is_approved(domain: str, pack_id: str) -> bool:
        """True once a suggestion for (domain, pack_id) has been approved."""
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM suggested_domains WHERE domain = ? AND pack_id = ? AND status = ?",
                (domain, pack_id, SuggestionStatus.APPROVED.value),
            ).fetchone()
        return row is not None

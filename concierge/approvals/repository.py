"""
Approval queue repository - CRUD for pending_approvals and dismissed_items.

Every state change is a single conditional statement whose rowcount tells
the caller whether it won: INSERT OR IGNORE on the (fingerprint, pack_id)
unique key for enqueue, and UPDATE/DELETE ... WHERE state = 'pending' for
disposition. SQLite serializes writers, so of two concurrent callers exactly
one sees rowcount == 1.
"""

from __future__ import annotations

from datetime import UTC, datetime

from concierge.approvals.models import DismissalRecord, DispositionState, PendingApprovalItem
from concierge.discovery.types import Category
from concierge.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from concierge.observability.logging import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "id, message_id, pack_id, fingerprint, relevance_score, from_email, from_name, "
    "subject, snippet, person, primary_category, item_type, obligation_date, state, "
    "discovered_at, disposed_at, disposed_by, needs_manual_completion, event_json, "
    "digest_included"
)


class PendingApprovalRepository:
    """Repository for approval queue rows."""

    @staticmethod
    @retry_on_db_lock()
    def insert_if_absent(item: PendingApprovalItem) -> bool:
        """
        Compare-and-insert on (fingerprint, pack_id).

        Returns:
            True if this call created the row, False if one already existed

        Side Effects:
            - Inserts a row into pending_approvals when absent
        """
        row = item.to_db_dict()
        placeholders = ", ".join(f":{name.strip()}" for name in _COLUMNS.split(","))
        with db_transaction() as conn:
            cursor = conn.execute(
                f"INSERT OR IGNORE INTO pending_approvals ({_COLUMNS}) VALUES ({placeholders})",
                row,
            )
            inserted = cursor.rowcount == 1

        if inserted:
            logger.info("Enqueued approval item %s for pack %s", item.id, item.pack_id)
        return inserted

    @staticmethod
    def get(token: str) -> PendingApprovalItem | None:
        with get_db_connection() as conn:
            row = conn.execute("SELECT * FROM pending_approvals WHERE id = ?", (token,)).fetchone()
        return PendingApprovalItem.from_db_row(dict(row)) if row else None

    @staticmethod
    def get_by_fingerprint(fingerprint: str, pack_id: str) -> PendingApprovalItem | None:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM pending_approvals WHERE fingerprint = ? AND pack_id = ?",
                (fingerprint, pack_id),
            ).fetchone()
        return PendingApprovalItem.from_db_row(dict(row)) if row else None

    @staticmethod
    def list_by_state(
        state: DispositionState = DispositionState.PENDING,
        pack_id: str | None = None,
        person: str | None = None,
        category: Category | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[PendingApprovalItem]:
        """List items in a state, oldest first, with optional filters."""
        query = "SELECT * FROM pending_approvals WHERE state = ?"
        params: list[object] = [state.value]

        if pack_id:
            query += " AND pack_id = ?"
            params.append(pack_id)
        if person:
            query += " AND person = ?"
            params.append(person)
        if category:
            query += " AND primary_category = ?"
            params.append(Category(category).value)

        query += " ORDER BY discovered_at ASC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with get_db_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [PendingApprovalItem.from_db_row(dict(row)) for row in rows]

    @staticmethod
    def list_awaiting_digest() -> list[PendingApprovalItem]:
        """Approved items the digest builder has not yet acknowledged."""
        with get_db_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM pending_approvals WHERE state = 'approved' AND digest_included = 0 "
                "ORDER BY disposed_at ASC"
            ).fetchall()
        return [PendingApprovalItem.from_db_row(dict(row)) for row in rows]

    @staticmethod
    @retry_on_db_lock()
    def transition(token: str, new_state: DispositionState, actor: str, now: datetime) -> bool:
        """
        Move a pending item to a terminal state.

        Returns:
            True if this call performed the transition
        """
        with db_transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE pending_approvals
                SET state = ?, disposed_at = ?, disposed_by = ?
                WHERE id = ? AND state = 'pending'
                """,
                (new_state.value, now.astimezone(UTC).isoformat(), actor, token),
            )
            return cursor.rowcount == 1

    @staticmethod
    @retry_on_db_lock()
    def dismiss(token: str, record: DismissalRecord) -> bool:
        """
        Delete a pending item and write its dismissal record atomically.

        Returns:
            True if this call removed the item
        """
        row = record.to_db_dict()
        with db_transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM pending_approvals WHERE id = ? AND state = 'pending'", (token,)
            )
            if cursor.rowcount != 1:
                return False
            conn.execute(
                """
                INSERT INTO dismissed_items (
                    id, item_type, item_id, original_subject, original_from, original_date,
                    person, pack_id, reason, dismissed_by, dismissed_at
                ) VALUES (
                    :id, :item_type, :item_id, :original_subject, :original_from, :original_date,
                    :person, :pack_id, :reason, :dismissed_by, :dismissed_at
                )
                """,
                row,
            )
        return True

    @staticmethod
    @retry_on_db_lock()
    def update_category(token: str, category: Category) -> bool:
        with db_transaction() as conn:
            cursor = conn.execute(
                "UPDATE pending_approvals SET primary_category = ? WHERE id = ?",
                (Category(category).value, token),
            )
            return cursor.rowcount == 1

    @staticmethod
    @retry_on_db_lock()
    def mark_digest_included(token: str) -> bool:
        with db_transaction() as conn:
            cursor = conn.execute(
                "UPDATE pending_approvals SET digest_included = 1 "
                "WHERE id = ? AND state = 'approved'",
                (token,),
            )
            return cursor.rowcount == 1


class DismissalRepository:
    """Read side of the dismissal audit trail."""

    @staticmethod
    def get_for_item(item_id: str) -> DismissalRecord | None:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM dismissed_items WHERE item_id = ? ORDER BY dismissed_at DESC LIMIT 1",
                (item_id,),
            ).fetchone()
        return DismissalRecord.from_db_row(dict(row)) if row else None

    @staticmethod
    def list_since(since: datetime, pack_id: str | None = None) -> list[DismissalRecord]:
        """Dismissals at or after ``since``, newest first."""
        if since.tzinfo is None:
            since = since.replace(tzinfo=UTC)
        query = "SELECT * FROM dismissed_items WHERE dismissed_at >= ?"
        params: list[object] = [since.astimezone(UTC).isoformat()]
        if pack_id:
            query += " AND pack_id = ?"
            params.append(pack_id)
        query += " ORDER BY dismissed_at DESC"

        with get_db_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [DismissalRecord.from_db_row(dict(row)) for row in rows]

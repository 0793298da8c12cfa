"""
Database schema initialization for Concierge.

Contains the SQL schema and initialization logic, kept apart from database.py.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from concierge.observability.logging import get_logger

logger = get_logger(__name__)


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Safe to run multiple times - uses CREATE TABLE IF NOT EXISTS.

    Side Effects:
    - Creates the data directory and database file if needed
    - Creates tables and indexes that don't exist yet
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)

    conn.executescript("""
        -- Approval queue. One row per (fingerprint, pack); dismissal deletes the row.
        CREATE TABLE IF NOT EXISTS pending_approvals (
            id TEXT PRIMARY KEY,
            message_id TEXT NOT NULL,
            pack_id TEXT NOT NULL,
            fingerprint TEXT NOT NULL,
            relevance_score REAL NOT NULL,
            from_email TEXT NOT NULL,
            from_name TEXT,
            subject TEXT NOT NULL,
            snippet TEXT,
            person TEXT NOT NULL DEFAULT 'Family/Shared',
            primary_category TEXT NOT NULL,
            item_type TEXT NOT NULL DEFAULT 'announcement',
            obligation_date TEXT,
            state TEXT NOT NULL DEFAULT 'pending'
                CHECK (state IN ('pending', 'approved', 'rejected')),
            discovered_at TEXT NOT NULL,
            disposed_at TEXT,
            disposed_by TEXT,
            needs_manual_completion INTEGER NOT NULL DEFAULT 0,
            event_json TEXT,
            digest_included INTEGER NOT NULL DEFAULT 0,
            UNIQUE (fingerprint, pack_id)
        );

        CREATE INDEX IF NOT EXISTS idx_pending_approvals_state
            ON pending_approvals(state, pack_id);
        CREATE INDEX IF NOT EXISTS idx_pending_approvals_person
            ON pending_approvals(person);

        -- Audit trail for dismissals. Write-once, never purged.
        CREATE TABLE IF NOT EXISTS dismissed_items (
            id TEXT PRIMARY KEY,
            item_type TEXT NOT NULL,
            item_id TEXT NOT NULL,
            original_subject TEXT,
            original_from TEXT,
            original_date TEXT,
            person TEXT,
            pack_id TEXT,
            reason TEXT NOT NULL,
            dismissed_by TEXT,
            dismissed_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_dismissed_items_dismissed_at
            ON dismissed_items(dismissed_at);

        CREATE TABLE IF NOT EXISTS suggested_domains (
            id TEXT PRIMARY KEY,
            domain TEXT NOT NULL,
            pack_id TEXT NOT NULL,
            email_count INTEGER NOT NULL DEFAULT 1,
            matched_keywords TEXT NOT NULL DEFAULT '[]',
            sample_subjects TEXT NOT NULL DEFAULT '[]',
            confidence REAL NOT NULL,
            first_seen_at TEXT NOT NULL,
            last_seen_at TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'approved', 'rejected')),
            rejection_reason TEXT,
            permanent INTEGER NOT NULL DEFAULT 0,
            decided_at TEXT,
            UNIQUE (domain, pack_id)
        );

        CREATE INDEX IF NOT EXISTS idx_suggested_domains_status
            ON suggested_domains(status, pack_id);

        CREATE TABLE IF NOT EXISTS rejected_domains (
            domain TEXT NOT NULL,
            pack_id TEXT NOT NULL,
            reason TEXT,
            rejected_at TEXT NOT NULL,
            PRIMARY KEY (domain, pack_id)
        );

        -- One immutable row per discovery run
        CREATE TABLE IF NOT EXISTS discovery_run_stats (
            id TEXT PRIMARY KEY,
            pack_id TEXT NOT NULL,
            run_at TEXT NOT NULL,
            finished_at TEXT NOT NULL,
            scanned INTEGER NOT NULL,
            flagged INTEGER NOT NULL,
            bucket_very_low INTEGER NOT NULL DEFAULT 0,
            bucket_low INTEGER NOT NULL DEFAULT 0,
            bucket_medium INTEGER NOT NULL DEFAULT 0,
            bucket_high INTEGER NOT NULL DEFAULT 0,
            bucket_very_high INTEGER NOT NULL DEFAULT 0,
            sampled_for_review INTEGER NOT NULL DEFAULT 0,
            rejected_domain INTEGER NOT NULL DEFAULT 0,
            rejected_keyword_no_match INTEGER NOT NULL DEFAULT 0,
            rejected_low_score INTEGER NOT NULL DEFAULT 0,
            rejected_duplicate INTEGER NOT NULL DEFAULT 0,
            rejected_other INTEGER NOT NULL DEFAULT 0,
            UNIQUE (pack_id, run_at)
        );

        CREATE INDEX IF NOT EXISTS idx_discovery_run_stats_pack
            ON discovery_run_stats(pack_id, run_at);

        CREATE TABLE IF NOT EXISTS discovery_rejected_sample (
            id TEXT PRIMARY KEY,
            run_id TEXT NOT NULL,
            pack_id TEXT NOT NULL,
            message_id TEXT NOT NULL,
            from_domain TEXT,
            subject TEXT,
            score REAL NOT NULL,
            reason TEXT NOT NULL,
            sample_band TEXT NOT NULL
                CHECK (sample_band IN ('near_threshold', 'weak', 'very_weak')),
            sampled_at TEXT NOT NULL,
            expires_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_rejected_sample_run
            ON discovery_rejected_sample(run_id);
    """)

    conn.commit()
    conn.close()

    logger.info("Database initialized: %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Validate database has expected schema

    Args:
        conn: Active database connection

    Returns:
        True if valid

    Raises:
        ValueError: If tables are missing
    """
    required_tables = {
        "pending_approvals": ["id", "fingerprint", "pack_id", "state", "discovered_at"],
        "dismissed_items": ["id", "item_id", "reason", "dismissed_at"],
        "suggested_domains": ["id", "domain", "pack_id", "status", "permanent"],
        "rejected_domains": ["domain", "pack_id"],
        "discovery_run_stats": ["id", "pack_id", "run_at", "scanned", "flagged"],
        "discovery_rejected_sample": ["id", "run_id", "sample_band", "expires_at"],
    }

    cursor = conn.cursor()

    cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
    existing_tables = {row[0] for row in cursor.fetchall()}

    missing_tables = set(required_tables.keys()) - existing_tables
    if missing_tables:
        raise ValueError(f"Database missing tables: {missing_tables}")

    for table, required_cols in required_tables.items():
        # Table names come from the dict above; identifiers cannot be parameterized
        if not table.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {table}")

        cursor.execute(f"PRAGMA table_info({table})")
        existing_cols = {row[1] for row in cursor.fetchall()}

        missing_cols = set(required_cols) - existing_cols
        if missing_cols:
            raise ValueError(f"Table '{table}' missing columns: {missing_cols}")

    return True

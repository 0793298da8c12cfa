"""
Discovery run repository - persistence for discovery_run_stats and
discovery_rejected_sample.

Both tables are append-only from the pipeline's point of view; the only
delete is the purge of expired rejected samples.
"""

from __future__ import annotations

from datetime import datetime

from concierge.discovery.run_models import DiscoveryRunStats, RejectedSample, utc_now
from concierge.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from concierge.observability.logging import get_logger

logger = get_logger(__name__)


class DiscoveryRunRepository:
    """Repository for discovery run audit rows."""

    @staticmethod
    @retry_on_db_lock()
    def insert(stats: DiscoveryRunStats, samples: list[RejectedSample] | None = None) -> None:
        """
        Persist a finalized run and its rejected samples in one transaction.

        Side Effects:
            - Inserts one row into discovery_run_stats
            - Inserts rows into discovery_rejected_sample
        """
        row = stats.to_db_dict()
        columns = ", ".join(row)
        placeholders = ", ".join(f":{key}" for key in row)

        with db_transaction() as conn:
            conn.execute(
                f"INSERT INTO discovery_run_stats ({columns}) VALUES ({placeholders})",
                row,
            )
            if samples:
                conn.executemany(
                    """
                    INSERT INTO discovery_rejected_sample (
                        id, run_id, pack_id, message_id, from_domain, subject,
                        score, reason, sample_band, sampled_at, expires_at
                    ) VALUES (
                        :id, :run_id, :pack_id, :message_id, :from_domain, :subject,
                        :score, :reason, :sample_band, :sampled_at, :expires_at
                    )
                    """,
                    [sample.to_db_dict() for sample in samples],
                )

        logger.info(
            "Recorded discovery run %s for pack %s: scanned=%d flagged=%d samples=%d",
            stats.id,
            stats.pack_id,
            stats.scanned,
            stats.flagged,
            len(samples or []),
        )

    @staticmethod
    def get(run_id: str) -> DiscoveryRunStats | None:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM discovery_run_stats WHERE id = ?", (run_id,)
            ).fetchone()
        return DiscoveryRunStats.from_db_row(dict(row)) if row else None

    @staticmethod
    def list_runs(pack_id: str | None = None, limit: int = 50) -> list[DiscoveryRunStats]:
        """Most recent runs first."""
        query = "SELECT * FROM discovery_run_stats"
        params: list[object] = []
        if pack_id:
            query += " WHERE pack_id = ?"
            params.append(pack_id)
        query += " ORDER BY run_at DESC LIMIT ?"
        params.append(limit)

        with get_db_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [DiscoveryRunStats.from_db_row(dict(row)) for row in rows]

    @staticmethod
    def list_samples(run_id: str) -> list[RejectedSample]:
        with get_db_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM discovery_rejected_sample WHERE run_id = ? ORDER BY score DESC",
                (run_id,),
            ).fetchall()
        return [RejectedSample.from_db_row(dict(row)) for row in rows]

    @staticmethod
    @retry_on_db_lock()
    def purge_expired_samples(now: datetime | None = None) -> int:
        """
        Delete rejected samples past their expiry.

        Side Effects:
            - Deletes rows from discovery_rejected_sample
        """
        now = now or utc_now()
        with db_transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM discovery_rejected_sample WHERE expires_at < ?",
                (now.isoformat(),),
            )
            deleted = cursor.rowcount
        if deleted:
            logger.info("Purged %d expired rejected samples", deleted)
        return deleted

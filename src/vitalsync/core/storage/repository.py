"""Health data repository: CRUD over the encrypted health store.

Mediates between row models and SQLite, using FieldEncryptor for readings
and platform credentials. Every query is scoped to one ``user_id``.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from vitalsync.core.storage.database import HealthDatabase
from vitalsync.core.storage.encryption import FieldEncryptor
from vitalsync.core.storage.models import (
    PlatformConnection,
    StoredInsight,
    StoredReading,
)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


class HealthRepository:
    """Repository for platform connections, readings, metric history and insights.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        repo = HealthRepository(db, FieldEncryptor(key="..."))

        repo.connect_platform("user-1", "fitbit", "access-token")
        repo.get_credentials("user-1")   # {"fitbit": "access-token"}
    """

    def __init__(self, database: HealthDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    def _commit(self, what: str) -> None:
        try:
            self._db.connection.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to {what}: {exc}") from exc

    # ------------------------------------------------------------------
    # Platform connections
    # ------------------------------------------------------------------

    def connect_platform(
        self,
        user_id: str,
        platform: str,
        credential: str,
        *,
        connected_at: str | None = None,
    ) -> PlatformConnection:
        """Store (or replace) a user's credential for a platform and mark it active."""
        if not credential:
            raise RepositoryError("Credential must not be empty")
        now = connected_at or self._now_iso()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO platform_connections
                   (id, user_id, platform, credential_enc, connected_at, is_active)
               VALUES (?, ?, ?, ?, ?, 1)
               ON CONFLICT(user_id, platform) DO UPDATE SET
                   credential_enc = excluded.credential_enc,
                   connected_at = excluded.connected_at,
                   is_active = 1""",
            (self._new_id(), user_id, platform, self._enc.encrypt_text(credential), now),
        )
        self._commit("connect platform")
        logger.info("Connected platform %s", platform)
        connection = self.get_connection(user_id, platform)
        if connection is None:
            raise RepositoryError(f"Connection for {platform} was not stored")
        return connection

    def disconnect_platform(self, user_id: str, platform: str) -> bool:
        """Deactivate a connection and drop its credential.

        Returns:
            True if an active connection existed.
        """
        cursor = self._db.connection.execute(
            """UPDATE platform_connections SET is_active = 0, credential_enc = ''
               WHERE user_id = ? AND platform = ? AND is_active = 1""",
            (user_id, platform),
        )
        self._commit("disconnect platform")
        if cursor.rowcount:
            logger.info("Disconnected platform %s", platform)
        return cursor.rowcount > 0

    def get_connection(self, user_id: str, platform: str) -> PlatformConnection | None:
        row = self._db.connection.execute(
            "SELECT * FROM platform_connections WHERE user_id = ? AND platform = ?",
            (user_id, platform),
        ).fetchone()
        return self._row_to_connection(row) if row is not None else None

    def list_connections(
        self, user_id: str, *, active_only: bool = True
    ) -> list[PlatformConnection]:
        query = "SELECT * FROM platform_connections WHERE user_id = ?"
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY connected_at"
        rows = self._db.connection.execute(query, (user_id,)).fetchall()
        return [self._row_to_connection(row) for row in rows]

    def get_credentials(self, user_id: str) -> dict[str, str]:
        """Decrypted credentials of every active connection, keyed by platform."""
        rows = self._db.connection.execute(
            """SELECT platform, credential_enc FROM platform_connections
               WHERE user_id = ? AND is_active = 1""",
            (user_id,),
        ).fetchall()
        return {row["platform"]: self._enc.decrypt_text(row["credential_enc"]) for row in rows}

    def record_sync(
        self,
        user_id: str,
        platform: str,
        status: str,
        *,
        synced_at: str | None = None,
    ) -> None:
        """Store the outcome of the latest refresh for one connection."""
        self._db.connection.execute(
            """UPDATE platform_connections SET last_sync = ?, last_status = ?
               WHERE user_id = ? AND platform = ?""",
            (synced_at or self._now_iso(), status, user_id, platform),
        )
        self._commit("record sync")

    # ------------------------------------------------------------------
    # Readings (encrypted)
    # ------------------------------------------------------------------

    def save_reading(self, user_id: str, reading: Mapping[str, Any]) -> str:
        """Persist a serialized HealthReading (``HealthReading.to_dict()``).

        Returns:
            The new row id.
        """
        if "platform" not in reading or "captured_at" not in reading:
            raise RepositoryError("Reading needs 'platform' and 'captured_at'")
        rid = self._new_id()
        self._db.connection.execute(
            """INSERT INTO health_readings
                   (id, user_id, platform, captured_at, reading_enc, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                rid,
                user_id,
                reading["platform"],
                reading["captured_at"],
                self._enc.encrypt(dict(reading)),
                self._now_iso(),
            ),
        )
        self._commit("save reading")
        logger.info("Saved %s reading %s", reading["platform"], rid)
        return rid

    def get_latest_reading(self, user_id: str, platform: str) -> StoredReading | None:
        row = self._db.connection.execute(
            """SELECT * FROM health_readings WHERE user_id = ? AND platform = ?
               ORDER BY captured_at DESC, created_at DESC LIMIT 1""",
            (user_id, platform),
        ).fetchone()
        if row is None:
            return None
        return StoredReading(
            id=row["id"],
            user_id=row["user_id"],
            platform=row["platform"],
            captured_at=row["captured_at"],
            reading=self._enc.decrypt(row["reading_enc"]) or {},
            created_at=row["created_at"],
        )

    def count_readings(self, user_id: str) -> int:
        row = self._db.connection.execute(
            "SELECT COUNT(*) FROM health_readings WHERE user_id = ?", (user_id,)
        ).fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Metric history (unencrypted, indexed)
    # ------------------------------------------------------------------

    def append_history(
        self,
        user_id: str,
        metrics: Mapping[str, float],
        *,
        recorded_at: str | None = None,
    ) -> str:
        """Add one history entry holding the given scalar metrics.

        Returns:
            The entry id shared by the entry's rows.
        """
        entry_id = self._new_id()
        recorded_at = recorded_at or self._now_iso()
        self._db.connection.executemany(
            """INSERT INTO metric_history (id, user_id, entry_id, recorded_at, metric, value)
               VALUES (?, ?, ?, ?, ?, ?)""",
            [
                (self._new_id(), user_id, entry_id, recorded_at, metric, float(value))
                for metric, value in metrics.items()
            ],
        )
        self._commit("append history")
        return entry_id

    def get_history(self, user_id: str, *, limit: int = 60) -> list[dict[str, Any]]:
        """Most recent ``limit`` history entries, oldest first.

        Each entry is ``{"recorded_at": ..., <metric>: value, ...}``.
        """
        conn = self._db.connection
        entries = conn.execute(
            """SELECT entry_id, MAX(recorded_at) AS recorded_at FROM metric_history
               WHERE user_id = ? GROUP BY entry_id
               ORDER BY recorded_at DESC, MAX(rowid) DESC LIMIT ?""",
            (user_id, limit),
        ).fetchall()
        if not entries:
            return []

        by_entry: dict[str, dict[str, Any]] = {
            row["entry_id"]: {"recorded_at": row["recorded_at"]} for row in entries
        }
        placeholders = ",".join("?" for _ in by_entry)
        rows = conn.execute(
            f"SELECT entry_id, metric, value FROM metric_history WHERE entry_id IN ({placeholders})",
            list(by_entry),
        ).fetchall()
        for row in rows:
            by_entry[row["entry_id"]][row["metric"]] = row["value"]

        # Query returned newest first
        return list(reversed(list(by_entry.values())))

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    def save_insights(
        self, user_id: str, insights: Iterable[StoredInsight]
    ) -> list[StoredInsight]:
        """Insert insights, skipping any that duplicate an unread insight.

        A duplicate has the same kind and title as an unread stored insight
        (or as one earlier in the same batch).

        Returns:
            The insights actually inserted, with ids assigned.
        """
        conn = self._db.connection
        unread = {
            (row["kind"], row["title"])
            for row in conn.execute(
                "SELECT kind, title FROM insights WHERE user_id = ? AND is_read = 0",
                (user_id,),
            ).fetchall()
        }

        saved: list[StoredInsight] = []
        for insight in insights:
            key = (insight.kind, insight.title)
            if key in unread:
                continue
            unread.add(key)
            insight.id = insight.id or self._new_id()
            insight.user_id = user_id
            insight.created_at = insight.created_at or self._now_iso()
            conn.execute(
                """INSERT INTO insights
                       (id, user_id, kind, title, description, priority, category,
                        metric, is_read, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    insight.id,
                    user_id,
                    insight.kind,
                    insight.title,
                    insight.description,
                    insight.priority,
                    insight.category,
                    insight.metric,
                    int(insight.is_read),
                    insight.created_at,
                ),
            )
            saved.append(insight)
        self._commit("save insights")
        if saved:
            logger.info("Saved %d new insights", len(saved))
        return saved

    def get_insights(
        self,
        user_id: str,
        *,
        unread_only: bool = False,
        kind: str | None = None,
        limit: int = 50,
    ) -> list[StoredInsight]:
        """Stored insights, newest first."""
        conditions = ["user_id = ?"]
        params: list[Any] = [user_id]
        if unread_only:
            conditions.append("is_read = 0")
        if kind:
            conditions.append("kind = ?")
            params.append(kind)
        params.append(limit)

        rows = self._db.connection.execute(
            f"""SELECT * FROM insights WHERE {' AND '.join(conditions)}
                ORDER BY created_at DESC, rowid DESC LIMIT ?""",
            params,
        ).fetchall()
        return [
            StoredInsight(
                id=row["id"],
                user_id=row["user_id"],
                kind=row["kind"],
                title=row["title"],
                description=row["description"],
                category=row["category"],
                priority=row["priority"],
                metric=row["metric"] or "",
                is_read=bool(row["is_read"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def mark_insight_read(self, user_id: str, insight_id: str) -> bool:
        """Returns True if the insight exists for this user."""
        cursor = self._db.connection.execute(
            "UPDATE insights SET is_read = 1 WHERE id = ? AND user_id = ?",
            (insight_id, user_id),
        )
        self._commit("mark insight read")
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Deletion (right to deletion)
    # ------------------------------------------------------------------

    def delete_user_data(self, user_id: str) -> dict[str, int]:
        """Delete every row owned by a user.

        Returns:
            Rows deleted per table.
        """
        conn = self._db.connection
        counts: dict[str, int] = {}
        for table in ("health_readings", "metric_history", "insights", "platform_connections"):
            # Table names come from the fixed tuple above
            cursor = conn.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
            counts[table] = cursor.rowcount
        self._commit("delete user data")
        logger.warning("Deleted all health data for one user: %s", counts)
        return counts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_connection(row: Any) -> PlatformConnection:
        return PlatformConnection(
            id=row["id"],
            user_id=row["user_id"],
            platform=row["platform"],
            connected_at=row["connected_at"],
            last_sync=row["last_sync"],
            last_status=row["last_status"],
            is_active=bool(row["is_active"]),
        )

"""Health assessment storage — SQLite history plus the submit procedure."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from healthrocket.config import settings
from healthrocket.health.assessment import AssessmentCooldownError, CategoryScores
from healthrocket.timeutils import parse_iso, utcnow

logger = logging.getLogger(__name__)


class HealthAssessmentStore:
    """SQLite-backed storage for health assessments."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = str(db_path or settings.database_path)
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_db(self) -> None:
        conn = self._conn()
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS health_assessments (
                    id                  TEXT PRIMARY KEY,
                    user_id             TEXT NOT NULL,
                    expected_lifespan   INTEGER NOT NULL,
                    expected_healthspan INTEGER NOT NULL,
                    health_score        REAL NOT NULL,
                    mindset_score       REAL NOT NULL,
                    sleep_score         REAL NOT NULL,
                    exercise_score      REAL NOT NULL,
                    nutrition_score     REAL NOT NULL,
                    biohacking_score    REAL NOT NULL,
                    created_at          TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_assessments_user
                    ON health_assessments (user_id, created_at DESC);
            """)
        finally:
            conn.close()

    def update_health_assessment(
        self,
        user_id: str,
        expected_lifespan: int,
        expected_healthspan: int,
        health_score: float,
        scores: CategoryScores,
        created_at: datetime | None = None,
        cooldown_days: int = 30,
        enforce_cooldown: bool = True,
    ) -> dict[str, Any]:
        """Insert an assessment if the cooldown since the last one has passed.

        The cooldown check and the insert run in one write transaction, so
        two concurrent submissions cannot both get through.
        """
        created = created_at or utcnow()
        row = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "expected_lifespan": expected_lifespan,
            "expected_healthspan": expected_healthspan,
            "health_score": health_score,
            "mindset_score": scores.mindset,
            "sleep_score": scores.sleep,
            "exercise_score": scores.exercise,
            "nutrition_score": scores.nutrition,
            "biohacking_score": scores.biohacking,
            "created_at": created.isoformat(),
        }

        conn = self._conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            if enforce_cooldown:
                last = conn.execute(
                    "SELECT created_at FROM health_assessments WHERE user_id = ? "
                    "ORDER BY created_at DESC LIMIT 1",
                    (user_id,),
                ).fetchone()
                if last and parse_iso(last["created_at"]) + timedelta(days=cooldown_days) > created:
                    conn.execute("ROLLBACK")
                    raise AssessmentCooldownError(
                        f"Must wait {cooldown_days} days between health assessments"
                    )
            conn.execute("""
                INSERT INTO health_assessments (id, user_id, expected_lifespan,
                                                expected_healthspan, health_score,
                                                mindset_score, sleep_score,
                                                exercise_score, nutrition_score,
                                                biohacking_score, created_at)
                VALUES (:id, :user_id, :expected_lifespan, :expected_healthspan,
                        :health_score, :mindset_score, :sleep_score,
                        :exercise_score, :nutrition_score, :biohacking_score,
                        :created_at)
            """, row)
            conn.execute("COMMIT")
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

        logger.info("Stored health assessment %s for user %s", row["id"], user_id)
        return row

    def history(self, user_id: str, limit: int | None = None) -> list[dict[str, Any]]:
        """Assessments for a user, newest first."""
        sql = "SELECT * FROM health_assessments WHERE user_id = ? ORDER BY created_at DESC"
        params: tuple[Any, ...] = (user_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)
        conn = self._conn()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [dict(r) for r in rows]

    def latest(self, user_id: str) -> dict[str, Any] | None:
        rows = self.history(user_id, limit=1)
        return rows[0] if rows else None

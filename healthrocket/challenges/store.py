"""Challenge storage — SQLite table of the challenges each player runs.

Statuses: registered → active → completed
A player holds at most one row per catalog challenge; the UNIQUE
constraint on (user_id, challenge_id) enforces it even when two starts race.
Slot counting and verification counting run inside BEGIN IMMEDIATE
write transactions so concurrent requests serialize.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from healthrocket.config import settings
from healthrocket.timeutils import utcnow

logger = logging.getLogger(__name__)

STATUSES = ("registered", "active", "completed")
CURRENT_STATUSES = ("registered", "active")


class DuplicateChallengeError(Exception):
    """Raised when the (user, challenge) pair already has a row."""


class SlotLimitError(Exception):
    """Raised when the user already holds the maximum number of current rows."""


@dataclass
class ChallengeRecord:
    """A player's row for one catalog challenge."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str = ""
    challenge_id: str = ""
    status: str = "active"
    progress: float = 0.0
    started_at: str = field(default_factory=lambda: utcnow().isoformat())
    verification_count: int = 0
    verifications_required: int = 3
    verification_requirements: dict[str, Any] = field(default_factory=dict)
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_row(self) -> dict[str, Any]:
        d = asdict(self)
        d["verification_requirements"] = json.dumps(d["verification_requirements"])
        return d

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ChallengeRecord":
        reqs = row.get("verification_requirements") or "{}"
        if isinstance(reqs, str):
            try:
                reqs = json.loads(reqs)
            except json.JSONDecodeError:
                reqs = {}
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            challenge_id=row["challenge_id"],
            status=row.get("status", "active"),
            progress=row.get("progress") or 0.0,
            started_at=row["started_at"],
            verification_count=row.get("verification_count") or 0,
            verifications_required=row.get("verifications_required") or 0,
            verification_requirements=reqs,
            completed_at=row.get("completed_at"),
        )


class ChallengeStore:
    """SQLite-backed challenge rows."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = str(db_path or settings.database_path)
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _tx_conn(self) -> sqlite3.Connection:
        """Autocommit connection for explicit BEGIN IMMEDIATE transactions."""
        conn = sqlite3.connect(self._db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS challenges (
                    id                        TEXT PRIMARY KEY,
                    user_id                   TEXT NOT NULL,
                    challenge_id              TEXT NOT NULL,
                    status                    TEXT NOT NULL DEFAULT 'active',
                    progress                  REAL NOT NULL DEFAULT 0,
                    started_at                TEXT NOT NULL,
                    verification_count        INTEGER NOT NULL DEFAULT 0,
                    verifications_required    INTEGER NOT NULL DEFAULT 3,
                    verification_requirements TEXT NOT NULL DEFAULT '{}',
                    completed_at              TEXT,
                    UNIQUE (user_id, challenge_id)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_challenges_user_status
                ON challenges (user_id, status)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_challenges_challenge
                ON challenges (challenge_id, status)
            """)

    # ── CRUD ──────────────────────────────────────────────────────────────

    def create(
        self,
        record: ChallengeRecord,
        max_current: int | None = None,
        exempt_ids: tuple[str, ...] = (),
    ) -> ChallengeRecord:
        """Insert a row; raises DuplicateChallengeError if the pair exists.

        With ``max_current`` set, the user's current rows (excluding
        ``exempt_ids``) are counted in the same write transaction as the
        insert and SlotLimitError is raised when the limit is reached.
        """
        if record.status not in STATUSES:
            raise ValueError(f"Invalid status: {record.status}. Must be one of {STATUSES}")

        conn = self._tx_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            if max_current is not None:
                sql = ("SELECT COUNT(*) AS n FROM challenges "
                       "WHERE user_id = ? AND status IN ('registered', 'active')")
                params: tuple[Any, ...] = (record.user_id,)
                if exempt_ids:
                    sql += f" AND challenge_id NOT IN ({', '.join('?' for _ in exempt_ids)})"
                    params += tuple(exempt_ids)
                used = conn.execute(sql, params).fetchone()["n"]
                if used >= max_current:
                    conn.execute("ROLLBACK")
                    raise SlotLimitError(f"User {record.user_id} already has {used} current challenges")
            conn.execute("""
                INSERT INTO challenges (id, user_id, challenge_id, status,
                                        progress, started_at,
                                        verification_count,
                                        verifications_required,
                                        verification_requirements,
                                        completed_at)
                VALUES (:id, :user_id, :challenge_id, :status,
                        :progress, :started_at, :verification_count,
                        :verifications_required,
                        :verification_requirements, :completed_at)
            """, record.to_row())
            conn.execute("COMMIT")
        except sqlite3.IntegrityError as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise DuplicateChallengeError(
                f"Challenge {record.challenge_id} already exists for user {record.user_id}"
            ) from e
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()
        return record

    def increment_verification(
        self,
        record_id: str,
        expected_count: int,
        verification_requirements: dict[str, Any],
        progress: float,
        completed_at: str | None = None,
    ) -> bool:
        """Compare-and-set one verification onto an active row.

        Applies only when the row is still ``active`` with
        ``verification_count == expected_count``; passing ``completed_at``
        also moves it to ``completed``. Returns whether the row changed.
        """
        conn = self._tx_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.execute("""
                UPDATE challenges
                SET verification_count = verification_count + 1,
                    verification_requirements = :requirements,
                    progress = :progress,
                    status = CASE WHEN :completed_at IS NULL THEN status ELSE 'completed' END,
                    completed_at = :completed_at
                WHERE id = :id AND verification_count = :expected AND status = 'active'
            """, {
                "requirements": json.dumps(verification_requirements),
                "progress": progress,
                "completed_at": completed_at,
                "id": record_id,
                "expected": expected_count,
            })
            changed = cursor.rowcount == 1
            conn.execute("COMMIT")
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()
        return changed

    def get(self, user_id: str, challenge_id: str) -> ChallengeRecord | None:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM challenges WHERE user_id = ? AND challenge_id = ?",
                (user_id, challenge_id),
            ).fetchone()
        return ChallengeRecord.from_row(dict(row)) if row else None

    def list_for_user(
        self, user_id: str, statuses: tuple[str, ...] = CURRENT_STATUSES,
    ) -> list[ChallengeRecord]:
        placeholders = ", ".join("?" for _ in statuses)
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM challenges WHERE user_id = ? AND status IN ({placeholders}) "
                "ORDER BY started_at",
                (user_id, *statuses),
            ).fetchall()
        return [ChallengeRecord.from_row(dict(r)) for r in rows]

    def update(self, record_id: str, **fields: Any) -> None:
        allowed = {"status", "progress", "started_at", "verification_count",
                   "verifications_required", "verification_requirements", "completed_at"}
        updates = {k: v for k, v in fields.items() if k in allowed}
        if not updates:
            return
        if "status" in updates and updates["status"] not in STATUSES:
            raise ValueError(f"Invalid status: {updates['status']}. Must be one of {STATUSES}")
        if isinstance(updates.get("verification_requirements"), dict):
            updates["verification_requirements"] = json.dumps(updates["verification_requirements"])

        set_clause = ", ".join(f"{k} = :{k}" for k in updates)
        updates["id"] = record_id
        with self._conn() as conn:
            conn.execute(f"UPDATE challenges SET {set_clause} WHERE id = :id", updates)

    def delete(self, user_id: str, challenge_id: str) -> bool:
        """Remove a registered or active row. Completed rows are kept."""
        with self._conn() as conn:
            cursor = conn.execute(
                "DELETE FROM challenges WHERE user_id = ? AND challenge_id = ? "
                "AND status IN ('registered', 'active')",
                (user_id, challenge_id),
            )
        return cursor.rowcount > 0

    def count_players(self, challenge_id: str) -> int:
        """Distinct players currently running or registered for a challenge."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT COUNT(DISTINCT user_id) AS n FROM challenges "
                "WHERE challenge_id = ? AND status IN ('registered', 'active')",
                (challenge_id,),
            ).fetchone()
        return int(row["n"])

"""User storage — SQLite-backed player profiles and FP counters."""

from __future__ import annotations

import logging
import secrets
import sqlite3
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from healthrocket.config import settings
from healthrocket.rocket.leveling import next_level_points
from healthrocket.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class User:
    """A player profile."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    email: str = ""
    access_token: str = field(default_factory=lambda: secrets.token_urlsafe(32))
    level: int = 1
    fuel_points: int = 0  # toward the next level
    lifetime_fuel_points: int = 0
    next_level_points: int = field(default_factory=lambda: next_level_points(1))
    health_score: float | None = None
    expected_lifespan: int | None = None
    expected_healthspan: int | None = None
    created_at: str = field(default_factory=lambda: utcnow().isoformat())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def public_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d.pop("access_token")
        return d

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "User":
        return cls(**{k: row[k] for k in cls.__dataclass_fields__ if k in row})


class UserStore:
    """SQLite-backed user storage."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = str(db_path or settings.database_path)
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id                   TEXT PRIMARY KEY,
                    name                 TEXT NOT NULL DEFAULT '',
                    email                TEXT NOT NULL UNIQUE,
                    access_token         TEXT NOT NULL UNIQUE,
                    level                INTEGER NOT NULL DEFAULT 1,
                    fuel_points          INTEGER NOT NULL DEFAULT 0,
                    lifetime_fuel_points INTEGER NOT NULL DEFAULT 0,
                    next_level_points    INTEGER NOT NULL,
                    health_score         REAL,
                    expected_lifespan    INTEGER,
                    expected_healthspan  INTEGER,
                    created_at           TEXT NOT NULL
                )
            """)

    # ── CRUD ──────────────────────────────────────────────────────────────

    def create(self, name: str, email: str) -> User:
        """Insert a new user. Raises ``ValueError`` on a duplicate email."""
        user = User(name=name, email=email.strip().lower())
        try:
            with self._conn() as conn:
                conn.execute("""
                    INSERT INTO users (id, name, email, access_token, level,
                                       fuel_points, lifetime_fuel_points,
                                       next_level_points, health_score,
                                       expected_lifespan, expected_healthspan,
                                       created_at)
                    VALUES (:id, :name, :email, :access_token, :level,
                            :fuel_points, :lifetime_fuel_points,
                            :next_level_points, :health_score,
                            :expected_lifespan, :expected_healthspan,
                            :created_at)
                """, user.to_dict())
        except sqlite3.IntegrityError as e:
            raise ValueError(f"User with email {user.email} already exists") from e
        logger.info("Created user %s", user.id)
        return user

    def get(self, user_id: str) -> User | None:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return User.from_row(dict(row)) if row else None

    def get_by_token(self, token: str) -> User | None:
        if not token:
            return None
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE access_token = ?", (token,)
            ).fetchone()
        return User.from_row(dict(row)) if row else None

    def add_fuel_points(self, user_id: str, amount: int) -> User | None:
        """Credit FP toward the next level and the lifetime total."""
        if amount < 0:
            raise ValueError("FP amount must be positive")
        with self._conn() as conn:
            conn.execute(
                "UPDATE users SET fuel_points = fuel_points + :amount, "
                "lifetime_fuel_points = lifetime_fuel_points + :amount "
                "WHERE id = :id",
                {"amount": amount, "id": user_id},
            )
        return self.get(user_id)

    def update_health(
        self,
        user_id: str,
        expected_lifespan: int,
        expected_healthspan: int,
        health_score: float,
    ) -> User | None:
        with self._conn() as conn:
            conn.execute(
                "UPDATE users SET expected_lifespan = ?, expected_healthspan = ?, "
                "health_score = ? WHERE id = ?",
                (expected_lifespan, expected_healthspan, health_score, user_id),
            )
        return self.get(user_id)

    def set_level(
        self,
        user_id: str,
        expected_fuel_points: int,
        level: int,
        fuel_points: int,
        next_points: int,
    ) -> bool:
        """Compare-and-set the leveling counters.

        Only applies when the stored FP still equal ``expected_fuel_points``,
        so two concurrent launches cannot both level up.
        """
        with self._conn() as conn:
            cursor = conn.execute(
                "UPDATE users SET level = ?, fuel_points = ?, next_level_points = ? "
                "WHERE id = ? AND fuel_points = ?",
                (level, fuel_points, next_points, user_id, expected_fuel_points),
            )
        return cursor.rowcount > 0

    def list_all(self) -> list[User]:
        with self._conn() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at").fetchall()
        return [User.from_row(dict(r)) for r in rows]

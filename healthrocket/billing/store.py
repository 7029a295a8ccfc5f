"""Subscription storage — local mirror of the Stripe subscriptions a user paid for."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from healthrocket.config import settings
from healthrocket.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SubscriptionRecord:
    user_id: str
    stripe_customer_id: str
    stripe_subscription_id: str
    plan_id: str
    status: str
    current_period_start: str | None = None
    current_period_end: str | None = None
    cancel_at_period_end: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=lambda: utcnow().isoformat())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SubscriptionRecord":
        data = {k: row[k] for k in cls.__dataclass_fields__ if k in row}
        data["cancel_at_period_end"] = bool(data.get("cancel_at_period_end"))
        return cls(**data)


class SubscriptionStore:
    """SQLite-backed subscriptions table."""

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
                CREATE TABLE IF NOT EXISTS subscriptions (
                    id                     TEXT PRIMARY KEY,
                    user_id                TEXT NOT NULL,
                    stripe_customer_id     TEXT NOT NULL,
                    stripe_subscription_id TEXT NOT NULL,
                    plan_id                TEXT NOT NULL,
                    status                 TEXT NOT NULL,
                    current_period_start   TEXT,
                    current_period_end     TEXT,
                    cancel_at_period_end   INTEGER NOT NULL DEFAULT 0,
                    created_at             TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_subscriptions_user
                ON subscriptions (user_id, created_at DESC)
            """)

    def create(self, record: SubscriptionRecord) -> SubscriptionRecord:
        row = record.to_dict()
        row["cancel_at_period_end"] = int(record.cancel_at_period_end)
        with self._conn() as conn:
            conn.execute("""
                INSERT INTO subscriptions (id, user_id, stripe_customer_id,
                                           stripe_subscription_id, plan_id, status,
                                           current_period_start, current_period_end,
                                           cancel_at_period_end, created_at)
                VALUES (:id, :user_id, :stripe_customer_id, :stripe_subscription_id,
                        :plan_id, :status, :current_period_start,
                        :current_period_end, :cancel_at_period_end, :created_at)
            """, row)
        logger.info("Recorded subscription %s for user %s", record.stripe_subscription_id, record.user_id)
        return record

    def exists(
        self, user_id: str, plan_id: str, customer_id: str, subscription_id: str,
    ) -> bool:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT id FROM subscriptions WHERE user_id = ? AND plan_id = ? "
                "AND stripe_customer_id = ? AND stripe_subscription_id = ?",
                (user_id, plan_id, customer_id, subscription_id),
            ).fetchone()
        return row is not None

    def customer_id_for(self, user_id: str) -> str | None:
        """Stripe customer of the user's most recent subscription row."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT stripe_customer_id FROM subscriptions WHERE user_id = ? "
                "ORDER BY created_at DESC LIMIT 1",
                (user_id,),
            ).fetchone()
        return row["stripe_customer_id"] if row and row["stripe_customer_id"] else None

    def list_for_user(self, user_id: str) -> list[SubscriptionRecord]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM subscriptions WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            ).fetchall()
        return [SubscriptionRecord.from_row(dict(r)) for r in rows]

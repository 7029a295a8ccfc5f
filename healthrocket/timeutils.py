from __future__ import annotations

from datetime import datetime, timezone

MS_PER_DAY = 24 * 60 * 60 * 1000


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Convert a datetime to UTC, assuming naive values are already UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 string (``Z`` suffix allowed) into aware UTC."""

    candidate = value.strip()
    if not candidate:
        raise ValueError("Empty datetime string")
    return ensure_utc(datetime.fromisoformat(candidate.replace("Z", "+00:00")))


def from_unix(seconds: int | float) -> str:
    """Unix seconds (as Stripe sends them) to an ISO 8601 UTC string."""

    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()


def to_ms(value: datetime) -> float:
    return ensure_utc(value).timestamp() * 1000

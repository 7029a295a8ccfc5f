"""Challenge countdown and progress arithmetic."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Any

from healthrocket.timeutils import MS_PER_DAY, ensure_utc, to_ms, utcnow

VERIFICATION_WEEKS = 3


def progress_percent(verification_count: int, required_count: int) -> float:
    """Share of required verifications submitted, capped at 100."""
    if required_count <= 0:
        raise ValueError("required_count must be positive")
    return min(100.0, verification_count / required_count * 100)


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    return value


def days_remaining(
    start: date | datetime,
    duration: int,
    today: date | datetime | None = None,
) -> int:
    """Whole days left in a challenge; both ends are taken at midnight."""
    days_passed = (_as_date(today or utcnow()) - _as_date(start)).days
    return max(0, duration - days_passed)


def days_until_start(start: datetime, now: datetime | None = None) -> int:
    """Days (rounded up) until a scheduled contest begins."""
    diff = to_ms(start) - to_ms(now or utcnow())
    return max(0, math.ceil(diff / MS_PER_DAY))


def days_display(days_left: int, starts_in: int | None = None) -> str:
    if starts_in:
        return f"{starts_in} Days Until Start"
    return f"{days_left} Days Left"


def verification_requirements(start: datetime) -> dict[str, dict[str, Any]]:
    """One verification due at the end of each of the first three weeks."""
    return {
        f"week{week}": {
            "required": 1,
            "completed": 0,
            "deadline": (ensure_utc(start) + timedelta(days=7 * week)).isoformat(),
        }
        for week in range(1, VERIFICATION_WEEKS + 1)
    }


def mark_verification(requirements: dict[str, dict[str, Any]]) -> str | None:
    """Tick the earliest open week; returns its key, or None if all are met."""
    for key in sorted(requirements, key=lambda k: int(k.removeprefix("week"))):
        week = requirements[key]
        if week.get("completed", 0) < week.get("required", 1):
            week["completed"] = week.get("completed", 0) + 1
            return key
    return None

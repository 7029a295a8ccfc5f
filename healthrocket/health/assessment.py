"""Health self-assessment rules — validation, scoring and the cooldown window."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from healthrocket.timeutils import MS_PER_DAY, to_ms, utcnow

CATEGORIES = ("mindset", "sleep", "exercise", "nutrition", "biohacking")

MIN_LIFESPAN = 50
MAX_LIFESPAN = 200
MIN_HEALTHSPAN = 50
MIN_SCORE = 1.0
MAX_SCORE = 10.0


class AssessmentError(Exception):
    """Base class for assessment submission failures."""


class AssessmentValidationError(AssessmentError, ValueError):
    pass


class AssessmentCooldownError(AssessmentError):
    pass


@dataclass
class CategoryScores:
    mindset: float
    sleep: float
    exercise: float
    nutrition: float
    biohacking: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass
class HealthUpdate:
    """One submission from the health update form."""

    expected_lifespan: int
    expected_healthspan: int
    category_scores: CategoryScores


@dataclass
class Eligibility:
    can_update: bool
    days_until_update: int
    last_assessment_at: str | None = None
    next_eligible_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def days_until_eligible(
    last_submission: datetime,
    cooldown_days: int = 30,
    now: datetime | None = None,
) -> int:
    """Whole days (rounded up) before another assessment is accepted."""
    next_ms = to_ms(last_submission) + cooldown_days * MS_PER_DAY
    return max(0, math.ceil((next_ms - to_ms(now or utcnow())) / MS_PER_DAY))


def calculate_health_score(scores: CategoryScores) -> float:
    """Mean of the five category scores, each on a 1-10 scale."""
    values = [getattr(scores, name) for name in CATEGORIES]
    for name, value in zip(CATEGORIES, values):
        if value is None or math.isnan(value) or not MIN_SCORE <= value <= MAX_SCORE:
            raise AssessmentValidationError(f"{name.capitalize()} score must be between 1 and 10")
    return round(sum(values) / len(values), 2)


def validate_update(data: HealthUpdate) -> None:
    if not MIN_LIFESPAN <= data.expected_lifespan <= MAX_LIFESPAN:
        raise AssessmentValidationError("Expected lifespan must be between 50 and 200")
    if not MIN_HEALTHSPAN <= data.expected_healthspan <= data.expected_lifespan:
        raise AssessmentValidationError(
            "Expected healthspan must be between 50 and your expected lifespan"
        )

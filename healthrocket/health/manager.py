"""Health assessment manager — eligibility checks and submissions."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Any

from healthrocket.config import settings
from healthrocket.events import DASHBOARD_UPDATE, HEALTH_UPDATE, EventBus
from healthrocket.health.assessment import (
    MAX_SCORE,
    MIN_SCORE,
    AssessmentValidationError,
    Eligibility,
    HealthUpdate,
    calculate_health_score,
    days_until_eligible,
    validate_update,
)
from healthrocket.health.store import HealthAssessmentStore
from healthrocket.timeutils import parse_iso, utcnow
from healthrocket.users.store import UserStore

logger = logging.getLogger(__name__)


class HealthAssessmentManager:
    """Enforces the cooldown between assessments and records new ones."""

    def __init__(
        self,
        store: HealthAssessmentStore,
        users: UserStore,
        events: EventBus | None = None,
        cooldown_days: int | None = None,
        exempt_user_ids: list[str] | None = None,
    ) -> None:
        self._store = store
        self._users = users
        self._events = events or EventBus()
        self._cooldown_days = cooldown_days if cooldown_days is not None else settings.assessment_cooldown_days
        self._exempt = set(exempt_user_ids if exempt_user_ids is not None else settings.assessment_exempt_user_ids)

    @property
    def cooldown_days(self) -> int:
        return self._cooldown_days

    def history(self, user_id: str) -> list[dict[str, Any]]:
        return self._store.history(user_id)

    def check_eligibility(self, user_id: str, now: datetime | None = None) -> Eligibility:
        """Can the user submit now, and if not, in how many days."""
        latest = self._store.latest(user_id)
        if latest is None or user_id in self._exempt:
            return Eligibility(
                can_update=True,
                days_until_update=0,
                last_assessment_at=latest["created_at"] if latest else None,
            )

        last = parse_iso(latest["created_at"])
        days = days_until_eligible(last, self._cooldown_days, now)
        return Eligibility(
            can_update=days == 0,
            days_until_update=days,
            last_assessment_at=latest["created_at"],
            next_eligible_at=(last + timedelta(days=self._cooldown_days)).isoformat(),
        )

    def submit_assessment(
        self, user_id: str, data: HealthUpdate, now: datetime | None = None,
    ) -> dict[str, Any]:
        """Validate and store one assessment.

        Raises AssessmentValidationError for bad input and
        AssessmentCooldownError when the previous one is too recent.
        """
        validate_update(data)
        score = calculate_health_score(data.category_scores)
        if math.isnan(score) or not MIN_SCORE <= score <= MAX_SCORE:
            raise AssessmentValidationError("Invalid health score calculated")

        row = self._store.update_health_assessment(
            user_id=user_id,
            expected_lifespan=data.expected_lifespan,
            expected_healthspan=data.expected_healthspan,
            health_score=score,
            scores=data.category_scores,
            created_at=now or utcnow(),
            cooldown_days=self._cooldown_days,
            enforce_cooldown=user_id not in self._exempt,
        )
        self._users.update_health(user_id, data.expected_lifespan, data.expected_healthspan, score)

        self._events.publish(HEALTH_UPDATE, user_id=user_id, health_score=score)
        self._events.publish(DASHBOARD_UPDATE, user_id=user_id)
        logger.info("User %s submitted health assessment (score %.2f)", user_id, score)
        return row

"""Health assessment routes — eligibility, history and submission."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from healthrocket.api.auth import current_user
from healthrocket.health.assessment import (
    AssessmentCooldownError,
    AssessmentValidationError,
    CategoryScores,
    HealthUpdate,
)
from healthrocket.health.manager import HealthAssessmentManager
from healthrocket.users.store import User

logger = logging.getLogger(__name__)

health_router = APIRouter(prefix="/health", tags=["health"])


# ── Request models ───────────────────────────────────────────────────────

class CategoryScoresBody(BaseModel):
    mindset: float
    sleep: float
    exercise: float
    nutrition: float
    biohacking: float


class AssessmentBody(BaseModel):
    expected_lifespan: int
    expected_healthspan: int
    category_scores: CategoryScoresBody


def _get_manager(request: Request) -> HealthAssessmentManager:
    return request.app.state.assessments  # type: ignore[no-any-return]


# ── Endpoints ────────────────────────────────────────────────────────────

@health_router.get("/eligibility")
def eligibility(request: Request, user: User = Depends(current_user)) -> dict[str, Any]:
    manager = _get_manager(request)
    return {
        **manager.check_eligibility(user.id).to_dict(),
        "cooldown_days": manager.cooldown_days,
    }


@health_router.get("/assessments")
def assessment_history(request: Request, user: User = Depends(current_user)) -> dict[str, Any]:
    history = _get_manager(request).history(user.id)
    return {"assessments": history, "count": len(history)}


@health_router.post("/assessments")
def submit_assessment(body: AssessmentBody, request: Request, user: User = Depends(current_user)) -> dict[str, Any]:
    manager = _get_manager(request)
    data = HealthUpdate(
        expected_lifespan=body.expected_lifespan,
        expected_healthspan=body.expected_healthspan,
        category_scores=CategoryScores(**body.category_scores.model_dump()),
    )
    try:
        row = manager.submit_assessment(user.id, data)
    except AssessmentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AssessmentCooldownError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {
        "assessment": row,
        "eligibility": manager.check_eligibility(user.id).to_dict(),
        "success": True,
    }

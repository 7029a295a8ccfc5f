"""Challenge API routes — the player's challenges and their lifecycle.

Endpoints:
  GET    /api/challenges/active                       — current challenges with progress
  GET    /api/challenges/{id}/availability            — start button state
  GET    /api/challenges/{id}/players                 — active player count
  POST   /api/challenges/{id}/start                   — start / register
  POST   /api/challenges/{id}/verifications           — count a verification post
  DELETE /api/challenges/{id}                         — cancel
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from healthrocket.api.auth import current_user
from healthrocket.challenges.manager import (
    ChallengeAlreadyActiveError,
    ChallengeError,
    ChallengeLockedError,
    ChallengeManager,
    ChallengeNotFoundError,
    NoSlotsAvailableError,
)
from healthrocket.users.store import User

logger = logging.getLogger(__name__)

challenge_router = APIRouter(prefix="/challenges", tags=["challenges"])


def _get_manager(request: Request) -> ChallengeManager:
    return request.app.state.challenges  # type: ignore[no-any-return]


def _to_http(e: ChallengeError) -> HTTPException:
    if isinstance(e, ChallengeNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ChallengeAlreadyActiveError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, (ChallengeLockedError, NoSlotsAvailableError)):
        return HTTPException(status_code=403, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


@challenge_router.get("/active")
def list_active(request: Request, user: User = Depends(current_user)) -> dict[str, Any]:
    manager = _get_manager(request)
    challenges = manager.fetch_active_challenges(user.id)
    return {
        "challenges": [c.to_dict() for c in challenges],
        "count": len(challenges),
        "max_active": manager.max_active,
        "has_completed_tier0": manager.has_completed_tier0(user.id),
    }


@challenge_router.get("/{challenge_id}/availability")
def availability(challenge_id: str, request: Request, user: User = Depends(current_user)) -> dict[str, Any]:
    try:
        return _get_manager(request).availability(user.id, challenge_id).to_dict()
    except ChallengeError as e:
        raise _to_http(e)


@challenge_router.get("/{challenge_id}/players")
def player_count(challenge_id: str, request: Request) -> dict[str, Any]:
    return {"challenge_id": challenge_id, "players": _get_manager(request).player_count(challenge_id)}


@challenge_router.post("/{challenge_id}/start")
def start_challenge(challenge_id: str, request: Request, user: User = Depends(current_user)) -> dict[str, Any]:
    try:
        record = _get_manager(request).start_challenge(user.id, challenge_id)
    except ChallengeError as e:
        logger.warning("Start of %s by %s refused: %s", challenge_id, user.id, e)
        raise _to_http(e)
    return {"challenge": record.to_dict(), "status": record.status}


@challenge_router.post("/{challenge_id}/verifications")
def record_verification(challenge_id: str, request: Request, user: User = Depends(current_user)) -> dict[str, Any]:
    try:
        view = _get_manager(request).record_verification(user.id, challenge_id)
    except ChallengeError as e:
        raise _to_http(e)
    return {"challenge": view.to_dict(), "status": view.status}


@challenge_router.delete("/{challenge_id}")
def cancel_challenge(challenge_id: str, request: Request, user: User = Depends(current_user)) -> dict[str, str]:
    try:
        _get_manager(request).cancel_challenge(user.id, challenge_id)
    except ChallengeError as e:
        raise _to_http(e)
    return {"status": "canceled"}

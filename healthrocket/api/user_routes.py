"""Player profile and rocket routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from healthrocket.api.auth import current_user
from healthrocket.rocket.launcher import LevelUpError, RocketLauncher
from healthrocket.rocket.leveling import rocket_progress
from healthrocket.users.store import User

user_router = APIRouter(tags=["users"])


class LaunchBody(BaseModel):
    current_fp: int


def _get_launcher(request: Request) -> RocketLauncher:
    return request.app.state.launcher  # type: ignore[no-any-return]


@user_router.get("/users/me")
def me(request: Request, user: User = Depends(current_user)) -> dict[str, Any]:
    """The user row plus the latest health assessment."""
    latest = request.app.state.health_store.latest(user.id)
    return {"user": user.public_dict(), "health": latest}


@user_router.get("/rocket")
def rocket(user: User = Depends(current_user)) -> dict[str, Any]:
    return rocket_progress(user.level, user.fuel_points, user.next_level_points).to_dict()


@user_router.post("/rocket/launch")
def launch(body: LaunchBody, request: Request, user: User = Depends(current_user)) -> dict[str, Any]:
    try:
        progress = _get_launcher(request).handle_level_up(user.id, body.current_fp)
    except LevelUpError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"status": "launched", "rocket": progress.to_dict()}

"""Read-only challenge catalog routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from healthrocket.billing.plans import PLANS
from healthrocket.catalog.registry import ChallengeCatalog

catalog_router = APIRouter(tags=["catalog"])


def _get_catalog(request: Request) -> ChallengeCatalog:
    return request.app.state.catalog  # type: ignore[no-any-return]


@catalog_router.get("/catalog/challenges")
def list_challenges(
    request: Request,
    category: str | None = None,
    tier: int | None = None,
    premium: bool | None = None,
) -> dict[str, Any]:
    catalog = _get_catalog(request)
    challenges = catalog.list(category=category, tier=tier, premium=premium)
    return {
        "challenges": [c.to_dict() for c in challenges],
        "categories": catalog.categories(),
        "count": len(challenges),
    }


@catalog_router.get("/catalog/challenges/{challenge_id}")
def get_challenge(challenge_id: str, request: Request) -> dict[str, Any]:
    challenge = _get_catalog(request).get(challenge_id)
    if challenge is None:
        raise HTTPException(status_code=404, detail="Challenge not found")
    return {"challenge": challenge.to_dict()}


@catalog_router.get("/plans")
def list_plans() -> dict[str, Any]:
    return {"plans": [p.to_dict() for p in PLANS]}

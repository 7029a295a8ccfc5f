"""Bearer-token authentication shared by every user-scoped route."""

from __future__ import annotations

from fastapi import HTTPException, Request

from healthrocket.users.store import User, UserStore


class AuthError(Exception):
    """Missing or unknown bearer token."""


def bearer_token(request: Request) -> str | None:
    """Token from ``Authorization: Bearer <token>``, else the ``token`` query param."""
    header = request.headers.get("Authorization", "")
    parts = header.split(" ")
    if len(parts) == 2 and parts[1]:
        return parts[1]
    return request.query_params.get("token") or None


def authenticate(request: Request) -> User:
    token = bearer_token(request)
    if not token:
        raise AuthError("No authorization header")
    users: UserStore = request.app.state.users
    user = users.get_by_token(token)
    if user is None:
        raise AuthError("Invalid user")
    return user


def current_user(request: Request) -> User:
    """FastAPI dependency: the authenticated user or a 401."""
    try:
        return authenticate(request)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))

"""Stripe subscription endpoints.

Kept wire-compatible with the serverless functions the web client calls:

  /functions/v1/get-active-subscription  — active Stripe subscriptions for the caller
  /functions/v1/verify-session           — record the subscription behind a checkout session

Errors are returned as ``{"error": message}`` rather than FastAPI's
``detail`` envelope.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from healthrocket.api.auth import AuthError, authenticate
from healthrocket.billing.service import (
    InvalidSessionError,
    SubscriptionNotFoundError,
    SubscriptionService,
)

logger = logging.getLogger(__name__)

billing_router = APIRouter(prefix="/functions/v1", tags=["billing"])

FUNCTION_METHODS = ["GET", "POST", "OPTIONS"]


def _get_service(request: Request) -> SubscriptionService:
    return request.app.state.subscriptions  # type: ignore[no-any-return]


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@billing_router.api_route("/get-active-subscription", methods=FUNCTION_METHODS)
def get_active_subscription(request: Request) -> Response:
    if request.method == "OPTIONS":
        return PlainTextResponse("ok")
    try:
        user = authenticate(request)
        subscriptions: list[dict[str, Any]] = _get_service(request).get_active_subscriptions(user.id)
    except AuthError as e:
        return _error(401, str(e))
    except SubscriptionNotFoundError as e:
        return _error(404, str(e))
    except Exception as e:
        logger.exception("get-active-subscription failed")
        return _error(500, str(e))
    return JSONResponse(status_code=200, content=subscriptions)


@billing_router.api_route("/verify-session", methods=FUNCTION_METHODS)
def verify_session(request: Request) -> Response:
    if request.method == "OPTIONS":
        return PlainTextResponse("ok")
    try:
        user = authenticate(request)
        session_id = request.query_params.get("session_id")
        if not session_id:
            return _error(400, "Session ID is required")
        status = _get_service(request).verify_session(user.id, session_id)
    except AuthError as e:
        return _error(401, str(e))
    except InvalidSessionError as e:
        return _error(400, str(e))
    except Exception as e:
        logger.exception("verify-session failed")
        return _error(500, str(e))
    return JSONResponse(status_code=200, content={"status": status})

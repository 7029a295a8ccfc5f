"""Refresh event routes.

  GET /api/events/stream  — SSE stream of dashboard/health refresh events
  GET /api/events/recent  — last few events for the caller
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from healthrocket.api.auth import current_user
from healthrocket.events import EventBus
from healthrocket.users.store import User

logger = logging.getLogger(__name__)

event_router = APIRouter(prefix="/events", tags=["events"])


def _get_bus(request: Request) -> EventBus:
    return request.app.state.events  # type: ignore[no-any-return]


@event_router.get("/recent")
def recent_events(request: Request, limit: int = 20, user: User = Depends(current_user)) -> dict[str, Any]:
    return {"events": _get_bus(request).recent(limit=limit, user_id=user.id)}


@event_router.get("/stream")
async def event_stream(request: Request, user: User = Depends(current_user)) -> StreamingResponse:
    """Server-Sent Events for the caller's refresh events."""
    bus = _get_bus(request)
    queue = bus.subscribe()

    async def event_generator():
        try:
            yield f"event: init\ndata: {json.dumps({'user_id': user.id})}\n\n"
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=30)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                if event["user_id"] not in (None, user.id):
                    continue
                yield f"event: {event['event']}\ndata: {json.dumps(event)}\n\n"
        finally:
            bus.unsubscribe(queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )

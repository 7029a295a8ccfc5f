"""In-process refresh events pushed to dashboard clients.

Managers publish ``dashboardUpdate``, ``healthUpdate`` and
``challengeCanceled`` after every successful write. Subscribers receive
them through an asyncio queue (served as SSE by the API); publishing is
safe from worker threads because delivery is scheduled on each
subscriber's own loop.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from typing import Any

from healthrocket.timeutils import utcnow

logger = logging.getLogger(__name__)

DASHBOARD_UPDATE = "dashboardUpdate"
HEALTH_UPDATE = "healthUpdate"
CHALLENGE_CANCELED = "challengeCanceled"

EVENT_NAMES = (DASHBOARD_UPDATE, HEALTH_UPDATE, CHALLENGE_CANCELED)


def _offer(queue: asyncio.Queue[dict[str, Any]], event: dict[str, Any]) -> None:
    try:
        queue.put_nowait(event)
    except asyncio.QueueFull:
        pass  # slow consumer, drop it


class EventBus:
    """Fan-out of refresh events to SSE subscribers plus a short history."""

    def __init__(self, history: int = 100, queue_size: int = 100) -> None:
        self._subscribers: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue[dict[str, Any]]]] = []
        self._recent: deque[dict[str, Any]] = deque(maxlen=history)
        self._queue_size = queue_size
        self._lock = threading.Lock()

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        """Register a queue on the running loop. Call from async code."""
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        with self._lock:
            self._subscribers.append((asyncio.get_running_loop(), queue))
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        with self._lock:
            self._subscribers = [(lp, q) for lp, q in self._subscribers if q is not queue]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, name: str, user_id: str | None = None, **data: Any) -> dict[str, Any]:
        """Record an event and deliver it to every subscriber."""
        if name not in EVENT_NAMES:
            raise ValueError(f"Unknown event: {name}")
        event = {
            "event": name,
            "user_id": user_id,
            "data": data,
            "timestamp": utcnow().isoformat(),
        }
        with self._lock:
            self._recent.append(event)
            subscribers = list(self._subscribers)

        stale = []
        for loop, queue in subscribers:
            try:
                loop.call_soon_threadsafe(_offer, queue, event)
            except RuntimeError:
                stale.append(queue)  # loop already closed
        for queue in stale:
            self.unsubscribe(queue)

        logger.debug("Published %s for user=%s", name, user_id)
        return event

    def recent(self, limit: int = 20, user_id: str | None = None) -> list[dict[str, Any]]:
        """Most recent events first, optionally for a single user."""
        with self._lock:
            events = list(self._recent)
        if user_id is not None:
            events = [e for e in events if e["user_id"] in (None, user_id)]
        return list(reversed(events))[:limit]

"""Rocket launches — the level-up procedure behind the launch button."""

from __future__ import annotations

import logging

from healthrocket.events import DASHBOARD_UPDATE, EventBus
from healthrocket.rocket.leveling import RocketProgress, next_level_points, rocket_progress
from healthrocket.users.store import UserStore

logger = logging.getLogger(__name__)


class LevelUpError(Exception):
    """Raised when a launch is not allowed."""


class RocketLauncher:
    """Reads rocket progress and applies level-ups for a player."""

    def __init__(self, users: UserStore, events: EventBus | None = None) -> None:
        self._users = users
        self._events = events or EventBus()

    def progress(self, user_id: str) -> RocketProgress:
        user = self._users.get(user_id)
        if user is None:
            raise LevelUpError("User not found")
        return rocket_progress(user.level, user.fuel_points, user.next_level_points)

    def handle_level_up(self, user_id: str, current_fp: int) -> RocketProgress:
        """Launch to the next level.

        ``current_fp`` is the counter the client saw; a stale value is
        rejected so a double click cannot level up twice. Surplus FP
        carries over into the new level.
        """
        user = self._users.get(user_id)
        if user is None:
            raise LevelUpError("User not found")
        if current_fp != user.fuel_points:
            raise LevelUpError("Fuel points changed, refresh and try again")
        if user.fuel_points < user.next_level_points:
            raise LevelUpError(
                f"Not enough FP to launch: {user.next_level_points - user.fuel_points} FP needed"
            )

        new_level = user.level + 1
        carry = user.fuel_points - user.next_level_points
        new_next = next_level_points(new_level)
        if not self._users.set_level(user_id, current_fp, new_level, carry, new_next):
            raise LevelUpError("Fuel points changed, refresh and try again")

        logger.info("User %s launched to level %d (carry %d FP)", user_id, new_level, carry)
        self._events.publish(DASHBOARD_UPDATE, user_id=user_id, level=new_level)
        return rocket_progress(new_level, carry, new_next)

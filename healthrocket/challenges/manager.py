"""Challenge manager — start, cancel, verify and list a player's challenges.

Joins stored rows against the catalog and derives the client-facing
fields (progress %, days remaining, countdown to a contest start).
Unlock rules:

- tier 0 is always open
- non-premium tier 1 needs a completed tier 0 challenge
- tier 2 is locked behind the Tier 2 quest
- non-premium challenges share ``max_active_challenges`` slots;
  premium contests do not take a slot
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from healthrocket.catalog.registry import ChallengeCatalog, ChallengeDefinition
from healthrocket.challenges.progress import (
    days_display,
    days_remaining,
    days_until_start,
    mark_verification,
    progress_percent,
    verification_requirements,
)
from healthrocket.challenges.store import (
    CURRENT_STATUSES,
    ChallengeRecord,
    ChallengeStore,
    DuplicateChallengeError,
    SlotLimitError,
)
from healthrocket.config import settings
from healthrocket.events import CHALLENGE_CANCELED, DASHBOARD_UPDATE, EventBus
from healthrocket.timeutils import parse_iso, utcnow
from healthrocket.users.store import UserStore

logger = logging.getLogger(__name__)


# ── Errors ───────────────────────────────────────────────────────────────────


class ChallengeError(Exception):
    """Base class for challenge lifecycle failures."""


class ChallengeAlreadyActiveError(ChallengeError):
    pass


class ChallengeNotFoundError(ChallengeError):
    pass


class ChallengeLockedError(ChallengeError):
    pass


class NoSlotsAvailableError(ChallengeError):
    pass


class ChallengeStateError(ChallengeError):
    pass


# ── Views ────────────────────────────────────────────────────────────────────


@dataclass
class ActiveChallenge:
    """A stored challenge row merged with its catalog details."""

    id: str
    challenge_id: str
    name: str
    category: str
    description: str
    expert_reference: str
    requirements: list[str]
    verification_method: str
    expert_tips: list[str]
    fuel_points: int
    duration: int
    is_premium: bool
    status: str
    started_at: str
    progress: float
    verification_count: int
    verifications_required: int
    days_remaining: int
    days_until_start: int | None = None
    days_display: str = ""
    verification_requirements: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Availability:
    """What the start button shows for a catalog challenge."""

    challenge_id: str
    state: str  # available | registered | already_active | completed | no_slots | requires_tier0 | locked
    label: str
    can_start: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ── Manager ──────────────────────────────────────────────────────────────────


class ChallengeManager:
    """Challenge lifecycle for a single backing store and catalog."""

    def __init__(
        self,
        store: ChallengeStore,
        catalog: ChallengeCatalog,
        users: UserStore,
        events: EventBus | None = None,
        max_active: int | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._users = users
        self._events = events or EventBus()
        self._max_active = max_active if max_active is not None else settings.max_active_challenges

    @property
    def max_active(self) -> int:
        return self._max_active

    # -- Queries ------------------------------------------------------------

    def has_completed_tier0(self, user_id: str) -> bool:
        completed = self._store.list_for_user(user_id, statuses=("completed",))
        return any(
            (details := self._catalog.get(r.challenge_id)) is not None and details.tier == 0
            for r in completed
        )

    def _slots_used(self, user_id: str) -> int:
        return sum(
            1 for r in self._store.list_for_user(user_id, statuses=CURRENT_STATUSES)
            if not self._catalog.is_premium(r.challenge_id)
        )

    def availability(self, user_id: str, challenge_id: str) -> Availability:
        details = self._catalog.get(challenge_id)
        if details is None:
            raise ChallengeNotFoundError("Challenge not found")

        def result(state: str, label: str, can_start: bool = False) -> Availability:
            return Availability(challenge_id, state, label, can_start)

        if details.tier == 2:
            return result("locked", "Unlocks with Tier 2 Quest")
        if details.tier == 1 and not details.is_premium and not self.has_completed_tier0(user_id):
            return result("requires_tier0", "Complete Tier 0 First")

        existing = self._store.get(user_id, challenge_id)
        if existing is not None:
            if existing.status == "registered":
                return result("registered", "Registered")
            if existing.status == "completed":
                return result("completed", "Completed")
            return result("already_active", "Already Active")

        if not details.is_premium and self._slots_used(user_id) >= self._max_active:
            return result("no_slots", "No Slots Available")
        label = "Register for Challenge" if details.is_premium else "Start Challenge"
        return result("available", label, can_start=True)

    def player_count(self, challenge_id: str) -> int:
        return self._store.count_players(challenge_id)

    # -- Lifecycle ----------------------------------------------------------

    def start_challenge(self, user_id: str, challenge_id: str, now: datetime | None = None) -> ChallengeRecord:
        """Create the player's row for a catalog challenge."""
        if self._store.get(user_id, challenge_id) is not None:
            raise ChallengeAlreadyActiveError("Challenge already active")

        details = self._catalog.get(challenge_id)
        if details is None:
            raise ChallengeNotFoundError("Challenge not found")

        state = self.availability(user_id, challenge_id)
        if state.state == "locked":
            raise ChallengeLockedError("Unlocks with Tier 2 Quest")
        if state.state == "requires_tier0":
            raise ChallengeLockedError("Complete Tier 0 First")
        if state.state == "no_slots":
            raise NoSlotsAvailableError("No slots available")

        now = now or utcnow()
        start = now
        status = "active"
        if details.is_premium and details.start_date:
            scheduled = parse_iso(details.start_date)
            if scheduled > now:
                start, status = scheduled, "registered"

        record = ChallengeRecord(
            user_id=user_id,
            challenge_id=challenge_id,
            status=status,
            progress=0.0,
            started_at=start.isoformat(),
            verifications_required=details.verifications_required,
            verification_requirements=verification_requirements(start),
        )
        limit: dict[str, Any] = {}
        if not details.is_premium:
            premium_ids = tuple(c.id for c in self._catalog.list(premium=True))
            limit = {"max_current": self._max_active, "exempt_ids": premium_ids}
        try:
            self._store.create(record, **limit)
        except DuplicateChallengeError as e:
            raise ChallengeAlreadyActiveError("Challenge already active") from e
        except SlotLimitError as e:
            raise NoSlotsAvailableError("No slots available") from e

        logger.info("User %s %s challenge %s", user_id, status, challenge_id)
        self._events.publish(DASHBOARD_UPDATE, user_id=user_id, challenge_id=challenge_id)
        return record

    def cancel_challenge(self, user_id: str, challenge_id: str) -> None:
        """Drop a registered or active challenge; completed ones stay on record."""
        if not self._store.delete(user_id, challenge_id):
            raise ChallengeNotFoundError("Challenge not found")
        logger.info("User %s canceled challenge %s", user_id, challenge_id)
        self._events.publish(CHALLENGE_CANCELED, user_id=user_id, challenge_id=challenge_id)
        self._events.publish(DASHBOARD_UPDATE, user_id=user_id)

    def record_verification(
        self, user_id: str, challenge_id: str, now: datetime | None = None,
    ) -> ActiveChallenge:
        """Count one verification post; completes the challenge at the target."""
        record = self._store.get(user_id, challenge_id)
        if record is None:
            raise ChallengeNotFoundError("Challenge not found")
        details = self._catalog.get(challenge_id)
        if details is None:
            raise ChallengeNotFoundError("Challenge not found")

        now = now or utcnow()
        self._promote_if_started(record, now)
        if record.status == "registered":
            raise ChallengeStateError("Challenge has not started yet")
        if record.status == "completed":
            raise ChallengeStateError("Challenge already completed")

        required = record.verifications_required or settings.default_verifications_required
        expected = record.verification_count
        record.verification_count += 1
        mark_verification(record.verification_requirements)
        record.progress = progress_percent(record.verification_count, required)
        if record.verification_count >= required:
            record.status = "completed"
            record.completed_at = now.isoformat()

        if not self._store.increment_verification(
            record.id,
            expected,
            record.verification_requirements,
            record.progress,
            completed_at=record.completed_at,
        ):
            raise ChallengeStateError("Verification count changed, refresh and try again")

        if record.status == "completed":
            self._users.add_fuel_points(user_id, details.fuel_points)
            logger.info(
                "User %s completed challenge %s (+%d FP)", user_id, challenge_id, details.fuel_points,
            )
        self._events.publish(DASHBOARD_UPDATE, user_id=user_id, challenge_id=challenge_id)
        return self._to_view(record, details, now)

    def fetch_active_challenges(self, user_id: str, now: datetime | None = None) -> list[ActiveChallenge]:
        """Current (active or registered) challenges joined with the catalog."""
        now = now or utcnow()
        result: list[ActiveChallenge] = []
        for record in self._store.list_for_user(user_id, statuses=CURRENT_STATUSES):
            details = self._catalog.get(record.challenge_id)
            if details is None:
                logger.warning("Challenge %s missing from catalog, skipping", record.challenge_id)
                continue
            self._promote_if_started(record, now)
            result.append(self._to_view(record, details, now))
        return result

    # -- Internals ----------------------------------------------------------

    def _promote_if_started(self, record: ChallengeRecord, now: datetime) -> None:
        if record.status == "registered" and parse_iso(record.started_at) <= now:
            record.status = "active"
            self._store.update(record.id, status="active")
            logger.info("Challenge %s for user %s is now active", record.challenge_id, record.user_id)

    def _to_view(self, record: ChallengeRecord, details: ChallengeDefinition, now: datetime) -> ActiveChallenge:
        required = record.verifications_required or settings.default_verifications_required
        duration = details.duration or settings.default_challenge_duration
        started = parse_iso(record.started_at)
        remaining = min(duration, days_remaining(started, duration, now))
        starts_in = None
        if record.status == "registered":
            starts_in = days_until_start(started, now)

        return ActiveChallenge(
            id=record.id,
            challenge_id=record.challenge_id,
            name=details.name,
            category=details.category,
            description=details.description,
            expert_reference=details.expert_reference,
            requirements=details.requirements,
            verification_method=details.verification_method,
            expert_tips=details.expert_tips,
            fuel_points=details.fuel_points,
            duration=duration,
            is_premium=details.is_premium,
            status=record.status,
            started_at=record.started_at,
            progress=progress_percent(record.verification_count, required),
            verification_count=record.verification_count,
            verifications_required=required,
            days_remaining=remaining,
            days_until_start=starts_in,
            days_display=days_display(remaining, starts_in),
            verification_requirements=record.verification_requirements,
        )

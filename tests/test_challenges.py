"""Tests for challenge storage and the challenge manager."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from healthrocket.challenges.manager import (
    ChallengeAlreadyActiveError,
    ChallengeLockedError,
    ChallengeNotFoundError,
    ChallengeStateError,
    NoSlotsAvailableError,
)
from healthrocket.challenges.store import ChallengeRecord, DuplicateChallengeError, SlotLimitError

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def complete_tier0(manager, user_id):
    manager.start_challenge(user_id, "t0", now=NOW)
    for _ in range(3):
        manager.record_verification(user_id, "t0", now=NOW)


def race(store, calls):
    """Run ``calls`` in threads that all read the store at the same moment."""
    barrier = threading.Barrier(len(calls), timeout=5)
    real_get = store.get
    results, errors = [], []

    def synced_get(*args, **kwargs):
        barrier.wait()
        return real_get(*args, **kwargs)

    def run(call):
        try:
            results.append(call())
        except Exception as e:
            errors.append(e)

    with patch.object(store, "get", side_effect=synced_get):
        threads = [threading.Thread(target=run, args=(call,)) for call in calls]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
    return results, errors


class TestChallengeStore:
    def test_create_and_get(self, challenge_store):
        record = challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="s1"))
        fetched = challenge_store.get("u1", "s1")
        assert fetched is not None
        assert fetched.id == record.id
        assert fetched.status == "active"
        assert fetched.verification_requirements == {}

    def test_unique_pair(self, challenge_store):
        challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="s1"))
        with pytest.raises(DuplicateChallengeError):
            challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="s1"))
        # other users are unaffected
        challenge_store.create(ChallengeRecord(user_id="u2", challenge_id="s1"))

    def test_invalid_status(self, challenge_store):
        with pytest.raises(ValueError, match="Invalid status"):
            challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="s1", status="paused"))

    def test_list_for_user_filters_status(self, challenge_store):
        challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="a", status="active"))
        challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="b", status="registered"))
        challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="c", status="completed"))
        assert {r.challenge_id for r in challenge_store.list_for_user("u1")} == {"a", "b"}
        assert [r.challenge_id for r in challenge_store.list_for_user("u1", ("completed",))] == ["c"]

    def test_update_round_trips_json(self, challenge_store):
        record = challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="s1"))
        challenge_store.update(record.id, verification_requirements={"week1": {"completed": 1}}, progress=50.0)
        fetched = challenge_store.get("u1", "s1")
        assert fetched.verification_requirements == {"week1": {"completed": 1}}
        assert fetched.progress == 50.0

    def test_delete(self, challenge_store):
        challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="s1"))
        assert challenge_store.delete("u1", "s1") is True
        assert challenge_store.delete("u1", "s1") is False

    def test_delete_keeps_completed(self, challenge_store):
        challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="t0", status="completed"))
        assert challenge_store.delete("u1", "t0") is False
        assert challenge_store.get("u1", "t0").status == "completed"

    def test_create_with_slot_limit(self, challenge_store):
        challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="a"))
        challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="p", status="registered"))
        challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="done", status="completed"))
        # "p" is exempt and completed rows never count
        challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="b"), max_current=2, exempt_ids=("p",))
        with pytest.raises(SlotLimitError):
            challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="c"), max_current=2, exempt_ids=("p",))
        assert challenge_store.get("u1", "c") is None

    def test_increment_verification_compare_and_set(self, challenge_store):
        record = challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="s1"))
        assert challenge_store.increment_verification(record.id, 0, {"week1": {"completed": 1}}, 50.0) is True
        assert challenge_store.increment_verification(record.id, 0, {}, 50.0) is False
        assert challenge_store.increment_verification(
            record.id, 1, {}, 100.0, completed_at=NOW.isoformat(),
        ) is True
        fetched = challenge_store.get("u1", "s1")
        assert fetched.verification_count == 2
        assert fetched.status == "completed"
        assert fetched.completed_at == NOW.isoformat()
        assert challenge_store.increment_verification(record.id, 2, {}, 100.0) is False

    def test_count_players(self, challenge_store):
        challenge_store.create(ChallengeRecord(user_id="u1", challenge_id="s1"))
        challenge_store.create(ChallengeRecord(user_id="u2", challenge_id="s1", status="registered"))
        challenge_store.create(ChallengeRecord(user_id="u3", challenge_id="s1", status="completed"))
        assert challenge_store.count_players("s1") == 2
        assert challenge_store.count_players("m1") == 0


class TestStartChallenge:
    def test_start_tier0(self, challenges, challenge_store, user, events):
        record = challenges.start_challenge(user.id, "t0", now=NOW)
        assert record.status == "active"
        assert record.started_at == NOW.isoformat()
        assert record.verifications_required == 3
        assert set(record.verification_requirements) == {"week1", "week2", "week3"}
        assert challenge_store.get(user.id, "t0") is not None
        assert events.recent()[0]["event"] == "dashboardUpdate"

    def test_already_active(self, challenges, user):
        challenges.start_challenge(user.id, "t0", now=NOW)
        with pytest.raises(ChallengeAlreadyActiveError, match="Challenge already active"):
            challenges.start_challenge(user.id, "t0", now=NOW)

    def test_race_on_insert(self, challenges, challenge_store, user):
        challenge_store.create(ChallengeRecord(user_id=user.id, challenge_id="t0"))
        with patch.object(challenge_store, "get", return_value=None):
            with pytest.raises(ChallengeAlreadyActiveError):
                challenges.start_challenge(user.id, "t0", now=NOW)

    def test_unknown_challenge(self, challenges, user):
        with pytest.raises(ChallengeNotFoundError, match="Challenge not found"):
            challenges.start_challenge(user.id, "nope", now=NOW)

    def test_tier1_requires_tier0(self, challenges, user):
        with pytest.raises(ChallengeLockedError, match="Complete Tier 0 First"):
            challenges.start_challenge(user.id, "s1", now=NOW)

    def test_tier2_locked(self, challenges, user):
        complete_tier0(challenges, user.id)
        with pytest.raises(ChallengeLockedError, match="Tier 2"):
            challenges.start_challenge(user.id, "x2", now=NOW)

    def test_tier1_after_tier0(self, challenges, user):
        complete_tier0(challenges, user.id)
        assert challenges.has_completed_tier0(user.id) is True
        assert challenges.start_challenge(user.id, "s1", now=NOW).status == "active"

    def test_slot_limit_skips_premium(self, challenges, user):
        complete_tier0(challenges, user.id)
        challenges.start_challenge(user.id, "s1", now=NOW)
        challenges.start_challenge(user.id, "m1", now=NOW)
        with pytest.raises(NoSlotsAvailableError):
            challenges.start_challenge(user.id, "n1", now=NOW)
        # premium contests do not take a slot
        assert challenges.start_challenge(user.id, "p0", now=NOW).status == "active"

    def test_premium_skips_tier0_gate(self, challenges, user):
        assert challenges.start_challenge(user.id, "p0", now=NOW).status == "active"

    def test_future_premium_is_registered(self, challenges, user):
        record = challenges.start_challenge(user.id, "p1", now=NOW)
        assert record.status == "registered"
        assert record.started_at == "2026-11-02T00:00:00+00:00"
        assert record.verifications_required == 4


class TestCancelChallenge:
    def test_cancel(self, challenges, challenge_store, user, events):
        challenges.start_challenge(user.id, "t0", now=NOW)
        challenges.cancel_challenge(user.id, "t0")
        assert challenge_store.get(user.id, "t0") is None
        names = [e["event"] for e in events.recent()]
        assert names[:2] == ["dashboardUpdate", "challengeCanceled"]

    def test_cancel_missing(self, challenges, user):
        with pytest.raises(ChallengeNotFoundError):
            challenges.cancel_challenge(user.id, "t0")

    def test_cancel_frees_slot(self, challenges, user):
        complete_tier0(challenges, user.id)
        challenges.start_challenge(user.id, "s1", now=NOW)
        challenges.start_challenge(user.id, "m1", now=NOW)
        challenges.cancel_challenge(user.id, "m1")
        assert challenges.start_challenge(user.id, "n1", now=NOW).status == "active"

    def test_completed_cannot_be_cancelled_and_replayed(self, challenges, users, user):
        complete_tier0(challenges, user.id)
        with pytest.raises(ChallengeNotFoundError):
            challenges.cancel_challenge(user.id, "t0")
        assert challenges.has_completed_tier0(user.id) is True
        with pytest.raises(ChallengeAlreadyActiveError):
            challenges.start_challenge(user.id, "t0", now=NOW)
        assert users.get(user.id).fuel_points == 100


class TestConcurrency:
    def test_final_verification_credits_once(self, challenges, challenge_store, users, user):
        challenges.start_challenge(user.id, "t0", now=NOW)
        challenges.record_verification(user.id, "t0", now=NOW)
        challenges.record_verification(user.id, "t0", now=NOW)

        def verify():
            return challenges.record_verification(user.id, "t0", now=NOW)

        results, errors = race(challenge_store, [verify, verify])

        assert len(results) == 1
        assert [type(e) for e in errors] == [ChallengeStateError]
        assert users.get(user.id).fuel_points == 100
        row = challenge_store.get(user.id, "t0")
        assert (row.verification_count, row.status) == (3, "completed")

    def test_concurrent_starts_respect_slot_limit(self, challenges, challenge_store, user):
        complete_tier0(challenges, user.id)

        calls = [
            lambda cid=cid: challenges.start_challenge(user.id, cid, now=NOW)
            for cid in ("s1", "m1", "n1")
        ]
        results, errors = race(challenge_store, calls)

        assert len(results) == 2
        assert [type(e) for e in errors] == [NoSlotsAvailableError]
        assert len(challenge_store.list_for_user(user.id)) == 2


class TestRecordVerification:
    def test_progress(self, challenges, user):
        challenges.start_challenge(user.id, "t0", now=NOW)
        view = challenges.record_verification(user.id, "t0", now=NOW)
        assert view.verification_count == 1
        assert view.progress == pytest.approx(33.333, rel=1e-3)
        assert view.verification_requirements["week1"]["completed"] == 1
        assert view.verification_requirements["week2"]["completed"] == 0
        assert view.status == "active"

    def test_completion_awards_fp(self, challenges, users, user):
        complete_tier0(challenges, user.id)
        refreshed = users.get(user.id)
        assert refreshed.fuel_points == 100
        assert refreshed.lifetime_fuel_points == 100
        with pytest.raises(ChallengeStateError, match="already completed"):
            challenges.record_verification(user.id, "t0", now=NOW)

    def test_completed_not_listed(self, challenges, user):
        complete_tier0(challenges, user.id)
        assert challenges.fetch_active_challenges(user.id, now=NOW) == []

    def test_registered_cannot_verify(self, challenges, user):
        challenges.start_challenge(user.id, "p1", now=NOW)
        with pytest.raises(ChallengeStateError, match="not started"):
            challenges.record_verification(user.id, "p1", now=NOW)

    def test_missing(self, challenges, user):
        with pytest.raises(ChallengeNotFoundError):
            challenges.record_verification(user.id, "t0", now=NOW)


class TestFetchActiveChallenges:
    def test_joins_catalog(self, challenges, user):
        challenges.start_challenge(user.id, "t0", now=NOW - timedelta(days=5))
        [view] = challenges.fetch_active_challenges(user.id, now=NOW)
        assert view.name == "Tier Zero"
        assert view.category == "Contests"
        assert view.fuel_points == 100
        assert view.days_remaining == 16
        assert view.days_display == "16 Days Left"
        assert view.progress == 0
        assert view.verifications_required == 3

    def test_registered_countdown(self, challenges, user):
        challenges.start_challenge(user.id, "p1", now=NOW)
        [view] = challenges.fetch_active_challenges(user.id, now=NOW)
        assert view.status == "registered"
        assert view.days_until_start == 14
        assert view.days_display == "14 Days Until Start"
        assert view.days_remaining == 30

    def test_registered_promoted_after_start(self, challenges, challenge_store, user):
        challenges.start_challenge(user.id, "p1", now=NOW)
        later = datetime(2026, 11, 3, 9, 0, tzinfo=timezone.utc)
        [view] = challenges.fetch_active_challenges(user.id, now=later)
        assert view.status == "active"
        assert view.days_until_start is None
        assert view.days_remaining == 29
        assert challenge_store.get(user.id, "p1").status == "active"

    def test_skips_unknown_catalog_entries(self, challenges, challenge_store, user):
        challenge_store.create(ChallengeRecord(user_id=user.id, challenge_id="retired"))
        challenges.start_challenge(user.id, "t0", now=NOW)
        assert [v.challenge_id for v in challenges.fetch_active_challenges(user.id, now=NOW)] == ["t0"]

    def test_other_users_isolated(self, challenges, users, user):
        other = users.create(name="Bob", email="bob@example.com")
        challenges.start_challenge(other.id, "t0", now=NOW)
        assert challenges.fetch_active_challenges(user.id, now=NOW) == []
        assert challenges.player_count("t0") == 1


class TestAvailability:
    def test_states(self, challenges, user):
        assert challenges.availability(user.id, "t0").state == "available"
        assert challenges.availability(user.id, "t0").label == "Start Challenge"
        assert challenges.availability(user.id, "s1").state == "requires_tier0"
        assert challenges.availability(user.id, "x2").state == "locked"
        assert challenges.availability(user.id, "p1").label == "Register for Challenge"

    def test_after_start(self, challenges, user):
        challenges.start_challenge(user.id, "t0", now=NOW)
        challenges.start_challenge(user.id, "p1", now=NOW)
        assert challenges.availability(user.id, "t0").state == "already_active"
        registered = challenges.availability(user.id, "p1")
        assert registered.state == "registered"
        assert registered.can_start is False

    def test_no_slots(self, challenges, user):
        complete_tier0(challenges, user.id)
        assert challenges.availability(user.id, "t0").state == "completed"
        challenges.start_challenge(user.id, "s1", now=NOW)
        challenges.start_challenge(user.id, "m1", now=NOW)
        state = challenges.availability(user.id, "n1")
        assert state.state == "no_slots"
        assert state.label == "No Slots Available"

    def test_unknown(self, challenges, user):
        with pytest.raises(ChallengeNotFoundError):
            challenges.availability(user.id, "nope")

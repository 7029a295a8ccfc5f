"""Shared test fixtures."""

from __future__ import annotations

import textwrap
from datetime import datetime, timezone

import pytest

from healthrocket.catalog.registry import ChallengeCatalog
from healthrocket.challenges.manager import ChallengeManager
from healthrocket.challenges.store import ChallengeStore
from healthrocket.events import EventBus
from healthrocket.health.manager import HealthAssessmentManager
from healthrocket.health.store import HealthAssessmentStore
from healthrocket.users.store import UserStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

CATALOG_YAML = textwrap.dedent("""
    challenges:
      - id: s1
        name: Sleep Window
        category: Sleep
        tier: 1
        fuel_points: 50
      - id: t0
        name: Tier Zero
        category: Sleep
        tier: 0
        fuel_points: 100
      - id: m1
        name: Gratitude
        category: Mindset
        tier: 1
        fuel_points: 50
        verification_method:
          description: Journal photo
      - id: n1
        name: Protein First
        category: Nutrition
        tier: 1
        fuel_points: 50
      - id: x2
        name: Advanced Sleep
        category: Sleep
        tier: 2
        fuel_points: 75
      - id: p1
        name: Future Contest
        category: Contests
        tier: 1
        is_premium: true
        start_date: "2026-11-02"
        duration: 30
        fuel_points: 500
        verifications_required: 4
      - id: p0
        name: Running Contest
        category: Contests
        tier: 1
        is_premium: true
        start_date: "2026-10-01"
        duration: 30
        fuel_points: 300
""")


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "test.db"


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "challenges.yaml"
    path.write_text(CATALOG_YAML, encoding="utf-8")
    return path


@pytest.fixture
def catalog(catalog_file) -> ChallengeCatalog:
    return ChallengeCatalog(catalog_file)


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def users(db_path) -> UserStore:
    return UserStore(db_path)


@pytest.fixture
def user(users):
    return users.create(name="Ada", email="ada@example.com")


@pytest.fixture
def challenge_store(db_path) -> ChallengeStore:
    return ChallengeStore(db_path)


@pytest.fixture
def challenges(challenge_store, catalog, users, events) -> ChallengeManager:
    return ChallengeManager(challenge_store, catalog, users, events, max_active=2)


@pytest.fixture
def health_store(db_path) -> HealthAssessmentStore:
    return HealthAssessmentStore(db_path)


@pytest.fixture
def assessments(health_store, users, events) -> HealthAssessmentManager:
    return HealthAssessmentManager(health_store, users, events, cooldown_days=30, exempt_user_ids=[])

"""Tests for rocket leveling math and launches."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from healthrocket.rocket.launcher import LevelUpError, RocketLauncher
from healthrocket.rocket.leveling import (
    next_level_points,
    progress_percentage,
    rocket_design,
    rocket_progress,
)


class TestLevelingMath:
    @pytest.mark.parametrize("level,points", [(1, 20), (2, 28), (3, 40), (5, 79)])
    def test_next_level_points(self, level, points):
        assert next_level_points(level) == points

    def test_invalid_level(self):
        with pytest.raises(ValueError):
            next_level_points(0)

    def test_progress_clamped(self):
        assert progress_percentage(10, 20) == 50.0
        assert progress_percentage(45, 20) == 100.0
        assert progress_percentage(5, 0) == 100.0

    def test_design(self):
        assert rocket_design(1) == "basic"
        assert rocket_design(4) == "basic"
        assert rocket_design(5) == "advanced"

    def test_rocket_progress(self):
        progress = rocket_progress(2, 7, 28)
        assert progress.progress_percentage == 25.0
        assert progress.fp_needed == 21
        assert progress.ready_to_level_up is False
        assert rocket_progress(1, 20, 20).ready_to_level_up is True


class TestRocketLauncher:
    @pytest.fixture
    def launcher(self, users, events):
        return RocketLauncher(users, events)

    def test_progress_for_new_user(self, launcher, user):
        progress = launcher.progress(user.id)
        assert progress.level == 1
        assert progress.fuel_points == 0
        assert progress.next_level_points == 20
        assert progress.design == "basic"

    def test_launch_carries_surplus(self, launcher, users, user, events):
        users.add_fuel_points(user.id, 25)
        progress = launcher.handle_level_up(user.id, current_fp=25)
        assert progress.level == 2
        assert progress.fuel_points == 5
        assert progress.next_level_points == 28

        refreshed = users.get(user.id)
        assert (refreshed.level, refreshed.fuel_points, refreshed.next_level_points) == (2, 5, 28)
        assert refreshed.lifetime_fuel_points == 25
        assert events.recent()[0]["data"] == {"level": 2}

    def test_not_enough_fp(self, launcher, users, user):
        users.add_fuel_points(user.id, 12)
        with pytest.raises(LevelUpError, match="8 FP needed"):
            launcher.handle_level_up(user.id, current_fp=12)

    def test_stale_fp_rejected(self, launcher, users, user):
        users.add_fuel_points(user.id, 30)
        with pytest.raises(LevelUpError, match="refresh"):
            launcher.handle_level_up(user.id, current_fp=20)
        assert users.get(user.id).level == 1

    def test_double_launch(self, launcher, users, user):
        users.add_fuel_points(user.id, 20)
        launcher.handle_level_up(user.id, current_fp=20)
        with pytest.raises(LevelUpError):
            launcher.handle_level_up(user.id, current_fp=20)
        assert users.get(user.id).level == 2

    def test_concurrent_write_detected(self, launcher, users, user):
        users.add_fuel_points(user.id, 20)
        with patch.object(users, "set_level", return_value=False):
            with pytest.raises(LevelUpError, match="refresh"):
                launcher.handle_level_up(user.id, current_fp=20)

    def test_unknown_user(self, launcher):
        with pytest.raises(LevelUpError, match="User not found"):
            launcher.progress("missing")

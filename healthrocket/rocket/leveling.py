"""Rocket leveling math — pure functions over the FP counters."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

BASE_LEVEL_POINTS = 20
LEVEL_GROWTH = 1.41
ADVANCED_DESIGN_LEVEL = 5


def next_level_points(level: int) -> int:
    """FP needed to finish ``level`` and launch to the next one."""
    if level < 1:
        raise ValueError(f"Level must be >= 1, got {level}")
    return round(BASE_LEVEL_POINTS * LEVEL_GROWTH ** (level - 1))


def progress_percentage(fuel_points: int, next_points: int) -> float:
    if next_points <= 0:
        return 100.0
    return min(100.0, max(0.0, fuel_points / next_points * 100))


def rocket_design(level: int) -> str:
    return "advanced" if level >= ADVANCED_DESIGN_LEVEL else "basic"


@dataclass
class RocketProgress:
    """Derived launch state shown next to the rocket."""

    level: int
    fuel_points: int
    next_level_points: int
    progress_percentage: float
    fp_needed: int
    ready_to_level_up: bool
    design: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def rocket_progress(level: int, fuel_points: int, next_points: int) -> RocketProgress:
    pct = progress_percentage(fuel_points, next_points)
    return RocketProgress(
        level=level,
        fuel_points=fuel_points,
        next_level_points=next_points,
        progress_percentage=round(pct, 2),
        fp_needed=max(0, next_points - fuel_points),
        ready_to_level_up=pct >= 100,
        design=rocket_design(level),
    )

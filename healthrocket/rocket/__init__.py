"""Rocket — leveling math derived from fuel points."""

from .leveling import RocketProgress, next_level_points, rocket_design, rocket_progress

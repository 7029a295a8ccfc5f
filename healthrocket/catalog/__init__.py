"""Challenge catalog — static challenge definitions."""

from .registry import ChallengeCatalog, ChallengeDefinition, TIERS

"""Challenge catalog — loads challenges.yaml into typed definitions.

Read-only source of truth for every challenge a player can start.
The challenge manager joins stored rows against it; the API serves it
as-is.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from healthrocket.config import settings

logger = logging.getLogger(__name__)

TIERS = (0, 1, 2)
TIER0_CATEGORY = "Contests"
DEFAULT_VERIFICATION_METHOD = "Complete daily tracking and verification logs"


# ── Data model ───────────────────────────────────────────────────────────────


@dataclass
class ChallengeDefinition:
    """A single catalog entry."""

    id: str
    name: str
    category: str
    tier: int = 1
    duration: int = 21  # days
    fuel_points: int = 0
    description: str = ""
    expert_reference: str = ""
    requirements: list[str] = field(default_factory=list)
    verification_method: str = DEFAULT_VERIFICATION_METHOD
    expert_tips: list[str] = field(default_factory=list)
    is_premium: bool = False
    start_date: str | None = None  # ISO date, premium contests only
    verifications_required: int = 3
    required_device: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _parse_challenge(entry: dict[str, Any]) -> ChallengeDefinition:
    tier = int(entry.get("tier", 1))
    if tier not in TIERS:
        raise ValueError(f"Invalid tier {tier} for challenge {entry.get('id')!r}")

    method = entry.get("verification_method")
    if isinstance(method, dict):
        method = method.get("description")

    start = entry.get("start_date")
    return ChallengeDefinition(
        id=str(entry["id"]),
        name=entry["name"],
        category=entry.get("category", "General"),
        tier=tier,
        duration=int(entry.get("duration") or settings.default_challenge_duration),
        fuel_points=int(entry.get("fuel_points", 0)),
        description=entry.get("description", ""),
        expert_reference=entry.get("expert_reference", ""),
        requirements=list(entry.get("requirements") or []),
        verification_method=method or DEFAULT_VERIFICATION_METHOD,
        expert_tips=list(entry.get("expert_tips") or []),
        is_premium=bool(entry.get("is_premium", False)),
        start_date=str(start) if start else None,
        verifications_required=int(
            entry.get("verifications_required") or settings.default_verifications_required
        ),
        required_device=entry.get("required_device"),
    )


# ── Catalog ──────────────────────────────────────────────────────────────────


class ChallengeCatalog:
    """Loads and caches challenge definitions from YAML."""

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path or settings.challenges_file)
        self._challenges: list[ChallengeDefinition] = []
        self._loaded = False

    def load(self, force: bool = False) -> list[ChallengeDefinition]:
        """Parse the catalog file. Malformed entries are skipped."""
        if self._loaded and not force:
            return self._challenges

        self._challenges = []
        if not self._path.exists():
            logger.warning("Challenge catalog not found: %s", self._path)
            self._loaded = True
            return self._challenges

        raw = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        seen: set[str] = set()
        for entry in raw.get("challenges", []) or []:
            try:
                challenge = _parse_challenge(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed challenge entry: %s", e)
                continue
            if challenge.id in seen:
                logger.warning("Duplicate challenge id %s ignored", challenge.id)
                continue
            if challenge.tier == 0:
                challenge.category = TIER0_CATEGORY
            seen.add(challenge.id)
            self._challenges.append(challenge)

        # Tier 0 leads the catalog, then premium contests, then the rest
        self._challenges.sort(key=lambda c: (c.tier != 0, not c.is_premium))
        self._loaded = True
        logger.info("Loaded %d challenges from %s", len(self._challenges), self._path)
        return self._challenges

    @property
    def challenges(self) -> list[ChallengeDefinition]:
        return self.load()

    def get(self, challenge_id: str) -> ChallengeDefinition | None:
        return next((c for c in self.challenges if c.id == challenge_id), None)

    def list(
        self,
        category: str | None = None,
        tier: int | None = None,
        premium: bool | None = None,
    ) -> list[ChallengeDefinition]:
        result = self.challenges
        if category is not None:
            result = [c for c in result if c.category.lower() == category.lower()]
        if tier is not None:
            result = [c for c in result if c.tier == tier]
        if premium is not None:
            result = [c for c in result if c.is_premium == premium]
        return result

    def categories(self) -> list[str]:
        return sorted({c.category for c in self.challenges})

    def tier0(self) -> ChallengeDefinition | None:
        return next((c for c in self.challenges if c.tier == 0), None)

    def is_premium(self, challenge_id: str) -> bool:
        challenge = self.get(challenge_id)
        return bool(challenge and challenge.is_premium)

    def reload(self) -> list[ChallengeDefinition]:
        return self.load(force=True)

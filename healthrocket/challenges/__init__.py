"""Challenges — stored rows, lifecycle manager and progress arithmetic."""

from .manager import (
    ActiveChallenge,
    Availability,
    ChallengeAlreadyActiveError,
    ChallengeError,
    ChallengeLockedError,
    ChallengeManager,
    ChallengeNotFoundError,
    ChallengeStateError,
    NoSlotsAvailableError,
)
from .progress import days_remaining, days_until_start, progress_percent
from .store import ChallengeRecord, ChallengeStore

"""Health subsystem — assessment rules, SQLite storage, cooldown manager."""

from .assessment import (
    AssessmentCooldownError,
    AssessmentError,
    AssessmentValidationError,
    CategoryScores,
    Eligibility,
    HealthUpdate,
    calculate_health_score,
    days_until_eligible,
)
from .manager import HealthAssessmentManager
from .store import HealthAssessmentStore

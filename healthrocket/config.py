from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings

ROOT_DIR = Path(__file__).parent.parent
DATA_DIR = ROOT_DIR / "data"


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Storage
    database_path: str = str(DATA_DIR / "healthrocket.db")
    challenges_file: str = str(ROOT_DIR / "challenges.yaml")

    # Stripe (REST API, pinned version)
    stripe_secret_key: str = ""
    stripe_api_base: str = "https://api.stripe.com/v1"
    stripe_api_version: str = "2023-10-16"
    stripe_timeout: float = 20.0

    # Challenges
    max_active_challenges: int = 2  # non-premium slots
    default_challenge_duration: int = 21  # days
    default_verifications_required: int = 3

    # Health assessments
    assessment_cooldown_days: int = 30
    assessment_exempt_user_ids: list[str] = []  # test accounts skip the cooldown

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_allow_origins: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"


settings = Settings()

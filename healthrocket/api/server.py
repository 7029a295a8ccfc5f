"""FastAPI server for the Health Rocket back-end."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from healthrocket.api.billing_routes import billing_router
from healthrocket.api.catalog_routes import catalog_router
from healthrocket.api.challenge_routes import challenge_router
from healthrocket.api.event_routes import event_router
from healthrocket.api.health_routes import health_router
from healthrocket.api.user_routes import user_router
from healthrocket.billing.service import SubscriptionService
from healthrocket.billing.store import SubscriptionStore
from healthrocket.billing.stripe_client import StripeClient
from healthrocket.catalog.registry import ChallengeCatalog
from healthrocket.challenges.manager import ChallengeManager
from healthrocket.challenges.store import ChallengeStore
from healthrocket.config import settings
from healthrocket.events import EventBus
from healthrocket.health.manager import HealthAssessmentManager
from healthrocket.health.store import HealthAssessmentStore
from healthrocket.rocket.launcher import RocketLauncher
from healthrocket.users.store import UserStore

logger = logging.getLogger(__name__)

CORS_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


def attach_services(
    app: FastAPI,
    db_path: Path | str | None = None,
    catalog_path: Path | str | None = None,
    stripe: StripeClient | None = None,
) -> None:
    """Build stores and managers and hang them on ``app.state``."""
    events = EventBus()
    users = UserStore(db_path)
    catalog = ChallengeCatalog(catalog_path)
    catalog.load()
    health_store = HealthAssessmentStore(db_path)

    app.state.events = events
    app.state.users = users
    app.state.catalog = catalog
    app.state.health_store = health_store
    app.state.challenges = ChallengeManager(ChallengeStore(db_path), catalog, users, events)
    app.state.assessments = HealthAssessmentManager(health_store, users, events)
    app.state.launcher = RocketLauncher(users, events)
    app.state.subscriptions = SubscriptionService(SubscriptionStore(db_path), stripe or StripeClient())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize shared resources on startup."""
    attach_services(app)
    logger.info(
        "Services ready — db=%s catalog=%d challenges stripe=%s",
        settings.database_path,
        len(app.state.catalog.challenges),
        "configured" if app.state.subscriptions.stripe.configured else "missing key",
    )
    yield
    logger.info("Shutting down")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Health Rocket API",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=CORS_HEADERS,
    )

    app.include_router(catalog_router, prefix="/api")
    app.include_router(challenge_router, prefix="/api")
    app.include_router(health_router, prefix="/api")
    app.include_router(user_router, prefix="/api")
    app.include_router(event_router, prefix="/api")
    app.include_router(billing_router)

    @app.get("/")
    def root() -> dict:
        return {"status": "ok", "message": "Health Rocket API online"}

    return app


app = create_app()

"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from komoru.achievements.catalog import RuleCatalog
from komoru.achievements.conditions import ConditionEvaluator
from komoru.achievements.event_log import EventLog
from komoru.achievements.pipeline import EvaluationPipeline
from komoru.achievements.router import router as achievements_router
from komoru.achievements.seed import seed_achievements
from komoru.achievements.unlock import UnlockCoordinator
from komoru.config import Settings, get_settings
from komoru.database import close_db, create_tables, get_session_factory, init_db
from komoru.games.router import router as games_router
from komoru.health.router import router as health_router
from komoru.middleware import setup_middleware
from komoru.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


def build_pipeline(settings: Settings) -> EvaluationPipeline:
    """Wire the achievement engine from settings."""
    catalog = RuleCatalog()
    coordinator = UnlockCoordinator(
        evaluator=ConditionEvaluator(),
        catalog=catalog,
        secret_currency_bonus=settings.secret_currency_bonus,
    )
    event_log = EventLog(
        night_start_hour=settings.night_play_start_hour,
        night_end_hour=settings.night_play_end_hour,
    )
    return EvaluationPipeline(event_log=event_log, catalog=catalog, coordinator=coordinator)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_url:
        await init_redis(settings.redis_url)

    if settings.create_tables_on_startup:
        await create_tables()

    # Seed the default catalog (idempotent)
    if settings.seed_catalog_on_startup:
        try:
            async with get_session_factory()() as db:
                await seed_achievements(db)
        except Exception:
            logger.warning("Achievement seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Komoru API",
        description="Mini-games backend: scores, leaderboards and achievements",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.pipeline = build_pipeline(settings)

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(games_router)
    app.include_router(achievements_router)

    return app


app = create_app()

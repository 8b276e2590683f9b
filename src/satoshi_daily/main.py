"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from satoshi_daily.admin.router import router as admin_router
from satoshi_daily.analytics.router import router as analytics_router
from satoshi_daily.auth.router import router as auth_router
from satoshi_daily.config import get_settings
from satoshi_daily.database import close_db, get_session_factory, init_db
from satoshi_daily.health.router import router as health_router
from satoshi_daily.middleware import setup_middleware
from satoshi_daily.predictions.router import router as predictions_router
from satoshi_daily.predictions.service import seed_today_and_tomorrow
from satoshi_daily.redis_client import close_redis, init_redis
from satoshi_daily.views.router import router as views_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url, settings.db_pool_size, settings.db_max_overflow)
    await init_redis(settings.redis_url, settings.redis_max_connections)

    # The settlement worker seeds too; this only covers a cold start.
    try:
        async with get_session_factory()() as db:
            await seed_today_and_tomorrow(db)
    except SQLAlchemyError:
        logger.warning("startup_seed_failed", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Satoshi Daily API",
        description="Daily Bitcoin price prediction game: submissions, settlement and results",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(predictions_router)
    app.include_router(views_router)
    app.include_router(analytics_router)
    app.include_router(admin_router)

    return app


app = create_app()

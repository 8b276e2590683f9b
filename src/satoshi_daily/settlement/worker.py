"""Settlement arq worker: scheduled settlement ticks and daily seeding.

Run with ``arq satoshi_daily.settlement.worker.SettlementWorkerSettings``.
Several worker processes may run at once; settlement is safe to race.
"""

from __future__ import annotations

import logging

import httpx
import redis.asyncio as aioredis
from arq import cron
from arq.connections import RedisSettings

from satoshi_daily.config import get_settings
from satoshi_daily.database import close_db, get_session_factory, init_db
from satoshi_daily.email.service import EmailService
from satoshi_daily.middleware.logging import setup_logging
from satoshi_daily.predictions.service import seed_today_and_tomorrow
from satoshi_daily.pricing.oracle import PriceOracle
from satoshi_daily.settlement.notifier import OperatorNotifier
from satoshi_daily.settlement.service import STATUS_SETTLED, run_settlement_tick

logger = logging.getLogger(__name__)


def _tick_seconds() -> set[int]:
    """Second marks within each minute for the configured tick period."""
    step = max(1, min(60, get_settings().settlement_tick_seconds))
    return set(range(0, 60, step))


async def settlement_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize DB, Redis, the price oracle and the notifier."""
    settings = get_settings()
    setup_logging(settings, component="settlement-worker")
    await init_db(settings.database_url, pool_size=5, max_overflow=5)

    redis_client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=10,
    )
    ctx["redis"] = redis_client
    http_client = httpx.AsyncClient(timeout=settings.price_request_timeout_seconds)
    ctx["http"] = http_client
    ctx["oracle"] = PriceOracle.from_settings(settings, client=http_client)
    ctx["notifier"] = OperatorNotifier(EmailService(redis=redis_client), settings.operator_email)
    logger.info("Settlement worker started (tick every %ds)", settings.settlement_tick_seconds)


async def settlement_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    http_client: httpx.AsyncClient | None = ctx.get("http")
    if http_client:
        await http_client.aclose()
    redis_client: aioredis.Redis | None = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Settlement worker shut down")


async def settlement_tick(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled arq task: settle every day whose target instant has passed.

    Returns the number of days newly settled by this tick.
    """
    try:
        outcomes = await run_settlement_tick(
            get_session_factory(),
            ctx["oracle"],
            ctx["notifier"],
        )
    except Exception:
        logger.exception("Settlement tick failed")
        return 0

    settled = [o for o in outcomes if o.status == STATUS_SETTLED]
    for outcome in outcomes:
        logger.info(
            "Settlement %s: %s (price=%s, winners=%d)",
            outcome.game_date, outcome.status, outcome.actual_price, outcome.winners,
        )
    return len(settled)


async def seed_days(ctx: dict) -> None:  # type: ignore[type-arg]
    """Scheduled arq task: runs daily at 00:01 UTC. Idempotent."""
    async with get_session_factory()() as db:
        try:
            dates = await seed_today_and_tomorrow(db)
            logger.info("Seeded daily results for %s", ", ".join(d.isoformat() for d in dates))
        except Exception:
            logger.exception("Failed to seed daily results")


class SettlementWorkerSettings:
    """arq worker settings for the settlement scheduler."""

    functions = [settlement_tick, seed_days]
    on_startup = settlement_startup
    on_shutdown = settlement_shutdown
    max_jobs = 4
    job_timeout = 120
    allow_abort_jobs = True
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    cron_jobs = [
        cron(settlement_tick, second=_tick_seconds(), run_at_startup=True),
        cron(seed_days, hour=0, minute=1, second=0, run_at_startup=True),
    ]

"""Operator overview and payout bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from satoshi_daily.db import store
from satoshi_daily.db.models import PageView, Prediction, Profile, Winner
from satoshi_daily.errors import PayoutAlreadyRecorded
from satoshi_daily.game.day_utils import get_today, get_yesterday, utc_now
from satoshi_daily.game.scoring import pick_best_predictions, rank_best_predictions
from satoshi_daily.game.target_time import TargetTime

logger = structlog.get_logger()


@dataclass
class YesterdaySummary:
    game_date: str
    target_label: str | None
    actual_price: int | None
    players: int
    predictions: int
    closest_prediction: int | None
    closest_difference: int | None
    winners: int


@dataclass
class Overview:
    page_views_total: int
    page_views_today: int
    predictions_total: int
    predictions_today: int
    profiles_total: int
    yesterday: YesterdaySummary


async def _count(db: AsyncSession, stmt: object) -> int:
    result = await db.execute(stmt)  # type: ignore[arg-type]
    return int(result.scalar_one())


async def get_overview(db: AsyncSession, now: datetime | None = None) -> Overview:
    if now is None:
        now = utc_now()
    today = get_today(now)
    midnight = datetime.combine(today, time.min, tzinfo=now.tzinfo)

    page_views_total = await _count(db, select(func.count()).select_from(PageView))
    page_views_today = await _count(
        db, select(func.count()).select_from(PageView).where(PageView.created_at >= midnight)
    )
    predictions_total = await _count(db, select(func.count()).select_from(Prediction))
    predictions_today = await _count(
        db, select(func.count()).select_from(Prediction).where(Prediction.game_date == today)
    )
    profiles_total = await _count(db, select(func.count()).select_from(Profile))

    yesterday = get_yesterday(now)
    row = await store.get_daily_result(db, yesterday)
    predictions = await store.predictions_for_date(db, yesterday)
    summary = YesterdaySummary(
        game_date=yesterday.isoformat(),
        target_label=TargetTime(row.target_hour, row.target_minute).formatted if row else None,
        actual_price=int(row.actual_price) if row and row.actual_price is not None else None,
        players=len({p.player_id for p in predictions}),
        predictions=len(predictions),
        closest_prediction=None,
        closest_difference=None,
        winners=await _count(
            db, select(func.count()).select_from(Winner).where(Winner.game_date == yesterday)
        ),
    )
    if summary.actual_price is not None and predictions:
        ranked = rank_best_predictions(
            pick_best_predictions(predictions, summary.actual_price), summary.actual_price
        )
        summary.closest_prediction = int(ranked[0].prediction.predicted_price)
        summary.closest_difference = ranked[0].difference

    return Overview(
        page_views_total=page_views_total,
        page_views_today=page_views_today,
        predictions_total=predictions_total,
        predictions_today=predictions_today,
        profiles_total=profiles_total,
        yesterday=summary,
    )


async def record_winner_payout(
    db: AsyncSession,
    winner_id: int,
    tx_id: str,
    tx_url: str | None = None,
    now: datetime | None = None,
) -> Winner | None:
    """
    Mark a winner paid. Returns None if no such winner.

    Raises:
        PayoutAlreadyRecorded: If a payout was recorded before.
    """
    if now is None:
        now = utc_now()
    if not await store.record_payout(db, winner_id, tx_id, tx_url, now):
        existing = await db.get(Winner, winner_id)
        if existing is None:
            return None
        raise PayoutAlreadyRecorded
    await db.commit()
    winner = await db.get(Winner, winner_id, populate_existing=True)
    logger.info("payout_recorded", winner_id=winner_id, date=winner.game_date.isoformat() if winner else None)
    return winner


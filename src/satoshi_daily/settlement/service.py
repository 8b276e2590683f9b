"""Daily settlement: official price, winners, streaks, operator summary.

At-most-once per day is guaranteed by three conditional writes rather than
locks:

1. ``record_official_price`` only succeeds while the price is null, so a
   single worker fixes the price.
2. Winner inserts ignore existing (date, player) rows and streaks only move
   ``last_played_date`` forward, so re-deriving them is harmless.
3. ``mark_settled`` succeeds once, and only that worker emails the operator.

A tick that dies between (1) and (3) leaves the day priced but unsettled;
the next tick picks it up and re-derives everything from the stored price.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from satoshi_daily.config import Settings, get_settings
from satoshi_daily.db import store
from satoshi_daily.db.models import DailyResult
from satoshi_daily.errors import PriceOracleUnavailable
from satoshi_daily.game.day_utils import game_date_for, utc_now
from satoshi_daily.game.formatting import mask_email
from satoshi_daily.game.scoring import (
    is_winning_difference,
    pick_best_predictions,
    prize_tier,
    rank_best_predictions,
    split_prize_pool,
)
from satoshi_daily.game.target_time import TargetTime, target_instant
from satoshi_daily.pricing.oracle import PriceOracle
from satoshi_daily.settlement.notifier import DaySummary, OperatorNotifier, WinnerLine

logger = structlog.get_logger()

STATUS_SETTLED = "settled"
STATUS_ALREADY_SETTLED = "already_settled"
STATUS_NOT_READY = "not_ready"
STATUS_NOT_FOUND = "not_found"
STATUS_LOST_RACE = "lost_race"
STATUS_PRICE_UNAVAILABLE = "price_unavailable"
STATUS_FAILED = "failed"

# Outcomes that leave a day unfinished; later days must wait behind it.
_HALTING_STATUSES = frozenset({STATUS_LOST_RACE, STATUS_PRICE_UNAVAILABLE, STATUS_FAILED})


@dataclass
class SettlementOutcome:
    game_date: date
    status: str
    actual_price: int | None = None
    winners: int = 0
    notified: bool = False


def is_ready(row: DailyResult, now: datetime) -> bool:
    """Past days are always ready; today only once its target instant passed."""
    if row.game_date < game_date_for(now):
        return True
    return now >= target_instant(row.game_date, row.target_hour, row.target_minute)


async def discover_pending_days(
    db: AsyncSession,
    now: datetime | None = None,
) -> list[DailyResult]:
    """Days awaiting a price whose target passed, plus priced-but-unsettled days."""
    if now is None:
        now = utc_now()
    rows = await store.list_unfinished_daily_results(db, game_date_for(now))
    return [row for row in rows if row.actual_price is not None or is_ready(row, now)]


async def _derive_results(
    db: AsyncSession,
    row: DailyResult,
    actual_price: int,
    now: datetime,
    settings: Settings,
) -> DaySummary:
    """Winners and streaks from the recorded price. Safe to repeat."""
    game_date = row.game_date
    predictions = await store.predictions_for_date(db, game_date)
    best = pick_best_predictions(predictions, actual_price)
    ranked = rank_best_predictions(best, actual_price)
    winning = [e for e in ranked if is_winning_difference(e.difference, settings.win_threshold_usd)]
    share = split_prize_pool(settings.prize_pool_usd, len(winning))

    inserted = await store.insert_winners(db, [
        {
            "game_date": game_date,
            "player_id": e.player_id,
            "prediction_id": e.prediction.id,
            "predicted_price": int(e.prediction.predicted_price),
            "actual_price": Decimal(actual_price),
            "difference": e.difference,
            "accuracy": e.accuracy,
            "prize_tier": prize_tier(e.difference),
            "prize_share": share,
            "created_at": now,
        }
        for e in winning
    ])

    advanced = 0
    for player_id in best:
        if await store.advance_streak(db, player_id, game_date):
            advanced += 1
    await db.commit()

    logger.info(
        "settlement_results_derived",
        date=game_date.isoformat(),
        predictions=len(predictions),
        players=len(best),
        winners=len(winning),
        winners_inserted=inserted,
        streaks_advanced=advanced,
    )

    stored = await store.winners_for_date(db, game_date)
    return DaySummary(
        game_date=game_date,
        target_label=TargetTime(row.target_hour, row.target_minute).formatted,
        actual_price=actual_price,
        sources_used=row.price_sources,
        total_predictions=len(predictions),
        player_count=len(best),
        winners=[
            WinnerLine(
                masked_email=mask_email(email),
                predicted_price=w.predicted_price,
                difference=w.difference,
                tier=w.prize_tier,
                share=Decimal(w.prize_share),
            )
            for w, email in stored
        ],
        closest_difference=ranked[0].difference if ranked else None,
    )


async def settle_day(
    db: AsyncSession,
    game_date: date,
    oracle: PriceOracle,
    notifier: OperatorNotifier,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> SettlementOutcome:
    """
    Settle a single day.

    Raises:
        PriceOracleUnavailable: If no price source answered; the day stays pending.
    """
    if now is None:
        now = utc_now()
    if settings is None:
        settings = get_settings()

    row = await store.get_daily_result(db, game_date)
    if row is None:
        return SettlementOutcome(game_date, STATUS_NOT_FOUND)
    if row.settled_at is not None:
        return SettlementOutcome(game_date, STATUS_ALREADY_SETTLED, actual_price=int(row.actual_price))

    if row.actual_price is None:
        if not is_ready(row, now):
            return SettlementOutcome(game_date, STATUS_NOT_READY)
        official = await oracle.fetch_official_price()
        recorded = await store.record_official_price(db, game_date, official.price, now, official.sources_used)
        await db.commit()
        if not recorded:
            logger.info("settlement_lost_race", date=game_date.isoformat())
            return SettlementOutcome(game_date, STATUS_LOST_RACE)
        logger.info(
            "settlement_price_recorded",
            date=game_date.isoformat(),
            price=official.price,
            sources=official.sources_used,
        )
        row = await store.get_daily_result(db, game_date)
        actual_price = official.price
    else:
        actual_price = int(row.actual_price)
        logger.info("settlement_resumed", date=game_date.isoformat(), price=actual_price)

    summary = await _derive_results(db, row, actual_price, now, settings)

    claimed = await store.mark_settled(db, game_date, now)
    await db.commit()
    notified = False
    if claimed:
        notified = await notifier.send_day_summary(summary)

    logger.info(
        "settlement_complete",
        date=game_date.isoformat(),
        price=actual_price,
        winners=len(summary.winners),
        notified=notified,
    )
    return SettlementOutcome(
        game_date,
        STATUS_SETTLED if claimed else STATUS_ALREADY_SETTLED,
        actual_price=actual_price,
        winners=len(summary.winners),
        notified=notified,
    )


async def run_settlement_tick(
    session_factory: async_sessionmaker[AsyncSession],
    oracle: PriceOracle,
    notifier: OperatorNotifier,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> list[SettlementOutcome]:
    """One scheduler tick: each pending day in its own session, oldest first.

    Streaks only move forward, so a later day must never settle before an
    earlier one. The tick stops at the first day it could not finish; the
    remaining days wait for the next tick.
    """
    async with session_factory() as db:
        pending = [row.game_date for row in await discover_pending_days(db, now)]

    outcomes: list[SettlementOutcome] = []
    for index, game_date in enumerate(pending):
        async with session_factory() as db:
            try:
                outcome = await settle_day(db, game_date, oracle, notifier, now, settings)
            except PriceOracleUnavailable:
                logger.warning("settlement_price_unavailable", date=game_date.isoformat())
                outcome = SettlementOutcome(game_date, STATUS_PRICE_UNAVAILABLE)
            except Exception:
                logger.exception("settlement_failed", date=game_date.isoformat())
                await db.rollback()
                outcome = SettlementOutcome(game_date, STATUS_FAILED)
        outcomes.append(outcome)
        if outcome.status in _HALTING_STATUSES:
            deferred = [d.isoformat() for d in pending[index + 1:]]
            if deferred:
                logger.warning("settlement_tick_halted", date=game_date.isoformat(), deferred=deferred)
            break
    return outcomes


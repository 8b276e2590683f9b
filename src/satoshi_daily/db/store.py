"""Typed persistence operations over the game tables.

Conditional writes here are the serialization points of the engine:

- ``record_official_price`` only updates a row whose price is still null,
- ``mark_settled`` only stamps a row once,
- ``insert_prediction`` relies on the (player, date, guess) unique key,
- ``insert_winners`` ignores rows already present for (date, player),
- ``advance_streak`` only moves ``last_played_date`` forward.

Functions flush but never commit; callers own the transaction.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from satoshi_daily.db.models import BonusUnlock, DailyResult, PageView, Prediction, Profile, Winner
from satoshi_daily.errors import PersistenceConflict
from satoshi_daily.game.day_utils import previous_day


def _insert(db: AsyncSession, model: type) -> Any:
    """Dialect-specific INSERT supporting ON CONFLICT clauses."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)


# ---------------------------------------------------------------------------
# DailyResult
# ---------------------------------------------------------------------------


async def seed_daily_result(
    db: AsyncSession,
    game_date: date,
    hour: int,
    minute: int,
    now: datetime,
) -> None:
    """Idempotent upsert of a day's target time. Resolved rows are left alone."""
    stmt = _insert(db, DailyResult).values(
        game_date=game_date,
        target_hour=hour,
        target_minute=minute,
        created_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["game_date"],
        set_={
            "target_hour": stmt.excluded.target_hour,
            "target_minute": stmt.excluded.target_minute,
        },
        where=DailyResult.actual_price.is_(None),
    )
    await db.execute(stmt)
    await db.flush()


async def get_daily_result(db: AsyncSession, game_date: date) -> DailyResult | None:
    result = await db.execute(
        select(DailyResult)
        .where(DailyResult.game_date == game_date)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_unfinished_daily_results(db: AsyncSession, today: date) -> list[DailyResult]:
    """Rows still awaiting a price, plus rows priced but not yet settled."""
    result = await db.execute(
        select(DailyResult)
        .where(
            DailyResult.game_date <= today,
            or_(
                DailyResult.actual_price.is_(None),
                DailyResult.settled_at.is_(None),
            ),
        )
        .order_by(DailyResult.game_date)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def record_official_price(
    db: AsyncSession,
    game_date: date,
    price: int,
    now: datetime,
    sources_used: int | None = None,
) -> bool:
    """Write the official price iff none is recorded. False means another writer won."""
    result = await db.execute(
        update(DailyResult)
        .where(
            DailyResult.game_date == game_date,
            DailyResult.actual_price.is_(None),
        )
        .values(actual_price=Decimal(price), recorded_at=now, price_sources=sources_used)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return result.rowcount > 0


async def mark_settled(db: AsyncSession, game_date: date, now: datetime) -> bool:
    """Stamp ``settled_at`` once. Only the worker that succeeds sends the summary."""
    result = await db.execute(
        update(DailyResult)
        .where(
            DailyResult.game_date == game_date,
            DailyResult.actual_price.is_not(None),
            DailyResult.settled_at.is_(None),
        )
        .values(settled_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return result.rowcount > 0


def public_daily_result(row: DailyResult) -> dict[str, Any]:
    """Client projection: unresolved rows expose only their target time."""
    data: dict[str, Any] = {
        "game_date": row.game_date,
        "target_hour": row.target_hour,
        "target_minute": row.target_minute,
        "actual_price": None,
        "recorded_at": None,
    }
    if row.actual_price is not None:
        data["actual_price"] = int(row.actual_price)
        data["recorded_at"] = row.recorded_at
    return data


async def list_settled_daily_results(db: AsyncSession, limit: int) -> list[DailyResult]:
    """Most recent fully settled days first. Priced but unsettled days are left out."""
    result = await db.execute(
        select(DailyResult)
        .where(
            DailyResult.actual_price.is_not(None),
            DailyResult.settled_at.is_not(None),
        )
        .order_by(DailyResult.game_date.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Predictions and bonus unlocks
# ---------------------------------------------------------------------------


async def count_predictions(db: AsyncSession, player_id: str, game_date: date) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Prediction)
        .where(Prediction.player_id == player_id, Prediction.game_date == game_date)
    )
    return result.scalar_one()


async def insert_prediction(
    db: AsyncSession,
    player_id: str,
    game_date: date,
    predicted_price: int,
    guess_number: int,
    now: datetime,
) -> Prediction:
    """Insert one guess.

    Raises:
        PersistenceConflict: If the guess number is already taken.
    """
    prediction = Prediction(
        player_id=player_id,
        game_date=game_date,
        predicted_price=predicted_price,
        guess_number=guess_number,
        created_at=now,
    )
    db.add(prediction)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise PersistenceConflict(
            f"Guess {guess_number} already exists for {player_id} on {game_date}"
        ) from exc
    return prediction


async def player_predictions(db: AsyncSession, viewer_id: str, game_date: date) -> list[Prediction]:
    """The viewer's own predictions for a date, in guess order."""
    result = await db.execute(
        select(Prediction)
        .where(Prediction.player_id == viewer_id, Prediction.game_date == game_date)
        .order_by(Prediction.guess_number)
    )
    return list(result.scalars().all())


async def predictions_for_date(db: AsyncSession, game_date: date) -> list[Prediction]:
    """Every prediction on a date. Settlement and ranking only."""
    result = await db.execute(
        select(Prediction)
        .where(Prediction.game_date == game_date)
        .order_by(Prediction.player_id, Prediction.guess_number)
    )
    return list(result.scalars().all())


async def player_bonus_unlock(db: AsyncSession, viewer_id: str, game_date: date) -> BonusUnlock | None:
    result = await db.execute(
        select(BonusUnlock).where(
            BonusUnlock.player_id == viewer_id,
            BonusUnlock.game_date == game_date,
        )
    )
    return result.scalar_one_or_none()


async def insert_bonus_unlock(
    db: AsyncSession,
    player_id: str,
    game_date: date,
    platform: str,
    now: datetime,
) -> BonusUnlock:
    """Insert the day's unlock.

    Raises:
        PersistenceConflict: If the player already unlocked this date.
    """
    unlock = BonusUnlock(
        player_id=player_id,
        game_date=game_date,
        platform=platform,
        created_at=now,
    )
    db.add(unlock)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise PersistenceConflict(f"Bonus already unlocked for {player_id} on {game_date}") from exc
    return unlock


# ---------------------------------------------------------------------------
# Winners
# ---------------------------------------------------------------------------


async def insert_winners(db: AsyncSession, rows: list[dict[str, Any]]) -> int:
    """Insert winner rows, skipping any (date, player) already present."""
    if not rows:
        return 0
    stmt = _insert(db, Winner).values(rows)
    stmt = stmt.on_conflict_do_nothing(index_elements=["game_date", "player_id"])
    result = await db.execute(stmt)
    await db.flush()
    return max(result.rowcount, 0)


async def winners_for_date(db: AsyncSession, game_date: date) -> list[tuple[Winner, str]]:
    """(winner, email) pairs for a resolved date; empty while unresolved."""
    result = await db.execute(
        select(Winner, Profile.email)
        .join(Profile, Profile.id == Winner.player_id)
        .join(DailyResult, DailyResult.game_date == Winner.game_date)
        .where(
            Winner.game_date == game_date,
            DailyResult.actual_price.is_not(None),
        )
        .order_by(Winner.difference, Winner.id)
    )
    return [(row[0], row[1]) for row in result.all()]


async def record_payout(
    db: AsyncSession,
    winner_id: int,
    tx_id: str,
    tx_url: str | None,
    now: datetime,
) -> bool:
    """Record an out-of-band payout once. False if missing or already paid."""
    result = await db.execute(
        update(Winner)
        .where(Winner.id == winner_id, Winner.paid_at.is_(None))
        .values(tx_id=tx_id, tx_url=tx_url, paid_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return result.rowcount > 0


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------


async def advance_streak(db: AsyncSession, player_id: str, game_date: date) -> bool:
    """Compare-and-set streak update for one played date.

    ``last_played_date == date - 1`` extends the streak, anything older
    restarts it at 1. Rows already at or past ``date`` are untouched, so
    re-running a settled date is a no-op.
    """
    result = await db.execute(
        update(Profile)
        .where(
            Profile.id == player_id,
            or_(
                Profile.last_played_date.is_(None),
                Profile.last_played_date < game_date,
            ),
        )
        .values(
            current_streak=case(
                (Profile.last_played_date == previous_day(game_date), Profile.current_streak + 1),
                else_=1,
            ),
            last_played_date=game_date,
        )
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return result.rowcount > 0


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


async def insert_page_view(
    db: AsyncSession,
    page: str,
    now: datetime,
    player_id: str | None = None,
    referrer: str | None = None,
    user_agent: str | None = None,
) -> PageView:
    view = PageView(
        page=page,
        player_id=player_id,
        referrer=referrer,
        user_agent=user_agent,
        created_at=now,
    )
    db.add(view)
    await db.flush()
    return view

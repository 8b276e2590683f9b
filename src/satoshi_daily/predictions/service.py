"""Prediction submission: seeding, quotas, bonus unlocks, anonymous replay.

Checks run in a fixed order so the same request always fails the same way:
lock deadline, price validity, date, then quota. Concurrent submissions
from one player are serialised by the (player, date, guess) unique key;
the loser re-reads its count and either takes the next number or runs out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from satoshi_daily.config import Settings
from satoshi_daily.db import store
from satoshi_daily.db.models import BonusUnlock, Prediction
from satoshi_daily.errors import (
    AlreadyUnlocked,
    GameClosed,
    InvalidPrice,
    NoGuessesLeft,
    PersistenceConflict,
    UserFacingError,
    WrongDate,
)
from satoshi_daily.game.day_utils import game_date_for, get_today, get_tomorrow, utc_now
from satoshi_daily.game.scoring import MAX_PREDICTED_PRICE
from satoshi_daily.game.target_time import TargetTime, target_instant, target_time_for
from satoshi_daily.predictions.anonymous import AnonymousGuessStore, PendingGuess

logger = structlog.get_logger()

ANONYMOUS_MAX_GUESSES = 1
AUTHENTICATED_MAX_GUESSES = 2
BONUS_MAX_GUESSES = 3

# Each lost race re-reads the count, so this bounds retries by the quota.
MAX_SUBMIT_ATTEMPTS = BONUS_MAX_GUESSES + 1


def max_guesses(authenticated: bool, bonus_unlocked: bool = False) -> int:
    """Tiered daily quota."""
    if not authenticated:
        return ANONYMOUS_MAX_GUESSES
    if bonus_unlocked:
        return BONUS_MAX_GUESSES
    return AUTHENTICATED_MAX_GUESSES


def validate_price(price: Any) -> int:
    """Whole-dollar price in (0, 999_999_999].

    Raises:
        InvalidPrice: For non-integers, booleans, and out-of-range values.
    """
    if isinstance(price, bool):
        raise InvalidPrice
    if isinstance(price, float):
        if not price.is_integer():
            raise InvalidPrice
        price = int(price)
    if not isinstance(price, int):
        raise InvalidPrice
    if not 0 < price <= MAX_PREDICTED_PRICE:
        raise InvalidPrice
    return price


def lock_instant(game_date: date, settings: Settings | None = None) -> datetime:
    tt = target_time_for(game_date, settings)
    return target_instant(game_date, tt.hour, tt.minute)


def _check_submittable(
    game_date: date,
    price: Any,
    now: datetime,
    settings: Settings | None,
) -> int:
    if now >= lock_instant(game_date, settings):
        raise GameClosed
    price = validate_price(price)
    if game_date != game_date_for(now):
        raise WrongDate
    return price


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


async def seed_day(
    db: AsyncSession,
    game_date: date,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> TargetTime:
    """Idempotently create the DailyResult row for a date."""
    if now is None:
        now = utc_now()
    tt = target_time_for(game_date, settings)
    await store.seed_daily_result(db, game_date, tt.hour, tt.minute, now)
    await db.commit()
    logger.info("daily_result_seeded", date=game_date.isoformat(), target=tt.formatted)
    return tt


async def seed_today_and_tomorrow(
    db: AsyncSession,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> list[date]:
    if now is None:
        now = utc_now()
    dates = [get_today(now), get_tomorrow(now)]
    for game_date in dates:
        await seed_day(db, game_date, now, settings)
    return dates


async def _ensure_seeded(db: AsyncSession, game_date: date, now: datetime, settings: Settings | None) -> None:
    if await store.get_daily_result(db, game_date) is None:
        await seed_day(db, game_date, now, settings)


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


async def submit_prediction(
    db: AsyncSession,
    player_id: str,
    game_date: date,
    price: Any,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> Prediction:
    """Store an authenticated player's next guess for today.

    Raises:
        GameClosed, InvalidPrice, WrongDate, NoGuessesLeft
    """
    if now is None:
        now = utc_now()
    price = _check_submittable(game_date, price, now, settings)
    await _ensure_seeded(db, game_date, now, settings)

    for _ in range(MAX_SUBMIT_ATTEMPTS):
        bonus = await store.player_bonus_unlock(db, player_id, game_date)
        allowed = max_guesses(authenticated=True, bonus_unlocked=bonus is not None)
        count = await store.count_predictions(db, player_id, game_date)
        if count >= allowed:
            raise NoGuessesLeft
        try:
            prediction = await store.insert_prediction(db, player_id, game_date, price, count + 1, now)
        except PersistenceConflict:
            logger.info(
                "prediction_guess_conflict",
                player_id=player_id,
                date=game_date.isoformat(),
                guess_number=count + 1,
            )
            continue
        await db.commit()
        logger.info(
            "prediction_submitted",
            player_id=player_id,
            date=game_date.isoformat(),
            guess_number=prediction.guess_number,
        )
        return prediction

    raise NoGuessesLeft


async def submit_anonymous_prediction(
    anon_store: AnonymousGuessStore,
    cookie: str,
    game_date: date,
    price: Any,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> PendingGuess:
    """Hold a signed-out browser's single guess until it authenticates."""
    if now is None:
        now = utc_now()
    price = _check_submittable(game_date, price, now, settings)
    guess = PendingGuess(game_date=game_date, predicted_price=price, submitted_at=now)
    if not await anon_store.hold_guess(cookie, guess):
        raise NoGuessesLeft
    logger.info("anonymous_prediction_held", date=game_date.isoformat())
    return guess


async def unlock_bonus(
    db: AsyncSession,
    player_id: str,
    game_date: date,
    platform: str = "x",
    now: datetime | None = None,
) -> BonusUnlock:
    """Redeem the share gate for today's third guess.

    Raises:
        WrongDate: If ``game_date`` is not today.
        AlreadyUnlocked: If the player already redeemed it.
    """
    if now is None:
        now = utc_now()
    if game_date != game_date_for(now):
        raise WrongDate
    if await store.player_bonus_unlock(db, player_id, game_date) is not None:
        raise AlreadyUnlocked
    try:
        unlock = await store.insert_bonus_unlock(db, player_id, game_date, platform, now)
    except PersistenceConflict as exc:
        raise AlreadyUnlocked from exc
    await db.commit()
    logger.info("bonus_unlocked", player_id=player_id, date=game_date.isoformat(), platform=platform)
    return unlock


async def unlock_anonymous_bonus(
    anon_store: AnonymousGuessStore,
    cookie: str,
    game_date: date,
    platform: str = "x",
    now: datetime | None = None,
) -> None:
    if now is None:
        now = utc_now()
    if game_date != game_date_for(now):
        raise WrongDate
    if not await anon_store.hold_bonus(cookie, game_date, platform):
        raise AlreadyUnlocked


# ---------------------------------------------------------------------------
# Anonymous -> authenticated replay
# ---------------------------------------------------------------------------


@dataclass
class ReplayReport:
    guess_numbers: list[int] = field(default_factory=list)
    bonus_unlocked: bool = False
    errors: list[str] = field(default_factory=list)


async def replay_pending(
    db: AsyncSession,
    anon_store: AnonymousGuessStore,
    player_id: str,
    cookie: str,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> ReplayReport:
    """Replay today's held guess and unlock as normal submissions.

    Replayed guesses take the next free guess numbers. Failures (the game
    locked in the meantime, quota already used) are reported, not raised.
    """
    if now is None:
        now = utc_now()
    today = game_date_for(now)
    report = ReplayReport()

    platform = await anon_store.get_bonus(cookie, today)
    if platform is not None:
        try:
            await unlock_bonus(db, player_id, today, platform, now)
            report.bonus_unlocked = True
        except UserFacingError as exc:
            report.errors.append(exc.code)

    guess = await anon_store.get_guess(cookie, today)
    if guess is not None:
        try:
            prediction = await submit_prediction(db, player_id, today, guess.predicted_price, now, settings)
            report.guess_numbers.append(prediction.guess_number)
        except UserFacingError as exc:
            report.errors.append(exc.code)

    await anon_store.discard(cookie, today)
    if report.errors:
        logger.warning("anonymous_replay_partial", player_id=player_id, date=today.isoformat(), errors=report.errors)
    return report

"""Read views: leaderboard, recap, past results, recent feed, previous winners.

Pure projections, no writes. Views over a date that has not finished
settling say so (``preliminary`` / ``pending``) rather than guessing.
The leaderboard uses the official price as soon as it is recorded; recap
and history wait for ``settled_at``, when winners are known.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from satoshi_daily.db import store
from satoshi_daily.db.models import DailyResult, Prediction, Profile, Winner
from satoshi_daily.game.day_utils import get_today, get_yesterday, utc_now
from satoshi_daily.game.formatting import mask_email, ordinal, time_ago
from satoshi_daily.game.scoring import (
    accuracy_tier,
    pick_best_predictions,
    rank_best_predictions,
)
from satoshi_daily.game.target_time import TargetTime


@dataclass
class LeaderboardEntry:
    rank: int
    masked_email: str
    predicted_price: int
    difference: int
    accuracy: float


@dataclass
class LeaderboardView:
    game_date: date
    preliminary: bool
    reference_price: int | None
    total_players: int
    entries: list[LeaderboardEntry] = field(default_factory=list)


@dataclass
class RecapView:
    game_date: date
    status: str  # "pending", "no_play" or "resolved"
    target_label: str | None = None
    actual_price: int | None = None
    predictions: list[int] = field(default_factory=list)
    best_prediction: int | None = None
    difference: int | None = None
    accuracy: float | None = None
    accuracy_tier: str | None = None
    rank: int | None = None
    rank_ordinal: str | None = None
    total_players: int = 0
    is_winner: bool = False
    prize_tier: str | None = None
    prize_share: Decimal | None = None


@dataclass
class PastResult:
    game_date: date
    actual_price: int
    players: int
    closest_prediction: int | None
    closest_difference: int | None
    winner_count: int


@dataclass
class RecentPrediction:
    masked_email: str
    predicted_price: int
    game_date: date
    created_at: datetime
    time_ago: str


@dataclass
class PreviousWinner:
    masked_email: str
    predicted_price: int
    difference: int
    prize_tier: str
    prize_share: Decimal
    tx_id: str | None
    tx_url: str | None
    paid: bool


@dataclass
class PreviousWinnersDay:
    game_date: date
    actual_price: int
    winners: list[PreviousWinner] = field(default_factory=list)


async def _predictions_with_emails(db: AsyncSession, game_date: date) -> tuple[list[Prediction], dict[str, str]]:
    result = await db.execute(
        select(Prediction, Profile.email)
        .join(Profile, Profile.id == Prediction.player_id)
        .where(Prediction.game_date == game_date)
    )
    rows = result.all()
    return [row[0] for row in rows], {row[0].player_id: row[1] for row in rows}


# ---------------------------------------------------------------------------
# Today's leaderboard
# ---------------------------------------------------------------------------


async def todays_leaderboard(
    db: AsyncSession,
    live_price: int | None = None,
    size: int = 10,
    now: datetime | None = None,
) -> LeaderboardView:
    """Top ``size`` players by accuracy against the official or live price."""
    today = get_today(now)
    row = await store.get_daily_result(db, today)
    preliminary = row is None or row.actual_price is None
    reference = live_price if preliminary else int(row.actual_price)  # type: ignore[union-attr]

    predictions, emails = await _predictions_with_emails(db, today)
    view = LeaderboardView(
        game_date=today,
        preliminary=preliminary,
        reference_price=reference,
        total_players=len(emails),
    )
    if reference is None or reference <= 0:
        return view

    best = pick_best_predictions(predictions, reference)
    for entry in rank_best_predictions(best, reference)[:size]:
        view.entries.append(
            LeaderboardEntry(
                rank=entry.rank,
                masked_email=mask_email(emails[entry.player_id]),
                predicted_price=int(entry.prediction.predicted_price),
                difference=entry.difference,
                accuracy=entry.accuracy,
            )
        )
    return view


# ---------------------------------------------------------------------------
# Yesterday recap
# ---------------------------------------------------------------------------


async def yesterday_recap(
    db: AsyncSession,
    player_id: str,
    now: datetime | None = None,
) -> RecapView:
    """The player's result for yesterday, ranked among everyone who played."""
    yesterday = get_yesterday(now)
    row = await store.get_daily_result(db, yesterday)
    # Winners may not be derived yet while settled_at is unset.
    if row is None or row.actual_price is None or row.settled_at is None:
        return RecapView(game_date=yesterday, status="pending")

    actual = int(row.actual_price)
    recap = RecapView(
        game_date=yesterday,
        status="resolved",
        target_label=TargetTime(row.target_hour, row.target_minute).formatted,
        actual_price=actual,
    )

    mine = await store.player_predictions(db, player_id, yesterday)
    if not mine:
        recap.status = "no_play"
        return recap

    everyone = await store.predictions_for_date(db, yesterday)
    ranked = rank_best_predictions(pick_best_predictions(everyone, actual), actual)
    me = next(e for e in ranked if e.player_id == player_id)

    recap.predictions = [p.predicted_price for p in mine]
    recap.best_prediction = int(me.prediction.predicted_price)
    recap.difference = me.difference
    recap.accuracy = me.accuracy
    recap.accuracy_tier = accuracy_tier(me.accuracy)
    recap.rank = me.rank
    recap.rank_ordinal = ordinal(me.rank)
    recap.total_players = len(ranked)

    result = await db.execute(
        select(Winner).where(Winner.game_date == yesterday, Winner.player_id == player_id)
    )
    winner = result.scalar_one_or_none()
    if winner is not None:
        recap.is_winner = True
        recap.prize_tier = winner.prize_tier
        recap.prize_share = Decimal(winner.prize_share)
    return recap


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


async def past_results(db: AsyncSession, days: int = 5) -> list[PastResult]:
    """The last ``days`` settled dates, newest first."""
    results = []
    for row in await store.list_settled_daily_results(db, days):
        actual = int(row.actual_price)  # type: ignore[arg-type]
        predictions = await store.predictions_for_date(db, row.game_date)
        ranked = rank_best_predictions(pick_best_predictions(predictions, actual), actual)
        winners = await store.winners_for_date(db, row.game_date)
        results.append(
            PastResult(
                game_date=row.game_date,
                actual_price=actual,
                players=len(ranked),
                closest_prediction=int(ranked[0].prediction.predicted_price) if ranked else None,
                closest_difference=ranked[0].difference if ranked else None,
                winner_count=len(winners),
            )
        )
    return results


async def recent_predictions(
    db: AsyncSession,
    limit: int = 8,
    now: datetime | None = None,
) -> list[RecentPrediction]:
    """Most recent predictions across all dates."""
    if now is None:
        now = utc_now()
    result = await db.execute(
        select(Prediction, Profile.email)
        .join(Profile, Profile.id == Prediction.player_id)
        .order_by(Prediction.created_at.desc(), Prediction.id.desc())
        .limit(limit)
    )
    return [
        RecentPrediction(
            masked_email=mask_email(email),
            predicted_price=p.predicted_price,
            game_date=p.game_date,
            created_at=p.created_at,
            time_ago=time_ago(p.created_at, now),
        )
        for p, email in result.all()
    ]


async def previous_winners(db: AsyncSession, days: int = 3) -> list[PreviousWinnersDay]:
    """Winners of the most recent settled dates that had any."""
    result = await db.execute(
        select(DailyResult)
        .where(
            DailyResult.actual_price.is_not(None),
            DailyResult.settled_at.is_not(None),
            DailyResult.game_date.in_(select(Winner.game_date).distinct()),
        )
        .order_by(DailyResult.game_date.desc())
        .limit(days)
    )
    out = []
    for row in result.scalars().all():
        day = PreviousWinnersDay(game_date=row.game_date, actual_price=int(row.actual_price))  # type: ignore[arg-type]
        for winner, email in await store.winners_for_date(db, row.game_date):
            day.winners.append(
                PreviousWinner(
                    masked_email=mask_email(email),
                    predicted_price=winner.predicted_price,
                    difference=winner.difference,
                    prize_tier=winner.prize_tier,
                    prize_share=Decimal(winner.prize_share),
                    tx_id=winner.tx_id,
                    tx_url=winner.tx_url,
                    paid=winner.paid_at is not None,
                )
            )
        out.append(day)
    return out


"""Read views API: leaderboard, recap, history feeds."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from satoshi_daily.auth.dependencies import get_current_player
from satoshi_daily.config import get_settings
from satoshi_daily.database import get_session
from satoshi_daily.db.models import Profile
from satoshi_daily.views.schemas import (
    LeaderboardResponse,
    PastResultResponse,
    PreviousWinnersDayResponse,
    RecapResponse,
    RecentPredictionResponse,
)
from satoshi_daily.views.service import (
    past_results,
    previous_winners,
    recent_predictions,
    todays_leaderboard,
    yesterday_recap,
)

router = APIRouter(prefix="/api/v1", tags=["Views"])


@router.get("/leaderboard/today", response_model=LeaderboardResponse)
async def leaderboard_today(
    live_price: int | None = Query(None, gt=0, description="Client spot price, used until settlement"),
    db: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    """Top players today; ``preliminary`` until the official price is recorded."""
    view = await todays_leaderboard(db, live_price=live_price, size=get_settings().leaderboard_size)
    return LeaderboardResponse.model_validate(view)


@router.get("/recap/yesterday", response_model=RecapResponse)
async def recap_yesterday(
    player: Profile = Depends(get_current_player),
    db: AsyncSession = Depends(get_session),
) -> RecapResponse:
    """The signed-in player's result for yesterday."""
    return RecapResponse.model_validate(await yesterday_recap(db, player.id))


@router.get("/results/past", response_model=list[PastResultResponse])
async def results_past(
    days: int | None = Query(None, ge=1, le=30),
    db: AsyncSession = Depends(get_session),
) -> list[PastResultResponse]:
    """The last N resolved days."""
    rows = await past_results(db, days or get_settings().past_results_days)
    return [PastResultResponse.model_validate(r) for r in rows]


@router.get("/predictions/recent", response_model=list[RecentPredictionResponse])
async def predictions_recent(
    limit: int | None = Query(None, ge=1, le=50),
    db: AsyncSession = Depends(get_session),
) -> list[RecentPredictionResponse]:
    """Latest predictions across all players, emails masked."""
    rows = await recent_predictions(db, limit or get_settings().recent_predictions_limit)
    return [RecentPredictionResponse.model_validate(r) for r in rows]


@router.get("/winners/previous", response_model=list[PreviousWinnersDayResponse])
async def winners_previous(
    days: int | None = Query(None, ge=1, le=30),
    db: AsyncSession = Depends(get_session),
) -> list[PreviousWinnersDayResponse]:
    """Winners of the most recent days that had any."""
    rows = await previous_winners(db, days or get_settings().previous_winners_days)
    return [PreviousWinnersDayResponse.model_validate(r) for r in rows]

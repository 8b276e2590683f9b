"""Game & predictions API: target times, submissions, bonus unlocks."""

from __future__ import annotations

import secrets
from datetime import date

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from satoshi_daily.auth.dependencies import get_optional_player
from satoshi_daily.config import get_settings
from satoshi_daily.database import get_session
from satoshi_daily.db import store
from satoshi_daily.db.models import Profile
from satoshi_daily.dependencies import get_anon_store
from satoshi_daily.game.day_utils import get_today, get_tomorrow, parse_game_date, utc_now
from satoshi_daily.game.target_time import target_instant, target_time_for
from satoshi_daily.predictions.anonymous import AnonymousGuessStore
from satoshi_daily.predictions.schemas import (
    BonusUnlockRequest,
    BonusUnlockResponse,
    GameTodayResponse,
    MyPredictionsResponse,
    PredictionEntry,
    PredictionRequest,
    PredictionResponse,
    TargetTimeResponse,
)
from satoshi_daily.predictions.service import (
    max_guesses,
    submit_anonymous_prediction,
    submit_prediction,
    unlock_anonymous_bonus,
    unlock_bonus,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Game"])


def _target_response(game_date: date) -> TargetTimeResponse:
    tt = target_time_for(game_date)
    return TargetTimeResponse(
        game_date=game_date,
        target_hour=tt.hour,
        target_minute=tt.minute,
        target_label=tt.formatted,
        target_instant=target_instant(game_date, tt.hour, tt.minute),
    )


def _anon_cookie(request: Request, response: Response) -> str:
    """Read the browser's anonymous id, minting one if absent."""
    settings = get_settings()
    cookie = request.cookies.get(settings.anon_cookie_name)
    if not cookie:
        cookie = secrets.token_urlsafe(24)
        response.set_cookie(
            settings.anon_cookie_name,
            cookie,
            max_age=settings.anon_guess_ttl_seconds,
            httponly=True,
            samesite="lax",
            secure=settings.environment != "development",
        )
    return cookie


# ---------------------------------------------------------------------------
# Target time
# ---------------------------------------------------------------------------


@router.get("/game/today", response_model=GameTodayResponse)
async def game_today(db: AsyncSession = Depends(get_session)) -> GameTodayResponse:
    """Today's target instant, lock state and (once settled) official price."""
    now = utc_now()
    today = get_today(now)
    target = _target_response(today)
    row = await store.get_daily_result(db, today)
    public = store.public_daily_result(row) if row is not None else {}
    if row is not None:
        target = TargetTimeResponse(
            game_date=today,
            target_hour=row.target_hour,
            target_minute=row.target_minute,
            target_label=f"{row.target_hour:02d}:{row.target_minute:02d} UTC",
            target_instant=target_instant(today, row.target_hour, row.target_minute),
        )
    return GameTodayResponse(
        game_date=today,
        target_hour=target.target_hour,
        target_minute=target.target_minute,
        target_label=target.target_label,
        target_instant=target.target_instant,
        locked=now >= target.target_instant,
        actual_price=public.get("actual_price"),
        recorded_at=public.get("recorded_at"),
        tomorrow=_target_response(get_tomorrow(now)),
    )


@router.get("/game/target/{game_date}", response_model=TargetTimeResponse)
async def game_target(game_date: str) -> TargetTimeResponse:
    """Deterministic target time for any date; no storage involved."""
    try:
        parsed = parse_game_date(game_date)
    except ValueError as e:
        raise HTTPException(status_code=422, detail="Date must be YYYY-MM-DD") from e
    return _target_response(parsed)


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------


@router.post("/predictions", response_model=PredictionResponse, status_code=201)
async def create_prediction(
    body: PredictionRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_session),
    anon_store: AnonymousGuessStore = Depends(get_anon_store),
    player: Profile | None = Depends(get_optional_player),
) -> PredictionResponse:
    """Submit a guess. Signed-out browsers hold one pending guess."""
    if player is None:
        cookie = _anon_cookie(request, response)
        guess = await submit_anonymous_prediction(anon_store, cookie, body.game_date, body.price)
        return PredictionResponse(
            game_date=guess.game_date,
            predicted_price=guess.predicted_price,
            guess_number=1,
            pending=True,
            guesses_left=0,
            created_at=guess.submitted_at,
        )

    prediction = await submit_prediction(db, player.id, body.game_date, body.price)
    bonus = await store.player_bonus_unlock(db, player.id, body.game_date)
    allowed = max_guesses(authenticated=True, bonus_unlocked=bonus is not None)
    return PredictionResponse(
        game_date=prediction.game_date,
        predicted_price=prediction.predicted_price,
        guess_number=prediction.guess_number,
        guesses_left=max(0, allowed - prediction.guess_number),
        created_at=prediction.created_at,
    )


@router.get("/predictions/mine", response_model=MyPredictionsResponse)
async def my_predictions(
    request: Request,
    game_date: date | None = Query(None),
    db: AsyncSession = Depends(get_session),
    anon_store: AnonymousGuessStore = Depends(get_anon_store),
    player: Profile | None = Depends(get_optional_player),
) -> MyPredictionsResponse:
    """The caller's own guesses for a date (today by default)."""
    if game_date is None:
        game_date = get_today()

    if player is None:
        pending = None
        bonus_unlocked = False
        cookie = request.cookies.get(get_settings().anon_cookie_name)
        if cookie:
            guess = await anon_store.get_guess(cookie, game_date)
            if guess is not None:
                pending = PredictionEntry(
                    guess_number=1,
                    predicted_price=guess.predicted_price,
                    created_at=guess.submitted_at,
                )
            bonus_unlocked = await anon_store.get_bonus(cookie, game_date) is not None
        allowed = max_guesses(authenticated=False)
        return MyPredictionsResponse(
            game_date=game_date,
            authenticated=False,
            predictions=[],
            pending=pending,
            bonus_unlocked=bonus_unlocked,
            max_guesses=allowed,
            guesses_left=allowed - (1 if pending else 0),
        )

    rows = await store.player_predictions(db, player.id, game_date)
    bonus = await store.player_bonus_unlock(db, player.id, game_date)
    allowed = max_guesses(authenticated=True, bonus_unlocked=bonus is not None)
    return MyPredictionsResponse(
        game_date=game_date,
        authenticated=True,
        predictions=[
            PredictionEntry(
                guess_number=p.guess_number,
                predicted_price=p.predicted_price,
                created_at=p.created_at,
            )
            for p in rows
        ],
        bonus_unlocked=bonus is not None,
        max_guesses=allowed,
        guesses_left=max(0, allowed - len(rows)),
    )


@router.post("/bonus-unlocks", response_model=BonusUnlockResponse, status_code=201)
async def create_bonus_unlock(
    body: BonusUnlockRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_session),
    anon_store: AnonymousGuessStore = Depends(get_anon_store),
    player: Profile | None = Depends(get_optional_player),
) -> BonusUnlockResponse:
    """Redeem the share gate. Signed-out unlocks are replayed at sign-in."""
    if player is None:
        cookie = _anon_cookie(request, response)
        await unlock_anonymous_bonus(anon_store, cookie, body.game_date, body.platform)
        return BonusUnlockResponse(
            game_date=body.game_date,
            platform=body.platform,
            pending=True,
            max_guesses=max_guesses(authenticated=False),
        )

    unlock = await unlock_bonus(db, player.id, body.game_date, body.platform)
    return BonusUnlockResponse(
        game_date=unlock.game_date,
        platform=unlock.platform,
        max_guesses=max_guesses(authenticated=True, bonus_unlocked=True),
    )

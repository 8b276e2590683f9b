"""Authentication router: all /api/v1/auth/* endpoints."""

from __future__ import annotations

from html import escape

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from satoshi_daily.auth.captcha import CaptchaVerifier
from satoshi_daily.auth.dependencies import get_current_player
from satoshi_daily.auth.jwt import create_access_token
from satoshi_daily.auth.schemas import (
    PlayerResponse,
    ReplayResponse,
    SessionRequest,
    SessionResponse,
    SignInRequest,
    SignInResponse,
)
from satoshi_daily.auth.service import consume_login_token, sign_in, unsubscribe
from satoshi_daily.config import get_settings
from satoshi_daily.database import get_session
from satoshi_daily.db.models import Profile
from satoshi_daily.dependencies import get_anon_store, get_captcha_verifier
from satoshi_daily.predictions.anonymous import AnonymousGuessStore
from satoshi_daily.predictions.service import replay_pending

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def _player_response(profile: Profile) -> PlayerResponse:
    return PlayerResponse(
        id=profile.id,
        email=profile.email,
        marketing_consent=profile.marketing_consent,
        current_streak=profile.current_streak,
        last_played_date=profile.last_played_date,
        created_at=profile.created_at,
    )


@router.post("/signin", response_model=SignInResponse)
async def signin(
    body: SignInRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
    verifier: CaptchaVerifier = Depends(get_captcha_verifier),
) -> SignInResponse:
    """Verify the captcha and return a one-time sign-in artefact."""
    result = await sign_in(
        db,
        verifier,
        email=body.email,
        marketing_consent=body.marketing_consent,
        captcha_token=body.captcha_token,
        remote_ip=request.client.host if request.client else None,
    )
    return SignInResponse(token_hash=result.token_hash, existing=result.existing)


@router.post("/session", response_model=SessionResponse)
async def session(
    body: SessionRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
    anon_store: AnonymousGuessStore = Depends(get_anon_store),
) -> SessionResponse:
    """Exchange the artefact for a session and replay any anonymous play."""
    settings = get_settings()
    profile = await consume_login_token(db, body.token_hash)

    replay = ReplayResponse()
    cookie = request.cookies.get(settings.anon_cookie_name)
    if cookie:
        report = await replay_pending(db, anon_store, profile.id, cookie)
        replay = ReplayResponse(
            guess_numbers=report.guess_numbers,
            bonus_unlocked=report.bonus_unlocked,
            errors=report.errors,
        )

    await db.refresh(profile)
    logger.info("session_established", player_id=profile.id, replayed=len(replay.guess_numbers))
    return SessionResponse(
        access_token=create_access_token(profile.id, profile.email),
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        player=_player_response(profile),
        replay=replay,
    )


@router.get("/me", response_model=PlayerResponse)
async def me(player: Profile = Depends(get_current_player)) -> PlayerResponse:
    """Get the signed-in player's profile."""
    return _player_response(player)


@router.get("/unsubscribe", response_class=HTMLResponse)
async def unsubscribe_link(
    email: str = Query(..., min_length=3, max_length=320),
    db: AsyncSession = Depends(get_session),
) -> HTMLResponse:
    """One-click marketing unsubscribe. Always answers with a page."""
    found = await unsubscribe(db, email)
    status = 200 if found else 404
    message = (
        f"{escape(email.lower())} has been unsubscribed from Satoshi Daily emails."
        if found
        else "We could not find that email address."
    )
    return HTMLResponse(
        status_code=status,
        content=(
            "<!DOCTYPE html><html lang=\"en\"><head><meta charset=\"UTF-8\">"
            "<title>Satoshi Daily</title></head>"
            f"<body style=\"font-family: sans-serif; text-align: center; padding: 48px;\"><p>{message}</p></body></html>"
        ),
    )

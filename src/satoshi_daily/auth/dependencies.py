"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
import structlog
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from satoshi_daily.auth.jwt import verify_token
from satoshi_daily.auth.service import get_profile_by_id
from satoshi_daily.database import get_session
from satoshi_daily.db.models import Profile

_bearer = HTTPBearer()
_optional_bearer = HTTPBearer(auto_error=False)


async def _profile_from_token(db: AsyncSession, token: str) -> Profile:
    try:
        payload = verify_token(token, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    profile = await get_profile_by_id(db, str(payload["sub"]))
    if profile is None:
        raise HTTPException(status_code=401, detail="Player not found")
    structlog.contextvars.bind_contextvars(player_id=profile.id)
    return profile


async def get_current_player(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> Profile:
    """Extract and verify JWT, return the Profile. Raises 401 on failure."""
    return await _profile_from_token(db, credentials.credentials)


async def get_optional_player(
    credentials: HTTPAuthorizationCredentials | None = Security(_optional_bearer),
    db: AsyncSession = Depends(get_session),
) -> Profile | None:
    """
    Same as get_current_player, but signed-out requests yield None.

    A present but invalid token is still rejected with 401.
    """
    if credentials is None:
        return None
    return await _profile_from_token(db, credentials.credentials)

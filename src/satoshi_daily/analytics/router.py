"""Page view ingestion for the operator overview."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from satoshi_daily.auth.dependencies import get_optional_player
from satoshi_daily.database import get_session
from satoshi_daily.db import store
from satoshi_daily.db.models import Profile
from satoshi_daily.game.day_utils import utc_now

router = APIRouter(prefix="/api/v1", tags=["Analytics"])


class PageViewRequest(BaseModel):
    page: str = Field(..., min_length=1, max_length=128)
    referrer: str | None = Field(None, max_length=2048)


@router.post("/page-views", status_code=204)
async def record_page_view(
    body: PageViewRequest,
    request: Request,
    player: Profile | None = Depends(get_optional_player),
    db: AsyncSession = Depends(get_session),
) -> None:
    user_agent = request.headers.get("user-agent")
    await store.insert_page_view(
        db,
        body.page,
        utc_now(),
        player_id=player.id if player else None,
        referrer=body.referrer,
        user_agent=user_agent[:512] if user_agent else None,
    )
    await db.commit()

"""Operator API: seeding, settlement trigger, payouts, overview.

Every route requires ``X-Operator-Key`` matching ``OPERATOR_API_KEY``. An
empty key disables the operator API entirely.
"""

from __future__ import annotations

import secrets

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from satoshi_daily.admin.schemas import (
    OverviewResponse,
    PayoutRequest,
    PayoutResponse,
    SeedResponse,
    SettlementOutcomeResponse,
    SettleResponse,
)
from satoshi_daily.admin.service import get_overview, record_winner_payout
from satoshi_daily.config import get_settings
from satoshi_daily.database import get_session, get_session_factory
from satoshi_daily.dependencies import get_operator_notifier, get_price_oracle
from satoshi_daily.predictions.service import seed_today_and_tomorrow
from satoshi_daily.pricing.oracle import PriceOracle
from satoshi_daily.settlement.notifier import OperatorNotifier
from satoshi_daily.settlement.service import run_settlement_tick


async def require_operator(x_operator_key: str | None = Header(None)) -> None:
    expected = get_settings().operator_api_key
    if not expected or not x_operator_key or not secrets.compare_digest(x_operator_key, expected):
        raise HTTPException(status_code=403, detail="Operator key required")


router = APIRouter(prefix="/api/v1/admin", tags=["Operator"], dependencies=[Depends(require_operator)])


@router.post("/seed", response_model=SeedResponse)
async def seed(db: AsyncSession = Depends(get_session)) -> SeedResponse:
    """Seed today's and tomorrow's target times. Idempotent."""
    return SeedResponse(seeded=await seed_today_and_tomorrow(db))


@router.post("/settle", response_model=SettleResponse)
async def settle(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    oracle: PriceOracle = Depends(get_price_oracle),
    notifier: OperatorNotifier = Depends(get_operator_notifier),
) -> SettleResponse:
    """Run one settlement tick now."""
    outcomes = await run_settlement_tick(session_factory, oracle, notifier)
    return SettleResponse(outcomes=[SettlementOutcomeResponse.model_validate(o) for o in outcomes])


@router.post("/winners/{winner_id}/payout", response_model=PayoutResponse)
async def payout(
    winner_id: int,
    body: PayoutRequest,
    db: AsyncSession = Depends(get_session),
) -> PayoutResponse:
    """Record an out-of-band Lightning payout for a winner."""
    winner = await record_winner_payout(db, winner_id, body.tx_id, body.tx_url)
    if winner is None:
        raise HTTPException(status_code=404, detail="Winner not found")
    return PayoutResponse.model_validate(winner)


@router.get("/overview", response_model=OverviewResponse)
async def overview(db: AsyncSession = Depends(get_session)) -> OverviewResponse:
    """Traffic, participation and yesterday's result at a glance."""
    return OverviewResponse.model_validate(await get_overview(db))

"""Schemas for operator endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class PayoutRequest(BaseModel):
    tx_id: str = Field(..., min_length=1, max_length=128)
    tx_url: str | None = Field(None, max_length=2048)


class PayoutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    game_date: date
    player_id: str
    prize_share: float
    tx_id: str | None
    tx_url: str | None
    paid_at: datetime | None


class SeedResponse(BaseModel):
    seeded: list[date]


class SettlementOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    game_date: date
    status: str
    actual_price: int | None = None
    winners: int = 0
    notified: bool = False


class SettleResponse(BaseModel):
    outcomes: list[SettlementOutcomeResponse]


class YesterdaySummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    game_date: str
    target_label: str | None
    actual_price: int | None
    players: int
    predictions: int
    closest_prediction: int | None
    closest_difference: int | None
    winners: int


class OverviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    page_views_total: int
    page_views_today: int
    predictions_total: int
    predictions_today: int
    profiles_total: int
    yesterday: YesterdaySummaryResponse

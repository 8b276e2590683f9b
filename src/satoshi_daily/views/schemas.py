"""Pydantic schemas for read-view responses."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Leaderboard ---


class LeaderboardEntryResponse(_FromAttributes):
    rank: int
    masked_email: str
    predicted_price: int
    difference: int
    accuracy: float


class LeaderboardResponse(_FromAttributes):
    game_date: date
    preliminary: bool
    reference_price: int | None
    total_players: int
    entries: list[LeaderboardEntryResponse]


# --- Recap ---


class RecapResponse(_FromAttributes):
    game_date: date
    status: str
    target_label: str | None = None
    actual_price: int | None = None
    predictions: list[int] = []
    best_prediction: int | None = None
    difference: int | None = None
    accuracy: float | None = None
    accuracy_tier: str | None = None
    rank: int | None = None
    rank_ordinal: str | None = None
    total_players: int = 0
    is_winner: bool = False
    prize_tier: str | None = None
    prize_share: float | None = None


# --- History ---


class PastResultResponse(_FromAttributes):
    game_date: date
    actual_price: int
    players: int
    closest_prediction: int | None
    closest_difference: int | None
    winner_count: int


class RecentPredictionResponse(_FromAttributes):
    masked_email: str
    predicted_price: int
    game_date: date
    created_at: datetime
    time_ago: str


class PreviousWinnerResponse(_FromAttributes):
    masked_email: str
    predicted_price: int
    difference: int
    prize_tier: str
    prize_share: float
    tx_id: str | None
    tx_url: str | None
    paid: bool


class PreviousWinnersDayResponse(_FromAttributes):
    game_date: date
    actual_price: int
    winners: list[PreviousWinnerResponse]

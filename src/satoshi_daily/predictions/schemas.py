"""Pydantic schemas for game and prediction endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


# --- Target time ---


class TargetTimeResponse(BaseModel):
    game_date: date
    target_hour: int
    target_minute: int
    target_label: str
    target_instant: datetime


class GameTodayResponse(BaseModel):
    game_date: date
    target_hour: int
    target_minute: int
    target_label: str
    target_instant: datetime
    locked: bool
    actual_price: int | None = None
    recorded_at: datetime | None = None
    tomorrow: TargetTimeResponse


# --- Submissions ---


class PredictionRequest(BaseModel):
    game_date: date
    price: int | float = Field(..., description="Whole USD")


class PredictionResponse(BaseModel):
    game_date: date
    predicted_price: int
    guess_number: int
    pending: bool = False
    guesses_left: int
    created_at: datetime


class PredictionEntry(BaseModel):
    guess_number: int
    predicted_price: int
    created_at: datetime


class MyPredictionsResponse(BaseModel):
    game_date: date
    authenticated: bool
    predictions: list[PredictionEntry]
    pending: PredictionEntry | None = None
    bonus_unlocked: bool
    max_guesses: int
    guesses_left: int


class BonusUnlockRequest(BaseModel):
    game_date: date
    platform: str = Field("x", min_length=1, max_length=32)


class BonusUnlockResponse(BaseModel):
    game_date: date
    platform: str
    pending: bool = False
    max_guesses: int

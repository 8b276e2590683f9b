"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field, field_validator


class SignInRequest(BaseModel):
    """Captcha-gated sign-in. New emails create a profile."""

    email: EmailStr
    marketing_consent: bool = False
    captcha_token: str = Field(..., min_length=1, max_length=4096)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class SignInResponse(BaseModel):
    """One-time artefact to exchange at /auth/session."""

    token_hash: str
    existing: bool


class SessionRequest(BaseModel):
    token_hash: str = Field(..., min_length=16, max_length=256)


class PlayerResponse(BaseModel):
    id: str
    email: str
    marketing_consent: bool
    current_streak: int
    last_played_date: date | None = None
    created_at: datetime


class ReplayResponse(BaseModel):
    """Outcome of replaying the browser's anonymous guess and unlock."""

    guess_numbers: list[int] = []
    bonus_unlocked: bool = False
    errors: list[str] = []


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    player: PlayerResponse
    replay: ReplayResponse

"""ORM models for the settlement engine.

These mirror the tables created by the Alembic migration in
``alembic/versions``. Ownership: predictions and bonus unlocks are only
written by the submission service; ``actual_price``, winners and streak
fields only by the settlement worker.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from satoshi_daily.db.base import Base, BigIntPK


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------


class Profile(Base):
    """One per authenticated player. Never deleted, only marked non-consenting."""

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("current_streak >= 0", name="profiles_streak_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    marketing_consent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    consent_timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_played_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    predictions: Mapped[list[Prediction]] = relationship("Prediction", back_populates="player")


class LoginToken(Base):
    """One-time authentication artefact. Only the SHA-256 of the artefact is stored."""

    __tablename__ = "login_tokens"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    profile_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Game days
# ---------------------------------------------------------------------------


class DailyResult(Base):
    """One row per game date. ``actual_price`` is written exactly once."""

    __tablename__ = "daily_results"
    __table_args__ = (
        CheckConstraint("target_hour BETWEEN 0 AND 23", name="daily_results_hour_range"),
        CheckConstraint("target_minute BETWEEN 0 AND 59", name="daily_results_minute_range"),
        CheckConstraint(
            "(actual_price IS NULL) = (recorded_at IS NULL)",
            name="daily_results_price_recorded_together",
        ),
        CheckConstraint("settled_at IS NULL OR actual_price IS NOT NULL", name="daily_results_settled_after_price"),
    )

    game_date: Mapped[date] = mapped_column(Date, primary_key=True)
    target_hour: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    target_minute: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    actual_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    recorded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    price_sources: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_resolved(self) -> bool:
        return self.actual_price is not None


class Prediction(Base):
    """Immutable guess. Guess numbers per (player, date) are 1..n, contiguous."""

    __tablename__ = "predictions"
    __table_args__ = (
        UniqueConstraint("player_id", "game_date", "guess_number", name="predictions_player_date_guess_key"),
        CheckConstraint("guess_number BETWEEN 1 AND 3", name="predictions_guess_number_range"),
        CheckConstraint("predicted_price > 0", name="predictions_price_positive"),
        Index("idx_predictions_game_date", "game_date"),
        Index("idx_predictions_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    game_date: Mapped[date] = mapped_column(Date, ForeignKey("daily_results.game_date"), nullable=False)
    predicted_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    guess_number: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    player: Mapped[Profile] = relationship("Profile", back_populates="predictions")


class BonusUnlock(Base):
    """Social-share gate redeemed for a (player, date); enables guess 3."""

    __tablename__ = "bonus_unlocks"
    __table_args__ = (
        UniqueConstraint("player_id", "game_date", name="bonus_unlocks_player_date_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    game_date: Mapped[date] = mapped_column(Date, nullable=False)
    platform: Mapped[str] = mapped_column(String(32), nullable=False, server_default="x")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Winner(Base):
    """Winning (player, date). ``actual_price`` is copied for auditability."""

    __tablename__ = "winners"
    __table_args__ = (
        UniqueConstraint("game_date", "player_id", name="winners_date_player_key"),
        Index("idx_winners_game_date", "game_date"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    game_date: Mapped[date] = mapped_column(Date, ForeignKey("daily_results.game_date"), nullable=False)
    player_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    prediction_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("predictions.id"), nullable=False)
    predicted_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    actual_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    difference: Mapped[int] = mapped_column(BigInteger, nullable=False)
    accuracy: Mapped[float] = mapped_column(Float, nullable=False)
    prize_tier: Mapped[str] = mapped_column(String(16), nullable=False)
    prize_share: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    tx_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    tx_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    player: Mapped[Profile] = relationship("Profile")


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


class PageView(Base):
    """Append-only page view record."""

    __tablename__ = "page_views"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    page: Mapped[str] = mapped_column(String(128), nullable=False)
    player_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    referrer: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

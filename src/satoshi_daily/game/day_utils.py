"""Game-date helpers. All game dates are UTC calendar days."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from stores without tz support."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def game_date_for(now: datetime | None = None) -> date:
    """The game date that ``now`` falls in."""
    if now is None:
        now = utc_now()
    return ensure_utc(now).date()


def get_today(now: datetime | None = None) -> date:
    return game_date_for(now)


def get_yesterday(now: datetime | None = None) -> date:
    return game_date_for(now) - timedelta(days=1)


def get_tomorrow(now: datetime | None = None) -> date:
    return game_date_for(now) + timedelta(days=1)


def previous_day(game_date: date) -> date:
    return game_date - timedelta(days=1)


def parse_game_date(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string.

    Raises:
        ValueError: If the value is not an ISO calendar date.
    """
    if len(value) != 10:
        msg = f"Invalid game date: {value!r}"
        raise ValueError(msg)
    return date.fromisoformat(value)

"""Display helpers shared by read views and the operator email."""

from __future__ import annotations

from datetime import datetime

from satoshi_daily.game.day_utils import ensure_utc


def mask_email(email: str) -> str:
    """'satoshi@gmx.com' -> 'sa***@gmx.com'; a one-char local part keeps that char."""
    local, _, domain = email.partition("@")
    return f"{local[:2]}***@{domain}"


def format_usd(value: int | float) -> str:
    """'$100,005' with no decimals."""
    return f"${round(value):,}"


def ordinal(n: int) -> str:
    """1 -> '1st', 12 -> '12th', 23 -> '23rd'."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def time_ago(then: datetime, now: datetime) -> str:
    """Coarse relative time used by the recent-predictions feed."""
    seconds = (ensure_utc(now) - ensure_utc(then)).total_seconds()
    minutes = int(seconds // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"

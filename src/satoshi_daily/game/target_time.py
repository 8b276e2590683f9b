"""Deterministic target time per game date.

Every host (and every browser) derives the same instant from the date
alone, so tomorrow's countdown needs no network round-trip. The hash is
not cryptographic; it only has to be identical everywhere, which is why
it reproduces the classic 32-bit ``(h << 5) - h + c`` string hash over
UTF-16 code units.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import NamedTuple

from satoshi_daily.config import Settings, get_settings

DEFAULT_SEED = "satoshi"
DEFAULT_HOUR_MIN = 3
DEFAULT_HOUR_SPAN = 18


class TargetTime(NamedTuple):
    hour: int
    minute: int

    @property
    def formatted(self) -> str:
        """'14:05 UTC' style label."""
        return f"{self.hour:02d}:{self.minute:02d} UTC"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x1_0000_0000 if value & 0x8000_0000 else value


def _utf16_code_units(text: str) -> list[int]:
    raw = text.encode("utf-16-le")
    return [int.from_bytes(raw[i:i + 2], "little") for i in range(0, len(raw), 2)]


def string_hash(text: str) -> int:
    """32-bit signed string hash, truncated after every step."""
    acc = 0
    for unit in _utf16_code_units(text):
        acc = _to_int32((acc << 5) - acc + unit)
    return acc


def target_time(
    date_str: str,
    hour_min: int = DEFAULT_HOUR_MIN,
    hour_span: int = DEFAULT_HOUR_SPAN,
    seed: str = DEFAULT_SEED,
) -> TargetTime:
    """Map a ``YYYY-MM-DD`` date string to its (hour, minute) UTC.

    Hours fall in ``[hour_min, hour_min + hour_span)``, i.e. 03:00-20:59 UTC
    with the defaults.
    """
    # Validates the format; the hash itself is over the raw string.
    date.fromisoformat(date_str)
    h = string_hash(date_str + seed)
    hour = abs(h) % hour_span + hour_min
    minute = abs(h * 31) % 60
    return TargetTime(hour, minute)


def target_time_for(game_date: date, settings: Settings | None = None) -> TargetTime:
    """Target time for a ``date`` using the configured hour window."""
    if settings is None:
        settings = get_settings()
    return target_time(
        game_date.isoformat(),
        hour_min=settings.target_hour_min,
        hour_span=settings.target_hour_span,
        seed=settings.target_seed,
    )


def target_instant(game_date: date, hour: int, minute: int) -> datetime:
    """The UTC instant at which the given game date settles."""
    return datetime.combine(game_date, time(hour, minute), tzinfo=timezone.utc)

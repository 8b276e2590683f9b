"""Deterministic scoring: best prediction, winners, tiers, prize split.

Players are ranked by absolute difference to the official price, then by
earliest submission. Each player's best prediction is their closest
guess; ties go to the earliest guess number.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

MAX_PREDICTED_PRICE = 999_999_999

TIER_EXACT = "exact"
TIER_WITHIN_100 = "within_100"
TIER_WITHIN_500 = "within_500"

# Shown instead of 1.0 for any miss, however small.
ACCURACY_DISPLAY_CAP = 0.999

_CENT = Decimal("0.01")


def calculate_accuracy(predicted: int | float, actual: int | float | Decimal) -> float:
    """Accuracy in [0, 1]; exactly 1.0 only when the difference is zero."""
    actual_f = float(actual)
    if actual_f <= 0:
        return 0.0
    difference = abs(float(predicted) - actual_f)
    if difference == 0:
        return 1.0
    raw = max(0.0, 1 - difference / actual_f)
    return min(raw, ACCURACY_DISPLAY_CAP)


def accuracy_tier(accuracy: float) -> str:
    """Display tier used by the recap card.

    legendary  >= 99.9%
    bullseye   >= 99.5%
    onfire     >= 99.0%
    solid      >= 95.0%
    keepgoing  otherwise
    """
    if accuracy >= 0.999:
        return "legendary"
    elif accuracy >= 0.995:
        return "bullseye"
    elif accuracy >= 0.99:
        return "onfire"
    elif accuracy >= 0.95:
        return "solid"
    else:
        return "keepgoing"


def prize_tier(difference: int) -> str:
    """Qualitative bucket for a winning difference. Does not affect the share."""
    if difference <= 1:
        return TIER_EXACT
    elif difference <= 100:
        return TIER_WITHIN_100
    return TIER_WITHIN_500


def is_winning_difference(difference: int, threshold: int) -> bool:
    """Fixed-dollar win predicate: off by at most ``threshold`` USD."""
    return difference <= threshold


def split_prize_pool(pool: Decimal, winner_count: int) -> Decimal:
    """Equal share per winner rounded to cents; residual cents stay unassigned."""
    if winner_count <= 0:
        return Decimal("0.00")
    return (Decimal(pool) / winner_count).quantize(_CENT, rounding=ROUND_HALF_UP)


def round_usd(value: float | Decimal) -> int:
    """Round half-up to whole dollars."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def pick_best_predictions(predictions: Iterable[Any], actual: int) -> dict[Any, Any]:
    """Closest prediction per player; earliest guess number wins ties.

    Accepts any objects exposing ``player_id``, ``predicted_price`` and
    ``guess_number`` (ORM rows in practice).
    """
    best: dict[Any, Any] = {}
    for p in sorted(predictions, key=lambda p: (str(p.player_id), p.guess_number)):
        diff = abs(int(p.predicted_price) - actual)
        current = best.get(p.player_id)
        if current is None or diff < abs(int(current.predicted_price) - actual):
            best[p.player_id] = p
    return best


@dataclass
class RankedEntry:
    player_id: Any
    prediction: Any
    difference: int
    accuracy: float
    rank: int = 0


_FAR_FUTURE = datetime(2099, 12, 31, 23, 59, 59)


def rank_best_predictions(best: dict[Any, Any], actual: int) -> list[RankedEntry]:
    """Rank best predictions: difference ASC, then earliest created_at ASC."""

    def sort_key(entry: RankedEntry) -> tuple[int, datetime, str]:
        created = getattr(entry.prediction, "created_at", None) or _FAR_FUTURE
        return (entry.difference, created.replace(tzinfo=None), str(entry.player_id))

    entries = [
        RankedEntry(
            player_id=player_id,
            prediction=p,
            difference=abs(int(p.predicted_price) - actual),
            accuracy=calculate_accuracy(p.predicted_price, actual),
        )
        for player_id, p in best.items()
    ]
    entries.sort(key=sort_key)
    for idx, entry in enumerate(entries):
        entry.rank = idx + 1
    return entries

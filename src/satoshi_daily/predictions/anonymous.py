"""Pending guesses from browsers that have not signed in yet.

An anonymous guess never becomes a Prediction row directly. It is parked
in Redis under the browser's cookie for the game date and replayed
through the normal submission path once the browser authenticates.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

ANON_GUESS_PREFIX = "anon_guess"
ANON_BONUS_PREFIX = "anon_bonus"


@dataclass
class PendingGuess:
    game_date: date
    predicted_price: int
    submitted_at: datetime


def _guess_key(cookie: str, game_date: date) -> str:
    return f"{ANON_GUESS_PREFIX}:{cookie}:{game_date.isoformat()}"


def _bonus_key(cookie: str, game_date: date) -> str:
    return f"{ANON_BONUS_PREFIX}:{cookie}:{game_date.isoformat()}"


class AnonymousGuessStore:
    """Redis-backed pending store keyed by (cookie, game date)."""

    def __init__(self, redis: Any, ttl_seconds: int) -> None:
        self._redis = redis
        self.ttl_seconds = ttl_seconds

    async def hold_guess(self, cookie: str, guess: PendingGuess) -> bool:
        """Park the guess. False if this browser already holds one for the date."""
        payload = json.dumps({
            "game_date": guess.game_date.isoformat(),
            "predicted_price": guess.predicted_price,
            "submitted_at": guess.submitted_at.isoformat(),
        })
        stored = await self._redis.set(
            _guess_key(cookie, guess.game_date), payload, nx=True, ex=self.ttl_seconds,
        )
        return bool(stored)

    async def get_guess(self, cookie: str, game_date: date) -> PendingGuess | None:
        raw = await self._redis.get(_guess_key(cookie, game_date))
        if raw is None:
            return None
        data = json.loads(raw)
        return PendingGuess(
            game_date=date.fromisoformat(data["game_date"]),
            predicted_price=int(data["predicted_price"]),
            submitted_at=datetime.fromisoformat(data["submitted_at"]),
        )

    async def hold_bonus(self, cookie: str, game_date: date, platform: str) -> bool:
        """Park a share-unlock. False if already held for the date."""
        stored = await self._redis.set(
            _bonus_key(cookie, game_date), platform, nx=True, ex=self.ttl_seconds,
        )
        return bool(stored)

    async def get_bonus(self, cookie: str, game_date: date) -> str | None:
        return await self._redis.get(_bonus_key(cookie, game_date))

    async def discard(self, cookie: str, game_date: date) -> None:
        await self._redis.delete(_guess_key(cookie, game_date), _bonus_key(cookie, game_date))

"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator
from typing import Any

from fastapi import Depends

from satoshi_daily.auth.captcha import CaptchaVerifier
from satoshi_daily.config import get_settings
from satoshi_daily.predictions.anonymous import AnonymousGuessStore
from satoshi_daily.pricing.oracle import PriceOracle
from satoshi_daily.redis_client import get_redis as _get_redis
from satoshi_daily.settlement.notifier import OperatorNotifier


async def get_redis_dep() -> AsyncGenerator[Any, None]:
    """Yield the Redis client as a FastAPI dependency."""
    yield _get_redis()


async def get_price_oracle() -> AsyncGenerator[PriceOracle, None]:
    """Yield a price oracle with a request-scoped HTTP client."""
    async with PriceOracle.from_settings() as oracle:
        yield oracle


def get_anon_store(redis: Any = Depends(get_redis_dep)) -> AnonymousGuessStore:
    """Pending anonymous guesses, keyed by browser cookie."""
    return AnonymousGuessStore(redis, ttl_seconds=get_settings().anon_guess_ttl_seconds)


def get_captcha_verifier() -> CaptchaVerifier:
    return CaptchaVerifier.from_settings()


def get_operator_notifier() -> OperatorNotifier:
    return OperatorNotifier()

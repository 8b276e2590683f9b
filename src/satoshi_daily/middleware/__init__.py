"""Middleware registration."""

from fastapi import FastAPI

from satoshi_daily.config import Settings
from satoshi_daily.middleware.cors import setup_cors
from satoshi_daily.middleware.error_handler import setup_error_handlers
from satoshi_daily.middleware.logging import setup_logging
from satoshi_daily.middleware.rate_limit import RateLimitMiddleware
from satoshi_daily.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    Starlette runs middleware in reverse-add order (last added = outermost).
    CORS is added last so it also wraps 429 responses.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        submit_requests_per_window=settings.rate_limit_submit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)

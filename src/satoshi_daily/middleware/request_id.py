"""Request ID middleware: generates or propagates X-Request-Id."""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from satoshi_daily.game.day_utils import game_date_for


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Ensure every request carries an X-Request-Id.

    Each request's log context also carries the game date it was served
    under, so events logged around the midnight rollover can be attributed
    to the right game. ``player_id`` is added later by the auth dependency.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            game_date=game_date_for().isoformat(),
        )
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

"""Redis-backed fixed window rate limiting middleware."""

import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from satoshi_daily.redis_client import get_redis

_EXEMPT_PATHS = frozenset({"/health", "/ready"})

# Writes that cost a captcha check or a guess get their own, smaller budget.
_SUBMIT_ROUTES = frozenset({
    ("POST", "/api/v1/predictions"),
    ("POST", "/api/v1/auth/signin"),
})


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests per IP using Redis counters."""

    def __init__(  # noqa: ANN401
        self,
        app: Any,
        requests_per_window: int = 100,
        window_seconds: int = 60,
        submit_requests_per_window: int = 20,
    ) -> None:
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.submit_requests_per_window = submit_requests_per_window
        self.window_seconds = window_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check rate limit, return 429 if exceeded."""
        path = request.url.path
        if path in _EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        window = int(time.time()) // self.window_seconds
        if (request.method, path) in _SUBMIT_ROUTES:
            rate_key = f"ratelimit:submit:{client_ip}:{window}"
            limit = self.submit_requests_per_window
        else:
            rate_key = f"ratelimit:{client_ip}:{window}"
            limit = self.requests_per_window

        try:
            redis = get_redis()
        except RuntimeError:
            # Redis not initialized, let the request through
            return await call_next(request)

        pipe = redis.pipeline()
        pipe.incr(rate_key)
        pipe.expire(rate_key, self.window_seconds + 1)
        results: list[Any] = await pipe.execute()

        current_count: int = results[0]
        remaining = max(0, limit - current_count)

        if current_count > limit:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={
                    "Retry-After": str(self.window_seconds),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(limit),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Limit"] = str(limit)
        return response

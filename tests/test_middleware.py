"""Middleware tests: request ID, rate limiting, CORS, error rendering."""

from datetime import datetime, timezone

import pytest
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from satoshi_daily.middleware.request_id import RequestIdMiddleware

TODAY = "2026-10-19"


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_rate_limit_headers(client: AsyncClient) -> None:
    response = await client.get("/version")
    assert response.headers["x-ratelimit-limit"] == "100"
    assert response.headers["x-ratelimit-remaining"] == "99"


@pytest.mark.asyncio
async def test_rate_limit_blocks_excess(client: AsyncClient) -> None:
    """101st request returns 429 with Retry-After header."""
    for _ in range(100):
        await client.get("/version")
    response = await client.get("/version")
    assert response.status_code == 429
    assert "retry-after" in response.headers
    assert "detail" in response.json()


@pytest.mark.asyncio
async def test_submissions_have_smaller_budget(client: AsyncClient) -> None:
    """Guess submissions share a 20-per-window budget separate from reads."""
    client.cookies.set("sd_anon", "browser-1")
    for _ in range(20):
        response = await client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 100_000})
        assert response.status_code != 429
        assert response.headers["x-ratelimit-limit"] == "20"
    response = await client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 100_000})
    assert response.status_code == 429

    # Reads are counted separately.
    assert (await client.get("/version")).status_code == 200


@pytest.mark.asyncio
async def test_health_exempt_from_rate_limit(client: AsyncClient) -> None:
    for _ in range(150):
        response = await client.get("/health")
        assert response.status_code == 200


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    response = await client.options(
        "/api/v1/predictions",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert response.headers["access-control-allow-credentials"] == "true"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.headers["content-type"] == "application/json"
    assert response.json()["detail"] == "Not Found"


@pytest.mark.asyncio
async def test_engine_error_carries_code(client: AsyncClient) -> None:
    response = await client.post("/api/v1/predictions", json={"game_date": TODAY, "price": -5})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "invalid_price"
    assert data["detail"].startswith("Prediction must be")


@pytest.mark.asyncio
async def test_validation_error_lists_fields(client: AsyncClient) -> None:
    response = await client.post("/api/v1/predictions", json={"price": 100_000})
    assert response.status_code == 422
    data = response.json()
    assert data["detail"] == "Validation error"
    assert data["errors"][0]["loc"][-1] == "game_date"


@pytest.mark.asyncio
async def test_cors_preflight_rejects_operator_header(client: AsyncClient) -> None:
    response = await client.options(
        "/api/v1/admin/overview",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
            "Access-Control-Request-Headers": "X-Operator-Key",
        },
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_request_log_context_carries_game_date(clock) -> None:
    """Events logged while serving a request are tagged with its id and game date."""
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)

    @app.get("/context")
    async def context() -> dict[str, str]:
        return structlog.contextvars.get_contextvars()

    clock.now = datetime(2026, 10, 19, 23, 59, 59, tzinfo=timezone.utc)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/context", headers={"X-Request-Id": "req-1"})
    assert response.json() == {"request_id": "req-1", "game_date": "2026-10-19"}

"""End-to-end tests over the HTTP API with in-memory storage."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from satoshi_daily.db.models import Winner

TODAY = "2026-10-19"


class TestGameEndpoints:
    @pytest.mark.asyncio
    async def test_today(self, client):
        response = await client.get("/api/v1/game/today")
        assert response.status_code == 200
        data = response.json()
        assert data["game_date"] == TODAY
        assert (data["target_hour"], data["target_minute"]) == (19, 40)
        assert data["target_label"] == "19:40 UTC"
        assert data["locked"] is False
        assert data["actual_price"] is None
        assert data["tomorrow"]["game_date"] == "2026-10-20"
        assert data["tomorrow"]["target_label"] == "11:26 UTC"

    @pytest.mark.asyncio
    async def test_locked_at_target(self, client, clock):
        clock.now = datetime(2026, 10, 19, 19, 40, tzinfo=timezone.utc)
        response = await client.get("/api/v1/game/today")
        assert response.json()["locked"] is True

    @pytest.mark.asyncio
    async def test_target_for_date(self, client):
        response = await client.get("/api/v1/game/target/2025-02-14")
        assert response.status_code == 200
        assert response.json()["target_label"] == "14:05 UTC"

    @pytest.mark.asyncio
    async def test_target_bad_date(self, client):
        response = await client.get("/api/v1/game/target/2025-13-01")
        assert response.status_code == 422


class TestAuthEndpoints:
    @pytest.mark.asyncio
    async def test_sign_in_and_me(self, client, sign_in):
        data = await sign_in(client)
        assert data["token_type"] == "bearer"
        assert data["player"]["email"] == "satoshi@gmx.com"
        assert data["replay"] == {"guess_numbers": [], "bonus_unlocked": False, "errors": []}

        me = await client.get("/api/v1/auth/me")
        assert me.status_code == 200
        assert me.json()["marketing_consent"] is True

    @pytest.mark.asyncio
    async def test_captcha_failure(self, client):
        response = await client.post(
            "/api/v1/auth/signin",
            json={"email": "satoshi@gmx.com", "captcha_token": "bad"},
        )
        assert response.status_code == 403
        assert response.json()["code"] == "captcha_failed"

    @pytest.mark.asyncio
    async def test_artefact_used_once(self, client):
        signin = await client.post(
            "/api/v1/auth/signin",
            json={"email": "satoshi@gmx.com", "captcha_token": "ok"},
        )
        token_hash = signin.json()["token_hash"]
        first = await client.post("/api/v1/auth/session", json={"token_hash": token_hash})
        assert first.status_code == 200
        second = await client.post("/api/v1/auth/session", json={"token_hash": token_hash})
        assert second.status_code == 401
        assert second.json()["code"] == "invalid_login_token"

    @pytest.mark.asyncio
    async def test_existing_flag(self, client, sign_in):
        await sign_in(client)
        again = await client.post(
            "/api/v1/auth/signin",
            json={"email": "satoshi@gmx.com", "captcha_token": "ok"},
        )
        assert again.json()["existing"] is True

    @pytest.mark.asyncio
    async def test_invalid_email(self, client):
        response = await client.post(
            "/api/v1/auth/signin",
            json={"email": "not-an-email", "captcha_token": "ok"},
        )
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_bad_token(self, client):
        response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unsubscribe(self, client, sign_in):
        await sign_in(client)
        found = await client.get("/api/v1/auth/unsubscribe", params={"email": "satoshi@gmx.com"})
        assert found.status_code == 200
        assert "unsubscribed" in found.text
        missing = await client.get("/api/v1/auth/unsubscribe", params={"email": "nobody@gmx.com"})
        assert missing.status_code == 404


class TestPredictionEndpoints:
    @pytest.mark.asyncio
    async def test_two_guesses_then_bonus(self, authed_client):
        first = await authed_client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 100_000})
        assert first.status_code == 201
        assert first.json()["guess_number"] == 1
        assert first.json()["guesses_left"] == 1

        second = await authed_client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 101_000})
        assert second.json()["guesses_left"] == 0

        third = await authed_client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 102_000})
        assert third.status_code == 409
        assert third.json()["code"] == "no_guesses_left"

        unlock = await authed_client.post("/api/v1/bonus-unlocks", json={"game_date": TODAY})
        assert unlock.status_code == 201
        assert unlock.json()["max_guesses"] == 3

        again = await authed_client.post("/api/v1/bonus-unlocks", json={"game_date": TODAY})
        assert again.status_code == 409
        assert again.json()["code"] == "already_unlocked"

        third = await authed_client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 102_000})
        assert third.status_code == 201
        assert third.json()["guess_number"] == 3

        mine = await authed_client.get("/api/v1/predictions/mine")
        data = mine.json()
        assert data["authenticated"] is True
        assert [p["predicted_price"] for p in data["predictions"]] == [100_000, 101_000, 102_000]
        assert data["bonus_unlocked"] is True
        assert data["guesses_left"] == 0

    @pytest.mark.asyncio
    async def test_invalid_price(self, authed_client):
        response = await authed_client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 2.5})
        assert response.status_code == 422
        assert response.json()["code"] == "invalid_price"

    @pytest.mark.asyncio
    async def test_wrong_date(self, authed_client):
        response = await authed_client.post(
            "/api/v1/predictions", json={"game_date": "2026-10-20", "price": 100_000}
        )
        assert response.status_code == 409
        assert response.json()["code"] == "wrong_date"

    @pytest.mark.asyncio
    async def test_game_closed(self, authed_client, clock):
        clock.now = datetime(2026, 10, 19, 19, 40, tzinfo=timezone.utc)
        response = await authed_client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 100_000})
        assert response.status_code == 409
        assert response.json()["code"] == "game_closed"


class TestAnonymousPlay:
    @pytest.mark.asyncio
    async def test_cookie_is_minted(self, client):
        response = await client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 100_000})
        assert response.status_code == 201
        assert response.json()["pending"] is True
        assert "sd_anon" in response.cookies

    @pytest.mark.asyncio
    async def test_single_pending_guess(self, client):
        client.cookies.set("sd_anon", "browser-1")
        first = await client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 100_000})
        assert first.status_code == 201
        second = await client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 101_000})
        assert second.status_code == 409
        assert second.json()["code"] == "no_guesses_left"

        mine = await client.get("/api/v1/predictions/mine")
        data = mine.json()
        assert data["authenticated"] is False
        assert data["pending"]["predicted_price"] == 100_000
        assert data["guesses_left"] == 0

    @pytest.mark.asyncio
    async def test_guess_replayed_at_sign_in(self, client, sign_in, fake_redis):
        client.cookies.set("sd_anon", "browser-1")
        held = await client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 100_000})
        assert held.status_code == 201
        unlock = await client.post("/api/v1/bonus-unlocks", json={"game_date": TODAY, "platform": "x"})
        assert unlock.json()["pending"] is True

        data = await sign_in(client)
        assert data["replay"] == {"guess_numbers": [1], "bonus_unlocked": True, "errors": []}
        assert await fake_redis.get("anon_guess:browser-1:2026-10-19") is None

        second = await client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 101_000})
        assert second.json()["guess_number"] == 2
        assert second.json()["guesses_left"] == 1


class TestViewEndpoints:
    @pytest.mark.asyncio
    async def test_leaderboard_with_live_price(self, authed_client):
        await authed_client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 100_050})
        response = await authed_client.get("/api/v1/leaderboard/today", params={"live_price": 100_000})
        data = response.json()
        assert data["preliminary"] is True
        assert data["entries"][0]["masked_email"] == "sa***@gmx.com"
        assert data["entries"][0]["difference"] == 50

    @pytest.mark.asyncio
    async def test_recap_pending(self, authed_client):
        response = await authed_client.get("/api/v1/recap/yesterday")
        assert response.status_code == 200
        assert response.json()["status"] == "pending"

    @pytest.mark.asyncio
    async def test_empty_history(self, client):
        assert (await client.get("/api/v1/results/past")).json() == []
        assert (await client.get("/api/v1/winners/previous")).json() == []
        assert (await client.get("/api/v1/predictions/recent")).json() == []


class TestAdminEndpoints:
    HEADERS = {"X-Operator-Key": "test-operator-key"}

    @pytest.mark.asyncio
    async def test_requires_key(self, client):
        assert (await client.get("/api/v1/admin/overview")).status_code == 403
        wrong = await client.get("/api/v1/admin/overview", headers={"X-Operator-Key": "nope"})
        assert wrong.status_code == 403

    @pytest.mark.asyncio
    async def test_seed(self, client):
        response = await client.post("/api/v1/admin/seed", headers=self.HEADERS)
        assert response.status_code == 200
        assert response.json() == {"seeded": ["2026-10-19", "2026-10-20"]}

    @pytest.mark.asyncio
    async def test_settle_then_payout(self, authed_client, clock, notifier, session_factory):
        await authed_client.post("/api/v1/predictions", json={"game_date": TODAY, "price": 100_000})
        clock.now = datetime(2026, 10, 19, 20, 0, tzinfo=timezone.utc)

        settle = await authed_client.post("/api/v1/admin/settle", headers=self.HEADERS)
        assert settle.status_code == 200
        [outcome] = settle.json()["outcomes"]
        assert outcome["status"] == "settled"
        assert outcome["actual_price"] == 100_000
        assert outcome["winners"] == 1
        assert outcome["notified"] is True
        assert len(notifier.summaries) == 1

        rerun = await authed_client.post("/api/v1/admin/settle", headers=self.HEADERS)
        assert rerun.json()["outcomes"] == []

        overview = (await authed_client.get("/api/v1/admin/overview", headers=self.HEADERS)).json()
        assert overview["predictions_today"] == 1
        assert overview["profiles_total"] == 1

        async with session_factory() as db:
            winner_id = (await db.execute(select(Winner.id))).scalar_one()

        path = f"/api/v1/admin/winners/{winner_id}/payout"
        body = {"tx_id": "ln-tx-1", "tx_url": "https://mempool.space/tx/1"}
        paid = await authed_client.post(path, json=body, headers=self.HEADERS)
        assert paid.status_code == 200
        assert paid.json()["tx_id"] == "ln-tx-1"
        assert paid.json()["paid_at"] is not None

        again = await authed_client.post(path, json=body, headers=self.HEADERS)
        assert again.status_code == 409
        assert again.json()["code"] == "payout_already_recorded"

        missing = await authed_client.post("/api/v1/admin/winners/9999/payout", json=body, headers=self.HEADERS)
        assert missing.status_code == 404

        winners = (await authed_client.get("/api/v1/winners/previous")).json()
        assert winners[0]["winners"][0]["paid"] is True


class TestPageViews:
    @pytest.mark.asyncio
    async def test_recorded(self, client):
        response = await client.post("/api/v1/page-views", json={"page": "/", "referrer": "https://x.com"})
        assert response.status_code == 204
        overview = await client.get("/api/v1/admin/overview", headers={"X-Operator-Key": "test-operator-key"})
        assert overview.json()["page_views_today"] == 1

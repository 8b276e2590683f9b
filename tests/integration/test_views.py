"""Integration tests for the read views."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from satoshi_daily.admin.service import record_winner_payout
from satoshi_daily.db import store
from satoshi_daily.settlement.service import run_settlement_tick
from satoshi_daily.views.service import (
    past_results,
    previous_winners,
    recent_predictions,
    todays_leaderboard,
    yesterday_recap,
)
from fakes import FixedOracle, RecordingNotifier

TODAY = date(2026, 10, 19)
YESTERDAY = TODAY - timedelta(days=1)
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


async def _play(db, game_date, guesses, hour=14):
    await store.seed_daily_result(db, game_date, hour, 0, NOW)
    numbers: dict[str, int] = {}
    t0 = datetime.combine(game_date, datetime.min.time(), tzinfo=timezone.utc) + timedelta(hours=1)
    for i, (player_id, price) in enumerate(guesses):
        numbers[player_id] = numbers.get(player_id, 0) + 1
        await store.insert_prediction(db, player_id, game_date, price, numbers[player_id], t0 + timedelta(minutes=i))
    await db.commit()


@pytest_asyncio.fixture
async def players(make_player):
    return [
        await make_player("alice@gmx.com"),
        await make_player("bob@gmx.com"),
        await make_player("carol@gmx.com"),
    ]


@pytest_asyncio.fixture
async def settled_yesterday(db_session, session_factory, players):
    """Yesterday resolved at 100,000: alice exact, bob 400 off, carol 2,000 off."""
    a, b, c = players
    await _play(db_session, YESTERDAY, [(a, 100_000), (b, 99_600), (c, 102_000), (c, 98_000)])
    await run_settlement_tick(session_factory, FixedOracle(100_000), RecordingNotifier(), NOW)
    return players


class TestLeaderboard:
    @pytest.mark.asyncio
    async def test_preliminary_uses_live_price(self, db_session, players):
        a, b, c = players
        await _play(db_session, TODAY, [(a, 100_100), (b, 99_990), (c, 120_000)])
        view = await todays_leaderboard(db_session, live_price=100_000, size=2, now=NOW)
        assert view.preliminary is True
        assert view.reference_price == 100_000
        assert view.total_players == 3
        assert [(e.rank, e.masked_email, e.difference) for e in view.entries] == [
            (1, "bo***@gmx.com", 10),
            (2, "al***@gmx.com", 100),
        ]

    @pytest.mark.asyncio
    async def test_no_reference_price_means_no_ranking(self, db_session, players):
        a, _, _ = players
        await _play(db_session, TODAY, [(a, 100_100)])
        view = await todays_leaderboard(db_session, now=NOW)
        assert view.preliminary is True
        assert view.entries == []
        assert view.total_players == 1

    @pytest.mark.asyncio
    async def test_official_price_overrides_live(self, db_session, players):
        a, b, _ = players
        await _play(db_session, TODAY, [(a, 100_100), (b, 90_000)])
        await store.record_official_price(db_session, TODAY, 90_000, NOW)
        await db_session.commit()
        view = await todays_leaderboard(db_session, live_price=100_100, now=NOW)
        assert view.preliminary is False
        assert view.reference_price == 90_000
        assert view.entries[0].masked_email == "bo***@gmx.com"
        assert view.entries[0].accuracy == 1.0


class TestRecap:
    @pytest.mark.asyncio
    async def test_pending_until_resolved(self, db_session, players):
        a, _, _ = players
        await _play(db_session, YESTERDAY, [(a, 100_000)])
        recap = await yesterday_recap(db_session, a, NOW)
        assert recap.status == "pending"
        assert recap.actual_price is None

    @pytest.mark.asyncio
    async def test_winner(self, db_session, settled_yesterday):
        a, _, _ = settled_yesterday
        recap = await yesterday_recap(db_session, a, NOW)
        assert recap.status == "resolved"
        assert recap.actual_price == 100_000
        assert recap.rank == 1
        assert recap.rank_ordinal == "1st"
        assert recap.accuracy_tier == "legendary"
        assert recap.is_winner is True
        assert recap.prize_tier == "exact"
        assert recap.prize_share == Decimal("2.50")
        assert recap.target_label == "14:00 UTC"

    @pytest.mark.asyncio
    async def test_loser_sees_best_guess(self, db_session, settled_yesterday):
        _, _, c = settled_yesterday
        recap = await yesterday_recap(db_session, c, NOW)
        assert recap.predictions == [102_000, 98_000]
        assert recap.best_prediction == 102_000
        assert recap.difference == 2_000
        assert recap.rank == 3
        assert recap.total_players == 3
        assert recap.is_winner is False

    @pytest.mark.asyncio
    async def test_no_play(self, db_session, settled_yesterday, make_player):
        dave = await make_player("dave@gmx.com")
        recap = await yesterday_recap(db_session, dave, NOW)
        assert recap.status == "no_play"
        assert recap.actual_price == 100_000


class TestHistory:
    @pytest.mark.asyncio
    async def test_past_results(self, db_session, settled_yesterday):
        results = await past_results(db_session, 5)
        assert len(results) == 1
        day = results[0]
        assert (day.game_date, day.actual_price, day.players) == (YESTERDAY, 100_000, 3)
        assert (day.closest_prediction, day.closest_difference, day.winner_count) == (100_000, 0, 2)

    @pytest.mark.asyncio
    async def test_unresolved_days_are_not_history(self, db_session, players):
        a, _, _ = players
        await _play(db_session, TODAY, [(a, 100_000)])
        assert await past_results(db_session, 5) == []
        assert await previous_winners(db_session, 3) == []

    @pytest.mark.asyncio
    async def test_recent_predictions(self, db_session, players):
        a, b, _ = players
        await _play(db_session, TODAY, [(a, 100_000), (b, 101_000)])
        recent = await recent_predictions(db_session, limit=1, now=NOW)
        assert len(recent) == 1
        assert recent[0].masked_email == "bo***@gmx.com"
        assert recent[0].predicted_price == 101_000
        assert recent[0].time_ago == "10h ago"

    @pytest.mark.asyncio
    async def test_previous_winners_with_payout(self, db_session, settled_yesterday):
        winners_day = (await previous_winners(db_session, 3))[0]
        assert winners_day.game_date == YESTERDAY
        assert [w.masked_email for w in winners_day.winners] == ["al***@gmx.com", "bo***@gmx.com"]
        assert all(not w.paid for w in winners_day.winners)

        winner_id = (await store.winners_for_date(db_session, YESTERDAY))[0][0].id
        await record_winner_payout(db_session, winner_id, "ln-tx-1", "https://mempool.space/tx/1", NOW)

        winners_day = (await previous_winners(db_session, 3))[0]
        paid = winners_day.winners[0]
        assert paid.paid is True
        assert paid.tx_id == "ln-tx-1"


class TestPartiallySettledDay:
    """A priced day whose winners are not derived yet must not look final."""

    @pytest_asyncio.fixture
    async def priced_only(self, db_session, players):
        a, b, _ = players
        await _play(db_session, YESTERDAY, [(a, 100_000), (b, 100_300)])
        await store.record_official_price(db_session, YESTERDAY, 100_000, NOW, 3)
        await db_session.commit()
        return players

    @pytest.mark.asyncio
    async def test_recap_stays_pending(self, db_session, priced_only):
        a, _, _ = priced_only
        recap = await yesterday_recap(db_session, a, NOW)
        assert recap.status == "pending"
        assert recap.is_winner is False

    @pytest.mark.asyncio
    async def test_history_skips_the_day(self, db_session, priced_only):
        assert await past_results(db_session, 5) == []
        assert await previous_winners(db_session, 3) == []

    @pytest.mark.asyncio
    async def test_resumed_settlement_publishes_the_day(self, db_session, session_factory, priced_only):
        a, _, _ = priced_only
        oracle = FixedOracle(99_000)
        await run_settlement_tick(session_factory, oracle, RecordingNotifier(), NOW)
        assert oracle.calls == 0

        recap = await yesterday_recap(db_session, a, NOW)
        assert recap.status == "resolved"
        assert recap.actual_price == 100_000
        assert recap.is_winner is True
        [day] = await past_results(db_session, 5)
        assert day.winner_count == 2
        assert len((await previous_winners(db_session, 3))[0].winners) == 2

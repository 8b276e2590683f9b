"""Game date boundaries are UTC calendar days."""

from datetime import date, datetime, timedelta, timezone

import pytest

from satoshi_daily.game.day_utils import (
    ensure_utc,
    game_date_for,
    get_today,
    get_tomorrow,
    get_yesterday,
    parse_game_date,
    previous_day,
)


class TestGameDate:
    def test_midnight_starts_new_day(self):
        assert game_date_for(datetime(2026, 10, 19, 0, 0, tzinfo=timezone.utc)) == date(2026, 10, 19)

    def test_last_second_of_day(self):
        assert game_date_for(datetime(2026, 10, 19, 23, 59, 59, tzinfo=timezone.utc)) == date(2026, 10, 19)

    def test_local_offset_is_converted(self):
        """01:00 at UTC+2 is still the previous UTC day."""
        plus_two = timezone(timedelta(hours=2))
        assert game_date_for(datetime(2026, 10, 20, 1, 0, tzinfo=plus_two)) == date(2026, 10, 19)

    def test_neighbours(self):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert get_today(now) == date(2026, 1, 1)
        assert get_yesterday(now) == date(2025, 12, 31)
        assert get_tomorrow(now) == date(2026, 1, 2)
        assert previous_day(date(2026, 3, 1)) == date(2026, 2, 28)

    def test_ensure_utc_on_naive(self):
        assert ensure_utc(datetime(2026, 1, 1)).tzinfo == timezone.utc


class TestParseGameDate:
    def test_valid(self):
        assert parse_game_date("2026-10-19") == date(2026, 10, 19)

    @pytest.mark.parametrize("value", ["2026-1-19", "20261019", "2026-02-30", "not-a-date"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_game_date(value)

"""Tests for the session clock, calendar and activity z-scores."""

from datetime import date, datetime, timezone

import pytest

from confluencefx.strategy.market_context import (
    activity_zscores,
    build_market_context,
    classify_session,
    easter_sunday,
    forex_holidays,
    is_weekend,
    is_weekend_or_holiday,
    minutes_to_close,
    session_open,
    trading_day_start,
    zscore_last,
)
from confluencefx.strategy.models import Session


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# ── Calendar ─────────────────────────────────────────────────────────────


class TestCalendar:
    @pytest.mark.parametrize("year, expected", [
        (2024, date(2024, 3, 31)),
        (2025, date(2025, 4, 20)),
        (2026, date(2026, 4, 5)),
    ])
    def test_easter(self, year, expected):
        assert easter_sunday(year) == expected

    def test_holidays(self):
        holidays = forex_holidays(2025)
        assert date(2025, 1, 1) in holidays
        assert date(2025, 4, 18) in holidays  # Good Friday
        assert date(2025, 12, 25) in holidays
        assert date(2025, 7, 4) not in holidays

    def test_extra_holidays_filtered_by_year(self):
        holidays = forex_holidays(2025, extra=[date(2025, 12, 26), date(2026, 1, 2)])
        assert date(2025, 12, 26) in holidays
        assert date(2026, 1, 2) not in holidays

    @pytest.mark.parametrize("now, expected", [
        (_utc(2025, 3, 7, 20, 59), False),   # Friday before close
        (_utc(2025, 3, 7, 21, 0), True),     # Friday at close
        (_utc(2025, 3, 8, 12, 0), True),     # Saturday
        (_utc(2025, 3, 9, 20, 0), True),     # Sunday before re-open
        (_utc(2025, 3, 9, 21, 0), False),    # Sunday re-open
        (_utc(2025, 3, 5, 3, 0), False),     # Wednesday
    ])
    def test_weekend(self, now, expected):
        assert is_weekend(now) is expected

    def test_holiday_counts_as_closed(self):
        assert is_weekend_or_holiday(_utc(2025, 12, 25, 10)) is True
        assert is_weekend_or_holiday(_utc(2025, 12, 24, 10)) is False
        assert is_weekend_or_holiday(
            _utc(2025, 12, 24, 10), extra_holidays=[date(2025, 12, 24)]
        ) is True

    def test_naive_datetime_is_utc(self):
        assert is_weekend(datetime(2025, 3, 8, 12)) is True


# ── Session clock ────────────────────────────────────────────────────────


class TestSessions:
    @pytest.mark.parametrize("hour, expected", [
        (3, Session.TOKYO),
        (6, Session.TOKYO),
        (8, Session.LONDON),
        (12, Session.OVERLAP),
        (15, Session.OVERLAP),
        (16, Session.NEW_YORK),
        (20, Session.NEW_YORK),
        (22, Session.SYDNEY),
    ])
    def test_weekday_sessions(self, hour, expected):
        assert classify_session(_utc(2025, 3, 4, hour)) is expected

    def test_weekend_is_closed(self):
        assert classify_session(_utc(2025, 3, 8, 13)) is Session.CLOSED

    def test_trading_day_start(self):
        assert trading_day_start(_utc(2025, 3, 4, 10)) == _utc(2025, 3, 3, 21)
        assert trading_day_start(_utc(2025, 3, 4, 21)) == _utc(2025, 3, 4, 21)
        assert trading_day_start(_utc(2025, 3, 4, 10), close_hour=0) == _utc(2025, 3, 4, 0)

    @pytest.mark.parametrize("now, expected", [
        (_utc(2025, 3, 4, 19, 0), 120),
        (_utc(2025, 3, 4, 20, 30), 30),
        (_utc(2025, 3, 4, 21, 0), 1440),
        (_utc(2025, 3, 4, 3, 0), 1080),
    ])
    def test_minutes_to_close(self, now, expected):
        assert minutes_to_close(now) == expected

    @pytest.mark.parametrize("now, expected", [
        (_utc(2025, 3, 4, 13, 30), _utc(2025, 3, 4, 12)),
        (_utc(2025, 3, 4, 2, 0), _utc(2025, 3, 4, 0)),
        (_utc(2025, 3, 4, 7, 0), _utc(2025, 3, 4, 7)),
        (_utc(2025, 3, 4, 22, 15), _utc(2025, 3, 4, 21)),
    ])
    def test_session_open(self, now, expected):
        assert session_open(now) == expected


# ── Activity ─────────────────────────────────────────────────────────────


class TestActivity:
    def test_zscore_last(self):
        assert zscore_last([1.0, 2.0, 3.0]) == pytest.approx(1.224744871)
        assert zscore_last([2.0, 2.0, 2.0]) == 0.0
        assert zscore_last([]) == 0.0

    def test_short_history_is_neutral(self, make_candles):
        assert activity_zscores(make_candles([1.1] * 20)) == (0.0, 0.0)

    def test_spike_raises_activity(self, make_candles):
        closes = [1.1000 + (0.0002 if i % 2 else 0.0) for i in range(30)]
        closes.append(1.1060)
        z_tr, z_ret = activity_zscores(make_candles(closes))
        assert z_tr > 2
        assert z_ret > 2


class TestBuildContext:
    def test_weekday_context(self, ranging_h1):
        ctx = build_market_context(_utc(2025, 3, 7, 3), ranging_h1)
        assert ctx.session is Session.TOKYO
        assert ctx.minutes_to_close == 1080
        assert ctx.is_weekend_or_holiday is False
        assert ctx.spread_z == 0.0

    def test_spread_passthrough(self, ranging_h1):
        ctx = build_market_context(_utc(2025, 3, 7, 3), ranging_h1, spread_z=2.5)
        assert ctx.spread_z == 2.5

    def test_weekend_context(self, ranging_h1):
        ctx = build_market_context(_utc(2025, 3, 8, 12), ranging_h1)
        assert ctx.session is Session.CLOSED
        assert ctx.is_weekend_or_holiday is True

    def test_custom_close_hour(self, ranging_h1):
        ctx = build_market_context(_utc(2025, 3, 5, 20), ranging_h1, close_hour=22)
        assert ctx.minutes_to_close == 120

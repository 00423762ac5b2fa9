"""Deterministic tests for the technical indicator functions."""

import math
from datetime import datetime, timezone

import pytest

from confluencefx.strategy.indicators import (
    Band,
    calculate_atr,
    calculate_atr_series,
    calculate_bollinger,
    calculate_ema,
    calculate_fibonacci,
    calculate_macd,
    calculate_opening_range,
    calculate_pivots,
    calculate_rsi,
    calculate_session_vwap,
    calculate_sma,
    donchian_position,
    ema_slope,
    find_swing_highs,
    find_swing_lows,
    is_squeeze,
    latest_bollinger,
    swing_levels,
    true_ranges,
)
from confluencefx.strategy.models import CandleData


def _make_candle(time: str, o: float, h: float, l: float, c: float, vol: float = 1000) -> CandleData:
    return CandleData(time=time, open=o, high=h, low=l, close=c, volume=vol)


def _flat_candles(n: int, price: float = 1.1000, half_range: float = 0.0005) -> list[CandleData]:
    """Candles with identical 10-pip ranges and no gaps."""
    return [
        _make_candle(f"2025-03-03T{i % 24:02d}:00:00Z", price, price + half_range,
                     price - half_range, price)
        for i in range(n)
    ]


def _highs_lows(highs: list[float], lows: list[float]) -> list[CandleData]:
    return [
        _make_candle(f"2025-03-03T{i:02d}:00:00Z", (h + l) / 2, h, l, (h + l) / 2)
        for i, (h, l) in enumerate(zip(highs, lows))
    ]


# ── Moving averages ──────────────────────────────────────────────────────


class TestMovingAverages:
    def test_ema_seeded_with_sma(self):
        ema = calculate_ema([1, 2, 3, 4, 5, 6], 3)
        assert math.isnan(ema[0]) and math.isnan(ema[1])
        assert ema[2:] == pytest.approx([2.0, 3.0, 4.0, 5.0])

    def test_ema_short_input_is_all_nan(self):
        ema = calculate_ema([1.0, 2.0], 3)
        assert len(ema) == 2
        assert all(math.isnan(v) for v in ema)

    def test_sma(self):
        assert calculate_sma([1, 2, 3, 4, 5], 5) == pytest.approx(3.0)
        assert calculate_sma([1, 2, 3, 4, 5], 2) == pytest.approx(4.5)
        assert calculate_sma([1, 2], 5) is None

    def test_ema_slope(self):
        series = [float("nan"), 1.0, 2.0, 3.0, 4.0, 5.0]
        assert ema_slope(series) == pytest.approx(4.0)
        assert ema_slope(series[:5]) is None

    def test_ema_slope_flat(self):
        assert ema_slope([2.0] * 10) == 0.0


# ── ATR ──────────────────────────────────────────────────────────────────


class TestATR:
    def test_true_ranges_include_gaps(self):
        candles = [
            _make_candle("2025-03-03T00:00:00Z", 1.1000, 1.1010, 1.0990, 1.1000),
            # Gap up: high - prev_close dominates
            _make_candle("2025-03-03T01:00:00Z", 1.1030, 1.1040, 1.1025, 1.1035),
        ]
        assert true_ranges(candles) == pytest.approx([0.0040])

    def test_atr_constant_range(self):
        assert calculate_atr(_flat_candles(15)) == pytest.approx(0.0010)

    def test_atr_needs_period_plus_one(self):
        assert calculate_atr(_flat_candles(14)) is None
        assert calculate_atr_series(_flat_candles(14)) == []

    def test_atr_wilder_smoothing(self):
        candles = _flat_candles(15)
        candles.append(_make_candle("2025-03-03T15:00:00Z", 1.1000, 1.1015, 1.0985, 1.1000))
        # (0.0010 × 13 + 0.0030) / 14
        assert calculate_atr(candles) == pytest.approx((0.0010 * 13 + 0.0030) / 14)


# ── RSI ──────────────────────────────────────────────────────────────────


class TestRSI:
    def test_rsi_all_gains(self):
        closes = [1.0 + 0.01 * i for i in range(20)]
        assert calculate_rsi(closes)[-1] == pytest.approx(100.0)

    def test_rsi_all_losses(self):
        closes = [2.0 - 0.01 * i for i in range(20)]
        assert calculate_rsi(closes)[-1] == pytest.approx(0.0)

    def test_rsi_short_history_is_unseeded(self):
        assert all(math.isnan(v) for v in calculate_rsi([1.0, 1.1, 1.2]))

    def test_rsi_series_alignment(self):
        rsi = calculate_rsi([1.0 + 0.01 * i for i in range(16)])
        assert all(math.isnan(v) for v in rsi[:14])
        assert rsi[14] == pytest.approx(100.0)

    def test_rsi_wilder_golden_values(self):
        """Mixed series, period 5: seed avg gain 1.2 / avg loss 0.6, then Wilder smoothing."""
        closes = [100, 102, 101, 104, 102, 103, 100, 102, 103, 102,
                  106, 104, 105, 104, 106, 103, 104, 106, 105, 106]
        rsi = calculate_rsi([float(c) for c in closes], 5)
        assert all(math.isnan(v) for v in rsi[:5])
        assert rsi[5] == pytest.approx(200 / 3)
        assert rsi[6] == pytest.approx(800 / 17)
        assert rsi[7] == pytest.approx(7300 / 127)


# ── MACD ─────────────────────────────────────────────────────────────────


class TestMACD:
    def test_short_history(self):
        assert calculate_macd([1.0] * 33) is None

    def test_golden_values(self):
        # fast EMA(2) = 235/54, slow EMA(3) = 23/6, signal seeded at 11/18
        result = calculate_macd([1.0, 2.0, 4.0, 3.0, 5.0], fast=2, slow=3, signal=2)
        assert result is not None
        assert result.macd == pytest.approx(14 / 27)
        assert result.signal == pytest.approx(89 / 162)
        assert result.histogram == pytest.approx(-5 / 162)

    def test_flat_series_has_zero_histogram(self):
        result = calculate_macd([1.1] * 40)
        assert result is not None
        assert result.macd == pytest.approx(0.0, abs=1e-12)
        assert result.histogram == pytest.approx(0.0, abs=1e-12)

    def test_rising_series_positive_macd(self):
        result = calculate_macd([1.0 + 0.001 * i for i in range(60)])
        assert result.macd > 0


# ── Bands and channels ───────────────────────────────────────────────────


class TestBands:
    def test_bollinger_flat_series_collapses(self):
        upper, middle, lower = calculate_bollinger([1.1] * 20)
        assert upper[-1] == pytest.approx(1.1)
        assert middle[-1] == pytest.approx(1.1)
        assert lower[-1] == pytest.approx(1.1)
        assert math.isnan(middle[18])

    def test_latest_bollinger_unseeded(self):
        assert latest_bollinger([1.1] * 19) is None

    def test_band_width_pct(self):
        assert Band(upper=1.1, middle=1.0, lower=0.9).width_pct == pytest.approx(20.0)
        assert Band(upper=0.0, middle=0.0, lower=0.0).width_pct == 0.0

    def test_squeeze(self):
        inner = Band(upper=1.2, middle=1.1, lower=1.0)
        outer = Band(upper=1.3, middle=1.1, lower=0.9)
        assert is_squeeze(inner, outer) is True
        assert is_squeeze(outer, inner) is False
        assert is_squeeze(None, outer) is False

    def test_donchian_position(self):
        candles = _flat_candles(20)
        assert donchian_position(candles, 1.1005) == pytest.approx(1.0)
        assert donchian_position(candles, 1.0995) == pytest.approx(0.0)
        assert donchian_position(candles, 1.2000) == 1.0
        assert donchian_position(candles[:5], 1.1000) == 0.5


# ── VWAP / opening range ─────────────────────────────────────────────────


class TestVWAP:
    def test_volume_weighted(self):
        candles = [
            _make_candle("2025-03-03T00:00:00Z", 1.0, 1.0, 1.0, 1.0, vol=1),
            _make_candle("2025-03-03T01:00:00Z", 2.0, 2.0, 2.0, 2.0, vol=3),
        ]
        assert calculate_session_vwap(candles) == pytest.approx(1.75)

    def test_missing_volume_weighs_one(self):
        candles = [
            CandleData("2025-03-03T00:00:00Z", 1.0, 1.0, 1.0, 1.0),
            CandleData("2025-03-03T01:00:00Z", 2.0, 2.0, 2.0, 2.0),
        ]
        assert calculate_session_vwap(candles) == pytest.approx(1.5)

    def test_empty(self):
        assert calculate_session_vwap([]) is None

    def test_opening_range_break(self):
        candles = [
            _make_candle("2025-03-03T06:00:00Z", 1.1000, 1.1050, 1.0950, 1.1000),
            _make_candle("2025-03-03T07:00:00Z", 1.1000, 1.1010, 1.0990, 1.1005),
            _make_candle("2025-03-03T08:00:00Z", 1.1005, 1.1030, 1.1000, 1.1025),
        ]
        anchor = datetime(2025, 3, 3, 7, tzinfo=timezone.utc)
        orng = calculate_opening_range(candles, anchor, current_price=1.1025)
        assert orng.high == pytest.approx(1.1010)
        assert orng.low == pytest.approx(1.0990)
        assert orng.state == "break"
        assert orng.break_direction == "up"

        inside = calculate_opening_range(candles, anchor, current_price=1.1000)
        assert inside.state == "inside"
        assert inside.midpoint == pytest.approx(1.1000)

    def test_opening_range_no_bars(self):
        anchor = datetime(2025, 3, 3, 12, tzinfo=timezone.utc)
        assert calculate_opening_range(_flat_candles(3), anchor, 1.1) is None


# ── Levels ───────────────────────────────────────────────────────────────


class TestLevels:
    def test_pivots(self):
        p = calculate_pivots(high=1.1, low=1.0, close=1.05)
        assert p.pivot == pytest.approx(1.05)
        assert p.r1 == pytest.approx(1.10)
        assert p.s1 == pytest.approx(1.00)
        assert p.r2 == pytest.approx(1.15)
        assert p.s2 == pytest.approx(0.95)

    def test_fibonacci(self):
        candles = _highs_lows([1.05, 1.10, 1.05], [1.00, 1.05, 1.02])
        fib = calculate_fibonacci(candles)
        assert fib[0.5] == pytest.approx(1.05)
        assert fib[0.236] == pytest.approx(1.0764)
        assert fib[0.786] == pytest.approx(1.0214)

    def test_fibonacci_zero_range(self):
        assert calculate_fibonacci(_highs_lows([1.0, 1.0], [1.0, 1.0])) is None
        assert calculate_fibonacci([]) is None

    def test_swing_points(self):
        candles = _highs_lows([1, 2, 5, 2, 1, 2, 3], [0.5, 1, 4, 1, 0.2, 1, 2])
        assert find_swing_highs(candles) == [(2, 5)]
        assert find_swing_lows(candles) == [(4, 0.2)]

    def test_equal_highs_are_not_swings(self):
        candles = _highs_lows([1, 2, 5, 5, 2, 1], [0.5] * 6)
        assert find_swing_highs(candles) == []

    def test_swing_levels_fallback_to_extremes(self):
        candles = _highs_lows([1.0, 1.1, 1.2], [0.9, 1.0, 1.1])
        assert swing_levels(candles) == (1.2, 0.9)
        assert swing_levels([]) is None

"""Technical indicators — EMA, SMA, ATR, RSI, MACD, bands, channels and levels.

Pure functions, no I/O.  None of them raise on short input: each returns
the neutral value documented on the function (``nan``-padded series,
``None`` for unavailable levels, 50 for RSI, 0.5 for Donchian position).
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from confluencefx.strategy.models import (
    CandleData,
    OpeningRange,
    parse_candle_time,
)

NAN = float("nan")

FIBONACCI_RATIOS: tuple[float, ...] = (0.236, 0.382, 0.5, 0.618, 0.786)


@dataclass(frozen=True)
class Band:
    """Upper/middle/lower values of a price envelope at the latest bar."""

    upper: float
    middle: float
    lower: float

    @property
    def width_pct(self) -> float:
        """Band width as a percentage of the middle line (0 when middle is 0)."""
        if self.middle == 0:
            return 0.0
        return (self.upper - self.lower) / self.middle * 100.0


@dataclass(frozen=True)
class MACDResult:
    """Latest MACD line, signal line and histogram."""

    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class PivotPoints:
    """Classic floor-trader pivots from the prior period's H/L/C."""

    pivot: float
    r1: float
    r2: float
    s1: float
    s2: float


def last_value(series: list[float]) -> Optional[float]:
    """Return the final element of *series*, or ``None`` if empty / ``nan``."""
    if not series:
        return None
    value = series[-1]
    if math.isnan(value):
        return None
    return value


def true_ranges(candles: list[CandleData]) -> list[float]:
    """True range for every candle after the first.

        TR = max(high - low, |high - prev_close|, |low - prev_close|)
    """
    ranges: list[float] = []
    for i in range(1, len(candles)):
        high = candles[i].high
        low = candles[i].low
        prev_close = candles[i - 1].close
        ranges.append(max(high - low, abs(high - prev_close), abs(low - prev_close)))
    return ranges


# ── Moving averages ──────────────────────────────────────────────────────


def calculate_sma(values: list[float], period: int) -> Optional[float]:
    """Simple average of the last *period* values, ``None`` if too few."""
    if period <= 0 or len(values) < period:
        return None
    window = values[-period:]
    return sum(window) / period


def calculate_ema(values: list[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Uses the standard EMA formula:
        ``EMA_today = value × k + EMA_yesterday × (1 - k)``
    where ``k = 2 / (period + 1)``.

    The first EMA value is seeded with the SMA of the first *period*
    values.  Returns a series the same length as *values*; entries before
    the seed are ``nan``.  With fewer than *period* values every entry is
    ``nan``.
    """
    ema: list[float] = [NAN] * len(values)
    if period <= 0 or len(values) < period:
        return ema

    k = 2.0 / (period + 1)
    ema[period - 1] = sum(values[:period]) / period
    for i in range(period, len(values)):
        ema[i] = values[i] * k + ema[i - 1] * (1 - k)
    return ema


def ema_slope(series: list[float], lookback: int = 4) -> Optional[float]:
    """Fractional change of an EMA series over *lookback* bars.

    ``None`` when the series does not yet hold ``lookback + 1`` valid values.
    """
    valid = [v for v in series if not math.isnan(v)]
    if len(valid) <= lookback:
        return None
    past = valid[-1 - lookback]
    if past == 0:
        return 0.0
    return (valid[-1] - past) / past


# ── ATR ──────────────────────────────────────────────────────────────────


def calculate_atr_series(candles: list[CandleData], period: int = 14) -> list[float]:
    """Wilder-smoothed ATR values, one per bar from the seed onwards.

    Seed = simple average of the first *period* true ranges, then
    ``ATR = (ATR_prev × (period - 1) + TR) / period``.
    Empty when fewer than ``period + 1`` candles are supplied.
    """
    ranges = true_ranges(candles)
    if period <= 0 or len(ranges) < period:
        return []

    atr = sum(ranges[:period]) / period
    series = [atr]
    for tr in ranges[period:]:
        atr = (atr * (period - 1) + tr) / period
        series.append(atr)
    return series


def calculate_atr(candles: list[CandleData], period: int = 14) -> Optional[float]:
    """Latest Wilder ATR, or ``None`` with fewer than ``period + 1`` candles.

    There is no neutral ATR: callers that need one must fail explicitly.
    """
    series = calculate_atr_series(candles, period)
    return series[-1] if series else None


# ── RSI ──────────────────────────────────────────────────────────────────


def _rsi_from_avgs(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def calculate_rsi(closes: list[float], period: int = 14) -> list[float]:
    """Calculate Wilder's Relative Strength Index.

    Algorithm (Wilder-smoothed):
        1. delta = close[i] - close[i-1]
        2. Separate gains (positive) and losses (|negative|).
        3. Seed average gain/loss = SMA of first *period* deltas.
        4. Subsequent: avg = (prev_avg × (period-1) + current) / period
        5. RSI = 100 - 100 / (1 + avg_gain / avg_loss), 100 if avg_loss is 0

    Returns a list the same length as *closes*; entries before the seed
    (all of them, with fewer than ``period + 1`` closes) are ``nan``.
    """
    rsi: list[float] = [NAN] * len(closes)
    if period <= 0 or len(closes) < period + 1:
        return rsi

    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]
    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period
    rsi[period] = _rsi_from_avgs(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        # Index in rsi is i+1 because deltas are offset by 1
        rsi[i + 1] = _rsi_from_avgs(avg_gain, avg_loss)

    return rsi


# ── MACD ─────────────────────────────────────────────────────────────────


def calculate_macd(
    closes: list[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> Optional[MACDResult]:
    """MACD line = EMA(fast) − EMA(slow); signal = EMA(MACD line, *signal*).

    Needs ``slow + signal - 1`` closes; returns ``None`` otherwise.
    """
    if len(closes) < slow + signal - 1:
        return None

    ema_fast = calculate_ema(closes, fast)
    ema_slow = calculate_ema(closes, slow)
    macd_line = [f - s for f, s in zip(ema_fast[slow - 1:], ema_slow[slow - 1:])]
    signal_line = calculate_ema(macd_line, signal)

    macd = macd_line[-1]
    sig = signal_line[-1]
    return MACDResult(macd=macd, signal=sig, histogram=macd - sig)


# ── Bands and channels ───────────────────────────────────────────────────


def calculate_bollinger(
    closes: list[float],
    period: int = 20,
    std_dev: float = 2.0,
) -> tuple[list[float], list[float], list[float]]:
    """Calculate Bollinger Bands.

    Middle = SMA(close, *period*)
    Upper  = middle + *std_dev* × σ
    Lower  = middle − *std_dev* × σ   (population σ)

    Returns ``(upper, middle, lower)`` — each list has the same length
    as *closes*.  Entries before the seed period are ``nan``.
    """
    n = len(closes)
    upper: list[float] = [NAN] * n
    middle: list[float] = [NAN] * n
    lower: list[float] = [NAN] * n

    for i in range(period - 1, n):
        window = closes[i - period + 1 : i + 1]
        sma = sum(window) / period
        variance = sum((x - sma) ** 2 for x in window) / period
        sigma = math.sqrt(variance)

        middle[i] = sma
        upper[i] = sma + std_dev * sigma
        lower[i] = sma - std_dev * sigma

    return upper, middle, lower


def latest_bollinger(
    closes: list[float], period: int = 20, std_dev: float = 2.0
) -> Optional[Band]:
    """Bollinger band at the latest bar, ``None`` if not yet seeded."""
    upper, middle, lower = calculate_bollinger(closes, period, std_dev)
    mid = last_value(middle)
    if mid is None:
        return None
    return Band(upper=upper[-1], middle=mid, lower=lower[-1])


def calculate_keltner(
    candles: list[CandleData],
    period: int = 20,
    multiplier: float = 1.5,
) -> Optional[Band]:
    """Keltner channel: SMA(close) ± *multiplier* × ATR(*period*)."""
    middle = calculate_sma([c.close for c in candles], period)
    atr = calculate_atr(candles, period)
    if middle is None or atr is None:
        return None
    return Band(
        upper=middle + atr * multiplier,
        middle=middle,
        lower=middle - atr * multiplier,
    )


def is_squeeze(bollinger: Optional[Band], keltner: Optional[Band]) -> bool:
    """True when the Bollinger band lies strictly inside the Keltner channel."""
    if bollinger is None or keltner is None:
        return False
    return bollinger.upper < keltner.upper and bollinger.lower > keltner.lower


def donchian_position(
    candles: list[CandleData], price: float, period: int = 20
) -> float:
    """Position of *price* in the *period* high/low channel, clamped to [0, 1].

    Returns 0.5 when the window is short or the channel has zero width.
    """
    if period <= 0 or len(candles) < period:
        return 0.5
    window = candles[-period:]
    upper = max(c.high for c in window)
    lower = min(c.low for c in window)
    if upper - lower <= 0:
        return 0.5
    return max(0.0, min(1.0, (price - lower) / (upper - lower)))


# ── VWAP / opening range ─────────────────────────────────────────────────


def calculate_session_vwap(candles: list[CandleData]) -> Optional[float]:
    """Volume-weighted typical price; bars without volume weigh 1."""
    total_volume = 0.0
    total_pv = 0.0
    for c in candles:
        typical = (c.high + c.low + c.close) / 3.0
        volume = c.volume if c.volume else 1.0
        total_pv += typical * volume
        total_volume += volume
    if total_volume <= 0:
        return None
    return total_pv / total_volume


def calculate_opening_range(
    candles: list[CandleData],
    anchor: datetime,
    current_price: float,
    minutes: int = 60,
) -> Optional[OpeningRange]:
    """High/low of bars opening in ``[anchor, anchor + minutes)``.

    State is ``"break"`` when *current_price* sits outside the range.
    Returns ``None`` if no bar falls inside the window.
    """
    end = anchor + timedelta(minutes=minutes)
    window = []
    for c in candles:
        t = parse_candle_time(c.time)
        if t is not None and anchor <= t < end:
            window.append(c)
    if not window:
        return None

    high = max(c.high for c in window)
    low = min(c.low for c in window)
    if current_price > high:
        return OpeningRange(high=high, low=low, state="break", break_direction="up")
    if current_price < low:
        return OpeningRange(high=high, low=low, state="break", break_direction="down")
    return OpeningRange(high=high, low=low, state="inside")


# ── Levels ───────────────────────────────────────────────────────────────


def calculate_pivots(high: float, low: float, close: float) -> PivotPoints:
    """Classic pivots: P = (H + L + C) / 3, R1 = 2P − L, S1 = 2P − H,
    R2 = P + (H − L), S2 = P − (H − L)."""
    pivot = (high + low + close) / 3.0
    rng = high - low
    return PivotPoints(
        pivot=pivot,
        r1=2 * pivot - low,
        r2=pivot + rng,
        s1=2 * pivot - high,
        s2=pivot - rng,
    )


def calculate_fibonacci(
    candles: list[CandleData], lookback: int = 50
) -> Optional[dict[float, float]]:
    """Retracement levels measured down from the lookback high.

    Returns ``{ratio: price}`` for 23.6/38.2/50/61.8/78.6 %, or ``None``
    when there are no candles or the window has zero range.
    """
    window = candles[-lookback:]
    if not window:
        return None
    high = max(c.high for c in window)
    low = min(c.low for c in window)
    rng = high - low
    if rng <= 0:
        return None
    return {ratio: high - ratio * rng for ratio in FIBONACCI_RATIOS}


def find_swing_highs(
    candles: list[CandleData], window: int = 2
) -> list[tuple[int, float]]:
    """Identify swing highs as ``(index, price)`` pairs.

    A swing high is a candle whose high is strictly higher than the highs
    of the *window* candles on each side.
    """
    highs: list[tuple[int, float]] = []
    for i in range(window, len(candles) - window):
        high = candles[i].high
        is_swing = True
        for j in range(1, window + 1):
            if candles[i - j].high >= high or candles[i + j].high >= high:
                is_swing = False
                break
        if is_swing:
            highs.append((i, high))
    return highs


def find_swing_lows(
    candles: list[CandleData], window: int = 2
) -> list[tuple[int, float]]:
    """Identify swing lows as ``(index, price)`` pairs.

    A swing low is a candle whose low is strictly lower than the lows of
    the *window* candles on each side.
    """
    lows: list[tuple[int, float]] = []
    for i in range(window, len(candles) - window):
        low = candles[i].low
        is_swing = True
        for j in range(1, window + 1):
            if candles[i - j].low <= low or candles[i + j].low <= low:
                is_swing = False
                break
        if is_swing:
            lows.append((i, low))
    return lows


def swing_levels(
    candles: list[CandleData], lookback: int = 50, window: int = 2
) -> Optional[tuple[float, float]]:
    """Most recent swing high and swing low within *lookback* bars.

    Either side falls back to the raw window max/min when no swing was
    detected.  ``None`` for an empty series.
    """
    recent = candles[-lookback:]
    if not recent:
        return None
    highs = find_swing_highs(recent, window)
    lows = find_swing_lows(recent, window)
    swing_high = highs[-1][1] if highs else max(c.high for c in recent)
    swing_low = lows[-1][1] if lows else min(c.low for c in recent)
    return swing_high, swing_low

"""Feature assembly — turns candle history into one frozen ``FeatureSet``.

Windows are per feature: a short history leaves the affected fields
``None`` (and flags ``degraded`` below 100 H1 bars) instead of failing.
Time anchors (VWAP day, opening range) come from the last H1 bar's
timestamp, so the same inputs always give the same features.
"""

import dataclasses
from datetime import datetime
from typing import Literal, Optional

from confluencefx.risk.instruments import InstrumentSpec
from confluencefx.strategy.confluence import calculate_confluence
from confluencefx.strategy.indicators import (
    calculate_atr,
    calculate_atr_series,
    calculate_ema,
    calculate_keltner,
    calculate_macd,
    calculate_opening_range,
    calculate_rsi,
    calculate_session_vwap,
    calculate_sma,
    donchian_position,
    ema_slope,
    is_squeeze,
    last_value,
    latest_bollinger,
    swing_levels,
)
from confluencefx.strategy.market_context import (
    DEFAULT_CLOSE_HOUR,
    activity_zscores,
    session_open,
    trading_day_start,
)
from confluencefx.strategy.models import (
    CandleData,
    FeatureSet,
    MarketContext,
    parse_candle_time,
)
from confluencefx.strategy.sr_zones import detect_sr_zones, nearest_zone

FULL_HISTORY = 100
ADR_DAYS = 20
BIAS4H_MIN_BARS = 50
VOL4H_LOOKBACK = 84
HOURS_PER_DAY = 24


# ── Utility helpers ──────────────────────────────────────────────────────


def percentile_rank(values: list[float], current: float) -> float:
    """Return the percentile rank of *current* within *values* ∈ [0, 1]."""
    if not values:
        return 0.5
    below = sum(1 for v in values if v < current)
    return below / len(values)


def clip_feature(value: float, low: float, high: float) -> float:
    """Clip a feature to [low, high]."""
    return max(low, min(high, value))


def safe_div(a: float, b: float, default: float = 0.0) -> float:
    """Safe division — returns *default* when divisor is zero/near-zero."""
    if abs(b) < 1e-12:
        return default
    return a / b


def bps_from(price: float, reference: Optional[float]) -> Optional[float]:
    """Signed distance from *reference* in basis points; ``None`` if unknown."""
    if reference is None or reference == 0:
        return None
    return (price - reference) / reference * 10_000


def _bars_since(candles: list[CandleData], start: datetime) -> list[CandleData]:
    out = []
    for c in candles:
        t = parse_candle_time(c.time)
        if t is not None and t >= start:
            out.append(c)
    return out


# ── Daily context ────────────────────────────────────────────────────────


def average_daily_range(
    candles_d1: Optional[list[CandleData]],
    candles_h1: list[CandleData],
    days: int = ADR_DAYS,
) -> Optional[float]:
    """Mean high-low range of the last *days* daily bars.

    Without enough daily bars the range is estimated from complete
    24-bar blocks of H1 history (most recent first).  ``None`` when
    neither source has a full day.
    """
    if candles_d1 and len(candles_d1) >= days:
        ranges = [c.high - c.low for c in candles_d1[-days:]]
        return sum(ranges) / days

    blocks = min(len(candles_h1) // HOURS_PER_DAY, days)
    if blocks == 0:
        return None
    ranges = []
    for b in range(blocks):
        end = len(candles_h1) - b * HOURS_PER_DAY
        block = candles_h1[end - HOURS_PER_DAY:end]
        ranges.append(max(c.high for c in block) - min(c.low for c in block))
    return sum(ranges) / len(ranges)


def daily_bias(candles_d1: Optional[list[CandleData]]) -> int:
    """Sign of the daily SMA20 drift over five sessions (±0.1 % dead band)."""
    if not candles_d1 or len(candles_d1) < 25:
        return 0
    closes = [c.close for c in candles_d1]
    now = calculate_sma(closes, 20)
    before = calculate_sma(closes[:-5], 20)
    if now is None or not before:
        return 0
    slope = (now - before) / before
    if slope > 0.001:
        return 1
    if slope < -0.001:
        return -1
    return 0


# ── 4H filters ───────────────────────────────────────────────────────────


def higher_timeframe_bias(
    candles_h4: Optional[list[CandleData]], current_price: float
) -> Optional[float]:
    """4H bias ∈ [-1, 1] from EMA20 slope and price vs EMA50.

    ``None`` below 50 bars.
    """
    if not candles_h4 or len(candles_h4) < BIAS4H_MIN_BARS:
        return None
    closes = [c.close for c in candles_h4]
    slope = ema_slope(calculate_ema(closes, 20)) or 0.0
    ema50 = last_value(calculate_ema(closes, 50))
    price_vs_ema50 = safe_div(current_price - ema50, ema50) if ema50 else 0.0
    return clip_feature(slope * 100 + price_vs_ema50 * 50, -1.0, 1.0)


def volatility_bucket(
    candles_h4: Optional[list[CandleData]],
) -> Optional[Literal["low", "medium", "high"]]:
    """Rank the current 4H ATR20 against its own recent history.

    Percentile < 0.33 → low, > 0.66 → high, otherwise medium.
    """
    if not candles_h4 or len(candles_h4) < BIAS4H_MIN_BARS:
        return None
    series = calculate_atr_series(candles_h4, 20)[-VOL4H_LOOKBACK:]
    if not series:
        return None
    rank = percentile_rank(series, series[-1])
    if rank < 0.33:
        return "low"
    if rank > 0.66:
        return "high"
    return "medium"


# ── Builder ──────────────────────────────────────────────────────────────


def build_feature_set(
    candles_h1: list[CandleData],
    current_price: float,
    context: MarketContext,
    instrument: InstrumentSpec,
    candles_h4: Optional[list[CandleData]] = None,
    candles_d1: Optional[list[CandleData]] = None,
    close_hour: int = DEFAULT_CLOSE_HOUR,
) -> FeatureSet:
    """Compute every feature for one snapshot and score its confluence.

    Args:
        candles_h1: Primary H1 history, oldest-first.
        current_price: Latest traded/mid price.
        context: Session and gating context for this call.
        instrument: Pip size for zone binning.
        candles_h4: Optional 4H history for bias and volatility bucket.
        candles_d1: Optional daily history for ADR and daily bias.
        close_hour: UTC hour at which the trading day rolls over.
    """
    price = current_price
    closes = [c.close for c in candles_h1]
    last_time = parse_candle_time(candles_h1[-1].time) if candles_h1 else None

    # ── Daily context ───────────────────────────────────────────────
    adr20 = average_daily_range(candles_d1, candles_h1)
    if last_time is not None:
        today = _bars_since(candles_h1, trading_day_start(last_time, close_hour))
    else:
        today = candles_h1[-HOURS_PER_DAY:]
    adr_used_pct = None
    if adr20 and today:
        today_range = max(c.high for c in today) - min(c.low for c in today)
        adr_used_pct = today_range / adr20 * 100.0

    # ── Trend ───────────────────────────────────────────────────────
    ema20_series = calculate_ema(closes, 20)
    ema50_series = calculate_ema(closes, 50)
    ema100_series = calculate_ema(closes, 100)
    ema100 = last_value(ema100_series)

    # ── Momentum / volatility ───────────────────────────────────────
    macd = calculate_macd(closes)
    bollinger = latest_bollinger(closes)
    keltner = calculate_keltner(candles_h1)

    # ── Structure ───────────────────────────────────────────────────
    hh_flag = ll_flag = False
    if len(candles_h1) >= 20:
        prior = candles_h1[-20:-1]
        hh_flag = price > max(c.high for c in prior)
        ll_flag = price < min(c.low for c in prior)

    body_ratio = 0.0
    if candles_h1:
        last = candles_h1[-1]
        body_ratio = clip_feature(
            safe_div(abs(last.close - last.open), last.high - last.low), 0.0, 1.0
        )

    swings = swing_levels(candles_h1)

    # ── VWAP / opening range ────────────────────────────────────────
    vwap = calculate_session_vwap(today)
    opening_range = None
    if last_time is not None:
        anchor = session_open(last_time)
        if anchor is not None:
            opening_range = calculate_opening_range(candles_h1, anchor, price)

    # ── Activity ────────────────────────────────────────────────────
    z_tr, z_ret = activity_zscores(candles_h1)

    # ── Zones ───────────────────────────────────────────────────────
    zones = detect_sr_zones(candles_h1, adr20, instrument.pip_size, price)
    near = nearest_zone(zones, price)

    features = FeatureSet(
        current_price=price,
        degraded=len(candles_h1) < FULL_HISTORY,
        adr20=adr20,
        adr_used_pct=adr_used_pct,
        daily_bias=daily_bias(candles_d1),
        ema20=last_value(ema20_series),
        ema50=last_value(ema50_series),
        ema100=ema100,
        ema20_slope=ema_slope(ema20_series),
        ema50_slope=ema_slope(ema50_series),
        ema100_slope=ema_slope(ema100_series),
        dist_to_ema100_bps=bps_from(price, ema100),
        sma10=calculate_sma(closes, 10),
        sma20=calculate_sma(closes, 20),
        atr14=calculate_atr(candles_h1, 14),
        atr20=calculate_atr(candles_h1, 20),
        rsi14=last_value(calculate_rsi(closes, 14)),
        macd_histogram=macd.histogram if macd else None,
        bb_upper=bollinger.upper if bollinger else None,
        bb_middle=bollinger.middle if bollinger else None,
        bb_lower=bollinger.lower if bollinger else None,
        bb_width=bollinger.width_pct if bollinger else None,
        keltner_width=keltner.width_pct if keltner else None,
        squeeze=is_squeeze(bollinger, keltner),
        donchian_position=donchian_position(candles_h1, price),
        hh_flag=hh_flag,
        ll_flag=ll_flag,
        candle_body_ratio=body_ratio,
        swing_high=swings[0] if swings else None,
        swing_low=swings[1] if swings else None,
        session_high=max(c.high for c in today) if today else None,
        session_low=min(c.low for c in today) if today else None,
        vwap=vwap,
        distance_to_vwap_bps=bps_from(price, vwap),
        opening_range=opening_range,
        z_tr20=z_tr,
        z_abs_ret20=z_ret,
        activity_score=z_tr + z_ret,
        spread_z=context.spread_z,
        bias4h=higher_timeframe_bias(candles_h4, price),
        vol4h=volatility_bucket(candles_h4),
        sr_zones=tuple(zones),
        distance_to_zone=near.distance,
        in_zone=near.in_zone,
        nearest_zone_strength=near.strength,
    )
    return dataclasses.replace(
        features, confluence_score=calculate_confluence(features, context.session)
    )

"""Entry precision — ranks buy/sell entry prices at nearby technical levels.

Flow:
    1. Collect candidate levels (moving averages, Fibonacci, swings,
       pivots, Bollinger, VWAP, opening range, zones, session extremes).
    2. Score confluence: levels within 5 pips of each other reinforce
       one another (+10 strength per neighbour, capped at 100).
    3. Per direction, build one Immediate option at the current price
       plus up to eight level-based options.
    4. Derive stop/target from the nearest opposing levels and ATR,
       drop options outside the [1.5, 2.5] R:R band, rank by quality.
"""

import dataclasses
import logging
from datetime import timedelta
from typing import Optional

from confluencefx.risk.instruments import MAX_RR, InstrumentSpec
from confluencefx.risk.sl_tp import (
    MIN_RR,
    PIP_TOLERANCE,
    enforce_min_stop,
    enforce_min_target,
    require_atr,
)
from confluencefx.strategy.indicators import calculate_fibonacci, calculate_pivots
from confluencefx.strategy.market_context import DEFAULT_CLOSE_HOUR, trading_day_start
from confluencefx.strategy.models import (
    Action,
    CandleData,
    EntryClassification,
    EntryOption,
    EntryPrecisionAnalysis,
    FeatureSet,
    LevelType,
    TechnicalLevel,
    parse_candle_time,
)

logger = logging.getLogger("confluencefx.entries")

CONFLUENCE_TOLERANCE_PIPS = 5.0
IMMEDIATE_TOLERANCE_PIPS = 3.0
MAX_LEVEL_DISTANCE_ATR = 5.0
MAX_ENTRY_DISTANCE_ATR = 3.0
DIRECTION_SLACK_ATR = 0.5
MIN_LEVEL_STRENGTH = 60
MAX_LEVEL_OPTIONS = 8
MAX_OPTIONS = 5
STOP_BUFFER_ATR = 0.2
TARGET_RR = 2.0

# Levels that anchor stops/targets below and above an entry
BELOW_ANCHORS = (LevelType.SUPPORT, LevelType.PIVOT, LevelType.FIBONACCI)
ABOVE_ANCHORS = (LevelType.RESISTANCE, LevelType.PIVOT, LevelType.FIBONACCI)

FIB_STRENGTH = {0.236: 60, 0.382: 80, 0.5: 85, 0.618: 80, 0.786: 60}

CLASSIFICATION_BONUS = {
    EntryClassification.PULLBACK: 10,
    EntryClassification.IMMEDIATE: 8,
    EntryClassification.STRATEGIC: 5,
    EntryClassification.EXTREME: -5,
}


# ── Levels ───────────────────────────────────────────────────────────────


def prior_day_hlc(
    candles: list[CandleData], close_hour: int = DEFAULT_CLOSE_HOUR
) -> Optional[tuple[float, float, float]]:
    """High, low and last close of the previous trading day's H1 bars.

    Falls back to the 24 bars preceding the last 24 when timestamps are
    unusable.  ``None`` when there is no such history.
    """
    last_time = parse_candle_time(candles[-1].time) if candles else None
    if last_time is not None:
        today_start = trading_day_start(last_time, close_hour)
        prior_start = today_start - timedelta(days=1)
        bars = []
        for c in candles:
            t = parse_candle_time(c.time)
            if t is not None and prior_start <= t < today_start:
                bars.append(c)
    else:
        bars = candles[-48:-24]
    if not bars:
        return None
    return max(c.high for c in bars), min(c.low for c in bars), bars[-1].close


def _level(
    price: float,
    level_type: LevelType,
    label: str,
    strength: int,
    current_price: float,
    spec: InstrumentSpec,
) -> TechnicalLevel:
    rounded = round(price, spec.decimals)
    return TechnicalLevel(
        price=rounded,
        level_type=level_type,
        label=label,
        strength=strength,
        distance_pips=round(spec.to_pips(rounded - current_price), 1),
    )


def collect_levels(
    features: FeatureSet,
    candles: list[CandleData],
    spec: InstrumentSpec,
    close_hour: int = DEFAULT_CLOSE_HOUR,
) -> list[TechnicalLevel]:
    """Every available candidate level, before confluence scoring."""
    price = features.current_price
    raw: list[tuple[Optional[float], LevelType, str, int]] = [
        (features.ema20, LevelType.EMA, "EMA20", 75),
        (features.ema50, LevelType.EMA, "EMA50", 80),
        (features.ema100, LevelType.EMA, "EMA100", 85),
        (features.sma10, LevelType.SMA, "SMA10", 70),
        (features.sma20, LevelType.SMA, "SMA20", 75),
        (features.swing_low, LevelType.SUPPORT, "Key Support", 90),
        (features.swing_high, LevelType.RESISTANCE, "Key Resistance", 90),
        (features.bb_upper, LevelType.BOLLINGER, "Upper Band", 70),
        (features.bb_middle, LevelType.BOLLINGER, "Middle Band", 75),
        (features.bb_lower, LevelType.BOLLINGER, "Lower Band", 70),
        (features.vwap, LevelType.VWAP, "Session VWAP", 80),
        (features.session_high, LevelType.SESSION_LEVEL, "Session High", 60),
        (features.session_low, LevelType.SESSION_LEVEL, "Session Low", 60),
    ]

    fib = calculate_fibonacci(candles)
    if fib:
        for ratio, level_price in fib.items():
            raw.append((level_price, LevelType.FIBONACCI, f"{ratio * 100:.1f}%",
                        FIB_STRENGTH[ratio]))

    hlc = prior_day_hlc(candles, close_hour)
    if hlc:
        pivots = calculate_pivots(*hlc)
        raw += [
            (pivots.pivot, LevelType.PIVOT, "Daily Pivot", 85),
            (pivots.s1, LevelType.PIVOT, "S1", 75),
            (pivots.s2, LevelType.PIVOT, "S2", 70),
            (pivots.r1, LevelType.PIVOT, "R1", 75),
            (pivots.r2, LevelType.PIVOT, "R2", 70),
        ]

    if features.opening_range is not None:
        raw.append((features.opening_range.high, LevelType.OPENING_RANGE, "OR High", 65))
        raw.append((features.opening_range.low, LevelType.OPENING_RANGE, "OR Low", 65))

    for index, zone in enumerate(features.sr_zones[:5], start=1):
        zone_type = LevelType.SUPPORT if zone.zone_type == "support" else LevelType.RESISTANCE
        raw.append((zone.price_level, zone_type, f"SR Zone {index}",
                    min(85, 50 + zone.strength)))

    return [
        _level(p, level_type, label, strength, price, spec)
        for p, level_type, label, strength in raw
        if p is not None and p > 0
    ]


def apply_confluence(
    levels: list[TechnicalLevel], spec: InstrumentSpec
) -> list[TechnicalLevel]:
    """Count neighbours within 5 pips and boost strength by 10 per neighbour."""
    out = []
    for i, level in enumerate(levels):
        neighbours = sum(
            1 for j, other in enumerate(levels)
            if j != i and spec.to_pips(other.price - level.price)
            <= CONFLUENCE_TOLERANCE_PIPS + PIP_TOLERANCE
        )
        out.append(TechnicalLevel(
            price=level.price,
            level_type=level.level_type,
            label=level.label,
            strength=min(100, level.strength + neighbours * 10),
            distance_pips=level.distance_pips,
            confluence=neighbours + 1,
        ))
    return out


# ── Options ──────────────────────────────────────────────────────────────


def classify_distance(distance_pips: float) -> EntryClassification:
    if distance_pips <= 3:
        return EntryClassification.IMMEDIATE
    if distance_pips <= 15:
        return EntryClassification.PULLBACK
    if distance_pips <= 40:
        return EntryClassification.STRATEGIC
    return EntryClassification.EXTREME


def stop_and_target(
    action: Action,
    entry: float,
    levels: list[TechnicalLevel],
    atr: float,
    classification: EntryClassification,
    spec: InstrumentSpec,
) -> tuple[float, float, float]:
    """Stop beyond the nearest protective level, target at the next
    opposing level or 2R, whichever is closer.

    Returns ``(stop_loss, take_profit, risk_reward)``; risk_reward is
    negative when the target lands on the wrong side of entry.
    """
    buffer = STOP_BUFFER_ATR * atr
    fallback = atr * (1.5 if classification is EntryClassification.IMMEDIATE else 2.0)
    below = sorted(
        (lvl.price for lvl in levels if lvl.level_type in BELOW_ANCHORS and lvl.price < entry),
        reverse=True,
    )
    above = sorted(
        lvl.price for lvl in levels if lvl.level_type in ABOVE_ANCHORS and lvl.price > entry
    )

    if action == "BUY":
        stop = below[0] - buffer if below else entry - fallback
        stop = enforce_min_stop(entry, stop, action, spec)
        target = entry + (entry - stop) * TARGET_RR
        if above:
            target = min(above[0] - buffer, target)
    else:
        stop = above[0] + buffer if above else entry + fallback
        stop = enforce_min_stop(entry, stop, action, spec)
        target = entry - (stop - entry) * TARGET_RR
        if below:
            target = max(below[0] + buffer, target)

    stop = enforce_min_stop(entry, round(stop, spec.decimals), action, spec)
    sign = 1 if action == "BUY" else -1
    target = round(target, spec.decimals)
    if sign * (target - entry) > 0:
        target = enforce_min_target(entry, target, action, spec)

    risk = abs(entry - stop)
    reward = sign * (target - entry)
    rr = reward / risk if risk > 0 else 0.0
    return stop, target, rr


def _rr_in_band(rr: float) -> bool:
    return MIN_RR - 1e-9 <= rr <= MAX_RR + 1e-9


def quality_score(option: EntryOption) -> float:
    """Weighted ranking score.

    strength × 0.4 + confluence × 5 + R:R band bonus (20 for 1.75–2.25,
    10 elsewhere in 1.5–2.5) + proximity bonus (15 / 10 / 5 within
    5 / 15 / 30 pips) + classification bonus.
    """
    score = option.strength * 0.4 + option.confluence * 5
    if 1.75 <= option.risk_reward <= 2.25:
        score += 20
    elif MIN_RR <= option.risk_reward <= MAX_RR:
        score += 10

    if option.distance_pips <= 5:
        score += 15
    elif option.distance_pips <= 15:
        score += 10
    elif option.distance_pips <= 30:
        score += 5

    return score + CLASSIFICATION_BONUS[option.classification]


def _scored(option: EntryOption) -> EntryOption:
    return dataclasses.replace(option, quality_score=round(quality_score(option), 2))


def immediate_option(
    action: Action,
    current_price: float,
    levels: list[TechnicalLevel],
    atr: float,
    spec: InstrumentSpec,
) -> Optional[EntryOption]:
    """Market entry at the current price; ``None`` outside the R:R band."""
    entry = round(current_price, spec.decimals)
    nearby = tuple(
        lvl for lvl in levels
        if spec.to_pips(lvl.price - current_price) <= IMMEDIATE_TOLERANCE_PIPS + PIP_TOLERANCE
    )
    confluence = max(1, sum(lvl.confluence for lvl in nearby))
    stop, target, rr = stop_and_target(
        action, entry, levels, atr, EntryClassification.IMMEDIATE, spec
    )
    if not _rr_in_band(rr):
        return None
    return _scored(EntryOption(
        classification=EntryClassification.IMMEDIATE,
        entry_price=entry,
        distance_pips=0.0,
        confluence=confluence,
        risk_reward=round(rr, 2),
        stop_loss=stop,
        take_profit=target,
        reasoning=(
            "Market entry at current price",
            f"Confluence score: {confluence}",
            f"R:R: {rr:.2f}:1",
        ),
        strength=min(100, 40 + confluence * 10),
        supporting_levels=nearby,
    ))


def level_option(
    action: Action,
    level: TechnicalLevel,
    levels: list[TechnicalLevel],
    current_price: float,
    atr: float,
    spec: InstrumentSpec,
) -> Optional[EntryOption]:
    """Limit entry at *level*; ``None`` if too far or outside the R:R band."""
    entry = level.price
    distance = spec.to_pips(entry - current_price)
    if distance > MAX_ENTRY_DISTANCE_ATR * atr / spec.pip_size:
        return None

    classification = classify_distance(distance)
    stop, target, rr = stop_and_target(action, entry, levels, atr, classification, spec)
    if not _rr_in_band(rr):
        return None

    supporting = tuple(
        lvl for lvl in levels
        if lvl is not level
        and spec.to_pips(lvl.price - entry) <= CONFLUENCE_TOLERANCE_PIPS + PIP_TOLERANCE
    )
    reasoning = [
        f"{action} entry at {level.level_type.value} {level.label} ({entry})",
        f"{distance:.1f} pips from current price",
        f"Confluence: {level.confluence} levels",
        f"R:R: {rr:.2f}:1",
        f"Level strength: {level.strength}%",
    ]
    if supporting:
        names = ", ".join(lvl.label for lvl in supporting[:3])
        reasoning.append(f"Additional support from: {names}")

    return _scored(EntryOption(
        classification=classification,
        entry_price=entry,
        distance_pips=round(distance, 1),
        confluence=level.confluence + len(supporting),
        risk_reward=round(rr, 2),
        stop_loss=stop,
        take_profit=target,
        reasoning=tuple(reasoning),
        strength=min(100, level.strength + 5 * len(supporting)),
        supporting_levels=(level,) + supporting,
    ))


def generate_options(
    action: Action,
    current_price: float,
    levels: list[TechnicalLevel],
    atr: float,
    spec: InstrumentSpec,
) -> list[EntryOption]:
    """Ranked options for one direction, best first (at most five)."""
    slack = DIRECTION_SLACK_ATR * atr
    if action == "BUY":
        relevant = [lvl for lvl in levels if lvl.price <= current_price + slack]
    else:
        relevant = [lvl for lvl in levels if lvl.price >= current_price - slack]

    options: list[EntryOption] = []
    immediate = immediate_option(action, current_price, levels, atr, spec)
    if immediate is not None:
        options.append(immediate)

    strong = sorted(
        (lvl for lvl in relevant if lvl.strength >= MIN_LEVEL_STRENGTH),
        key=lambda lvl: (-lvl.strength, lvl.distance_pips, lvl.price),
    )[:MAX_LEVEL_OPTIONS]
    for level in strong:
        option = level_option(action, level, levels, current_price, atr, spec)
        if option is not None:
            options.append(option)

    options.sort(key=lambda o: (-o.quality_score, o.distance_pips, o.entry_price))
    return options[:MAX_OPTIONS]


def select_best_entry(options: list[EntryOption]) -> Optional[EntryOption]:
    """Top-ranked option with confluence ≥ 2, strength ≥ 50 and R:R in band.

    Falls back to the top-ranked option when none qualifies.
    """
    if not options:
        return None
    for option in options:
        if (
            _rr_in_band(option.risk_reward)
            and option.confluence >= 2
            and option.strength >= 50
        ):
            return option
    return options[0]


def consistency_score(
    levels: list[TechnicalLevel], current_price: float, atr: float
) -> int:
    """How well-defined and clustered the level map is, 0–100.

    Rewards a moderate spread (0.5–2 × 4·ATR), high average confluence,
    a large share of strong (≥ 70) levels and major S/R within one ATR.
    """
    if not levels or atr <= 0:
        return 0
    prices = [lvl.price for lvl in levels]
    normalized_range = (max(prices) - min(prices)) / (atr * 4)
    if 0.5 <= normalized_range <= 2.0:
        score = 30.0
    else:
        score = max(0.0, 30 - abs(normalized_range - 1.25) * 10)

    avg_confluence = sum(lvl.confluence for lvl in levels) / len(levels)
    score += min(30.0, avg_confluence * 10)

    strong = sum(1 for lvl in levels if lvl.strength >= 70)
    score += strong / len(levels) * 25

    major_nearby = sum(
        1 for lvl in levels
        if lvl.level_type in (LevelType.SUPPORT, LevelType.RESISTANCE)
        and abs(lvl.price - current_price) <= atr
    )
    score += min(15, major_nearby * 5)
    return round(min(100.0, max(0.0, score)))


def analyze_entry_precision(
    symbol: str,
    features: FeatureSet,
    candles: list[CandleData],
    spec: InstrumentSpec,
    close_hour: int = DEFAULT_CLOSE_HOUR,
) -> EntryPrecisionAnalysis:
    """Rank entry options for both directions.

    Raises:
        MissingMarketDataError: If no ATR is available.
    """
    atr = require_atr(features, symbol)
    price = features.current_price

    levels = apply_confluence(collect_levels(features, candles, spec, close_hour), spec)
    max_pips = MAX_LEVEL_DISTANCE_ATR * atr / spec.pip_size
    levels = [lvl for lvl in levels if lvl.distance_pips <= max_pips]

    buy_options = generate_options("BUY", price, levels, atr, spec)
    sell_options = generate_options("SELL", price, levels, atr, spec)
    logger.debug(
        "%s: %d levels, %d buy / %d sell options",
        symbol, len(levels), len(buy_options), len(sell_options),
    )

    return EntryPrecisionAnalysis(
        symbol=symbol,
        current_price=price,
        pip_size=spec.pip_size,
        atr=atr,
        buy_options=tuple(buy_options),
        sell_options=tuple(sell_options),
        recommended_buy=select_best_entry(buy_options),
        recommended_sell=select_best_entry(sell_options),
        consistency_score=consistency_score(levels, price, atr),
        levels=tuple(levels),
    )

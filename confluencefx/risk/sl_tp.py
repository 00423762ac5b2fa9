"""Stop-loss and take-profit calculation — pure math, no I/O.

Stop:
    max(ATR × strategy multiplier, symbol minimum stop distance).

Target:
    stop distance × the strategy's desired R:R, capped by the nearest
    opposing S/R zone, clamped to [1.5, 2.5] R:R, then lifted to the
    symbol's minimum take-profit distance.  ``validate_spec`` guarantees
    that minimum is reachable within 2.5 R:R, so the lift never breaks
    the bound.
"""

from dataclasses import dataclass
from typing import Optional

from confluencefx.risk.instruments import MAX_RR, InstrumentSpec
from confluencefx.strategy.base import MissingMarketDataError, StrategyVariant
from confluencefx.strategy.models import Action, FeatureSet, SRZone

MIN_RR = 1.5
PLACEHOLDER_RR = 1.5
PLACEHOLDER_SL_ATR_MULT = 0.8

# Pip comparisons tolerate float noise such as 150.00 - 149.80 = 0.2000000000000171
PIP_TOLERANCE = 1e-6


@dataclass(frozen=True)
class TradeLevels:
    """Computed entry, stop-loss and take-profit for a trade."""

    action: Action
    entry: float
    stop_loss: float
    take_profit: float
    support: float
    resistance: float
    risk_reward: float
    stop_pips: float


def _check_action(action: str) -> None:
    if action not in ("BUY", "SELL"):
        raise ValueError(f"action must be 'BUY' or 'SELL', got '{action}'")


def _offset(price: float, action: str, distance: float, toward_profit: bool) -> float:
    sign = 1 if action == "BUY" else -1
    if not toward_profit:
        sign = -sign
    return price + sign * distance


def require_atr(features: FeatureSet, symbol: str) -> float:
    """ATR14 (or ATR20); raises ``MissingMarketDataError`` when neither exists."""
    atr = features.atr
    if atr is None or atr <= 0:
        raise MissingMarketDataError(f"ATR data not available for {symbol}")
    return atr


def nearest_support(zones: tuple[SRZone, ...], price: float) -> float:
    """Top edge of the closest zone wholly below *price*; *price* if none."""
    below = [z.max_price for z in zones if z.zone_type == "support" and z.max_price < price]
    return max(below) if below else price


def nearest_resistance(zones: tuple[SRZone, ...], price: float) -> float:
    """Bottom edge of the closest zone wholly above *price*; *price* if none."""
    above = [z.min_price for z in zones if z.zone_type == "resistance" and z.min_price > price]
    return min(above) if above else price


def enforce_min_stop(
    entry: float, stop_loss: float, action: str, spec: InstrumentSpec
) -> float:
    """Widen *stop_loss* to the symbol minimum only when strictly closer.

    A stop exactly at the minimum (e.g. USD/JPY 150.00 → 149.80) is
    returned unchanged.
    """
    _check_action(action)
    if spec.to_pips(entry - stop_loss) < spec.min_stop_pips - PIP_TOLERANCE:
        return _offset(entry, action, spec.min_stop_distance, toward_profit=False)
    return stop_loss


def enforce_min_target(
    entry: float, take_profit: float, action: str, spec: InstrumentSpec
) -> float:
    """Push *take_profit* out to the symbol minimum when strictly closer."""
    _check_action(action)
    if spec.to_pips(take_profit - entry) < spec.min_tp_pips - PIP_TOLERANCE:
        return _offset(entry, action, spec.min_tp_distance, toward_profit=True)
    return take_profit


def clamp_rr(rr: float) -> float:
    return max(MIN_RR, min(MAX_RR, rr))


def _target_distance(
    stop_dist: float,
    desired_rr: float,
    cap: Optional[float],
    spec: InstrumentSpec,
) -> float:
    tp_dist = stop_dist * clamp_rr(desired_rr)
    if cap is not None and cap > 0:
        tp_dist = min(tp_dist, cap)
    tp_dist = stop_dist * clamp_rr(tp_dist / stop_dist)
    return max(tp_dist, spec.min_tp_distance)


def _build(
    action: Action,
    entry: float,
    stop_dist: float,
    tp_dist: float,
    features: FeatureSet,
    spec: InstrumentSpec,
) -> TradeLevels:
    stop_loss = enforce_min_stop(
        entry, _offset(entry, action, stop_dist, toward_profit=False), action, spec
    )
    take_profit = enforce_min_target(
        entry, _offset(entry, action, tp_dist, toward_profit=True), action, spec
    )
    risk = abs(entry - stop_loss)
    return TradeLevels(
        action=action,
        entry=entry,
        stop_loss=stop_loss,
        take_profit=take_profit,
        support=nearest_support(features.sr_zones, entry),
        resistance=nearest_resistance(features.sr_zones, entry),
        risk_reward=round(abs(take_profit - entry) / risk, 2),
        stop_pips=spec.to_pips(risk),
    )


def calculate_levels(
    variant: StrategyVariant,
    action: Action,
    features: FeatureSet,
    spec: InstrumentSpec,
) -> TradeLevels:
    """Market-entry levels for a selected strategy and direction.

    Raises:
        MissingMarketDataError: If no ATR is available.
        ValueError: If *action* is not ``"BUY"`` or ``"SELL"``.
    """
    _check_action(action)
    atr = require_atr(features, spec.symbol)
    entry = features.current_price
    stop_dist = max(atr * variant.sl_atr_mult, spec.min_stop_distance)

    if action == "BUY":
        resistance = nearest_resistance(features.sr_zones, entry)
        cap = resistance - entry if resistance > entry else None
    else:
        support = nearest_support(features.sr_zones, entry)
        cap = entry - support if support < entry else None

    tp_dist = _target_distance(stop_dist, variant.target_rr(features), cap, spec)
    return _build(action, entry, stop_dist, tp_dist, features, spec)


def placeholder_levels(
    action: Action, features: FeatureSet, spec: InstrumentSpec
) -> TradeLevels:
    """Planning-only levels: 0.8 × ATR stop and a 1.5 R:R target."""
    _check_action(action)
    atr = require_atr(features, spec.symbol)
    entry = features.current_price
    stop_dist = max(PLACEHOLDER_SL_ATR_MULT * atr, spec.min_stop_distance)
    tp_dist = max(stop_dist * PLACEHOLDER_RR, spec.min_tp_distance)
    return _build(action, entry, stop_dist, tp_dist, features, spec)

"""Soft market gates and the no-signal / placeholder decision.

Gates never stop feature computation.  They only matter when no
strategy matched: with no gate active the answer is an explicit
``NoSignal``; with any gate active it is a low-confidence placeholder
that must never be executed.
"""

import logging
from typing import Union

from confluencefx.risk.confidence import placeholder_confidence
from confluencefx.risk.instruments import InstrumentSpec
from confluencefx.risk.sl_tp import placeholder_levels
from confluencefx.strategy.models import (
    Action,
    FeatureSet,
    MarketContext,
    NoSignal,
    Recommendation,
    StrategyKind,
)
from confluencefx.strategy.narrative import entry_timing

logger = logging.getLogger("confluencefx.gates")

MIN_MINUTES_TO_CLOSE = 120
MAX_SPREAD_Z = 2.0
MIN_ACTIVITY = -1.0

PLACEHOLDER_NOTE = (
    "Fallback: low-confidence placeholder due to market conditions "
    "(planning only, no auto-execution)."
)


def evaluate_gates(context: MarketContext) -> list[str]:
    """One message per active gate, in a fixed order."""
    gates: list[str] = []
    if context.is_weekend_or_holiday:
        gates.append("Market closed: Weekend/Holiday period")
    if context.minutes_to_close < MIN_MINUTES_TO_CLOSE:
        gates.append(f"Too close to daily close: {context.minutes_to_close} minutes remaining")
    if context.spread_z > MAX_SPREAD_Z:
        gates.append(f"High spread: Z-score {context.spread_z:.2f}")
    if context.activity_score < MIN_ACTIVITY:
        gates.append(f"Low activity: Score {context.activity_score:.2f}")
    return gates


def placeholder_direction(features: FeatureSet) -> Action:
    """Sign of the 4H bias, else of the EMA20 slope, else BUY."""
    for value in (features.bias4h, features.ema20_slope):
        if value is not None and value != 0:
            return "BUY" if value > 0 else "SELL"
    return "BUY"


def resolve_no_strategy(
    symbol: str,
    features: FeatureSet,
    context: MarketContext,
    spec: InstrumentSpec,
    gates: list[str],
    reasoning: list[str],
) -> Union[Recommendation, NoSignal]:
    """Outcome when the selector returned ``NONE``.

    *reasoning* already holds the selector's explanation and the gate
    messages.
    """
    if not gates:
        logger.info("%s: no setup and no active gate → no signal", symbol)
        return NoSignal(symbol=symbol, reasoning=tuple(reasoning))

    action = placeholder_direction(features)
    levels = placeholder_levels(action, features, spec)
    confidence = placeholder_confidence(len(gates))
    logger.info(
        "%s: no setup with %d gate(s) active → %s placeholder (confidence %d)",
        symbol, len(gates), action, confidence,
    )

    return Recommendation(
        symbol=symbol,
        action=action,
        confidence=confidence,
        entry=levels.entry,
        stop_loss=levels.stop_loss,
        take_profit=levels.take_profit,
        support=levels.support,
        resistance=levels.resistance,
        reasoning=tuple(reasoning + [PLACEHOLDER_NOTE]),
        risk_reward=levels.risk_reward,
        entry_conditions=(
            "Avoid entries until normal market conditions resume; "
            "use this only for planning."
        ),
        entry_timing=entry_timing(context.session, context.minutes_to_close),
        volume_confirmation="Wait for activity to normalize; volume currently insufficient",
        candlestick_signals="Do not act solely on this placeholder signal",
        strategy=StrategyKind.NONE,
        position_size=0.0,
    )

"""Trend strategy — price, EMA20 slope and 4H bias all pointing the same way.

Rules:
    - **Bullish**: price > EMA100 AND EMA20 slope > 0 AND 4H bias > 0.
    - **Bearish**: price < EMA100 AND EMA20 slope < 0 AND 4H bias < 0.
    - Anything else (or any input unavailable) is no trend.
"""

from typing import Optional

from confluencefx.strategy.base import STRONG_TARGET_RR, base_target_rr
from confluencefx.strategy.models import Action, FeatureSet, StrategyKind

MIN_CONFLUENCE = 55
STRONG_BIAS = 0.5
STRONG_MIN_CONFLUENCE = 65
STRONG_MAX_ADR_PCT = 80.0
STRONG_BIAS_BONUS = 5


def trend_alignment(features: FeatureSet) -> Optional[Action]:
    """Return ``"BUY"`` / ``"SELL"`` for an aligned trend, else ``None``."""
    ema100 = features.ema100
    slope = features.ema20_slope
    bias = features.bias4h
    if ema100 is None or slope is None or bias is None:
        return None
    price = features.current_price
    if price > ema100 and slope > 0 and bias > 0:
        return "BUY"
    if price < ema100 and slope < 0 and bias < 0:
        return "SELL"
    return None


def is_strong_bias(features: FeatureSet) -> bool:
    return features.bias4h is not None and abs(features.bias4h) > STRONG_BIAS


class TrendStrategy:
    """Trend continuation with confluence ≥ 55.

    Implements ``StrategyVariant``.
    """

    kind = StrategyKind.TREND
    sl_atr_mult = 0.8
    tp_atr_mult = 1.6

    def matches(self, features: FeatureSet) -> bool:
        if features.confluence_score < MIN_CONFLUENCE:
            return False
        return trend_alignment(features) is not None

    def direction(self, features: FeatureSet) -> Optional[Action]:
        return trend_alignment(features)

    def target_rr(self, features: FeatureSet) -> float:
        adr_ok = features.adr_used_pct is None or features.adr_used_pct < STRONG_MAX_ADR_PCT
        if (
            is_strong_bias(features)
            and features.confluence_score >= STRONG_MIN_CONFLUENCE
            and adr_ok
        ):
            return STRONG_TARGET_RR
        return base_target_rr(features)

    def confidence_bonus(self, features: FeatureSet) -> int:
        return STRONG_BIAS_BONUS if is_strong_bias(features) else 0

    def setup_reasoning(self, features: FeatureSet) -> list[str]:
        side = "Bullish" if trend_alignment(features) == "BUY" else "Bearish"
        reasons = [f"{side} trend alignment"]
        if features.dist_to_ema100_bps is not None:
            reasons.append(f"Price vs EMA100: {features.dist_to_ema100_bps:.1f} bps")
        if features.bias4h is not None:
            reasons.append(f"4H bias: {features.bias4h:.2f}")
        return reasons

    def entry_conditions(self, features: FeatureSet) -> str:
        if features.ema20 is None:
            return "Enter on pullback toward EMA20 with a close in trend direction"
        return (
            f"Enter on pullback to EMA20 ({features.ema20:.5f}) "
            "with a close in trend direction"
        )

"""Breakout strategy — squeeze coiled around the 60-minute opening range."""

from typing import Optional

from confluencefx.strategy.base import STRONG_TARGET_RR, base_target_rr
from confluencefx.strategy.models import Action, FeatureSet, StrategyKind

MIN_CONFLUENCE = 60
OR_PROXIMITY_ATR = 0.2
SQUEEZE_BONUS = 10


class BreakoutStrategy:
    """Squeeze active, price near the OR60 midpoint, confluence ≥ 60.

    Implements ``StrategyVariant``.
    """

    kind = StrategyKind.BREAKOUT
    sl_atr_mult = 0.8
    tp_atr_mult = 1.6

    def matches(self, features: FeatureSet) -> bool:
        opening_range = features.opening_range
        if not features.squeeze or opening_range is None or features.atr20 is None:
            return False
        if features.confluence_score < MIN_CONFLUENCE:
            return False
        distance = abs(features.current_price - opening_range.midpoint)
        return distance <= OR_PROXIMITY_ATR * features.atr20

    def direction(self, features: FeatureSet) -> Optional[Action]:
        """Follow a confirmed OR break, else anticipate it from VWAP and EMAs."""
        price = features.current_price
        slope = features.ema20_slope
        opening_range = features.opening_range
        if opening_range is not None and slope is not None:
            if price > opening_range.high and slope > 0:
                return "BUY"
            if price < opening_range.low and slope < 0:
                return "SELL"

        vwap_bps = features.distance_to_vwap_bps
        if vwap_bps is None or features.ema20 is None or features.ema50 is None:
            return None
        if vwap_bps > 0 and features.ema20 > features.ema50:
            return "BUY"
        if vwap_bps < 0 and features.ema20 < features.ema50:
            return "SELL"
        return None

    def target_rr(self, features: FeatureSet) -> float:
        if features.squeeze:
            return STRONG_TARGET_RR
        return base_target_rr(features)

    def confidence_bonus(self, features: FeatureSet) -> int:
        return SQUEEZE_BONUS if features.squeeze else 0

    def setup_reasoning(self, features: FeatureSet) -> list[str]:
        return [
            "Squeeze detected with OR60 proximity",
            f"Confluence score: {features.confluence_score}",
        ]

    def entry_conditions(self, features: FeatureSet) -> str:
        state = features.opening_range.state if features.opening_range else "unknown"
        return (
            "Wait for squeeze expansion with volume confirmation. "
            f"Entry on close beyond OR60 (currently {state})"
        )

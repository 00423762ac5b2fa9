"""Mean Reversion strategy — fades an RSI extreme at a support/resistance zone.

Matches when price is within 0.15 × ATR14 of a zone, the day's range is
not exhausted (≤ 85 % of ADR) and RSI(14) is beyond 30/70.  A direction
is only given once price is inside the zone itself.
"""

from typing import Optional

from confluencefx.strategy.base import NEAR_ZONE_TARGET_RR
from confluencefx.strategy.models import Action, FeatureSet, StrategyKind

MIN_CONFLUENCE = 50
ZONE_PROXIMITY_ATR = 0.15
MAX_ADR_USED_PCT = 85.0
RSI_OVERBOUGHT = 70.0
RSI_OVERSOLD = 30.0
NEUTRAL_RSI = 50.0


def is_rsi_extreme(rsi: float) -> bool:
    return rsi < RSI_OVERSOLD or rsi > RSI_OVERBOUGHT


def _rsi(features: FeatureSet) -> float:
    # Unavailable RSI reads as neutral, which never qualifies
    return NEUTRAL_RSI if features.rsi14 is None else features.rsi14


class MeanReversionStrategy:
    """Counter-trend entry at a zone.

    Implements ``StrategyVariant``.
    """

    kind = StrategyKind.MEAN_REVERSION
    sl_atr_mult = 0.6
    tp_atr_mult = 1.2

    def matches(self, features: FeatureSet) -> bool:
        if features.confluence_score < MIN_CONFLUENCE:
            return False
        atr14 = features.atr14
        distance = features.distance_to_zone
        if atr14 is None or distance is None or distance > ZONE_PROXIMITY_ATR * atr14:
            return False
        adr_used = features.adr_used_pct
        if adr_used is None or adr_used > MAX_ADR_USED_PCT:
            return False
        return is_rsi_extreme(_rsi(features))

    def direction(self, features: FeatureSet) -> Optional[Action]:
        """Overbought → SELL, oversold → BUY; ``None`` outside a zone."""
        if not features.in_zone:
            return None
        rsi = _rsi(features)
        if rsi > RSI_OVERBOUGHT:
            return "SELL"
        if rsi < RSI_OVERSOLD:
            return "BUY"
        return None

    def target_rr(self, features: FeatureSet) -> float:
        return NEAR_ZONE_TARGET_RR

    def confidence_bonus(self, features: FeatureSet) -> int:
        return 0

    def setup_reasoning(self, features: FeatureSet) -> list[str]:
        reasons = [f"RSI extreme: {_rsi(features):.1f}"]
        if features.distance_to_zone is not None:
            reasons.append(f"Near SR zone: {features.distance_to_zone:.5f}")
        if features.adr_used_pct is not None:
            reasons.append(f"ADR used: {features.adr_used_pct:.1f}%")
        return reasons

    def entry_conditions(self, features: FeatureSet) -> str:
        return "Enter at SR zone with RSI divergence confirmation"

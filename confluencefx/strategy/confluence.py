"""Confluence scoring — how many independent signals agree, on a 0–100 scale.

Each component reads already-computed features; an unavailable input
(``None``) contributes nothing.
"""

from typing import Optional

from confluencefx.strategy.models import FeatureSet, PRIME_SESSIONS, Session

TREND_POINTS = 15
BIAS_AGREEMENT_POINTS = 15
VOL_MEDIUM_POINTS = 15
VOL_HIGH_SQUEEZE_POINTS = 10
VOL_LOW_POINTS = 5
SPACING_TREND_POINTS = 20
SPACING_WIDE_POINTS = 10
SPACING_TIGHT_POINTS = 15
SQUEEZE_VWAP_POINTS = 15
ADR_EXHAUSTED_PENALTY = -10
SESSION_VWAP_POINTS = 10

WIDE_SPACING_ATR = 0.25
TIGHT_SPACING_ATR = 0.15
SQUEEZE_VWAP_BPS = 20.0
ADR_EXHAUSTED_PCT = 80.0


def trend_direction(features: FeatureSet) -> int:
    """+1 / -1 when EMA20 slope and EMA100 distance agree in sign, else 0."""
    slope = features.ema20_slope
    dist = features.dist_to_ema100_bps
    if slope is None or dist is None:
        return 0
    if slope > 0 and dist > 0:
        return 1
    if slope < 0 and dist < 0:
        return -1
    return 0


def _sign(value: Optional[float]) -> int:
    if value is None or value == 0:
        return 0
    return 1 if value > 0 else -1


def confluence_components(
    features: FeatureSet, session: Session
) -> list[tuple[str, int]]:
    """Every scoring component that fired, as ``(label, points)`` pairs."""
    parts: list[tuple[str, int]] = []
    trend = trend_direction(features)

    if trend:
        parts.append(("1H trend aligned", TREND_POINTS))
        if _sign(features.bias4h) == trend:
            parts.append(("4H bias agrees with 1H trend", BIAS_AGREEMENT_POINTS))

    if features.vol4h == "medium":
        parts.append(("4H volatility medium", VOL_MEDIUM_POINTS))
    elif features.vol4h == "high" and features.squeeze:
        parts.append(("squeeze during high 4H volatility", VOL_HIGH_SQUEEZE_POINTS))
    elif features.vol4h == "low":
        parts.append(("4H volatility low", VOL_LOW_POINTS))

    atr = features.atr
    distance = features.distance_to_zone
    if atr is not None and atr > 0 and distance is not None:
        if distance > WIDE_SPACING_ATR * atr:
            if trend:
                parts.append(("clear of S/R zones for trend", SPACING_TREND_POINTS))
            else:
                parts.append(("clear of S/R zones", SPACING_WIDE_POINTS))
        elif distance <= TIGHT_SPACING_ATR * atr:
            parts.append(("at S/R zone for reversion", SPACING_TIGHT_POINTS))

    vwap_bps = features.distance_to_vwap_bps
    if features.squeeze and vwap_bps is not None and abs(vwap_bps) < SQUEEZE_VWAP_BPS:
        parts.append(("squeeze near VWAP", SQUEEZE_VWAP_POINTS))

    if features.adr_used_pct is not None and features.adr_used_pct > ADR_EXHAUSTED_PCT:
        parts.append(("daily range mostly used", ADR_EXHAUSTED_PENALTY))

    if session in PRIME_SESSIONS:
        vwap_side = _sign(vwap_bps)
        if vwap_side and vwap_side == _sign(features.ema20_slope):
            parts.append((f"{session.value} session, price on trend side of VWAP",
                          SESSION_VWAP_POINTS))

    return parts


def calculate_confluence(features: FeatureSet, session: Session) -> int:
    """Sum of the fired components, clamped to [0, 100]."""
    total = sum(points for _, points in confluence_components(features, session))
    return max(0, min(100, total))

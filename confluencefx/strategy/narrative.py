"""Human-readable guidance strings attached to every recommendation."""

from confluencefx.strategy.models import FeatureSet, Session


def entry_timing(session: Session, minutes_to_close: int) -> str:
    if session is Session.OVERLAP:
        return "Optimal timing - London-NY overlap period"
    if session is Session.LONDON:
        return "Good timing - London session active"
    if minutes_to_close < 180:
        return f"Caution - Only {minutes_to_close} minutes until daily close"
    return "Standard market hours"


def volume_confirmation(activity_score: float) -> str:
    if activity_score > 1:
        return "High activity - strong volume confirmation"
    if activity_score > 0:
        return "Moderate activity - adequate volume"
    return "Low activity - monitor for volume pickup"


def candlestick_signals(features: FeatureSet) -> str:
    ratio = features.candle_body_ratio
    if ratio > 0.7:
        return "Strong directional candle - good momentum signal"
    if ratio > 0.5:
        return "Moderate body size - decent directional bias"
    return "Small body - indecision or consolidation"

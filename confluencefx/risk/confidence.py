"""Confidence scoring for recommendations — pure math."""

from confluencefx.strategy.models import FeatureSet, PRIME_SESSIONS, Session

BASE_CONFIDENCE = 50
SESSION_BONUS = 5
ADR_WARN_PCT = 80.0
ADR_WARN_PENALTY = 10
ADR_EXHAUSTED_PCT = 90.0
ADR_EXHAUSTED_PENALTY = 20

MIN_CONFIDENCE = 20
MAX_CONFIDENCE = 90

PLACEHOLDER_BASE = 25
PLACEHOLDER_GATE_PENALTY = 5
PLACEHOLDER_MAX = 35


def calculate_confidence(
    features: FeatureSet, session: Session, strategy_bonus: int = 0
) -> int:
    """Confidence for a deterministic signal, clamped to [20, 90].

    Formula::

        50 + floor(confluence / 2) + strategy_bonus
           + 5 in London / Overlap
           − 10 when ADR used > 80 %  (− 20 instead when > 90 %)
    """
    confidence = BASE_CONFIDENCE + features.confluence_score // 2 + strategy_bonus
    if session in PRIME_SESSIONS:
        confidence += SESSION_BONUS

    adr_used = features.adr_used_pct
    if adr_used is not None:
        if adr_used > ADR_EXHAUSTED_PCT:
            confidence -= ADR_EXHAUSTED_PENALTY
        elif adr_used > ADR_WARN_PCT:
            confidence -= ADR_WARN_PENALTY

    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, confidence))


def placeholder_confidence(active_gates: int) -> int:
    """25 minus 5 per active gate, clamped to [20, 35]."""
    confidence = PLACEHOLDER_BASE - PLACEHOLDER_GATE_PENALTY * active_gates
    return max(MIN_CONFIDENCE, min(PLACEHOLDER_MAX, confidence))

"""Tests for soft gates and the no-signal / placeholder decision."""

import pytest

from confluencefx.risk.instruments import InstrumentTable
from confluencefx.strategy.gatekeeper import (
    PLACEHOLDER_NOTE,
    evaluate_gates,
    placeholder_direction,
    resolve_no_strategy,
)
from confluencefx.strategy.models import (
    FeatureSet,
    MarketContext,
    NoSignal,
    Recommendation,
    Session,
    SRZone,
    StrategyKind,
)

EURUSD = InstrumentTable().get("EURUSD")

ZONES = (
    SRZone("support", 1.0940, 1.0945, touch_count=3, strength=31),
    SRZone("resistance", 1.1100, 1.1105, touch_count=2, strength=20),
)


def _features(**overrides) -> FeatureSet:
    base = dict(current_price=1.1000, degraded=False, atr14=0.0010, sr_zones=ZONES)
    base.update(overrides)
    return FeatureSet(**base)


def _context(**overrides) -> MarketContext:
    base = dict(session=Session.LONDON, minutes_to_close=600, is_weekend_or_holiday=False)
    base.update(overrides)
    return MarketContext(**base)


class TestEvaluateGates:
    def test_quiet_market_has_no_gates(self):
        assert evaluate_gates(_context()) == []

    def test_fixed_order(self):
        ctx = _context(
            is_weekend_or_holiday=True,
            minutes_to_close=45,
            spread_z=2.5,
            activity_score=-1.5,
        )
        assert evaluate_gates(ctx) == [
            "Market closed: Weekend/Holiday period",
            "Too close to daily close: 45 minutes remaining",
            "High spread: Z-score 2.50",
            "Low activity: Score -1.50",
        ]

    def test_thresholds_are_strict(self):
        ctx = _context(minutes_to_close=120, spread_z=2.0, activity_score=-1.0)
        assert evaluate_gates(ctx) == []


class TestPlaceholderDirection:
    def test_bias_wins(self):
        assert placeholder_direction(_features(bias4h=-0.2, ema20_slope=0.001)) == "SELL"

    def test_slope_when_bias_missing_or_flat(self):
        assert placeholder_direction(_features(ema20_slope=-0.001)) == "SELL"
        assert placeholder_direction(_features(bias4h=0.0, ema20_slope=0.001)) == "BUY"

    def test_defaults_to_buy(self):
        assert placeholder_direction(_features()) == "BUY"


class TestResolveNoStrategy:
    def test_no_gates_gives_no_signal(self):
        result = resolve_no_strategy(
            "EURUSD", _features(), _context(), EURUSD, [], ["No valid setup detected"]
        )
        assert isinstance(result, NoSignal)
        assert result.reasoning == ("No valid setup detected",)

    def test_weekend_gives_placeholder(self):
        """No strategy matched during the weekend → planning-only placeholder."""
        ctx = _context(is_weekend_or_holiday=True)
        gates = evaluate_gates(ctx)
        result = resolve_no_strategy(
            "EURUSD", _features(ema20_slope=-0.0004), ctx, EURUSD, gates,
            ["No valid setup detected", *gates],
        )

        assert isinstance(result, Recommendation)
        assert result.strategy is StrategyKind.NONE
        assert result.is_placeholder and not result.actionable
        assert result.action == "SELL"
        assert result.confidence <= 35
        assert result.position_size == 0.0
        assert "Market closed: Weekend/Holiday period" in result.reasoning
        assert result.reasoning[-1] == PLACEHOLDER_NOTE
        assert result.take_profit < result.entry < result.stop_loss

    @pytest.mark.parametrize("n_gates, expected", [(1, 20), (3, 20)])
    def test_placeholder_confidence_stays_low(self, n_gates, expected):
        gates = ["gate"] * n_gates
        result = resolve_no_strategy("EURUSD", _features(), _context(), EURUSD, gates, gates)
        assert result.confidence == expected

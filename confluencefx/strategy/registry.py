"""Strategy registry — maps ``StrategyKind`` to its variant class.

Insertion order is selection priority: Breakout, then Trend, then
Mean Reversion.
"""

from confluencefx.strategy.base import StrategyVariant
from confluencefx.strategy.breakout import BreakoutStrategy
from confluencefx.strategy.mean_reversion import MeanReversionStrategy
from confluencefx.strategy.models import StrategyKind
from confluencefx.strategy.trend import TrendStrategy


STRATEGY_REGISTRY: dict[StrategyKind, type] = {
    StrategyKind.BREAKOUT: BreakoutStrategy,
    StrategyKind.TREND: TrendStrategy,
    StrategyKind.MEAN_REVERSION: MeanReversionStrategy,
}


def get_strategy(kind: StrategyKind) -> StrategyVariant:
    """Look up and instantiate a strategy by kind.

    Raises ``KeyError`` for ``StrategyKind.NONE`` or an unregistered kind.
    """
    if kind not in STRATEGY_REGISTRY:
        raise KeyError(
            f"Unknown strategy '{kind.value}'. "
            f"Available: {', '.join(k.value for k in STRATEGY_REGISTRY)}"
        )
    return STRATEGY_REGISTRY[kind]()


def selection_order() -> list[StrategyVariant]:
    """Fresh variant instances in priority order."""
    return [get_strategy(kind) for kind in STRATEGY_REGISTRY]

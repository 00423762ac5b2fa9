"""Strategy selection — first matching variant wins, else ``NONE``."""

import logging

from confluencefx.strategy.base import Selection
from confluencefx.strategy.models import FeatureSet, StrategyKind
from confluencefx.strategy.registry import selection_order

logger = logging.getLogger("confluencefx.selector")


def select_strategy(features: FeatureSet) -> Selection:
    """Pick Breakout → Trend → Mean Reversion, or ``NONE``.

    A variant that matches but cannot name a direction ends selection
    with ``NONE`` and says so in the reasoning.
    """
    for variant in selection_order():
        if not variant.matches(features):
            continue
        action = variant.direction(features)
        if action is None:
            logger.debug("%s matched without a clear direction", variant.kind.value)
            return Selection(
                kind=StrategyKind.NONE,
                reasoning=(
                    f"{variant.kind.value} setup matched but direction is undetermined",
                ),
            )
        return Selection(
            kind=variant.kind,
            action=action,
            reasoning=tuple(variant.setup_reasoning(features)),
        )

    return Selection(
        kind=StrategyKind.NONE,
        reasoning=(
            "No valid setup detected",
            f"Confluence: {features.confluence_score}, Squeeze: {features.squeeze}",
        ),
    )

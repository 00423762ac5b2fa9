"""Strategy protocol, selection result and the shared provider contract.

Defines the interface every strategy variant implements and the
``RecommendationProvider`` contract shared by the deterministic engine
and any alternative recommendation source.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol, Union, runtime_checkable

from confluencefx.strategy.models import (
    Action,
    FeatureSet,
    NoSignal,
    Recommendation,
    StrategyKind,
)

if TYPE_CHECKING:
    from confluencefx.engine import SignalRequest

# Default and "near S/R" reward targets shared by the variants
BASE_TARGET_RR = 2.0
NEAR_ZONE_TARGET_RR = 1.75
STRONG_TARGET_RR = 2.25
NEAR_ZONE_ATR = 0.1


class MissingMarketDataError(ValueError):
    """ATR or S/R zones are unavailable, so no stop/target can be derived."""


@dataclass(frozen=True)
class Selection:
    """The selector's verdict for one feature snapshot.

    ``action`` is ``None`` exactly when ``kind`` is ``StrategyKind.NONE``.
    """

    kind: StrategyKind
    action: Optional[Action] = None
    reasoning: tuple[str, ...] = ()


def near_zone(features: FeatureSet) -> bool:
    """Inside a zone, or within 0.1 × ATR14 of one."""
    if features.in_zone:
        return True
    atr = features.atr14 if features.atr14 is not None else 1.0
    distance = features.distance_to_zone
    return distance is not None and distance <= NEAR_ZONE_ATR * atr


def base_target_rr(features: FeatureSet) -> float:
    """1.75 next to S/R, 2.0 otherwise."""
    return NEAR_ZONE_TARGET_RR if near_zone(features) else BASE_TARGET_RR


@runtime_checkable
class StrategyVariant(Protocol):
    """Interface that all strategy variants must satisfy."""

    kind: StrategyKind
    sl_atr_mult: float
    tp_atr_mult: float

    def matches(self, features: FeatureSet) -> bool:
        """True when the feature snapshot meets this setup's conditions."""
        ...

    def direction(self, features: FeatureSet) -> Optional[Action]:
        """Trade side, or ``None`` when it cannot be determined."""
        ...

    def target_rr(self, features: FeatureSet) -> float:
        ...

    def confidence_bonus(self, features: FeatureSet) -> int:
        ...

    def setup_reasoning(self, features: FeatureSet) -> list[str]:
        ...

    def entry_conditions(self, features: FeatureSet) -> str:
        ...


@runtime_checkable
class RecommendationProvider(Protocol):
    """Anything that turns a request snapshot into a trade decision."""

    def recommend(self, request: SignalRequest) -> Union[Recommendation, NoSignal]:
        ...

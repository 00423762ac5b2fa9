"""Support/Resistance zone detection from fractal swing points — pure functions."""

from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from confluencefx.strategy.indicators import find_swing_highs, find_swing_lows
from confluencefx.strategy.models import CandleData, SRZone

MAX_SWINGS = 80
MAX_ZONES = 10
MIN_TOUCHES = 2
RECENCY_BONUS_CAP = 5


@dataclass(frozen=True)
class NearestZone:
    """Where *price* sits relative to the detected zones.

    ``distance`` is ``None`` when there are no zones at all.
    """

    distance: Optional[float]
    in_zone: bool
    strength: int


def collect_swing_prices(
    candles: list[CandleData], window: int = 2
) -> list[float]:
    """Swing high and low prices in chronological order.

    When a single bar is both a swing high and a swing low, the high is
    listed first.
    """
    points = [(i, 0, price) for i, price in find_swing_highs(candles, window)]
    points += [(i, 1, price) for i, price in find_swing_lows(candles, window)]
    points.sort()
    return [price for _, _, price in points]


def zone_bin_width(adr: Optional[float], pip_size: float) -> float:
    """Bin width = a quarter of the average daily range, at least one pip."""
    quarter_adr_pips = (0.25 * adr / pip_size) if adr else 0.0
    return max(quarter_adr_pips, 1.0) * pip_size


def _zone_strength(touch_count: int, recent_touches: int) -> int:
    """10 points per touch plus a capped bonus for recent touches.

    The bonus never exceeds 5, so one extra touch always outweighs it.
    """
    return 10 * touch_count + min(recent_touches, RECENCY_BONUS_CAP)


def detect_sr_zones(
    candles: list[CandleData],
    adr: Optional[float],
    pip_size: float,
    reference_price: Optional[float] = None,
    swing_window: int = 2,
) -> list[SRZone]:
    """Detect support and resistance zones from clustered swing prices.

    Args:
        candles: Candle history, oldest-first (normally H1).
        adr: Average daily range used to size the bins; ``None`` → one pip.
        pip_size: Pip unit of the instrument.
        reference_price: Price that splits support from resistance.
            Defaults to the last close.
        swing_window: Fractal radius for swing detection.

    Returns:
        Up to ten ``SRZone`` objects, strongest first (ties broken by
        price).  Empty when fewer than two swings share a bin.
    """
    if not candles:
        return []

    swings = collect_swing_prices(candles, swing_window)[-MAX_SWINGS:]
    if not swings:
        return []

    if reference_price is None:
        reference_price = candles[-1].close

    width = zone_bin_width(adr, pip_size)
    recent_start = len(swings) - len(swings) // 3

    bins: dict[int, list[tuple[int, float]]] = defaultdict(list)
    for idx, price in enumerate(swings):
        bins[round(price / width)].append((idx, price))

    zones: list[SRZone] = []
    for members in bins.values():
        if len(members) < MIN_TOUCHES:
            continue
        prices = [p for _, p in members]
        recent = sum(1 for idx, _ in members if idx >= recent_start)
        low = min(prices)
        high = max(prices)
        midpoint = (low + high) / 2.0
        zones.append(
            SRZone(
                zone_type="support" if midpoint < reference_price else "resistance",
                min_price=low,
                max_price=high,
                touch_count=len(members),
                strength=_zone_strength(len(members), recent),
            )
        )

    zones.sort(key=lambda z: (-z.strength, z.min_price))
    return zones[:MAX_ZONES]


def nearest_zone(zones: list[SRZone], price: float) -> NearestZone:
    """Distance from *price* to the closest zone edge.

    Inside a zone the distance is 0 and the strength is that of the
    strongest containing zone.
    """
    if not zones:
        return NearestZone(distance=None, in_zone=False, strength=0)

    containing = [z for z in zones if z.contains(price)]
    if containing:
        return NearestZone(
            distance=0.0,
            in_zone=True,
            strength=max(z.strength for z in containing),
        )

    closest = min(zones, key=lambda z: (z.distance_to(price), -z.strength))
    return NearestZone(
        distance=closest.distance_to(price),
        in_zone=False,
        strength=closest.strength,
    )


def opposing_zone(
    zones: list[SRZone], price: float, action: str
) -> Optional[SRZone]:
    """Nearest zone lying wholly in the profit direction of *action*.

    For a BUY that is the closest zone above *price*; for a SELL the
    closest zone below.
    """
    if action == "BUY":
        above = [z for z in zones if z.min_price > price]
        return min(above, key=lambda z: z.min_price) if above else None
    below = [z for z in zones if z.max_price < price]
    return max(below, key=lambda z: z.max_price) if below else None

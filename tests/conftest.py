"""Shared candle fixtures.

All series are synthetic and fully deterministic.  The default start is
Monday 2025-03-03 00:00 UTC, so 100 hourly bars end on Friday 03:00 UTC
(Tokyo session, market open, 18 h before the daily close).
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from confluencefx.strategy.models import CandleData

START = datetime(2025, 3, 3, tzinfo=timezone.utc)


def build_candles(
    closes: list[float],
    start: datetime = START,
    step: timedelta = timedelta(hours=1),
    wick: float = 0.0003,
    volume: float = 1000.0,
) -> list[CandleData]:
    """Bars whose open is the midpoint of the previous and current close.

    This keeps swing highs/lows strict at the turning points of a wave.
    """
    candles = []
    prev = closes[0]
    for i, close in enumerate(closes):
        open_ = (prev + close) / 2
        candles.append(
            CandleData(
                time=(start + step * i).strftime("%Y-%m-%dT%H:%M:%SZ"),
                open=open_,
                high=max(open_, close) + wick,
                low=min(open_, close) - wick,
                close=close,
                volume=volume,
            )
        )
        prev = close
    return candles


def sine_closes(
    n: int,
    base: float = 1.1000,
    amplitude: float = 0.0030,
    period: int = 24,
    drift: float = 0.0,
) -> list[float]:
    return [
        base + drift * i + amplitude * math.sin(2 * math.pi * i / period)
        for i in range(n)
    ]


@pytest.fixture
def make_candles():
    return build_candles


@pytest.fixture
def ranging_h1() -> list[CandleData]:
    """100 H1 bars of a 60-pip daily wave around 1.1000."""
    return build_candles(sine_closes(100))


@pytest.fixture
def trending_h4() -> list[CandleData]:
    """80 H4 bars climbing 10 pips per bar."""
    closes = [1.0700 + 0.0010 * i for i in range(80)]
    return build_candles(closes, start=START - timedelta(hours=4 * 80), step=timedelta(hours=4))

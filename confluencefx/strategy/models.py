"""Strategy data models — typed representations for engine inputs and outputs."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional


Action = Literal["BUY", "SELL"]


class StrategyKind(str, Enum):
    """The closed set of strategies the selector can return."""

    BREAKOUT = "BREAKOUT"
    TREND = "TREND"
    MEAN_REVERSION = "MEANREV"
    NONE = "NONE"


class Session(str, Enum):
    """Active FX trading session (UTC clock)."""

    SYDNEY = "Sydney"
    TOKYO = "Tokyo"
    LONDON = "London"
    NEW_YORK = "NewYork"
    OVERLAP = "Overlap"
    CLOSED = "Closed"


# Sessions that earn the confluence / confidence session bonus
PRIME_SESSIONS = (Session.LONDON, Session.OVERLAP)


@dataclass(frozen=True)
class CandleData:
    """A single candlestick bar for strategy consumption."""

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: Optional[float] = None


def parse_candle_time(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 candle timestamp into an aware UTC datetime.

    Returns ``None`` for strings that are not ISO timestamps.
    """
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class SRZone:
    """A support or resistance price band built from clustered swing points."""

    zone_type: Literal["support", "resistance"]
    min_price: float
    max_price: float
    touch_count: int
    strength: int

    @property
    def price_level(self) -> float:
        """Midpoint of the zone."""
        return (self.min_price + self.max_price) / 2.0

    def contains(self, price: float) -> bool:
        return self.min_price <= price <= self.max_price

    def distance_to(self, price: float) -> float:
        """Distance from *price* to the nearest zone edge (0 inside the zone)."""
        if self.contains(price):
            return 0.0
        return min(abs(price - self.min_price), abs(price - self.max_price))


@dataclass(frozen=True)
class OpeningRange:
    """High/low of the first 60 minutes of the current session."""

    high: float
    low: float
    state: Literal["inside", "break"]
    break_direction: Optional[Literal["up", "down"]] = None

    @property
    def midpoint(self) -> float:
        return (self.high + self.low) / 2.0


@dataclass(frozen=True)
class MarketContext:
    """Gating signals for one call; never price data."""

    session: Session
    minutes_to_close: int
    is_weekend_or_holiday: bool
    spread_z: float = 0.0
    activity_score: float = 0.0


@dataclass(frozen=True)
class FeatureSet:
    """Everything the selector, level calculator and ranker read.

    ``None`` means the feature could not be computed from the supplied
    history; consumers must treat it as unavailable rather than zero.
    """

    current_price: float
    degraded: bool

    # Daily context
    adr20: Optional[float] = None
    adr_used_pct: Optional[float] = None
    daily_bias: int = 0

    # Trend
    ema20: Optional[float] = None
    ema50: Optional[float] = None
    ema100: Optional[float] = None
    ema20_slope: Optional[float] = None
    ema50_slope: Optional[float] = None
    ema100_slope: Optional[float] = None
    dist_to_ema100_bps: Optional[float] = None
    sma10: Optional[float] = None
    sma20: Optional[float] = None

    # Momentum / volatility
    atr14: Optional[float] = None
    atr20: Optional[float] = None
    rsi14: Optional[float] = None
    macd_histogram: Optional[float] = None
    bb_upper: Optional[float] = None
    bb_middle: Optional[float] = None
    bb_lower: Optional[float] = None
    bb_width: Optional[float] = None
    keltner_width: Optional[float] = None
    squeeze: bool = False

    # Structure
    donchian_position: float = 0.5
    hh_flag: bool = False
    ll_flag: bool = False
    candle_body_ratio: float = 0.0
    swing_high: Optional[float] = None
    swing_low: Optional[float] = None
    session_high: Optional[float] = None
    session_low: Optional[float] = None

    # VWAP / opening range
    vwap: Optional[float] = None
    distance_to_vwap_bps: Optional[float] = None
    opening_range: Optional[OpeningRange] = None

    # Activity / spread
    z_tr20: float = 0.0
    z_abs_ret20: float = 0.0
    activity_score: float = 0.0
    spread_z: float = 0.0

    # Higher timeframe
    bias4h: Optional[float] = None
    vol4h: Optional[Literal["low", "medium", "high"]] = None

    # Zones
    sr_zones: tuple[SRZone, ...] = ()
    distance_to_zone: Optional[float] = None
    in_zone: bool = False
    nearest_zone_strength: int = 0

    confluence_score: int = 0

    @property
    def atr(self) -> Optional[float]:
        """ATR14, or ATR20 when ATR14 is unavailable."""
        return self.atr14 if self.atr14 is not None else self.atr20


@dataclass(frozen=True)
class Recommendation:
    """Terminal result of one pipeline run."""

    symbol: str
    action: Action
    confidence: int
    entry: float
    stop_loss: float
    take_profit: float
    support: float
    resistance: float
    reasoning: tuple[str, ...]
    risk_reward: float
    entry_conditions: str
    entry_timing: str
    volume_confirmation: str
    candlestick_signals: str
    strategy: StrategyKind
    position_size: float

    @property
    def is_placeholder(self) -> bool:
        """Placeholders are planning aids, never executable trades."""
        return self.strategy is StrategyKind.NONE

    @property
    def actionable(self) -> bool:
        return not self.is_placeholder


@dataclass(frozen=True)
class NoSignal:
    """Explicit "nothing to trade" result."""

    symbol: str
    reasoning: tuple[str, ...] = ()


# ── Entry precision ──────────────────────────────────────────────────────


class LevelType(str, Enum):
    """Source of a candidate entry level."""

    EMA = "EMA"
    SMA = "SMA"
    FIBONACCI = "FIBONACCI"
    SUPPORT = "SUPPORT"
    RESISTANCE = "RESISTANCE"
    PIVOT = "PIVOT"
    BOLLINGER = "BOLLINGER"
    VWAP = "VWAP"
    OPENING_RANGE = "OPENING_RANGE"
    SESSION_LEVEL = "SESSION_LEVEL"


class EntryClassification(str, Enum):
    IMMEDIATE = "IMMEDIATE"
    PULLBACK = "PULLBACK"
    STRATEGIC = "STRATEGIC"
    EXTREME = "EXTREME"


@dataclass(frozen=True)
class TechnicalLevel:
    """A price level that may serve as an entry, stop or target anchor."""

    price: float
    level_type: LevelType
    label: str
    strength: int
    distance_pips: float
    confluence: int = 1


@dataclass(frozen=True)
class EntryOption:
    """One ranked entry candidate for a direction."""

    classification: EntryClassification
    entry_price: float
    distance_pips: float
    confluence: int
    risk_reward: float
    stop_loss: float
    take_profit: float
    reasoning: tuple[str, ...]
    strength: int
    supporting_levels: tuple[TechnicalLevel, ...] = ()
    quality_score: float = 0.0


@dataclass(frozen=True)
class EntryPrecisionAnalysis:
    """Ranked buy/sell entry options for one symbol snapshot."""

    symbol: str
    current_price: float
    pip_size: float
    atr: float
    buy_options: tuple[EntryOption, ...]
    sell_options: tuple[EntryOption, ...]
    recommended_buy: Optional[EntryOption]
    recommended_sell: Optional[EntryOption]
    consistency_score: int
    levels: tuple[TechnicalLevel, ...] = field(default=())
    timeframe: str = "1H"

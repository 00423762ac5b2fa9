"""ConfluenceFX — signal engine (pipeline orchestration).

Connects features, confluence, strategy selection, levels and gates into
one deterministic call:

    candles → FeatureSet → selector → levels / placeholder → result

The engine holds only configuration; every call is independent.
"""

import dataclasses
import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

from confluencefx.candles import validate_candles
from confluencefx.config import Config
from confluencefx.risk.confidence import calculate_confidence
from confluencefx.risk.instruments import InstrumentTable, load_instruments, normalize_symbol
from confluencefx.risk.position_sizer import calculate_lots
from confluencefx.risk.sl_tp import calculate_levels, require_atr
from confluencefx.strategy.base import MissingMarketDataError, RecommendationProvider
from confluencefx.strategy.entry_precision import analyze_entry_precision
from confluencefx.strategy.features import build_feature_set
from confluencefx.strategy.gatekeeper import evaluate_gates, resolve_no_strategy
from confluencefx.strategy.market_context import DEFAULT_CLOSE_HOUR, build_market_context
from confluencefx.strategy.models import (
    CandleData,
    EntryPrecisionAnalysis,
    FeatureSet,
    MarketContext,
    NoSignal,
    Recommendation,
    StrategyKind,
    parse_candle_time,
)
from confluencefx.strategy.narrative import (
    candlestick_signals,
    entry_timing,
    volume_confirmation,
)
from confluencefx.strategy.registry import get_strategy
from confluencefx.strategy.selector import select_strategy

logger = logging.getLogger("confluencefx.engine")

SignalResult = Union[Recommendation, NoSignal]


@dataclass(frozen=True)
class SignalRequest:
    """Immutable input snapshot for one engine call.

    Either *context* is supplied, or it is derived from *now* (or, when
    *now* is also absent, the last H1 bar's timestamp) and the candles.
    *spread_z* is only used when deriving the context.
    """

    symbol: str
    candles_h1: tuple[CandleData, ...]
    current_price: float
    context: Optional[MarketContext] = None
    now: Optional[datetime] = None
    candles_h4: Optional[tuple[CandleData, ...]] = None
    candles_d1: Optional[tuple[CandleData, ...]] = None
    spread_z: Optional[float] = None


class SignalEngine:
    """Deterministic recommendation engine.

    Implements ``RecommendationProvider``.

    Args:
        instruments: Per-symbol pip sizes and minimum distances.
        account_equity: Equity used for position sizing.
        risk_per_trade_pct: Percentage of equity risked per trade.
        close_hour: UTC hour at which the trading day rolls over.
        extra_holidays: Additional market-closed dates.
    """

    def __init__(
        self,
        instruments: Optional[InstrumentTable] = None,
        account_equity: float = 10_000.0,
        risk_per_trade_pct: float = 1.0,
        close_hour: int = DEFAULT_CLOSE_HOUR,
        extra_holidays: tuple[date, ...] = (),
    ) -> None:
        self._instruments = instruments or InstrumentTable()
        self._equity = account_equity
        self._risk_pct = risk_per_trade_pct
        self._close_hour = close_hour
        self._extra_holidays = extra_holidays

    @classmethod
    def from_config(cls, config: Config) -> "SignalEngine":
        return cls(
            instruments=load_instruments(config.instruments_path),
            account_equity=config.account_equity,
            risk_per_trade_pct=config.risk_per_trade_pct,
            close_hour=config.day_close_utc_hour,
            extra_holidays=config.extra_holidays,
        )

    @property
    def instruments(self) -> InstrumentTable:
        return self._instruments

    # ── Inputs ──────────────────────────────────────────────────────────

    def resolve_context(self, request: SignalRequest) -> MarketContext:
        """The request's context, or one derived from its clock and candles.

        Raises ``ValueError`` when there is neither a context, a ``now``
        nor a parsable last-bar timestamp.
        """
        if request.context is not None:
            return request.context
        now = request.now
        if now is None and request.candles_h1:
            now = parse_candle_time(request.candles_h1[-1].time)
        if now is None:
            raise ValueError("Request needs a market context, 'now', or timestamped candles")
        return build_market_context(
            now,
            list(request.candles_h1),
            spread_z=request.spread_z,
            close_hour=self._close_hour,
            extra_holidays=self._extra_holidays,
        )

    def _validate(self, request: SignalRequest) -> None:
        if not request.symbol or not request.symbol.strip():
            raise ValueError("symbol must not be empty")
        if not request.current_price > 0:
            raise ValueError(f"current_price must be positive, got {request.current_price}")
        validate_candles(list(request.candles_h1), "candles_h1")
        if request.candles_h4:
            validate_candles(list(request.candles_h4), "candles_h4")
        if request.candles_d1:
            validate_candles(list(request.candles_d1), "candles_d1")

    # ── Pipeline ────────────────────────────────────────────────────────

    def build_features(
        self,
        symbol: str,
        candles_h1: list[CandleData],
        current_price: float,
        context: MarketContext,
        candles_h4: Optional[list[CandleData]] = None,
        candles_d1: Optional[list[CandleData]] = None,
    ) -> FeatureSet:
        """Compute the confluence-scored ``FeatureSet`` for one snapshot."""
        return build_feature_set(
            candles_h1,
            current_price,
            context,
            self._instruments.get(symbol),
            candles_h4=candles_h4,
            candles_d1=candles_d1,
            close_hour=self._close_hour,
        )

    def _features_for(self, request: SignalRequest, context: MarketContext) -> FeatureSet:
        return self.build_features(
            request.symbol,
            list(request.candles_h1),
            request.current_price,
            context,
            candles_h4=list(request.candles_h4) if request.candles_h4 else None,
            candles_d1=list(request.candles_d1) if request.candles_d1 else None,
        )

    def recommend(self, request: SignalRequest) -> SignalResult:
        """Run the full pipeline.

        Returns a ``Recommendation`` (actionable, or a placeholder with
        ``strategy=NONE`` when gates are active) or an explicit ``NoSignal``.

        Raises:
            MissingMarketDataError: ATR or S/R zones cannot be computed.
            ValueError: Malformed request or candles.
        """
        self._validate(request)
        symbol = normalize_symbol(request.symbol)
        spec = self._instruments.get(symbol)
        context = self.resolve_context(request)
        features = self._features_for(request, context)

        require_atr(features, symbol)
        if not features.sr_zones:
            raise MissingMarketDataError(f"Support/Resistance zones not available for {symbol}")

        gates = evaluate_gates(context)
        selection = select_strategy(features)
        logger.debug(
            "%s: confluence=%d squeeze=%s degraded=%s → %s",
            symbol, features.confluence_score, features.squeeze,
            features.degraded, selection.kind.value,
        )

        if selection.kind is StrategyKind.NONE:
            reasoning = list(selection.reasoning)
            if features.adr_used_pct is not None:
                reasoning.append(f"ADR used: {features.adr_used_pct:.1f}%")
            return resolve_no_strategy(
                symbol, features, context, spec, gates, reasoning + gates
            )

        variant = get_strategy(selection.kind)
        levels = calculate_levels(variant, selection.action, features, spec)
        confidence = calculate_confidence(
            features, context.session, variant.confidence_bonus(features)
        )
        lots = calculate_lots(
            self._equity, self._risk_pct, levels.stop_pips, spec.pip_value_per_lot
        )

        reasoning = [f"Strategy: {selection.kind.value}", *selection.reasoning]
        if features.degraded:
            reasoning.append("Limited price history: some features unavailable")
        reasoning += [
            f"Target R/R {levels.risk_reward:.2f} within [1.5, 2.5] "
            f"using {selection.kind.value} + S/R alignment",
            f"Entry: {levels.entry:.5f}, SL: {levels.stop_loss:.5f}, "
            f"TP: {levels.take_profit:.5f}",
            f"R/R: {levels.risk_reward:.2f}, Confidence: {confidence}%",
            f"Session: {context.session.value}, daily close in "
            f"{context.minutes_to_close}min",
            f"Position size: {lots:.2f} lots",
            *gates,
        ]

        logger.info(
            "%s: %s %s entry=%.5f sl=%.5f tp=%.5f rr=%.2f conf=%d",
            symbol, selection.kind.value, selection.action, levels.entry,
            levels.stop_loss, levels.take_profit, levels.risk_reward, confidence,
        )

        return Recommendation(
            symbol=symbol,
            action=selection.action,
            confidence=confidence,
            entry=levels.entry,
            stop_loss=levels.stop_loss,
            take_profit=levels.take_profit,
            support=levels.support,
            resistance=levels.resistance,
            reasoning=tuple(reasoning),
            risk_reward=levels.risk_reward,
            entry_conditions=variant.entry_conditions(features),
            entry_timing=entry_timing(context.session, context.minutes_to_close),
            volume_confirmation=volume_confirmation(context.activity_score),
            candlestick_signals=candlestick_signals(features),
            strategy=selection.kind,
            position_size=lots,
        )

    def analyze_entries(self, request: SignalRequest) -> EntryPrecisionAnalysis:
        """Rank buy/sell entry options at nearby technical levels.

        Raises:
            MissingMarketDataError: ATR cannot be computed.
            ValueError: Malformed request or candles.
        """
        self._validate(request)
        symbol = normalize_symbol(request.symbol)
        context = self.resolve_context(request)
        features = self._features_for(request, context)
        return analyze_entry_precision(
            symbol,
            features,
            list(request.candles_h1),
            self._instruments.get(symbol),
            close_hour=self._close_hour,
        )


def recommend_with_fallback(
    primary: Optional[RecommendationProvider],
    fallback: SignalEngine,
    request: SignalRequest,
) -> SignalResult:
    """Try *primary* first; on any failure use the deterministic engine.

    Only the primary provider's exceptions are caught.  Errors from the
    engine itself propagate.
    """
    if primary is not None:
        try:
            return primary.recommend(request)
        except Exception as exc:
            logger.warning(
                "Primary provider failed for %s: %s (falling back to engine)",
                request.symbol, exc,
            )
    return fallback.recommend(request)


# ── Serialisation ────────────────────────────────────────────────────────


def to_payload(value: Any) -> Any:
    """Convert result dataclasses into JSON-ready dicts/lists."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        out = {f.name: to_payload(getattr(value, f.name)) for f in dataclasses.fields(value)}
        if isinstance(value, Recommendation):
            out["is_placeholder"] = value.is_placeholder
            out["actionable"] = value.actionable
        return out
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [to_payload(v) for v in value]
    if isinstance(value, dict):
        return {k: to_payload(v) for k, v in value.items()}
    return value

"""HTTP routers — /instruments, /analyze, /entries endpoints.

No business logic. Parses request bodies into ``SignalRequest`` and
delegates to the shared ``SignalEngine``.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, HTTPException

from confluencefx.candles import candles_from_records
from confluencefx.engine import SignalEngine, SignalRequest, to_payload
from confluencefx.strategy.base import MissingMarketDataError
from confluencefx.strategy.models import MarketContext, NoSignal, Session

logger = logging.getLogger("confluencefx")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_engine: Optional[SignalEngine] = None


def configure_routers(engine: Optional[SignalEngine] = None) -> None:
    """Inject the engine used by all endpoints.

    Args:
        engine: A ``SignalEngine`` (or duck-type for tests).  ``None``
            resets to a default engine with built-in instruments.
    """
    global _engine  # noqa: PLW0603
    _engine = engine


def _get_engine() -> SignalEngine:
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = SignalEngine()
    return _engine


def _parse_context(raw: Any) -> Optional[MarketContext]:
    """Explicit market context from the body, e.g. for replaying a snapshot."""
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError("'context' must be an object")
    try:
        return MarketContext(
            session=Session(raw["session"]),
            minutes_to_close=int(raw["minutes_to_close"]),
            is_weekend_or_holiday=bool(raw["is_weekend_or_holiday"]),
            spread_z=float(raw.get("spread_z", 0.0)),
            activity_score=float(raw.get("activity_score", 0.0)),
        )
    except KeyError as exc:
        raise ValueError(f"'context' is missing field {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'context' is invalid: {exc}") from exc


def _parse_request(body: dict) -> SignalRequest:
    """Turn a JSON body into a ``SignalRequest``.

    Raises ``ValueError`` describing the first bad field.
    """
    symbol = body.get("symbol")
    if not isinstance(symbol, str) or not symbol.strip():
        raise ValueError("'symbol' is required")
    if "current_price" not in body:
        raise ValueError("'current_price' is required")
    try:
        price = float(body["current_price"])
    except (TypeError, ValueError) as exc:
        raise ValueError("'current_price' must be a number") from exc

    raw_h1 = body.get("candles_h1") or body.get("candles")
    if not isinstance(raw_h1, list) or not raw_h1:
        raise ValueError("'candles_h1' must be a non-empty list")

    def optional_candles(key: str) -> Optional[tuple]:
        raw: Any = body.get(key)
        if raw is None:
            return None
        if not isinstance(raw, list):
            raise ValueError(f"'{key}' must be a list")
        return tuple(candles_from_records(raw, key))

    now = None
    if body.get("now"):
        try:
            now = datetime.fromisoformat(str(body["now"]).replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValueError(f"'now' is not an ISO-8601 timestamp: {body['now']!r}") from exc

    spread_z = body.get("spread_z")
    if spread_z is not None:
        try:
            spread_z = float(spread_z)
        except (TypeError, ValueError) as exc:
            raise ValueError("'spread_z' must be a number") from exc

    return SignalRequest(
        symbol=symbol,
        candles_h1=tuple(candles_from_records(raw_h1, "candles_h1")),
        current_price=price,
        context=_parse_context(body.get("context")),
        now=now,
        candles_h4=optional_candles("candles_h4"),
        candles_d1=optional_candles("candles_d1"),
        spread_z=spread_z,
    )


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/instruments")
async def get_instruments():
    """Return the configured instrument table."""
    engine = _get_engine()
    return {
        sym: to_payload(engine.instruments.get(sym))
        for sym in engine.instruments.symbols
    }


@router.post("/analyze")
async def post_analyze(body: dict):
    """Run the recommendation pipeline for one snapshot.

    422 when the market data is insufficient (no ATR or S/R zones),
    400 for malformed input.
    """
    try:
        request = _parse_request(body)
        result = _get_engine().recommend(request)
    except MissingMarketDataError as exc:
        logger.warning("Analyze rejected: %s", exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    payload = to_payload(result)
    if isinstance(result, NoSignal):
        payload["signal"] = "none"
    else:
        payload["signal"] = "placeholder" if result.is_placeholder else "trade"
    return payload


@router.post("/entries")
async def post_entries(body: dict):
    """Rank entry options around nearby technical levels."""
    try:
        request = _parse_request(body)
        analysis = _get_engine().analyze_entries(request)
    except MissingMarketDataError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return to_payload(analysis)

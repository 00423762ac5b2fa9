"""Candle loading and validation.

Reads OHLC(V) history from CSV, JSON or Parquet files with pandas and
converts it to ``CandleData``.  Validation errors name the offending bar.

File layout (any of the three formats)::

    time,open,high,low,close,volume
    2024-03-04T00:00:00Z,1.0841,1.0850,1.0836,1.0846,1520
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Iterable, Optional

import pandas as pd

from confluencefx.strategy.models import CandleData, parse_candle_time

logger = logging.getLogger("confluencefx.candles")

REQUIRED_COLUMNS = ("time", "open", "high", "low", "close")
TIME_ALIASES = ("time", "timestamp", "datetime", "date")


# ── DataFrame conversion ─────────────────────────────────────────────────


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    df = df.rename(columns={c: str(c).strip().lower() for c in df.columns})
    if "time" not in df.columns:
        for alias in TIME_ALIASES[1:]:
            if alias in df.columns:
                df = df.rename(columns={alias: "time"})
                break
    return df


def candles_from_frame(df: pd.DataFrame) -> list[CandleData]:
    """Convert a DataFrame with time/open/high/low/close[/volume] columns.

    Rows are sorted by time.  Raises ``ValueError`` naming any missing
    column or unparsable row.
    """
    df = _normalize_columns(df)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Candle data missing column(s): {', '.join(missing)}")
    if df.empty:
        return []

    df = df.copy()
    try:
        df["time"] = pd.to_datetime(df["time"], utc=True)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Candle data has unparsable timestamps: {exc}") from exc
    df = df.sort_values("time").reset_index(drop=True)

    has_volume = "volume" in df.columns
    candles: list[CandleData] = []
    for i, row in enumerate(df.itertuples(index=False)):
        try:
            volume: Optional[float] = None
            if has_volume and not pd.isna(row.volume):
                volume = float(row.volume)
            candles.append(
                CandleData(
                    time=row.time.strftime("%Y-%m-%dT%H:%M:%SZ"),
                    open=float(row.open),
                    high=float(row.high),
                    low=float(row.low),
                    close=float(row.close),
                    volume=volume,
                )
            )
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Candle row {i} is malformed: {exc}") from exc
    return candles


def load_candles(path: str | Path) -> list[CandleData]:
    """Load candles from a ``.csv``, ``.json`` or ``.parquet`` file.

    JSON may be a list of records or ``{"candles": [...]}``.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path)
    elif suffix == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("candles", [])
        df = pd.DataFrame(data, columns=None if data else list(REQUIRED_COLUMNS))
    elif suffix in (".parquet", ".pq"):
        df = pd.read_parquet(path, engine="pyarrow")
    else:
        raise ValueError(f"Unsupported candle file type: {path.suffix or path.name}")

    candles = candles_from_frame(df)
    logger.info("Loaded %d candles from %s", len(candles), path)
    return candles


# ── Raw records (API payloads) ───────────────────────────────────────────


def candles_from_records(
    records: Iterable[dict[str, Any]], label: str = "candles"
) -> list[CandleData]:
    """Build candles from JSON-style dicts without reordering them.

    Raises ``ValueError`` naming the first malformed record.
    """
    candles: list[CandleData] = []
    for i, rec in enumerate(records):
        if not isinstance(rec, dict):
            raise ValueError(f"{label}[{i}] must be an object")
        time_value = next((rec[k] for k in TIME_ALIASES if k in rec), None)
        if time_value is None:
            raise ValueError(f"{label}[{i}] is missing a time field")
        try:
            volume = rec.get("volume")
            candles.append(
                CandleData(
                    time=str(time_value),
                    open=float(rec["open"]),
                    high=float(rec["high"]),
                    low=float(rec["low"]),
                    close=float(rec["close"]),
                    volume=None if volume is None else float(volume),
                )
            )
        except KeyError as exc:
            raise ValueError(f"{label}[{i}] is missing field {exc}") from exc
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{label}[{i}] has a non-numeric price: {exc}") from exc
    return candles


# ── Validation ───────────────────────────────────────────────────────────


def validate_candles(candles: list[CandleData], label: str = "candles") -> None:
    """Check OHLC consistency and ascending time order.

    Raises:
        ValueError: Naming the first bar that is non-finite, has
            ``high < max(open, close)`` or ``low > min(open, close)``,
            or is older than its predecessor.
    """
    previous = None
    for i, c in enumerate(candles):
        values = (c.open, c.high, c.low, c.close)
        if not all(math.isfinite(v) for v in values):
            raise ValueError(f"{label}[{i}] ({c.time}) has a non-finite price")
        if c.high < max(c.open, c.close):
            raise ValueError(f"{label}[{i}] ({c.time}) high is below open/close")
        if c.low > min(c.open, c.close):
            raise ValueError(f"{label}[{i}] ({c.time}) low is above open/close")

        t = parse_candle_time(c.time)
        if t is not None:
            if previous is not None and t < previous:
                raise ValueError(f"{label}[{i}] ({c.time}) is out of time order")
            previous = t

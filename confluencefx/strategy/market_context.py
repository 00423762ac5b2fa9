"""Market context — session clock, trading-day close, calendar and activity.

All times are UTC.  The FX trading day rolls over at ``close_hour``
(21:00 UTC ≈ 17:00 New York).  Nothing here reads the wall clock: the
caller passes ``now`` so results are reproducible.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional

import numpy as np

from confluencefx.strategy.indicators import true_ranges
from confluencefx.strategy.models import CandleData, MarketContext, Session

DEFAULT_CLOSE_HOUR = 21

# (session, start hour, end hour); end exclusive, wraps past midnight
SESSION_HOURS: tuple[tuple[Session, int, int], ...] = (
    (Session.LONDON, 7, 16),
    (Session.NEW_YORK, 12, 21),
    (Session.TOKYO, 0, 9),
    (Session.SYDNEY, 21, 6),
)

OVERLAP_HOURS = (12, 16)

ACTIVITY_WINDOW = 20


def _in_window(hour: int, start: int, end: int) -> bool:
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


# ── Calendar ─────────────────────────────────────────────────────────────


def easter_sunday(year: int) -> date:
    """Gregorian Easter Sunday (anonymous computus)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    weekday = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * weekday) // 451
    month, day = divmod(h + weekday - 7 * m + 114, 31)
    return date(year, month, day + 1)


def forex_holidays(year: int, extra: Iterable[date] = ()) -> set[date]:
    """New Year's Day, Good Friday and Christmas Day, plus *extra* dates."""
    holidays = {
        date(year, 1, 1),
        easter_sunday(year) - timedelta(days=2),
        date(year, 12, 25),
    }
    holidays.update(d for d in extra if d.year == year)
    return holidays


def is_weekend(now: datetime, close_hour: int = DEFAULT_CLOSE_HOUR) -> bool:
    """Friday from the daily close until the Sunday re-open at the same hour."""
    now = _as_utc(now)
    weekday = now.weekday()
    if weekday == 4:
        return now.hour >= close_hour
    if weekday == 5:
        return True
    if weekday == 6:
        return now.hour < close_hour
    return False


def is_weekend_or_holiday(
    now: datetime,
    close_hour: int = DEFAULT_CLOSE_HOUR,
    extra_holidays: Iterable[date] = (),
) -> bool:
    now = _as_utc(now)
    if is_weekend(now, close_hour):
        return True
    return now.date() in forex_holidays(now.year, extra_holidays)


# ── Session clock ────────────────────────────────────────────────────────


def classify_session(
    now: datetime, close_hour: int = DEFAULT_CLOSE_HOUR
) -> Session:
    """Active session; London∩New York reports as ``Overlap``.

    Weekends report ``Closed``.
    """
    now = _as_utc(now)
    if is_weekend(now, close_hour):
        return Session.CLOSED
    hour = now.hour
    if _in_window(hour, *OVERLAP_HOURS):
        return Session.OVERLAP
    for session, start, end in SESSION_HOURS:
        if _in_window(hour, start, end):
            return session
    return Session.CLOSED


def trading_day_start(
    now: datetime, close_hour: int = DEFAULT_CLOSE_HOUR
) -> datetime:
    """Most recent daily roll-over at or before *now*."""
    now = _as_utc(now)
    boundary = datetime.combine(now.date(), time(close_hour), tzinfo=timezone.utc)
    if boundary > now:
        boundary -= timedelta(days=1)
    return boundary


def minutes_to_close(now: datetime, close_hour: int = DEFAULT_CLOSE_HOUR) -> int:
    """Whole minutes until the next daily roll-over (1440 right at the close)."""
    now = _as_utc(now)
    close = trading_day_start(now, close_hour) + timedelta(days=1)
    return int((close - now).total_seconds() // 60)


def session_open(now: datetime) -> Optional[datetime]:
    """Start time of the most recently opened session at or before *now*.

    The opening range is measured from this anchor.  ``None`` is never
    returned for a valid datetime: some session opens every day.
    """
    now = _as_utc(now)
    opens = sorted({start for _, start, _ in SESSION_HOURS})
    for days_back in (0, 1):
        day = now.date() - timedelta(days=days_back)
        for hour in reversed(opens):
            anchor = datetime.combine(day, time(hour), tzinfo=timezone.utc)
            if anchor <= now:
                return anchor
    return None


# ── Activity z-scores ────────────────────────────────────────────────────


def zscore_last(values: list[float]) -> float:
    """Z-score of the last value against the whole window (population σ).

    0.0 for an empty or constant window.
    """
    if not values:
        return 0.0
    arr = np.asarray(values, dtype=float)
    std = float(arr.std())
    if std <= 0 or not np.isfinite(std):
        return 0.0
    return float((arr[-1] - arr.mean()) / std)


def activity_zscores(
    candles: list[CandleData], window: int = ACTIVITY_WINDOW
) -> tuple[float, float]:
    """``(z_tr, z_abs_ret)`` over the last *window* bars.

    Both are 0.0 until ``window + 1`` candles are available.
    """
    if len(candles) < window + 1:
        return 0.0, 0.0
    recent = candles[-(window + 1):]
    ranges = true_ranges(recent)

    closes = np.asarray([c.close for c in recent], dtype=float)
    prev = closes[:-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        abs_returns = np.where(prev != 0, np.abs(np.diff(closes)) / prev, 0.0)

    return zscore_last(ranges), zscore_last(abs_returns.tolist())


def build_market_context(
    now: datetime,
    candles: list[CandleData],
    spread_z: Optional[float] = None,
    close_hour: int = DEFAULT_CLOSE_HOUR,
    extra_holidays: Iterable[date] = (),
) -> MarketContext:
    """Derive the gating context for one call.

    *spread_z* must come from real quotes; when unavailable it is the
    neutral 0.0.
    """
    z_tr, z_ret = activity_zscores(candles)
    return MarketContext(
        session=classify_session(now, close_hour),
        minutes_to_close=minutes_to_close(now, close_hour),
        is_weekend_or_holiday=is_weekend_or_holiday(now, close_hour, extra_holidays),
        spread_z=0.0 if spread_z is None else float(spread_z),
        activity_score=z_tr + z_ret,
    )

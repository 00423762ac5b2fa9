"""ConfluenceFX — application configuration.

Loads .env variables into a typed config object.
Validates values on startup.
"""

import os
from dataclasses import dataclass
from datetime import date

from dotenv import load_dotenv


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    account_equity: float
    risk_per_trade_pct: float
    day_close_utc_hour: int
    instruments_path: str | None
    extra_holidays: tuple[date, ...]
    log_level: str
    api_port: int


def _parse(name: str, default: str, cast):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from exc


def _parse_dates(name: str) -> tuple[date, ...]:
    raw = os.environ.get(name, "")
    dates = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            dates.append(date.fromisoformat(part))
        except ValueError as exc:
            raise ValueError(f"Invalid date in {name}: {part!r}") from exc
    return tuple(sorted(dates))


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Every variable is optional.  Raises ``ValueError`` with a message
    naming the variable when a value cannot be parsed or is out of range.
    """
    load_dotenv(dotenv_path=env_path)

    equity = _parse("ACCOUNT_EQUITY", "10000", float)
    if equity < 0:
        raise ValueError(f"ACCOUNT_EQUITY must not be negative, got {equity}")

    risk_pct = _parse("RISK_PER_TRADE_PCT", "1.0", float)
    if not 0 <= risk_pct <= 100:
        raise ValueError(f"RISK_PER_TRADE_PCT must be within 0-100, got {risk_pct}")

    close_hour = _parse("DAY_CLOSE_UTC_HOUR", "21", int)
    if not 0 <= close_hour <= 23:
        raise ValueError(f"DAY_CLOSE_UTC_HOUR must be within 0-23, got {close_hour}")

    port = _parse("API_PORT", "8080", int)
    if not 0 < port < 65536:
        raise ValueError(f"API_PORT must be a valid TCP port, got {port}")

    return Config(
        account_equity=equity,
        risk_per_trade_pct=risk_pct,
        day_close_utc_hour=close_hour,
        instruments_path=os.environ.get("INSTRUMENTS_PATH") or None,
        extra_holidays=_parse_dates("EXTRA_HOLIDAYS"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=port,
    )

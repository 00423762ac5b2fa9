"""Instrument metadata — pip sizes, minimum stop/target distances, pip values.

The defaults below are plain configuration data.  Brokers differ, so
``load_instruments()`` merges overrides from a JSON file on top of them::

    {"EURUSD": {"min_stop_pips": 15, "min_tp_pips": 30}}
"""

import json
import logging
import pathlib
from dataclasses import dataclass, replace
from typing import Optional

logger = logging.getLogger("confluencefx")

# Every target must stay reachable inside the global 2.5 R:R ceiling.
MAX_RR = 2.5


@dataclass(frozen=True)
class InstrumentSpec:
    """Per-symbol trading constants.

    ``pip_value_per_lot`` is the account-currency value of one pip on one
    standard lot.
    """

    symbol: str
    pip_size: float
    min_stop_pips: float
    min_tp_pips: float
    pip_value_per_lot: float = 10.0

    @property
    def min_stop_distance(self) -> float:
        return self.min_stop_pips * self.pip_size

    @property
    def min_tp_distance(self) -> float:
        return self.min_tp_pips * self.pip_size

    @property
    def decimals(self) -> int:
        return 3 if self.pip_size >= 0.01 else 5

    def to_pips(self, distance: float) -> float:
        return abs(distance) / self.pip_size


def normalize_symbol(symbol: str) -> str:
    """``"EUR/USD"``, ``"EUR_USD"`` and ``"eurusd"`` all map to ``"EURUSD"``."""
    return symbol.replace("/", "").replace("_", "").replace("-", "").upper().strip()


def _spec(symbol: str, stop: float, tp: float) -> InstrumentSpec:
    jpy = "JPY" in symbol
    return InstrumentSpec(
        symbol=symbol,
        pip_size=0.01 if jpy else 0.0001,
        min_stop_pips=stop,
        min_tp_pips=tp,
        pip_value_per_lot=9.09 if jpy else 10.0,
    )


DEFAULT_INSTRUMENTS: dict[str, InstrumentSpec] = {
    s.symbol: s
    for s in (
        _spec("GBPUSD", 25, 40),
        _spec("EURUSD", 20, 35),
        _spec("USDCHF", 20, 35),
        _spec("AUDUSD", 25, 40),
        _spec("NZDUSD", 30, 45),
        _spec("EURGBP", 15, 25),
        _spec("EURJPY", 25, 40),
        _spec("GBPJPY", 35, 55),
        _spec("USDJPY", 20, 35),
        _spec("GBPAUD", 30, 45),
        _spec("EURCAD", 25, 40),
        _spec("USDCAD", 20, 35),
    )
}


def validate_spec(spec: InstrumentSpec) -> InstrumentSpec:
    """Reject specs whose minimums cannot coexist with the R:R bounds.

    Raises ``ValueError`` naming the symbol.
    """
    if spec.pip_size <= 0:
        raise ValueError(f"{spec.symbol}: pip_size must be positive, got {spec.pip_size}")
    if spec.min_stop_pips <= 0 or spec.min_tp_pips <= 0:
        raise ValueError(f"{spec.symbol}: minimum distances must be positive")
    if spec.min_tp_pips > MAX_RR * spec.min_stop_pips:
        raise ValueError(
            f"{spec.symbol}: min_tp_pips ({spec.min_tp_pips}) exceeds "
            f"{MAX_RR} × min_stop_pips ({spec.min_stop_pips})"
        )
    return spec


class InstrumentTable:
    """Lookup of ``InstrumentSpec`` by symbol with a JPY-aware fallback."""

    def __init__(self, specs: Optional[dict[str, InstrumentSpec]] = None) -> None:
        source = DEFAULT_INSTRUMENTS if specs is None else specs
        self._specs = {
            normalize_symbol(k): validate_spec(v) for k, v in source.items()
        }

    def __contains__(self, symbol: str) -> bool:
        return normalize_symbol(symbol) in self._specs

    def get(self, symbol: str) -> InstrumentSpec:
        key = normalize_symbol(symbol)
        if key in self._specs:
            return self._specs[key]
        # Unlisted pairs: 25-pip stop / 40-pip target on the JPY-aware pip size
        return _spec(key, 25, 40)

    @property
    def symbols(self) -> list[str]:
        return sorted(self._specs)


def load_instruments(path: Optional[str] = None) -> InstrumentTable:
    """Build the instrument table, applying JSON overrides from *path*.

    Unknown symbols in the file are added; known ones are updated field by
    field.  Raises ``ValueError`` if the file is not a JSON object.
    """
    specs = dict(DEFAULT_INSTRUMENTS)
    if not path:
        return InstrumentTable(specs)

    data = json.loads(pathlib.Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Instrument file {path} must contain a JSON object")

    for raw_symbol, fields in data.items():
        symbol = normalize_symbol(raw_symbol)
        base = specs.get(symbol) or _spec(symbol, 25, 40)
        specs[symbol] = replace(base, symbol=symbol, **fields)

    logger.info("Loaded %d instrument override(s) from %s", len(data), path)
    return InstrumentTable(specs)

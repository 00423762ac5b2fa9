"""Tests for candle loading (CSV / JSON / Parquet) and validation."""

import dataclasses
import json

import pandas as pd
import pytest

from confluencefx.candles import (
    candles_from_frame,
    candles_from_records,
    load_candles,
    validate_candles,
)
from confluencefx.strategy.models import CandleData

ROWS = [
    {"time": "2025-03-03T01:00:00Z", "open": 1.1002, "high": 1.1010, "low": 1.0998,
     "close": 1.1008, "volume": 900},
    {"time": "2025-03-03T00:00:00Z", "open": 1.1000, "high": 1.1005, "low": 1.0995,
     "close": 1.1002, "volume": 1200},
]


def _make_candle(time="2025-03-03T00:00:00Z", o=1.1, h=1.101, low=1.099, c=1.1005):
    return CandleData(time=time, open=o, high=h, low=low, close=c, volume=100.0)


class TestLoadCandles:
    def test_csv_sorted_by_time(self, tmp_path):
        path = tmp_path / "h1.csv"
        pd.DataFrame(ROWS).to_csv(path, index=False)
        candles = load_candles(path)
        assert [c.time for c in candles] == ["2025-03-03T00:00:00Z", "2025-03-03T01:00:00Z"]
        assert candles[0].close == 1.1002
        assert candles[1].volume == 900.0

    def test_csv_timestamp_alias_and_case(self, tmp_path):
        path = tmp_path / "h1.csv"
        path.write_text("Timestamp,Open,High,Low,Close\n2025-03-03 00:00:00,1.1,1.2,1.0,1.15\n")
        candles = load_candles(path)
        assert candles[0].time == "2025-03-03T00:00:00Z"
        assert candles[0].volume is None

    def test_missing_column(self, tmp_path):
        path = tmp_path / "h1.csv"
        path.write_text("time,open,high,low\n2025-03-03T00:00:00Z,1.1,1.2,1.0\n")
        with pytest.raises(ValueError, match="close"):
            load_candles(path)

    def test_json_list(self, tmp_path):
        path = tmp_path / "h1.json"
        path.write_text(json.dumps(ROWS))
        assert len(load_candles(path)) == 2

    def test_json_wrapped_empty(self, tmp_path):
        path = tmp_path / "h1.json"
        path.write_text(json.dumps({"candles": []}))
        assert load_candles(path) == []

    def test_parquet(self, tmp_path):
        path = tmp_path / "h1.parquet"
        pd.DataFrame(ROWS).to_parquet(path, engine="pyarrow")
        candles = load_candles(path)
        assert candles[-1].close == 1.1008

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "h1.xlsx"
        path.write_text("")
        with pytest.raises(ValueError, match="Unsupported"):
            load_candles(path)

    def test_frame_round_trips_fixture(self, ranging_h1):
        df = pd.DataFrame([dataclasses.asdict(c) for c in ranging_h1])
        assert candles_from_frame(df) == ranging_h1


class TestCandlesFromRecords:
    def test_keeps_order(self):
        candles = candles_from_records(ROWS)
        assert candles[0].time == "2025-03-03T01:00:00Z"

    def test_missing_field(self):
        with pytest.raises(ValueError, match=r"candles\[0\] is missing field 'high'"):
            candles_from_records([{"time": "t", "open": 1, "low": 1, "close": 1}])

    def test_missing_time(self):
        with pytest.raises(ValueError, match="time"):
            candles_from_records([{"open": 1, "high": 1, "low": 1, "close": 1}])

    def test_non_numeric(self):
        with pytest.raises(ValueError, match="h4\\[0\\]"):
            candles_from_records(
                [{"time": "t", "open": "x", "high": 1, "low": 1, "close": 1}], "h4"
            )

    def test_not_an_object(self):
        with pytest.raises(ValueError, match="must be an object"):
            candles_from_records([[1, 2, 3]])


class TestValidateCandles:
    def test_valid(self, ranging_h1):
        validate_candles(ranging_h1)

    def test_high_below_body(self):
        with pytest.raises(ValueError, match="high is below"):
            validate_candles([_make_candle(h=1.1001)])

    def test_low_above_body(self):
        with pytest.raises(ValueError, match="low is above"):
            validate_candles([_make_candle(low=1.1001)])

    def test_non_finite(self):
        with pytest.raises(ValueError, match="non-finite"):
            validate_candles([_make_candle(c=float("nan"))])

    def test_out_of_order(self):
        candles = [_make_candle("2025-03-03T01:00:00Z"), _make_candle("2025-03-03T00:00:00Z")]
        with pytest.raises(ValueError, match=r"h1\[1\].*out of time order"):
            validate_candles(candles, "h1")

"""Tests for the command-line entry point."""

import dataclasses
import json

import pandas as pd
import pytest

from confluencefx.main import _run_cli


@pytest.fixture
def h1_csv(tmp_path, ranging_h1):
    path = tmp_path / "eurusd_h1.csv"
    pd.DataFrame([dataclasses.asdict(c) for c in ranging_h1]).to_csv(path, index=False)
    return str(path)


@pytest.fixture
def env_file(tmp_path):
    return str(tmp_path / "missing.env")


class TestAnalyzeCommand:
    def test_prints_recommendation(self, h1_csv, env_file, capsys):
        assert _run_cli(["--env", env_file, "analyze", "EUR_USD", "--h1", h1_csv]) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["symbol"] == "EURUSD"
        assert "reasoning" in out

    def test_entries_flag(self, h1_csv, env_file, capsys):
        rc = _run_cli(["--env", env_file, "analyze", "EURUSD", "--h1", h1_csv, "--entries"])
        assert rc == 0
        out = json.loads(capsys.readouterr().out)
        assert "buy_options" in out

    def test_weekend_clock_prints_placeholder(self, h1_csv, env_file, capsys):
        argv = ["--env", env_file, "analyze", "EURUSD", "--h1", h1_csv,
                "--now", "2025-03-08T12:00:00Z"]
        assert _run_cli(argv) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["is_placeholder"] is True

    def test_bad_clock_exit_code(self, h1_csv, env_file):
        argv = ["--env", env_file, "analyze", "EURUSD", "--h1", h1_csv, "--now", "soon"]
        assert _run_cli(argv) == 2

    def test_insufficient_data_exit_code(self, tmp_path, ranging_h1, env_file):
        path = tmp_path / "short.csv"
        pd.DataFrame([dataclasses.asdict(c) for c in ranging_h1[:10]]).to_csv(path, index=False)
        assert _run_cli(["--env", env_file, "analyze", "EURUSD", "--h1", str(path)]) == 1

    def test_empty_file_exit_code(self, tmp_path, env_file):
        path = tmp_path / "empty.json"
        path.write_text("[]")
        assert _run_cli(["--env", env_file, "analyze", "EURUSD", "--h1", str(path)]) == 2

    def test_inconsistent_candle_exit_code(self, tmp_path, ranging_h1, env_file):
        rows = [dataclasses.asdict(c) for c in ranging_h1]
        rows[5]["high"] = min(rows[5]["open"], rows[5]["close"]) - 0.0010
        path = tmp_path / "broken.csv"
        pd.DataFrame(rows).to_csv(path, index=False)
        assert _run_cli(["--env", env_file, "analyze", "EURUSD", "--h1", str(path)]) == 2

    def test_unsupported_file_type_exit_code(self, tmp_path, env_file):
        path = tmp_path / "candles.txt"
        path.write_text("not candles")
        assert _run_cli(["--env", env_file, "analyze", "EURUSD", "--h1", str(path)]) == 2

    def test_command_required(self):
        with pytest.raises(SystemExit):
            _run_cli([])

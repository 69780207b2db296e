"""
CLI Unit Tests
==============
Runs the Typer commands in-process against a small recording.
"""

import json

import pytest
from typer.testing import CliRunner

from dexarb.cli import app
from dexarb.config.settings import Settings
from dexarb.system.logging import setup_logging

MINT = "So11111111111111111111111111111111111111112"
PUMP_POOL = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
DLMM_POOL = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"

runner = CliRunner()


@pytest.fixture(autouse=True)
def log_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(Settings, "LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(Settings, "SILENT_MODE", True)
    yield
    setup_logging(log_dir=None)


@pytest.fixture
def recording(tmp_path):
    records = [
        {"venue": "pumpswap", "mint": MINT, "poolId": PUMP_POOL, "price": "0.000040"},
        {"venue": "dlmm", "mint": MINT, "poolId": DLMM_POOL, "price": "0.000042"},
        {"venue": "pumpswap", "mint": MINT, "poolId": PUMP_POOL, "price": "0.000041"},
    ]
    path = tmp_path / "swaps.jsonl"
    path.write_text("\n".join(json.dumps(r) for r in records), encoding="utf-8")
    return path


class TestReplayCommand:

    def test_replay_reports_stats(self, recording):
        result = runner.invoke(app, ["replay", str(recording), "--no-execute", "--debounce-ms", "5"])

        assert result.exit_code == 0, result.output
        assert "Engine Stats" in result.output
        assert "updates_received" in result.output

    def test_replay_with_paper_execution(self, recording):
        result = runner.invoke(app, ["replay", str(recording), "--execute", "--min-divergence", "1"])

        assert result.exit_code == 0, result.output
        assert "trades_dispatched" in result.output

    def test_invalid_threshold_exits_nonzero(self, recording):
        result = runner.invoke(app, ["replay", str(recording), "--min-divergence", "-2"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestConfigCommand:

    def test_prints_effective_config(self):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "min_divergence_percent" in result.output

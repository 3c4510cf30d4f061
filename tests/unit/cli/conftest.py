"""Fixtures for CLI tests."""

import pytest
from click.testing import CliRunner

from pnlengine.system import LoggerFactory
from pnlengine.system import config as config_module
from pnlengine.system.config import CONFIG_ENV_VAR

TRADES_CSV = """id,trade_type,cryptocurrency,amount,price,fees,executed_at,original_trade_id
b1,BUY,BTC-EUR,0.01,90000,0,2025-01-15T10:00:00Z,
b2,BUY,ETH-EUR,1,3000,0,2025-01-15T11:00:00Z,
s1,SELL,BTC-EUR,0.005,95000,0,2025-01-16T10:00:00Z,b1
"""


@pytest.fixture
def cli_runner():
    """Create a Click CLI runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_cli(tmp_path, monkeypatch):
    """Run commands from an empty directory with default system config.

    Commands reconfigure logging onto the runner's captured streams, so the
    default setup is restored afterwards.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.setattr(config_module, "_system_config", None)
    yield tmp_path
    LoggerFactory.reset()
    LoggerFactory.configure()


@pytest.fixture
def trades_file(tmp_path):
    path = tmp_path / "trades.csv"
    path.write_text(TRADES_CSV)
    return path


@pytest.fixture
def prices_file(tmp_path):
    path = tmp_path / "prices.yaml"
    path.write_text("BTC-EUR: 100000\nETH-EUR: null\n")
    return path

"""Tests for the command line interface."""

import json
from decimal import Decimal

import pytest
from conftest import OWNER, WETH, FakeAdapter, normalized
from rich.console import Console
from typer.testing import CliRunner

from defi_portfolio_tracker.cli import main as cli_main
from defi_portfolio_tracker.config import NetworkSettings, Settings
from defi_portfolio_tracker.core.aggregator import PortfolioAggregator
from defi_portfolio_tracker.core.errors import SourceUnavailable
from defi_portfolio_tracker.core.models import AaveMetrics
from defi_portfolio_tracker.core.timeseries import InMemoryMetricsStore
from defi_portfolio_tracker.ledger import LedgerDirectory, LocalLedgerReader
from defi_portfolio_tracker.protocols.service import ProtocolAdapterService
from defi_portfolio_tracker.services import Services

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep rich from wrapping table cells at the default 80 columns."""
    monkeypatch.setattr(cli_main, "console", Console(width=200))
    for key in ("PORTFOLIO_ENV", "PORTFOLIO_SENDER_ALIAS", "PORTFOLIO_LEDGER_BACKEND"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def services(monkeypatch, chain, ledger):
    """Fake services handed to every command that builds them."""
    ledger.add_position(OWNER, WETH, 10**18, 2000 * 10**18, "aave")
    aave = FakeAdapter(
        "aave",
        positions=[normalized("aave", "WETH", risk_score="8")],
        metrics=AaveMetrics(
            tvl_usd=Decimal(1_250_000),
            total_deposited_usd=Decimal(2_000_000),
            total_borrowed_usd=Decimal(750_000),
            deposit_apy=Decimal("1.8"),
            borrow_apy=Decimal("3.1"),
            reserve_count=12,
            user_count=40,
        ),
    )
    curve = FakeAdapter("curve", error=SourceUnavailable("curve", "HTTP error 503"))
    adapters = ProtocolAdapterService({"aave": aave, "curve": curve})
    ledgers = LedgerDirectory({"ethereum": LocalLedgerReader(ledger, "ethereum", 1)})
    metrics_store = InMemoryMetricsStore()
    services = Services(
        settings=Settings(networks={"ethereum": NetworkSettings(name="ethereum", chain_id=1, ecosystem="ethereum")}),
        pool=chain.pool,
        token_cache=chain.cache,
        chain=chain,
        adapters=adapters,
        ledgers=ledgers,
        metrics_store=metrics_store,
        aggregator=PortfolioAggregator(ledgers, chain, adapters, metrics_store=metrics_store),
    )
    monkeypatch.setattr(cli_main, "build_services", lambda settings: services)
    return services


def test_list_protocols():
    result = runner.invoke(cli_main.app, ["list-protocols"])

    assert result.exit_code == 0
    for name in ("uniswap", "aave", "compound", "balancer", "curve"):
        assert name in result.stdout
    assert "aave_v3" in result.stdout


def test_list_networks():
    result = runner.invoke(cli_main.app, ["list-networks"])

    assert result.exit_code == 0
    assert "arbitrum" in result.stdout
    assert "42161" in result.stdout


def test_portfolio_table(services):
    result = runner.invoke(cli_main.app, ["portfolio", OWNER])

    assert result.exit_code == 0, result.output
    assert "Total Value:" in result.stdout
    assert "$2,000.00" in result.stdout
    assert "Risk Score:" in result.stdout


def test_portfolio_json(services):
    result = runner.invoke(cli_main.app, ["portfolio", OWNER, "--format", "json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["owner"] == OWNER
    assert data["active_position_count"] == 1
    assert data["total_value_usd"] == "2000"
    assert data["positions"][0]["token_symbol"] == "WETH"


def test_positions_and_risk(services):
    positions = runner.invoke(cli_main.app, ["positions", OWNER, "--chain-id", "1", "--format", "json"])
    risk = runner.invoke(cli_main.app, ["risk", OWNER])

    assert positions.exit_code == 0, positions.output
    assert json.loads(positions.stdout)[0]["id"] == "ethereum:0"
    assert risk.exit_code == 0, risk.output
    assert "Risk score: 8.00" in risk.stdout
    assert "1 positions at or above risk 7" in risk.stdout


def test_token(services):
    result = runner.invoke(cli_main.app, ["token", WETH, "--format", "json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["symbol"] == "WETH"


def test_errors_exit_nonzero(services):
    unknown_chain = runner.invoke(cli_main.app, ["positions", OWNER, "--chain-id", "10"])
    unknown_protocol = runner.invoke(cli_main.app, ["protocol-metrics", "sushiswap"])

    assert unknown_chain.exit_code == 1
    assert "Network unavailable" in unknown_chain.stdout
    assert unknown_protocol.exit_code == 1
    assert "Unsupported protocol: sushiswap" in unknown_protocol.stdout


def test_add_position_requires_sender(services):
    result = runner.invoke(cli_main.app, ["add-position", WETH, "1.5", "2000", "aave"])

    assert result.exit_code == 1
    assert "PORTFOLIO_SENDER_ALIAS" in result.stdout


def test_protocol_metrics_for_every_protocol(services):
    table = runner.invoke(cli_main.app, ["protocol-metrics"])
    as_json = runner.invoke(cli_main.app, ["protocol-metrics", "--format", "json"])

    assert table.exit_code == 0, table.output
    assert "$1,250,000.00" in table.stdout
    assert "unavailable" in table.stdout
    assert as_json.exit_code == 0, as_json.output
    data = json.loads(as_json.stdout)
    assert data["aave"]["tvl_usd"] == "1250000"
    assert data["curve"] is None

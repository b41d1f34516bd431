"""Pytest configuration for defi-portfolio-tracker tests."""

import asyncio
from decimal import Decimal

import pytest

# Import all protocol adapters to trigger auto-registration
from defi_portfolio_tracker import protocols  # noqa: F401
from defi_portfolio_tracker.core.aggregator import PortfolioAggregator
from defi_portfolio_tracker.core.models import DerivedMetrics, NormalizedPosition
from defi_portfolio_tracker.core.timeseries import InMemoryMetricsStore
from defi_portfolio_tracker.ledger import LedgerDirectory, LocalLedgerReader, PositionLedger
from defi_portfolio_tracker.protocols.service import ProtocolAdapterService
from defi_portfolio_tracker.rpc import ChainAccessLayer, ConnectionPool, TokenInfoCache

OWNER = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
LEDGER_TIME = 1_700_000_000


def pytest_configure(config):
    """Disable ape plugin during tests."""
    # Unregister ape pytest plugin to avoid network connection issues
    config.pluginmanager.set_blocked("ape_test")


def erc20(address, symbol, decimals, total_supply=10**24):
    """Canned responses for the ERC-20 metadata calls of one token."""
    return {
        (address, "symbol"): symbol,
        (address, "decimals"): decimals,
        (address, "totalSupply"): total_supply,
    }


class FakeConnection:
    """
    Stand-in for ``ChainConnection`` answering calls from a table.

    Keys are ``(address, function)``. A value may be a plain result, an
    exception to raise, or a callable receiving the call arguments. Calls
    without a canned response fail like a reverted call would.
    """

    def __init__(self, network="ethereum", chain_id=1, responses=None, delay=0.0):
        self.network = network
        self.chain_id = chain_id
        self.responses = {(address.lower(), function): value for (address, function), value in (responses or {}).items()}
        self.delay = delay
        self.calls = []
        self.connect_error = None
        self.connected = False
        self.disconnects = 0

    async def connect(self):
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def disconnect(self):
        self.connected = False
        self.disconnects += 1

    async def call(self, address, abi, function, *args):
        self.calls.append((address.lower(), function, args))
        if self.delay:
            await asyncio.sleep(self.delay)
        key = (address.lower(), function)
        if key not in self.responses:
            msg = f"execution reverted: {function}"
            raise RuntimeError(msg)
        value = self.responses[key]
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(*args)
        return value

    def count(self, function):
        return sum(1 for _, name, _ in self.calls if name == function)


class FakeAdapter:
    """Protocol adapter returning canned positions and metrics."""

    def __init__(self, name, positions=None, error=None, metrics=None):
        self.name = name
        self.positions = positions or []
        self.error = error
        self.metrics = metrics
        self.calls = 0
        self.closed = False

    async def get_user_positions(self, user_address):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.positions

    async def get_protocol_metrics(self):
        if self.error is not None:
            raise self.error
        return self.metrics

    async def aclose(self):
        self.closed = True


def normalized(protocol, symbols, pool_id="pool-1", price_usd=None, risk_score=None, supply_rate=None):
    """Build a protocol position with the given derived figures."""
    if isinstance(symbols, str):
        symbols = [symbols]
    return NormalizedPosition(
        source_protocol=protocol,
        pool_or_market_id=pool_id,
        asset_symbols=symbols,
        derived_metrics=DerivedMetrics(
            price_usd=Decimal(price_usd) if price_usd is not None else None,
            risk_score=Decimal(risk_score) if risk_score is not None else None,
            supply_rate=Decimal(supply_rate) if supply_rate is not None else None,
        ),
    )


@pytest.fixture
def fake_connection_class():
    return FakeConnection


@pytest.fixture
def fake_adapter_class():
    return FakeAdapter


@pytest.fixture
def make_normalized():
    return normalized


@pytest.fixture
def eth_connection():
    """Ethereum connection knowing WETH (18 decimals) and USDC (6 decimals)."""
    return FakeConnection(
        network="ethereum",
        chain_id=1,
        responses={**erc20(WETH, "WETH", 18), **erc20(USDC, "USDC", 6)},
    )


@pytest.fixture
def chain(eth_connection):
    pool = ConnectionPool.from_connections({"ethereum": eth_connection})
    return ChainAccessLayer(pool, TokenInfoCache())


@pytest.fixture
def ledger():
    return PositionLedger(clock=lambda: LEDGER_TIME)


@pytest.fixture
def make_aggregator(ledger, chain):
    """
    Build an aggregator over one Ethereum ledger.

    Adapters are given as ``{name: FakeAdapter}``; extra keyword arguments go
    to ``PortfolioAggregator``.
    """

    def _make(adapters=None, readers=None, **kwargs):
        if readers is None:
            readers = {"ethereum": LocalLedgerReader(ledger, "ethereum", 1)}
        kwargs.setdefault("metrics_store", InMemoryMetricsStore())
        return PortfolioAggregator(
            ledgers=LedgerDirectory(readers),
            chain=chain,
            adapters=ProtocolAdapterService(adapters or {}),
            **kwargs,
        )

    return _make

"""Wiring of the tracker's long-lived components."""

from dataclasses import dataclass

from defi_portfolio_tracker.config import Settings
from defi_portfolio_tracker.core.aggregator import PortfolioAggregator
from defi_portfolio_tracker.core.risk import RiskPolicy
from defi_portfolio_tracker.core.timeseries import InMemoryMetricsStore, MetricsStore
from defi_portfolio_tracker.ledger.reader import LedgerDirectory
from defi_portfolio_tracker.protocols.service import ProtocolAdapterService
from defi_portfolio_tracker.rpc.cache import TokenInfoCache
from defi_portfolio_tracker.rpc.chain import ChainAccessLayer
from defi_portfolio_tracker.rpc.provider import ConnectionPool


@dataclass
class Services:
    """Process-scoped components shared by the CLI and the HTTP app."""

    settings: Settings
    pool: ConnectionPool
    token_cache: TokenInfoCache
    chain: ChainAccessLayer
    adapters: ProtocolAdapterService
    ledgers: LedgerDirectory
    metrics_store: MetricsStore
    aggregator: PortfolioAggregator

    async def aclose(self) -> None:
        """Release HTTP clients and chain connections."""
        await self.adapters.aclose()
        self.pool.disconnect_all()


def build_services(settings: Settings) -> Services:
    """
    Build every component from settings.

    Parameters
    ----------
    settings : Settings
        Tracker settings

    Returns
    -------
    Services
        Wired components. Nothing connects until first use.

    """
    pool = ConnectionPool(settings.networks)
    token_cache = TokenInfoCache()
    chain = ChainAccessLayer(pool, token_cache)
    adapters = ProtocolAdapterService.from_urls(settings.subgraph_urls, timeout=settings.request_timeout)
    ledgers = LedgerDirectory.from_settings(settings, pool)
    metrics_store = InMemoryMetricsStore()
    aggregator = PortfolioAggregator(
        ledgers=ledgers,
        chain=chain,
        adapters=adapters,
        metrics_store=metrics_store,
        risk_policy=RiskPolicy(settings.unknown_risk),
    )
    return Services(
        settings=settings,
        pool=pool,
        token_cache=token_cache,
        chain=chain,
        adapters=adapters,
        ledgers=ledgers,
        metrics_store=metrics_store,
        aggregator=aggregator,
    )

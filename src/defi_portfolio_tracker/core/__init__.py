"""Core functionality including models, errors, fixed-point math, matching, risk and registry."""

from defi_portfolio_tracker.core.errors import (
    ChainReadError,
    ConfigurationError,
    InvalidPositionId,
    LedgerError,
    LedgerNotDeployed,
    LedgerOverflowError,
    LedgerReadError,
    NetworkUnavailable,
    PortfolioError,
    PositionInactive,
    SourceUnavailable,
    TokenReadError,
    TransientError,
    UnsupportedProtocol,
)
from defi_portfolio_tracker.core.matching import PositionMatcher, SymbolOverlapMatcher
from defi_portfolio_tracker.core.models import (
    NormalizedPosition,
    PortfolioPosition,
    PortfolioSnapshot,
    Position,
    ProtocolMetrics,
    Timeframe,
    TokenInfo,
)
from defi_portfolio_tracker.core.registry import AdapterRegistry
from defi_portfolio_tracker.core.risk import RiskPolicy, UnknownRisk
from defi_portfolio_tracker.core.timeseries import InMemoryMetricsStore, MetricsStore

__all__ = [
    "AdapterRegistry",
    "ChainReadError",
    "ConfigurationError",
    "InMemoryMetricsStore",
    "InvalidPositionId",
    "LedgerError",
    "LedgerNotDeployed",
    "LedgerOverflowError",
    "LedgerReadError",
    "MetricsStore",
    "NetworkUnavailable",
    "NormalizedPosition",
    "PortfolioError",
    "PortfolioPosition",
    "PortfolioSnapshot",
    "Position",
    "PositionInactive",
    "PositionMatcher",
    "ProtocolMetrics",
    "RiskPolicy",
    "SourceUnavailable",
    "SymbolOverlapMatcher",
    "Timeframe",
    "TokenInfo",
    "TokenReadError",
    "TransientError",
    "UnknownRisk",
]

"""Chain access layer: per-network connections, token cache, retry and contract reads."""

from defi_portfolio_tracker.rpc.cache import TokenInfoCache
from defi_portfolio_tracker.rpc.chain import ChainAccessLayer
from defi_portfolio_tracker.rpc.provider import ChainConnection, ConnectionPool
from defi_portfolio_tracker.rpc.retry import RetryConfig, with_retry

__all__ = [
    "ChainAccessLayer",
    "ChainConnection",
    "ConnectionPool",
    "RetryConfig",
    "TokenInfoCache",
    "with_retry",
]

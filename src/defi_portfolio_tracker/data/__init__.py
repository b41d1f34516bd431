"""Data loading and configuration management."""

from defi_portfolio_tracker.data.loader import (
    DEFAULT_CONFIG_PATH,
    get_all_supported_networks,
    get_network_config,
    get_subgraph_urls,
    load_network_config,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "get_all_supported_networks",
    "get_network_config",
    "get_subgraph_urls",
    "load_network_config",
]

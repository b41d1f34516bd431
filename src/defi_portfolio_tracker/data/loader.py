"""Network and subgraph configuration loader."""

from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent / "networks.yaml"


def load_network_config(path: Path | str | None = None) -> dict[str, Any]:
    """
    Load network and subgraph configuration from YAML.

    Parameters
    ----------
    path : Path | str | None
        Configuration file. Uses the packaged networks.yaml if None.

    Returns
    -------
    dict[str, Any]
        Configuration with 'networks' and 'subgraphs' sections

    """
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_network_config(network: str, path: Path | str | None = None) -> dict[str, Any]:
    """
    Get configuration for a specific network.

    Parameters
    ----------
    network : str
        Network name (e.g., 'ethereum', 'polygon')
    path : Path | str | None
        Configuration file

    Returns
    -------
    dict[str, Any]
        Network configuration including chain id and ape network choice

    Raises
    ------
    KeyError
        If network is not found in configuration

    """
    return load_network_config(path)["networks"][network]


def get_all_supported_networks(path: Path | str | None = None) -> list[str]:
    """Get list of all configured network names."""
    return list(load_network_config(path).get("networks", {}).keys())


def get_subgraph_urls(path: Path | str | None = None) -> dict[str, str]:
    """Get the configured GraphQL endpoint per protocol."""
    return dict(load_network_config(path).get("subgraphs", {}))

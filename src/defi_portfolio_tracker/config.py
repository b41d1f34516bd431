"""Runtime settings built from the packaged YAML and environment variables."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from defi_portfolio_tracker.core.errors import ConfigurationError
from defi_portfolio_tracker.core.risk import UnknownRisk
from defi_portfolio_tracker.data.loader import load_network_config

LEDGER_ADDRESS_PREFIX = "LEDGER_ADDRESS_"
SUBGRAPH_URL_TEMPLATE = "SUBGRAPH_{}_URL"


class NetworkSettings(BaseModel):
    """
    Connection settings for one network.

    Attributes
    ----------
    name : str
        Network name used throughout the tracker (e.g. 'ethereum')
    chain_id : int
        EVM chain id
    ecosystem : str
        Ape ecosystem name
    network : str
        Ape network name within the ecosystem
    rpc_url : str | None
        Custom RPC URL. Ape's configured provider is used when None.

    """

    name: str
    chain_id: int
    ecosystem: str
    network: str = "mainnet"
    rpc_url: str | None = None

    @property
    def network_choice(self) -> str:
        """Ape network choice string (``ecosystem:network[:rpc_url]``)."""
        choice = f"{self.ecosystem}:{self.network}"
        if self.rpc_url:
            choice = f"{choice}:{self.rpc_url}"
        return choice


class Settings(BaseModel):
    """Tracker settings."""

    environment: str = "development"
    networks: dict[str, NetworkSettings] = Field(default_factory=dict)
    subgraph_urls: dict[str, str] = Field(default_factory=dict)
    ledger_addresses: dict[int, str] = Field(default_factory=dict)
    ledger_backend: Literal["contract", "memory"] = "contract"
    unknown_risk: UnknownRisk = UnknownRisk.COUNT_AS_ZERO
    request_timeout: float = 30.0
    sender_alias: str | None = None

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def network_for_chain_id(self, chain_id: int) -> NetworkSettings | None:
        """Return the network configured for a chain id, if any."""
        for network in self.networks.values():
            if network.chain_id == chain_id:
                return network
        return None


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """
    Build settings from the network YAML and the environment.

    Parameters
    ----------
    path : Path | str | None
        Network configuration file. Uses the packaged networks.yaml if None.
    environ : Mapping[str, str] | None
        Environment variables. Uses ``os.environ`` if None.

    Returns
    -------
    Settings
        Validated settings

    Raises
    ------
    ConfigurationError
        If the configuration file or an environment value is invalid

    """
    if environ is None:
        environ = os.environ

    try:
        raw = load_network_config(path)
    except (OSError, yaml.YAMLError) as e:
        msg = f"Failed to load network configuration: {e}"
        raise ConfigurationError(msg) from e

    networks = {}
    for name, entry in (raw.get("networks") or {}).items():
        rpc_env = entry.get("rpc_env")
        networks[name] = {
            "name": name,
            "chain_id": entry.get("chain_id"),
            "ecosystem": entry.get("ecosystem", name),
            "network": entry.get("network", "mainnet"),
            "rpc_url": environ.get(rpc_env) if rpc_env else None,
        }

    subgraph_urls = dict(raw.get("subgraphs") or {})
    for protocol in list(subgraph_urls):
        override = environ.get(SUBGRAPH_URL_TEMPLATE.format(protocol.upper()))
        if override:
            subgraph_urls[protocol] = override

    ledger_addresses = {}
    for key, value in environ.items():
        if key.startswith(LEDGER_ADDRESS_PREFIX) and value:
            suffix = key.removeprefix(LEDGER_ADDRESS_PREFIX)
            if suffix.isdigit():
                ledger_addresses[int(suffix)] = value

    values = {
        "environment": environ.get("PORTFOLIO_ENV", "development"),
        "networks": networks,
        "subgraph_urls": subgraph_urls,
        "ledger_addresses": ledger_addresses,
        "ledger_backend": environ.get("PORTFOLIO_LEDGER_BACKEND", "contract"),
        "unknown_risk": environ.get("PORTFOLIO_UNKNOWN_RISK", UnknownRisk.COUNT_AS_ZERO.value),
        "request_timeout": environ.get("PORTFOLIO_REQUEST_TIMEOUT", 30.0),
        "sender_alias": environ.get("PORTFOLIO_SENDER_ALIAS") or None,
    }

    try:
        return Settings.model_validate(values)
    except ValidationError as e:
        msg = f"Invalid configuration: {e}"
        raise ConfigurationError(msg) from e

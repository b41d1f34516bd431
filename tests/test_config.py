"""Tests for settings loading."""

import pytest

from defi_portfolio_tracker.config import load_settings
from defi_portfolio_tracker.core.errors import ConfigurationError
from defi_portfolio_tracker.core.risk import UnknownRisk


def test_defaults_from_packaged_config():
    """Test settings with an empty environment."""
    settings = load_settings(environ={})

    assert settings.environment == "development"
    assert settings.is_production is False
    assert set(settings.networks) == {"ethereum", "optimism", "polygon", "arbitrum"}
    assert settings.networks["ethereum"].chain_id == 1
    assert settings.networks["ethereum"].network_choice == "ethereum:mainnet"
    assert set(settings.subgraph_urls) == {"uniswap", "aave", "compound", "balancer", "curve"}
    assert settings.ledger_addresses == {}
    assert settings.ledger_backend == "contract"
    assert settings.unknown_risk == UnknownRisk.COUNT_AS_ZERO
    assert settings.sender_alias is None


def test_environment_overrides():
    environ = {
        "PORTFOLIO_ENV": "production",
        "ETH_RPC_URL": "https://rpc.example/eth",
        "SUBGRAPH_AAVE_URL": "https://subgraph.example/aave",
        "LEDGER_ADDRESS_1": "0x7777777777777777777777777777777777777777",
        "LEDGER_ADDRESS_X": "ignored",
        "PORTFOLIO_LEDGER_BACKEND": "memory",
        "PORTFOLIO_UNKNOWN_RISK": "exclude",
        "PORTFOLIO_REQUEST_TIMEOUT": "5",
        "PORTFOLIO_SENDER_ALIAS": "deployer",
    }

    settings = load_settings(environ=environ)

    assert settings.is_production is True
    assert settings.networks["ethereum"].network_choice == "ethereum:mainnet:https://rpc.example/eth"
    assert settings.subgraph_urls["aave"] == "https://subgraph.example/aave"
    assert settings.ledger_addresses == {1: "0x7777777777777777777777777777777777777777"}
    assert settings.ledger_backend == "memory"
    assert settings.unknown_risk == UnknownRisk.EXCLUDE
    assert settings.request_timeout == 5.0
    assert settings.sender_alias == "deployer"
    assert settings.network_for_chain_id(137).name == "polygon"
    assert settings.network_for_chain_id(56) is None


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("PORTFOLIO_LEDGER_BACKEND", "sqlite"),
        ("PORTFOLIO_UNKNOWN_RISK", "ignore"),
        ("PORTFOLIO_REQUEST_TIMEOUT", "soon"),
    ],
)
def test_invalid_environment_values(key, value):
    with pytest.raises(ConfigurationError, match="Invalid configuration"):
        load_settings(environ={key: value})


def test_custom_config_file(tmp_path):
    path = tmp_path / "networks.yaml"
    path.write_text(
        "networks:\n"
        "  base:\n"
        "    chain_id: 8453\n"
        "    ecosystem: base\n"
        "    rpc_env: BASE_RPC_URL\n"
        "subgraphs:\n"
        "  curve: https://subgraph.example/curve\n"
    )

    settings = load_settings(path, environ={"BASE_RPC_URL": "https://rpc.example/base"})

    assert list(settings.networks) == ["base"]
    assert settings.networks["base"].rpc_url == "https://rpc.example/base"
    assert settings.subgraph_urls == {"curve": "https://subgraph.example/curve"}


def test_missing_chain_id(tmp_path):
    path = tmp_path / "networks.yaml"
    path.write_text("networks:\n  base:\n    ecosystem: base\n")

    with pytest.raises(ConfigurationError):
        load_settings(path, environ={})


def test_unreadable_config(tmp_path):
    with pytest.raises(ConfigurationError, match="Failed to load"):
        load_settings(tmp_path / "missing.yaml", environ={})

    bad = tmp_path / "bad.yaml"
    bad.write_text("networks: [unclosed\n")
    with pytest.raises(ConfigurationError, match="Failed to load"):
        load_settings(bad, environ={})

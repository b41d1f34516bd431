"""Tests for Pydantic data models."""

from decimal import Decimal

import pytest
from pydantic import TypeAdapter, ValidationError

from defi_portfolio_tracker.core.models import (
    AaveMetrics,
    CurveMetrics,
    PortfolioPosition,
    Position,
    ProtocolMetrics,
    Timeframe,
    TokenInfo,
    Valuation,
)


def test_position_model():
    """Test ledger Position model."""
    position = Position(
        owner="0x1111111111111111111111111111111111111111",
        token="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        amount=10**18,
        entry_price=2000 * 10**18,
        entry_timestamp=1_700_000_000,
        protocol_label="aave",
    )

    assert position.active is True
    assert position.index is None
    assert position.amount == 10**18


def test_position_is_immutable():
    position = Position(owner="0x1", token="0x2", amount=1, entry_price=1, entry_timestamp=0, protocol_label="aave")

    with pytest.raises(ValidationError):
        position.amount = 2


def test_token_info_serializes_supply_as_string():
    """Test that large integers survive JSON consumers without float rounding."""
    token = TokenInfo(address="0xA0b8", symbol="USDC", decimals=6, total_supply=2**200)

    assert token.model_dump(mode="json")["total_supply"] == str(2**200)


def test_timeframe_days():
    assert Timeframe.DAILY.days == 1
    assert Timeframe.WEEKLY.days == 7
    assert Timeframe.MONTHLY.days == 30
    assert Timeframe.YEARLY.days == 365
    assert Timeframe("weekly") is Timeframe.WEEKLY


def test_protocol_metrics_discriminated_union():
    """Test that metrics payloads validate into the variant named by 'protocol'."""
    adapter = TypeAdapter(ProtocolMetrics)

    aave = adapter.validate_python(
        {
            "protocol": "aave",
            "tvl_usd": "100",
            "total_deposited_usd": "150",
            "total_borrowed_usd": "50",
            "deposit_apy": "2",
            "borrow_apy": "3",
            "reserve_count": 10,
            "user_count": 5,
        }
    )
    curve = adapter.validate_python({"protocol": "curve", "tvl_usd": "7.5"})

    assert isinstance(aave, AaveMetrics)
    assert isinstance(curve, CurveMetrics)
    assert curve.tvl_usd == Decimal("7.5")

    with pytest.raises(ValidationError):
        adapter.validate_python({"protocol": "lido", "tvl_usd": "1"})


def test_portfolio_position_defaults():
    position = PortfolioPosition(
        id="ethereum:0",
        network="ethereum",
        chain_id=1,
        ledger_index=0,
        token_address="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        token_symbol="WETH",
        amount=Decimal(1),
        raw_amount=10**18,
        entry_price=Decimal(2000),
        entry_timestamp=1_700_000_000,
        protocol="aave",
        entry_value_usd=Decimal(2000),
        value_usd=Decimal(2000),
    )

    assert position.valuation == Valuation.ENTRY
    assert position.risk is None
    assert position.matched_sources == []
    assert position.model_dump(mode="json")["raw_amount"] == str(10**18)

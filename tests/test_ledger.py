"""Tests for the in-process position ledger."""

import pytest
from conftest import LEDGER_TIME, OTHER, OWNER, USDC, WETH

from defi_portfolio_tracker.core.errors import InvalidPositionId, LedgerOverflowError, PositionInactive
from defi_portfolio_tracker.core.fixedpoint import UINT256_MAX
from defi_portfolio_tracker.ledger import PositionAdded, PositionRemoved, PositionUpdated

PRICE = 2000 * 10**18


def test_add_position(ledger):
    """Test that adding returns sequential indices and stamps the entry time."""
    first = ledger.add_position(OWNER, WETH, 10**18, PRICE, "aave")
    second = ledger.add_position(OWNER, USDC, 5_000_000, 10**18, "compound")

    assert (first, second) == (0, 1)
    assert ledger.get_position_count(OWNER) == 2

    position = ledger.get_position(OWNER, 0)
    assert position.token == WETH
    assert position.amount == 10**18
    assert position.entry_price == PRICE
    assert position.entry_timestamp == LEDGER_TIME
    assert position.protocol_label == "aave"
    assert position.active is True
    assert position.index == 0


def test_owners_are_isolated(ledger):
    ledger.add_position(OWNER, WETH, 1, 1, "aave")

    assert ledger.get_position_count(OTHER) == 0
    assert ledger.get_all_positions(OTHER) == []
    with pytest.raises(InvalidPositionId):
        ledger.get_position(OTHER, 0)


def test_owner_lookup_ignores_address_case(ledger):
    checksummed = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
    ledger.add_position(checksummed, WETH, 1, 1, "aave")
    assert ledger.get_position_count(checksummed.lower()) == 1


def test_remove_is_soft_delete(ledger):
    """Test that removal keeps the record and shrinks the active view."""
    ledger.add_position(OWNER, WETH, 10**18, PRICE, "aave")
    ledger.add_position(OWNER, USDC, 5_000_000, 10**18, "compound")

    ledger.remove_position(OWNER, 0)

    removed = ledger.get_position(OWNER, 0)
    assert removed.active is False
    assert removed.amount == 10**18
    assert removed.entry_price == PRICE

    assert ledger.get_position_count(OWNER) == 1
    active = ledger.get_all_positions(OWNER)
    assert [p.index for p in active] == [1]
    assert active[0].token == USDC


def test_remove_twice_fails(ledger):
    ledger.add_position(OWNER, WETH, 1, 1, "aave")
    ledger.remove_position(OWNER, 0)

    with pytest.raises(PositionInactive):
        ledger.remove_position(OWNER, 0)
    assert ledger.get_position_count(OWNER) == 0


@pytest.mark.parametrize("index", [-1, 1, 99])
def test_invalid_index(ledger, index):
    ledger.add_position(OWNER, WETH, 1, 1, "aave")

    with pytest.raises(InvalidPositionId):
        ledger.remove_position(OWNER, index)
    with pytest.raises(InvalidPositionId):
        ledger.update_position(OWNER, index, 1, 1)
    with pytest.raises(InvalidPositionId):
        ledger.get_position(OWNER, index)


def test_update_position(ledger):
    """Test that update rewrites amount and price only."""
    ledger.add_position(OWNER, WETH, 10**18, PRICE, "aave")

    ledger.update_position(OWNER, 0, 3 * 10**18, 2500 * 10**18)

    position = ledger.get_position(OWNER, 0)
    assert position.amount == 3 * 10**18
    assert position.entry_price == 2500 * 10**18
    assert position.protocol_label == "aave"
    assert position.entry_timestamp == LEDGER_TIME
    assert ledger.get_position_count(OWNER) == 1


def test_update_removed_position_fails(ledger):
    ledger.add_position(OWNER, WETH, 1, 1, "aave")
    ledger.remove_position(OWNER, 0)

    with pytest.raises(PositionInactive):
        ledger.update_position(OWNER, 0, 2, 2)


def test_overflow_leaves_ledger_unchanged(ledger):
    """Test that out-of-range values are rejected before any state change."""
    ledger.add_position(OWNER, WETH, 1, 1, "aave")

    with pytest.raises(LedgerOverflowError):
        ledger.add_position(OWNER, WETH, UINT256_MAX + 1, 1, "aave")
    with pytest.raises(LedgerOverflowError):
        ledger.add_position(OWNER, WETH, 1, -1, "aave")
    with pytest.raises(LedgerOverflowError):
        ledger.update_position(OWNER, 0, UINT256_MAX + 1, 1)

    assert ledger.get_position_count(OWNER) == 1
    assert len(ledger.events) == 1
    assert ledger.get_position(OWNER, 0).amount == 1


def test_events_are_logged_in_order(ledger):
    ledger.add_position(OWNER, WETH, 10**18, PRICE, "aave")
    ledger.update_position(OWNER, 0, 2 * 10**18, PRICE)
    ledger.remove_position(OWNER, 0)

    added, updated, removed = ledger.events
    assert isinstance(added, PositionAdded)
    assert added.index == 0
    assert added.entry_timestamp == LEDGER_TIME
    assert isinstance(updated, PositionUpdated)
    assert updated.new_amount == 2 * 10**18
    assert isinstance(removed, PositionRemoved)
    assert removed.owner == OWNER


def test_subscribe_and_unsubscribe(ledger):
    received = []
    unsubscribe = ledger.subscribe(received.append)

    ledger.add_position(OWNER, WETH, 1, 1, "aave")
    unsubscribe()
    ledger.add_position(OWNER, WETH, 1, 1, "aave")

    assert len(received) == 1
    assert received[0].index == 0
    assert len(ledger.events) == 2


def test_unsubscribe_twice_is_harmless(ledger):
    first, second = [], []
    unsubscribe = ledger.subscribe(first.append)
    ledger.subscribe(second.append)

    unsubscribe()
    unsubscribe()
    ledger.add_position(OWNER, WETH, 1, 1, "aave")

    assert first == []
    assert len(second) == 1

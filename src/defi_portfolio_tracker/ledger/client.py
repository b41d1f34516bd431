"""Ledger address resolution and transaction submission."""

import asyncio
import logging
from decimal import Decimal
from typing import Any

from ape import accounts

from defi_portfolio_tracker.config import Settings
from defi_portfolio_tracker.core.errors import ConfigurationError, LedgerNotDeployed
from defi_portfolio_tracker.core.fixedpoint import WAD_DECIMALS, check_uint256, parse_units
from defi_portfolio_tracker.ledger.abi import LEDGER_ABI

logger = logging.getLogger(__name__)

# Well-known address used in development when no ledger is configured
PLACEHOLDER_LEDGER_ADDRESS = "0x1234567890123456789012345678901234567890"


def resolve_ledger_address(chain_id: int, settings: Settings) -> str:
    """
    Resolve the ledger contract address for a chain.

    Parameters
    ----------
    chain_id : int
        EVM chain id
    settings : Settings
        Tracker settings holding ``LEDGER_ADDRESS_<chain_id>`` values

    Returns
    -------
    str
        Configured address, or the placeholder outside production

    Raises
    ------
    LedgerNotDeployed
        If no address is configured and the environment is production

    """
    address = settings.ledger_addresses.get(chain_id)
    if address:
        return address

    if settings.is_production:
        raise LedgerNotDeployed(chain_id)

    logger.warning(
        "No ledger address configured for chain %d; using placeholder %s (%s environment)",
        chain_id,
        PLACEHOLDER_LEDGER_ADDRESS,
        settings.environment,
    )
    return PLACEHOLDER_LEDGER_ADDRESS


class LedgerClient:
    """
    Submit ledger mutations through Ape.

    Amounts and prices are given as decimal strings and converted to the
    ledger's fixed-point integers before anything is sent.

    Parameters
    ----------
    connection : Any
        Connected ``ChainConnection`` for the ledger's network
    address : str
        Ledger contract address
    sender : Any
        Ape account that signs transactions

    """

    def __init__(self, connection: Any, address: str, sender: Any) -> None:
        self.connection = connection
        self.address = address
        self.sender = sender

    @classmethod
    async def for_chain(
        cls,
        pool: Any,
        settings: Settings,
        chain_id: int,
        sender: Any | None = None,
    ) -> "LedgerClient":
        """
        Build a client for the ledger on a chain.

        The sender defaults to the Ape account aliased by
        ``PORTFOLIO_SENDER_ALIAS``.

        Raises
        ------
        ConfigurationError
            If the chain is not configured, no sender is available, or the
            ledger is not deployed in production

        """
        network = settings.network_for_chain_id(chain_id)
        if network is None:
            msg = f"No network configured for chain {chain_id}"
            raise ConfigurationError(msg)

        address = resolve_ledger_address(chain_id, settings)
        if sender is None:
            if not settings.sender_alias:
                msg = "No sender account configured. Set PORTFOLIO_SENDER_ALIAS."
                raise ConfigurationError(msg)
            sender = accounts.load(settings.sender_alias)

        connection = await pool.get(network.name)
        return cls(connection, address, sender)

    def _contract(self) -> Any:
        return self.connection.get_contract(self.address, LEDGER_ABI)

    async def _submit(self, function: str, *args: Any) -> str:
        contract = self._contract()

        def _send() -> Any:
            return getattr(contract, function)(*args, sender=self.sender)

        receipt = await asyncio.to_thread(_send)
        logger.info("Submitted %s: %s", function, receipt.txn_hash)
        return receipt.txn_hash

    async def add_position(
        self,
        token: str,
        amount: str | Decimal,
        entry_price: str | Decimal,
        protocol_label: str,
        token_decimals: int = 18,
    ) -> str:
        """
        Submit ``addPosition``.

        Parameters
        ----------
        token : str
            Token contract address
        amount : str | Decimal
            Human-readable amount, e.g. "1.5"
        entry_price : str | Decimal
            Human-readable USD entry price, e.g. "2000"
        protocol_label : str
            Protocol label stored with the position
        token_decimals : int
            Decimals of the token

        Returns
        -------
        str
            Transaction hash

        Raises
        ------
        ValueError
            If amount or price is not a valid decimal for its scale
        LedgerOverflowError
            If a converted value does not fit uint256. Nothing is submitted.

        """
        raw_amount = check_uint256(parse_units(amount, token_decimals), "amount")
        raw_price = check_uint256(parse_units(entry_price, WAD_DECIMALS), "entry_price")
        return await self._submit("addPosition", token, raw_amount, raw_price, protocol_label)

    async def remove_position(self, index: int) -> str:
        """Submit ``removePosition`` and return the transaction hash."""
        return await self._submit("removePosition", check_uint256(index, "index"))

    async def update_position(
        self,
        index: int,
        new_amount: str | Decimal,
        new_entry_price: str | Decimal,
        token_decimals: int = 18,
    ) -> str:
        """Submit ``updatePosition`` and return the transaction hash."""
        raw_amount = check_uint256(parse_units(new_amount, token_decimals), "amount")
        raw_price = check_uint256(parse_units(new_entry_price, WAD_DECIMALS), "entry_price")
        return await self._submit("updatePosition", check_uint256(index, "index"), raw_amount, raw_price)

    async def wait_for_confirmation(self, txn_hash: str, confirmations: int = 1) -> Any:
        """
        Wait until a transaction has ``confirmations`` blocks on top.

        Returns
        -------
        Any
            Ape transaction receipt

        """
        if confirmations < 1:
            msg = f"confirmations must be at least 1, got {confirmations}"
            raise ValueError(msg)
        return await self.connection.get_receipt(txn_hash, confirmations)

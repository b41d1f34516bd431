"""Async read access to the position ledger, in-process or deployed."""

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from defi_portfolio_tracker.config import Settings
from defi_portfolio_tracker.core.errors import (
    ConfigurationError,
    LedgerReadError,
    NetworkUnavailable,
)
from defi_portfolio_tracker.core.models import Position
from defi_portfolio_tracker.ledger.abi import LEDGER_ABI
from defi_portfolio_tracker.ledger.client import resolve_ledger_address
from defi_portfolio_tracker.ledger.ledger import PositionLedger
from defi_portfolio_tracker.rpc.provider import ConnectionPool

logger = logging.getLogger(__name__)


class LedgerReader(Protocol):
    """
    Read side of a ledger on one network.

    Attributes
    ----------
    network : str
        Network name
    chain_id : int
        Chain id of the network

    """

    network: str
    chain_id: int

    async def get_all_positions(self, owner: str) -> list[Position]:
        """Get the owner's active positions in append order."""
        ...

    async def get_position_count(self, owner: str) -> int:
        """Get the owner's active position count."""
        ...

    async def get_position(self, owner: str, index: int) -> Position:
        """Get one position by ledger index, active or not."""
        ...


class LocalLedgerReader:
    """Reader over an in-process ``PositionLedger``."""

    def __init__(self, ledger: PositionLedger, network: str, chain_id: int) -> None:
        self.ledger = ledger
        self.network = network
        self.chain_id = chain_id

    async def get_all_positions(self, owner: str) -> list[Position]:
        return self.ledger.get_all_positions(owner)

    async def get_position_count(self, owner: str) -> int:
        return self.ledger.get_position_count(owner)

    async def get_position(self, owner: str, index: int) -> Position:
        return self.ledger.get_position(owner, index)


def _position_from_tuple(owner: str, record: Any, index: int | None = None) -> Position:
    token, protocol, amount, timestamp, entry_price, active = record
    return Position(
        owner=owner,
        token=str(token),
        amount=int(amount),
        entry_price=int(entry_price),
        entry_timestamp=int(timestamp),
        protocol_label=str(protocol),
        active=bool(active),
        index=index,
    )


class ContractLedgerReader:
    """
    Reader over the deployed ledger contract.

    Parameters
    ----------
    pool : ConnectionPool
        Connection per network
    network : str
        Network the contract is deployed on
    chain_id : int
        Chain id of the network
    address : str
        Ledger contract address

    """

    def __init__(self, pool: ConnectionPool, network: str, chain_id: int, address: str) -> None:
        self.pool = pool
        self.network = network
        self.chain_id = chain_id
        self.address = address

    async def _call(self, function: str, *args: Any) -> Any:
        connection = await self.pool.get(self.network)
        try:
            return await connection.call(self.address, LEDGER_ABI, function, *args)
        except Exception as e:
            msg = f"Ledger {function} failed on {self.network} ({self.address}): {e}"
            raise LedgerReadError(msg) from e

    async def get_all_positions(self, owner: str) -> list[Position]:
        records = await self._call("getAllPositions", owner)
        try:
            positions = [_position_from_tuple(owner, record) for record in records]
        except (TypeError, ValueError) as e:
            msg = f"Unexpected getAllPositions result on {self.network}: {e}"
            raise LedgerReadError(msg) from e
        return [p for p in positions if p.active]

    async def get_position_count(self, owner: str) -> int:
        return int(await self._call("getPositionCount", owner))

    async def get_position(self, owner: str, index: int) -> Position:
        record = await self._call("getPosition", owner, index)
        try:
            return _position_from_tuple(owner, record, index)
        except (TypeError, ValueError) as e:
            msg = f"Unexpected getPosition result on {self.network}: {e}"
            raise LedgerReadError(msg) from e


class LedgerDirectory:
    """
    Ledger reader per network.

    Networks whose ledger cannot be used (e.g. no address configured in
    production) keep the configuration error and raise it on lookup.

    """

    def __init__(
        self,
        readers: dict[str, LedgerReader],
        unavailable: dict[str, ConfigurationError] | None = None,
    ) -> None:
        self._readers = dict(readers)
        self._unavailable = dict(unavailable or {})
        self.ledgers: dict[str, PositionLedger] = {}

    @classmethod
    def from_settings(cls, settings: Settings, pool: ConnectionPool) -> "LedgerDirectory":
        """
        Build readers for every configured network.

        The ``memory`` backend gives each network its own in-process ledger,
        exposed through ``ledgers`` for writing.

        """
        readers: dict[str, LedgerReader] = {}
        unavailable: dict[str, ConfigurationError] = {}
        ledgers: dict[str, PositionLedger] = {}

        for name, network in settings.networks.items():
            if settings.ledger_backend == "memory":
                ledgers[name] = PositionLedger()
                readers[name] = LocalLedgerReader(ledgers[name], name, network.chain_id)
                continue
            try:
                address = resolve_ledger_address(network.chain_id, settings)
            except ConfigurationError as e:
                logger.warning("Ledger unavailable on %s: %s", name, e)
                unavailable[name] = e
                continue
            readers[name] = ContractLedgerReader(pool, name, network.chain_id, address)

        directory = cls(readers, unavailable)
        directory.ledgers = ledgers
        return directory

    @property
    def networks(self) -> list[str]:
        return list(self._readers) + [n for n in self._unavailable if n not in self._readers]

    def get(self, network: str) -> LedgerReader:
        """
        Get the reader for a network.

        Raises
        ------
        NetworkUnavailable
            If the network is not configured
        ConfigurationError
            If the network is configured but its ledger is not usable

        """
        if network in self._unavailable:
            raise self._unavailable[network]
        reader = self._readers.get(network)
        if reader is None:
            raise NetworkUnavailable(network, "no ledger configured")
        return reader

    def for_chain_ids(self, chain_ids: Iterable[int] | None = None) -> list[LedgerReader]:
        """
        Select readers by chain id, or every reader when ``chain_ids`` is None.

        An unfiltered selection needs every configured network to be usable:
        in production, one network without a deployed ledger address fails
        it with that network's ``LedgerNotDeployed`` for every owner.
        Callers pass explicit chain ids to read the deployed networks only.

        Raises
        ------
        NetworkUnavailable
            If a chain id has no configured network
        ConfigurationError
            If a selected network's ledger is not usable, or any network's
            ledger when ``chain_ids`` is None

        """
        if chain_ids is None:
            if self._unavailable:
                raise next(iter(self._unavailable.values()))
            return list(self._readers.values())

        by_chain = {reader.chain_id: reader for reader in self._readers.values()}
        selected = []
        for chain_id in dict.fromkeys(chain_ids):
            reader = by_chain.get(chain_id)
            if reader is None:
                for error in self._unavailable.values():
                    if getattr(error, "chain_id", None) == chain_id:
                        raise error
                raise NetworkUnavailable(f"chain {chain_id}", "no ledger configured")
            selected.append(reader)
        return selected

"""Per-network chain connections using Ape's network management."""

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

from ape import Contract, networks

from defi_portfolio_tracker.config import NetworkSettings
from defi_portfolio_tracker.core.errors import NetworkUnavailable

logger = logging.getLogger(__name__)


class ChainConnection:
    """
    Connection to one network through an Ape provider.

    Reads go through the provider's own web3 instance so that several
    networks can be read concurrently regardless of which provider Ape
    currently treats as active. Blocking calls run in a worker thread.
    Connecting mutates Ape's global provider stack, so callers must not
    connect two connections at once (``ConnectionPool`` serializes this).

    Parameters
    ----------
    settings : NetworkSettings
        Network to connect to

    """

    def __init__(self, settings: NetworkSettings) -> None:
        self.settings = settings
        self._network_context = None
        self._provider = None

    @property
    def network(self) -> str:
        return self.settings.name

    @property
    def chain_id(self) -> int:
        return self.settings.chain_id

    @property
    def is_connected(self) -> bool:
        return self._provider is not None

    async def connect(self) -> None:
        """
        Connect once; later calls return immediately.

        Raises
        ------
        NetworkUnavailable
            If Ape cannot connect to the network

        """
        if self._provider is not None:
            return
        await asyncio.to_thread(self._connect)

    def _connect(self) -> None:
        choice = self.settings.network_choice
        try:
            self._network_context = networks.parse_network_choice(choice)
            # networks.provider is global; keep the one this context pushed
            self._provider = self._network_context.__enter__()
        except Exception as e:
            self._network_context = None
            raise NetworkUnavailable(self.network, str(e)) from e

        logger.info("Connected to %s (%s:%s)", self.network, self.settings.ecosystem, self.settings.network)

    def disconnect(self) -> None:
        """Disconnect from the network."""
        if self._network_context:
            try:
                self._network_context.__exit__(None, None, None)
            except Exception as e:
                logger.debug("Error during network context cleanup: %s", e)
            self._network_context = None
        self._provider = None

    def _require_provider(self) -> Any:
        if self._provider is None:
            error_msg = "Provider not connected. Call connect() first."
            raise RuntimeError(error_msg)
        return self._provider

    async def call(self, address: str, abi: list[dict[str, Any]], function: str, *args: Any) -> Any:
        """
        Call a view function.

        Parameters
        ----------
        address : str
            Contract address, any casing
        abi : list[dict[str, Any]]
            ABI fragment containing the function
        function : str
            Function name (e.g. 'symbol', 'getReserves')
        *args : Any
            Function arguments

        Returns
        -------
        Any
            Decoded return value. Multiple outputs come back as a tuple.

        """
        provider = self._require_provider()

        def _call() -> Any:
            web3 = provider.web3
            contract = web3.eth.contract(address=web3.to_checksum_address(address), abi=abi)
            return getattr(contract.functions, function)(*args).call()

        return await asyncio.to_thread(_call)

    def get_contract(self, address: str, abi: list[dict[str, Any]]) -> Any:
        """
        Get an Ape contract instance for sending transactions.

        Parameters
        ----------
        address : str
            Contract address
        abi : list[dict[str, Any]]
            Contract ABI

        Returns
        -------
        Contract
            Ape contract instance

        """
        self._require_provider()
        return Contract(address, abi=abi)

    async def get_receipt(self, txn_hash: str, confirmations: int = 1) -> Any:
        """Wait until a transaction has the required confirmations and return its receipt."""
        provider = self._require_provider()
        return await asyncio.to_thread(provider.get_receipt, txn_hash, required_confirmations=confirmations)


class ConnectionPool:
    """
    Lazily connected ``ChainConnection`` per configured network.

    Parameters
    ----------
    network_settings : Mapping[str, NetworkSettings]
        Networks by name
    connection_factory : Callable[[NetworkSettings], Any]
        Builds the connection for a network

    """

    def __init__(
        self,
        network_settings: Mapping[str, NetworkSettings],
        connection_factory: Callable[[NetworkSettings], Any] = ChainConnection,
    ) -> None:
        self._connections = {name: connection_factory(settings) for name, settings in network_settings.items()}
        self._connect_lock = asyncio.Lock()

    @classmethod
    def from_connections(cls, connections: Mapping[str, Any]) -> "ConnectionPool":
        """Build a pool around existing connection objects."""
        pool = cls({})
        pool._connections = dict(connections)
        return pool

    @property
    def networks(self) -> list[str]:
        return list(self._connections)

    async def get(self, network: str) -> Any:
        """
        Get the connected connection for a network.

        Connects are serialized across the pool.

        Raises
        ------
        NetworkUnavailable
            If the network is not configured or the connection fails

        """
        connection = self._connections.get(network)
        if connection is None:
            raise NetworkUnavailable(network, "not configured")

        try:
            async with self._connect_lock:
                await connection.connect()
        except NetworkUnavailable:
            raise
        except Exception as e:
            raise NetworkUnavailable(network, str(e)) from e
        return connection

    def disconnect_all(self) -> None:
        """Disconnect every connection."""
        for connection in self._connections.values():
            connection.disconnect()

"""Protocol adapter lookup and failure isolation across adapters."""

import asyncio
import logging
from collections.abc import Iterable, Mapping

import httpx

from defi_portfolio_tracker.core.errors import SourceUnavailable, UnsupportedProtocol
from defi_portfolio_tracker.core.models import NormalizedPosition, ProtocolMetrics
from defi_portfolio_tracker.core.registry import AdapterRegistry, ProtocolAdapterInterface

logger = logging.getLogger(__name__)


class ProtocolAdapterService:
    """
    Access to every configured protocol adapter.

    Single-protocol calls raise typed errors. Collecting calls run adapters
    concurrently and return None for any adapter that failed, so one broken
    index never hides the others.

    Parameters
    ----------
    adapters : Mapping[str, ProtocolAdapterInterface]
        Adapter instances by canonical name

    """

    def __init__(self, adapters: Mapping[str, ProtocolAdapterInterface]) -> None:
        self.adapters = dict(adapters)
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_urls(cls, subgraph_urls: Mapping[str, str], timeout: float = 30.0) -> "ProtocolAdapterService":
        """
        Create one adapter per configured endpoint, sharing an HTTP client.

        Endpoints for protocols without a registered adapter are ignored.

        """
        client = httpx.AsyncClient(timeout=timeout)
        adapters = {}
        for protocol, url in subgraph_urls.items():
            adapter_class = AdapterRegistry.get_adapter(protocol)
            if adapter_class is None:
                logger.warning("No adapter registered for configured subgraph %s", protocol)
                continue
            adapters[adapter_class.name] = adapter_class(url, client=client)
        service = cls(adapters)
        service._client = client
        return service

    @property
    def protocols(self) -> list[str]:
        return list(self.adapters)

    def resolve(self, protocol: str) -> str | None:
        """Resolve a protocol label or alias to a configured adapter name."""
        name = AdapterRegistry.resolve(protocol)
        return name if name in self.adapters else None

    def get_adapter(self, protocol: str) -> ProtocolAdapterInterface:
        """
        Get the adapter for a protocol label.

        Raises
        ------
        UnsupportedProtocol
            If no configured adapter matches the label

        """
        name = self.resolve(protocol)
        if name is None:
            raise UnsupportedProtocol(protocol)
        return self.adapters[name]

    async def get_protocol_metrics(self, protocol: str) -> ProtocolMetrics:
        """
        Fetch protocol-wide figures for one protocol.

        Raises
        ------
        UnsupportedProtocol
            If the protocol is unknown
        SourceUnavailable
            If the protocol index cannot be read

        """
        return await self.get_adapter(protocol).get_protocol_metrics()

    async def get_user_positions(self, protocol: str, user_address: str) -> list[NormalizedPosition]:
        """
        Fetch a user's positions on one protocol.

        Raises
        ------
        UnsupportedProtocol
            If the protocol is unknown
        SourceUnavailable
            If the protocol index cannot be read

        """
        return await self.get_adapter(protocol).get_user_positions(user_address)

    async def collect_user_positions(
        self,
        protocols: Iterable[str],
        user_address: str,
    ) -> dict[str, list[NormalizedPosition] | None]:
        """
        Fetch a user's positions from several protocols concurrently.

        Parameters
        ----------
        protocols : Iterable[str]
            Protocol names or aliases; unknown labels are skipped
        user_address : str
            User wallet address

        Returns
        -------
        dict[str, list[NormalizedPosition] | None]
            Positions by canonical protocol name, None where the adapter failed

        """
        names = self._resolve_all(protocols)
        results = await asyncio.gather(
            *(self.adapters[name].get_user_positions(user_address) for name in names),
            return_exceptions=True,
        )
        return dict(zip(names, (self._contain(name, result) for name, result in zip(names, results))))

    async def collect_protocol_metrics(
        self,
        protocols: Iterable[str] | None = None,
    ) -> dict[str, ProtocolMetrics | None]:
        """Fetch protocol-wide figures concurrently, None where an adapter failed."""
        names = self._resolve_all(protocols if protocols is not None else self.adapters)
        results = await asyncio.gather(
            *(self.adapters[name].get_protocol_metrics() for name in names),
            return_exceptions=True,
        )
        return dict(zip(names, (self._contain(name, result) for name, result in zip(names, results))))

    def _resolve_all(self, protocols: Iterable[str]) -> list[str]:
        names = []
        for protocol in protocols:
            name = self.resolve(protocol)
            if name is None:
                logger.debug("Skipping protocol %r without adapter", protocol)
            elif name not in names:
                names.append(name)
        return names

    @staticmethod
    def _contain(name: str, result: object) -> object:
        if isinstance(result, SourceUnavailable):
            logger.warning("%s", result)
            return None
        if isinstance(result, BaseException):
            # Adapters only raise SourceUnavailable; anything else is a bug
            if not isinstance(result, Exception):
                raise result
            logger.warning("%s adapter failed unexpectedly: %r", name, result)
            return None
        return result

    async def aclose(self) -> None:
        """Close adapter HTTP clients."""
        for adapter in self.adapters.values():
            await adapter.aclose()
        if self._client is not None:
            await self._client.aclose()

"""Process-scoped token metadata cache."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from defi_portfolio_tracker.core.models import TokenInfo

logger = logging.getLogger(__name__)


class TokenInfoCache:
    """
    Append-only cache of token metadata keyed by ``(network, address)``.

    Entries never expire and the first write for a key wins. Concurrent misses
    for the same key share a single fetch; a failed fetch caches nothing and
    the next caller fetches again.

    """

    def __init__(self) -> None:
        self._cache: dict[tuple[str, str], TokenInfo] = {}
        self._inflight: dict[tuple[str, str], asyncio.Task[TokenInfo]] = {}

    @staticmethod
    def _make_key(network: str, address: str) -> tuple[str, str]:
        return network.lower(), address.lower()

    def get(self, network: str, address: str) -> TokenInfo | None:
        """
        Get cached token info.

        Parameters
        ----------
        network : str
            Network name
        address : str
            Token address, any casing

        Returns
        -------
        TokenInfo | None
            Cached value if present, None otherwise

        """
        return self._cache.get(self._make_key(network, address))

    def set(self, network: str, address: str, info: TokenInfo) -> TokenInfo:
        """
        Store token info unless the key is already cached.

        Returns
        -------
        TokenInfo
            The cached value, which is the earlier one if the key existed

        """
        return self._cache.setdefault(self._make_key(network, address), info)

    async def get_or_fetch(
        self,
        network: str,
        address: str,
        fetch: Callable[[], Awaitable[TokenInfo]],
    ) -> TokenInfo:
        """
        Return cached token info, fetching it once on a miss.

        Parameters
        ----------
        network : str
            Network name
        address : str
            Token address, any casing
        fetch : Callable[[], Awaitable[TokenInfo]]
            Coroutine factory that reads the token from chain

        Returns
        -------
        TokenInfo
            Cached or freshly fetched token info

        """
        key = self._make_key(network, address)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fetch())
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._settle(key, t))

        # Shield so one cancelled caller does not cancel the shared fetch
        return await asyncio.shield(task)

    def _settle(self, key: tuple[str, str], task: "asyncio.Task[TokenInfo]") -> None:
        self._inflight.pop(key, None)
        if task.cancelled() or task.exception() is not None:
            return
        self._cache.setdefault(key, task.result())

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        return self._make_key(*key) in self._cache

    def clear(self) -> None:
        """Clear all cached entries."""
        self._cache.clear()

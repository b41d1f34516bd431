"""Token, pool and lending reads on top of the connection pool and token cache."""

import asyncio
import logging

from defi_portfolio_tracker.core.errors import ChainReadError, NetworkUnavailable, TokenReadError
from defi_portfolio_tracker.core.models import (
    AccountRisk,
    LendingInfo,
    PoolInfo,
    PoolReserves,
    ReserveRates,
    TokenInfo,
)
from defi_portfolio_tracker.rpc.abis import ERC20_ABI, LENDING_POOL_ABI, PAIR_ABI
from defi_portfolio_tracker.rpc.cache import TokenInfoCache
from defi_portfolio_tracker.rpc.provider import ConnectionPool

logger = logging.getLogger(__name__)


class ChainAccessLayer:
    """
    Read token metadata, pool state and lending account data.

    Token metadata is cached for the life of the process. Pool and lending
    reads always hit the chain.

    Parameters
    ----------
    pool : ConnectionPool
        Connection per network
    cache : TokenInfoCache | None
        Token metadata cache. A private cache is created if None.

    """

    def __init__(self, pool: ConnectionPool, cache: TokenInfoCache | None = None) -> None:
        self.pool = pool
        self.cache = cache if cache is not None else TokenInfoCache()

    async def get_token_info(self, address: str, network: str) -> TokenInfo:
        """
        Get ERC-20 metadata, reading the chain only on a cache miss.

        Parameters
        ----------
        address : str
            Token address
        network : str
            Network name

        Returns
        -------
        TokenInfo
            Token symbol, decimals and total supply

        Raises
        ------
        NetworkUnavailable
            If the network is not configured or unreachable
        TokenReadError
            If any of the token reads fails

        """
        return await self.cache.get_or_fetch(network, address, lambda: self._fetch_token_info(address, network))

    async def _fetch_token_info(self, address: str, network: str) -> TokenInfo:
        connection = await self.pool.get(network)
        try:
            symbol, decimals, total_supply = await asyncio.gather(
                connection.call(address, ERC20_ABI, "symbol"),
                connection.call(address, ERC20_ABI, "decimals"),
                connection.call(address, ERC20_ABI, "totalSupply"),
            )
        except Exception as e:
            msg = f"Failed to read token {address} on {network}: {e}"
            raise TokenReadError(msg) from e

        logger.debug("Fetched token %s on %s: %s (%s decimals)", address, network, symbol, decimals)
        return TokenInfo(
            address=address,
            symbol=str(symbol),
            decimals=int(decimals),
            total_supply=int(total_supply),
        )

    async def get_pool_info(self, pool_address: str, network: str) -> PoolInfo:
        """
        Read a two-token pool and the metadata of both tokens.

        Parameters
        ----------
        pool_address : str
            Pool (pair) contract address
        network : str
            Network name

        Returns
        -------
        PoolInfo
            Tokens, reserves and LP total supply

        Raises
        ------
        NetworkUnavailable
            If the network is not configured or unreachable
        ChainReadError
            If any pool or token read fails

        """
        connection = await self.pool.get(network)
        try:
            token0, token1, reserves, total_supply = await asyncio.gather(
                connection.call(pool_address, PAIR_ABI, "token0"),
                connection.call(pool_address, PAIR_ABI, "token1"),
                connection.call(pool_address, PAIR_ABI, "getReserves"),
                connection.call(pool_address, PAIR_ABI, "totalSupply"),
            )
            token0_info, token1_info = await asyncio.gather(
                self.get_token_info(token0, network),
                self.get_token_info(token1, network),
            )
        except (ChainReadError, NetworkUnavailable):
            raise
        except Exception as e:
            msg = f"Failed to read pool {pool_address} on {network}: {e}"
            raise ChainReadError(msg) from e

        reserve0, reserve1, block_timestamp_last = reserves
        return PoolInfo(
            address=pool_address,
            network=network,
            token0=token0_info,
            token1=token1_info,
            reserves=PoolReserves(
                reserve0=int(reserve0),
                reserve1=int(reserve1),
                block_timestamp_last=int(block_timestamp_last),
            ),
            total_supply=int(total_supply),
        )

    async def get_lending_account_info(
        self,
        pool_address: str,
        user_address: str,
        network: str,
        reserve_asset: str | None = None,
    ) -> LendingInfo:
        """
        Read a user's lending account and, optionally, one reserve.

        Never cached.

        Parameters
        ----------
        pool_address : str
            Lending pool contract address
        user_address : str
            Account to read
        network : str
            Network name
        reserve_asset : str | None
            Asset whose reserve figures to include

        Returns
        -------
        LendingInfo
            Account figures and reserve figures when requested

        Raises
        ------
        NetworkUnavailable
            If the network is not configured or unreachable
        ChainReadError
            If any read fails

        """
        connection = await self.pool.get(network)
        calls = [connection.call(pool_address, LENDING_POOL_ABI, "getUserAccountData", user_address)]
        if reserve_asset is not None:
            calls.append(connection.call(pool_address, LENDING_POOL_ABI, "getReserveData", reserve_asset))

        try:
            results = await asyncio.gather(*calls)
            account = AccountRisk(
                total_collateral=int(results[0][0]),
                total_debt=int(results[0][1]),
                available_borrows=int(results[0][2]),
                current_liquidation_threshold=int(results[0][3]),
                ltv=int(results[0][4]),
                health_factor=int(results[0][5]),
            )
            reserve = None
            if reserve_asset is not None:
                data = results[1]
                reserve = ReserveRates(
                    available_liquidity=int(data[0]),
                    total_stable_debt=int(data[1]),
                    total_variable_debt=int(data[2]),
                    liquidity_rate=int(data[3]),
                    variable_borrow_rate=int(data[4]),
                )
        except Exception as e:
            msg = f"Failed to read lending account {user_address} at {pool_address} on {network}: {e}"
            raise ChainReadError(msg) from e

        return LendingInfo(
            pool_address=pool_address,
            user_address=user_address,
            network=network,
            account=account,
            reserve=reserve,
        )

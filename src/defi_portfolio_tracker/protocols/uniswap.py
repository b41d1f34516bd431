"""Uniswap v3 subgraph adapter."""

from decimal import Decimal
from typing import Any

from defi_portfolio_tracker.core.fixedpoint import ratio_percent, truncate_units
from defi_portfolio_tracker.core.models import (
    DerivedMetrics,
    NormalizedPosition,
    PnLComponents,
    UniswapMetrics,
)
from defi_portfolio_tracker.core.registry import AdapterRegistry
from defi_portfolio_tracker.protocols.base import BaseProtocolAdapter, to_number


@AdapterRegistry.register
class UniswapAdapter(BaseProtocolAdapter):
    """
    Adapter for Uniswap v3 liquidity positions.

    Deposited, withdrawn and collected-fee amounts are kept per token as P&L
    components; the raw balance is what remains deposited.

    """

    name = "uniswap"
    aliases = ("uniswap_v3", "uniswap v3", "uni")

    METRICS_QUERY = """
    query GetUniswapMetrics {
      factories(first: 1) {
        totalVolumeUSD
        totalFeesUSD
        totalValueLockedUSD
        poolCount
        txCount
      }
      bundles(first: 1) {
        ethPriceUSD
      }
    }
    """

    POSITIONS_QUERY = """
    query GetUserPositions($user: String!) {
      positions(where: { owner: $user }) {
        id
        pool {
          token0 { symbol decimals }
          token1 { symbol decimals }
          feeTier
          liquidity
          token0Price
          token1Price
        }
        liquidity
        depositedToken0
        depositedToken1
        withdrawnToken0
        withdrawnToken1
        collectedFeesToken0
        collectedFeesToken1
      }
    }
    """

    def _parse_metrics(self, data: dict[str, Any]) -> UniswapMetrics:
        factory = data["factories"][0]
        return UniswapMetrics(
            tvl_usd=to_number(factory["totalValueLockedUSD"]),
            volume_usd=to_number(factory["totalVolumeUSD"]),
            fees_usd=to_number(factory["totalFeesUSD"]),
            pool_count=int(factory["poolCount"]),
            tx_count=int(factory["txCount"]),
            eth_price_usd=to_number(data["bundles"][0]["ethPriceUSD"]),
        )

    def _parse_positions(self, data: dict[str, Any]) -> list[NormalizedPosition]:
        return [self._parse_position(position) for position in data["positions"]]

    def _parse_position(self, position: dict[str, Any]) -> NormalizedPosition:
        pool = position["pool"]
        tokens = [pool["token0"], pool["token1"]]
        symbols = [token["symbol"] for token in tokens]

        deposited: dict[str, Decimal] = {}
        withdrawn: dict[str, Decimal] = {}
        fees: dict[str, Decimal] = {}
        raw_balances: dict[str, str] = {}

        for i, token in enumerate(tokens):
            symbol = token["symbol"]
            decimals = int(token["decimals"])
            deposited[symbol] = to_number(position[f"depositedToken{i}"])
            withdrawn[symbol] = to_number(position[f"withdrawnToken{i}"])
            fees[symbol] = to_number(position[f"collectedFeesToken{i}"])

            remaining = truncate_units(deposited[symbol], decimals) - truncate_units(withdrawn[symbol], decimals)
            raw_balances[symbol] = str(max(remaining, 0))

        return NormalizedPosition(
            source_protocol=self.name,
            pool_or_market_id=str(position["id"]),
            asset_symbols=symbols,
            raw_balances=raw_balances,
            derived_metrics=DerivedMetrics(
                liquidity_share=ratio_percent(int(position["liquidity"]), int(pool["liquidity"])),
                supplied=deposited,
                pnl=PnLComponents(deposited=deposited, withdrawn=withdrawn, fees=fees),
                extra={
                    "fee_tier": str(pool["feeTier"]),
                    "token0_price": str(pool["token0Price"]),
                    "token1_price": str(pool["token1Price"]),
                },
            ),
        )

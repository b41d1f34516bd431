"""Curve subgraph adapter."""

import re
from typing import Any

from defi_portfolio_tracker.core.fixedpoint import ratio_percent
from defi_portfolio_tracker.core.models import CurveMetrics, DerivedMetrics, NormalizedPosition
from defi_portfolio_tracker.core.registry import AdapterRegistry
from defi_portfolio_tracker.protocols.base import BaseProtocolAdapter, to_number

LP_BALANCE_KEY = "LP"


def pool_symbols(pool_name: str) -> list[str]:
    """
    Split a Curve pool name into asset symbols.

    Examples
    --------
    >>> pool_symbols("Curve.fi DAI/USDC/USDT")
    ['DAI', 'USDC', 'USDT']

    """
    name = pool_name.removeprefix("Curve.fi").strip()
    return [part.strip() for part in re.split(r"[/+]", name) if part.strip()]


@AdapterRegistry.register
class CurveAdapter(BaseProtocolAdapter):
    """Adapter for Curve LP token balances."""

    name = "curve"
    aliases = ("curve_fi", "curve.fi", "crv")

    METRICS_QUERY = """
    query GetCurveMetrics {
      platform(id: "1") {
        totalValueLockedUSD
        totalVolumeUSD
        poolCount
      }
    }
    """

    POSITIONS_QUERY = """
    query GetUserPositions($user: String!) {
      account(id: $user) {
        poolBalances {
          pool {
            id
            name
            totalSupply
            virtualPrice
            baseAPY
          }
          balance
        }
      }
    }
    """

    def _parse_metrics(self, data: dict[str, Any]) -> CurveMetrics:
        platform = data["platform"]
        return CurveMetrics(
            tvl_usd=to_number(platform["totalValueLockedUSD"]),
            volume_usd=to_number(platform["totalVolumeUSD"]),
            pool_count=int(platform["poolCount"]),
        )

    def _parse_positions(self, data: dict[str, Any]) -> list[NormalizedPosition]:
        # Unknown accounts come back as null
        account = data["account"]
        if account is None:
            return []
        return [self._parse_position(pool_balance) for pool_balance in account["poolBalances"]]

    def _parse_position(self, pool_balance: dict[str, Any]) -> NormalizedPosition:
        pool = pool_balance["pool"]
        balance = int(pool_balance["balance"])

        return NormalizedPosition(
            source_protocol=self.name,
            pool_or_market_id=str(pool["id"]),
            asset_symbols=pool_symbols(pool["name"]),
            raw_balances={LP_BALANCE_KEY: str(balance)},
            derived_metrics=DerivedMetrics(
                supply_rate=to_number(pool["baseAPY"]),
                liquidity_share=ratio_percent(balance, int(pool["totalSupply"])),
                extra={
                    "pool_name": str(pool["name"]),
                    "virtual_price": str(pool["virtualPrice"]),
                },
            ),
        )

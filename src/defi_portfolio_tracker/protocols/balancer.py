"""Balancer v2 subgraph adapter."""

from typing import Any

from defi_portfolio_tracker.core.fixedpoint import divide, multiply, truncate_units
from defi_portfolio_tracker.core.models import BalancerMetrics, DerivedMetrics, NormalizedPosition
from defi_portfolio_tracker.core.registry import AdapterRegistry
from defi_portfolio_tracker.protocols.base import BaseProtocolAdapter, to_number


@AdapterRegistry.register
class BalancerAdapter(BaseProtocolAdapter):
    """
    Adapter for Balancer pool shares.

    The user's balance of each pool token is the pool balance scaled by the
    user's share of BPT supply, truncated to the token's decimals.

    """

    name = "balancer"
    aliases = ("balancer_v2", "balancer v2", "bal")

    METRICS_QUERY = """
    query GetBalancerMetrics {
      balancers(first: 1) {
        totalLiquidity
        totalSwapVolume
        totalSwapFee
        poolCount
      }
    }
    """

    POSITIONS_QUERY = """
    query GetUserPositions($user: String!) {
      poolShares(where: { userAddress: $user }) {
        balance
        pool {
          id
          symbol
          totalShares
          totalLiquidity
          tokens {
            symbol
            decimals
            balance
            weight
          }
        }
      }
    }
    """

    def _parse_metrics(self, data: dict[str, Any]) -> BalancerMetrics:
        balancer = data["balancers"][0]
        return BalancerMetrics(
            tvl_usd=to_number(balancer["totalLiquidity"]),
            volume_usd=to_number(balancer["totalSwapVolume"]),
            fees_usd=to_number(balancer["totalSwapFee"]),
            pool_count=int(balancer["poolCount"]),
        )

    def _parse_positions(self, data: dict[str, Any]) -> list[NormalizedPosition]:
        return [self._parse_position(share) for share in data["poolShares"]]

    def _parse_position(self, share: dict[str, Any]) -> NormalizedPosition:
        pool = share["pool"]
        balance = to_number(share["balance"])
        total_shares = to_number(pool["totalShares"])
        fraction = divide(balance, total_shares) if total_shares else to_number(0)

        symbols = []
        raw_balances = {}
        supplied = {}
        extra = {"pool_symbol": str(pool["symbol"]), "bpt_balance": str(share["balance"])}
        for token in pool["tokens"]:
            symbol = token["symbol"]
            amount = multiply(to_number(token["balance"]), fraction)
            raw = truncate_units(amount, int(token["decimals"]))
            symbols.append(symbol)
            raw_balances[symbol] = str(raw)
            supplied[symbol] = amount
            if token.get("weight") is not None:
                extra[f"weight_{symbol}"] = str(token["weight"])

        extra["user_liquidity_usd"] = str(multiply(to_number(pool["totalLiquidity"]), fraction))

        return NormalizedPosition(
            source_protocol=self.name,
            pool_or_market_id=str(pool["id"]),
            asset_symbols=symbols,
            raw_balances=raw_balances,
            derived_metrics=DerivedMetrics(
                liquidity_share=multiply(fraction, to_number(100)),
                supplied=supplied,
                extra=extra,
            ),
        )

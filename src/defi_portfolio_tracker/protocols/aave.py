"""Aave v3 subgraph adapter."""

from typing import Any

from defi_portfolio_tracker.core.fixedpoint import RAY_DECIMALS, to_decimal
from defi_portfolio_tracker.core.models import AaveMetrics, DerivedMetrics, NormalizedPosition
from defi_portfolio_tracker.core.registry import AdapterRegistry
from defi_portfolio_tracker.protocols.base import BaseProtocolAdapter, debt_risk, to_number


@AdapterRegistry.register
class AaveAdapter(BaseProtocolAdapter):
    """
    Adapter for Aave lending positions.

    Tracks supplied (aToken) balances, variable and stable debt, reserve
    rates and the reserve's USD price.

    """

    name = "aave"
    aliases = ("aave_v2", "aave_v3", "aave v2", "aave v3")

    METRICS_QUERY = """
    query GetAaveMetrics {
      protocolData(id: "1") {
        totalValueLockedUSD
        totalBorrowUSD
        totalDepositUSD
        depositAPY
        borrowAPY
        reserveCount
        userCount
      }
    }
    """

    POSITIONS_QUERY = """
    query GetUserPositions($user: String!) {
      userReserves(where: { user: $user }) {
        id
        reserve {
          id
          name
          symbol
          decimals
          price {
            priceInEth
            priceInUSD
          }
          liquidityRate
          variableBorrowRate
          stableBorrowRate
        }
        currentATokenBalance
        currentVariableDebt
        currentStableDebt
      }
    }
    """

    def _parse_metrics(self, data: dict[str, Any]) -> AaveMetrics:
        protocol_data = data["protocolData"]
        return AaveMetrics(
            tvl_usd=to_number(protocol_data["totalValueLockedUSD"]),
            total_deposited_usd=to_number(protocol_data["totalDepositUSD"]),
            total_borrowed_usd=to_number(protocol_data["totalBorrowUSD"]),
            deposit_apy=to_number(protocol_data["depositAPY"]),
            borrow_apy=to_number(protocol_data["borrowAPY"]),
            reserve_count=int(protocol_data["reserveCount"]),
            user_count=int(protocol_data["userCount"]),
        )

    def _parse_positions(self, data: dict[str, Any]) -> list[NormalizedPosition]:
        return [self._parse_position(user_reserve) for user_reserve in data["userReserves"]]

    def _parse_position(self, user_reserve: dict[str, Any]) -> NormalizedPosition:
        reserve = user_reserve["reserve"]
        symbol = reserve["symbol"]
        decimals = int(reserve["decimals"])

        supplied_raw = int(user_reserve["currentATokenBalance"])
        debt_raw = int(user_reserve["currentVariableDebt"]) + int(user_reserve["currentStableDebt"])
        supplied = to_decimal(supplied_raw, decimals)
        borrowed = to_decimal(debt_raw, decimals)

        price = reserve.get("price") or {}
        price_usd = to_number(price["priceInUSD"]) if price.get("priceInUSD") is not None else None

        return NormalizedPosition(
            source_protocol=self.name,
            pool_or_market_id=str(reserve["id"]),
            asset_symbols=[symbol],
            raw_balances={symbol: str(supplied_raw)},
            derived_metrics=DerivedMetrics(
                supply_rate=to_decimal(reserve["liquidityRate"], RAY_DECIMALS),
                borrow_rate=to_decimal(reserve["variableBorrowRate"], RAY_DECIMALS),
                price_usd=price_usd,
                supplied={symbol: supplied},
                borrowed={symbol: borrowed} if debt_raw else {},
                risk_score=debt_risk(supplied, borrowed),
                extra={
                    "stable_borrow_rate": str(to_decimal(reserve["stableBorrowRate"], RAY_DECIMALS)),
                    "variable_debt": str(user_reserve["currentVariableDebt"]),
                    "stable_debt": str(user_reserve["currentStableDebt"]),
                },
            ),
        )

"""Compound v2 subgraph adapter."""

from decimal import Decimal
from typing import Any

from defi_portfolio_tracker.core.fixedpoint import DECIMAL_CONTEXT, total, truncate_units
from defi_portfolio_tracker.core.models import (
    CompoundMarketMetrics,
    CompoundMetrics,
    DerivedMetrics,
    NormalizedPosition,
)
from defi_portfolio_tracker.core.registry import AdapterRegistry
from defi_portfolio_tracker.protocols.base import BaseProtocolAdapter, debt_risk, to_number


@AdapterRegistry.register
class CompoundAdapter(BaseProtocolAdapter):
    """Adapter for Compound v2 cToken supply and borrow positions."""

    name = "compound"
    aliases = ("compound_v2", "compound v2", "comp")

    METRICS_QUERY = """
    query GetCompoundMetrics {
      markets(first: 100) {
        id
        name
        totalSupplyUSD
        totalBorrowsUSD
        supplyRate
        borrowRate
        exchangeRate
        underlyingPrice
      }
    }
    """

    POSITIONS_QUERY = """
    query GetUserPositions($user: String!) {
      accountCTokens(where: { account: $user }) {
        cToken {
          id
          symbol
          name
          totalSupply
          exchangeRate
          supplyRate
          borrowRate
          underlying {
            id
            symbol
            decimals
          }
        }
        cTokenBalance
        totalUnderlyingSupplied
        totalUnderlyingRedeemed
        accountBorrowIndex
        totalUnderlyingBorrowed
        totalUnderlyingRepaid
      }
    }
    """

    def _parse_metrics(self, data: dict[str, Any]) -> CompoundMetrics:
        markets = [
            CompoundMarketMetrics(
                name=market["name"],
                supply_rate=to_number(market["supplyRate"]),
                borrow_rate=to_number(market["borrowRate"]),
                total_supply_usd=to_number(market["totalSupplyUSD"]),
                total_borrows_usd=to_number(market["totalBorrowsUSD"]),
            )
            for market in data["markets"]
        ]
        return CompoundMetrics(
            tvl_usd=total(m.total_supply_usd for m in markets),
            total_borrowed_usd=total(m.total_borrows_usd for m in markets),
            market_count=len(markets),
            markets=markets,
        )

    def _parse_positions(self, data: dict[str, Any]) -> list[NormalizedPosition]:
        return [self._parse_position(account_ctoken) for account_ctoken in data["accountCTokens"]]

    def _parse_position(self, account_ctoken: dict[str, Any]) -> NormalizedPosition:
        ctoken = account_ctoken["cToken"]
        underlying = ctoken["underlying"]
        symbol = underlying["symbol"]
        decimals = int(underlying["decimals"])

        supplied = max(
            DECIMAL_CONTEXT.subtract(
                to_number(account_ctoken["totalUnderlyingSupplied"]),
                to_number(account_ctoken["totalUnderlyingRedeemed"]),
            ),
            Decimal(0),
        )
        borrowed = max(
            DECIMAL_CONTEXT.subtract(
                to_number(account_ctoken["totalUnderlyingBorrowed"]),
                to_number(account_ctoken["totalUnderlyingRepaid"]),
            ),
            Decimal(0),
        )

        return NormalizedPosition(
            source_protocol=self.name,
            pool_or_market_id=str(ctoken["id"]),
            asset_symbols=[symbol],
            raw_balances={symbol: str(truncate_units(supplied, decimals))},
            derived_metrics=DerivedMetrics(
                supply_rate=to_number(ctoken["supplyRate"]),
                borrow_rate=to_number(ctoken["borrowRate"]),
                supplied={symbol: supplied},
                borrowed={symbol: borrowed} if borrowed else {},
                risk_score=debt_risk(supplied, borrowed),
                extra={
                    "ctoken_symbol": str(ctoken["symbol"]),
                    "ctoken_balance": str(account_ctoken["cTokenBalance"]),
                    "exchange_rate": str(ctoken["exchangeRate"]),
                },
            ),
        )

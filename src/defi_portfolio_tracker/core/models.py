"""Data models for ledger positions, chain reads, protocol data and portfolio snapshots."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Timeframe(StrEnum):
    """Window of the portfolio value time series."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def days(self) -> int:
        """Length of the window in days."""
        return {"daily": 1, "weekly": 7, "monthly": 30, "yearly": 365}[self.value]


class Valuation(StrEnum):
    """How a portfolio position was valued."""

    LIVE = "live"
    ENTRY = "entry"


class Position(BaseModel):
    """
    Position recorded on the ledger.

    Attributes
    ----------
    owner : str
        Owner address (the transaction sender that created it)
    token : str
        Token contract address
    amount : int
        Amount in token-native decimals
    entry_price : int
        Entry price as an 18-decimal fixed-point integer
    entry_timestamp : int
        Unix timestamp stamped by the ledger at confirmation
    protocol_label : str
        Free-form protocol label (e.g. 'Aave')
    active : bool
        False once soft-deleted; never returns to True
    index : int | None
        Ledger index for the owner, when the source reports it

    """

    model_config = ConfigDict(frozen=True)

    owner: str
    token: str
    amount: int
    entry_price: int
    entry_timestamp: int
    protocol_label: str
    active: bool = True
    index: int | None = None


class TokenInfo(BaseModel):
    """
    ERC-20 token metadata.

    Attributes
    ----------
    address : str
        Token contract address
    symbol : str
        Token symbol
    decimals : int
        Number of decimal places
    total_supply : int
        Total supply in native units, as first read

    """

    model_config = ConfigDict(frozen=True)

    address: str
    symbol: str
    decimals: int
    total_supply: int

    @field_serializer("total_supply")
    def _serialize_supply(self, value: int) -> str:
        return str(value)


class PoolReserves(BaseModel):
    """Pool reserves in native integer units."""

    reserve0: int
    reserve1: int
    block_timestamp_last: int

    @field_serializer("reserve0", "reserve1")
    def _serialize_reserve(self, value: int) -> str:
        return str(value)


class PoolInfo(BaseModel):
    """Two-token pool state read from chain."""

    address: str
    network: str
    token0: TokenInfo
    token1: TokenInfo
    reserves: PoolReserves
    total_supply: int

    @field_serializer("total_supply")
    def _serialize_supply(self, value: int) -> str:
        return str(value)


class AccountRisk(BaseModel):
    """Lending account figures as returned by ``getUserAccountData``."""

    total_collateral: int
    total_debt: int
    available_borrows: int
    current_liquidation_threshold: int
    ltv: int
    health_factor: int

    @field_serializer("*")
    def _serialize_int(self, value: int) -> str:
        return str(value)


class ReserveRates(BaseModel):
    """Reserve figures as returned by ``getReserveData``."""

    available_liquidity: int
    total_stable_debt: int
    total_variable_debt: int
    liquidity_rate: int
    variable_borrow_rate: int

    @field_serializer("*")
    def _serialize_int(self, value: int) -> str:
        return str(value)


class LendingInfo(BaseModel):
    """Lending account risk state, never cached."""

    pool_address: str
    user_address: str
    network: str
    account: AccountRisk
    reserve: ReserveRates | None = None


class PnLComponents(BaseModel):
    """Per-asset deposit, withdrawal and fee amounts behind a P&L figure."""

    deposited: dict[str, Decimal] = Field(default_factory=dict)
    withdrawn: dict[str, Decimal] = Field(default_factory=dict)
    fees: dict[str, Decimal] = Field(default_factory=dict)


class DerivedMetrics(BaseModel):
    """
    Figures an adapter derives from its protocol's raw data.

    Attributes
    ----------
    supply_rate : Decimal | None
        Supply rate or APY as a fraction
    borrow_rate : Decimal | None
        Borrow rate as a fraction
    liquidity_share : Decimal | None
        User's share of the pool, in percent
    price_usd : Decimal | None
        USD price of the primary asset reported by the protocol
    supplied : dict[str, Decimal]
        Supplied amount per asset symbol
    borrowed : dict[str, Decimal]
        Borrowed amount per asset symbol
    pnl : PnLComponents | None
        Deposit, withdrawal and fee components
    risk_score : Decimal | None
        Position risk on a 0-10 scale
    extra : dict[str, str]
        Protocol-specific values with no common field

    """

    supply_rate: Decimal | None = None
    borrow_rate: Decimal | None = None
    liquidity_share: Decimal | None = None
    price_usd: Decimal | None = None
    supplied: dict[str, Decimal] = Field(default_factory=dict)
    borrowed: dict[str, Decimal] = Field(default_factory=dict)
    pnl: PnLComponents | None = None
    risk_score: Decimal | None = None
    extra: dict[str, str] = Field(default_factory=dict)


class NormalizedPosition(BaseModel):
    """
    Position reported by a protocol index, in the common shape.

    Attributes
    ----------
    source_protocol : str
        Canonical adapter name (e.g. 'aave')
    pool_or_market_id : str
        Protocol-side pool, market or position identifier
    asset_symbols : list[str]
        Symbols of the assets involved
    raw_balances : dict[str, str]
        Integer balance strings per asset symbol, in native decimals
    derived_metrics : DerivedMetrics
        Rates, shares and P&L components

    """

    source_protocol: str
    pool_or_market_id: str
    asset_symbols: list[str]
    raw_balances: dict[str, str] = Field(default_factory=dict)
    derived_metrics: DerivedMetrics = Field(default_factory=DerivedMetrics)


class ProtocolMetricsBase(BaseModel):
    """Fields every protocol reports."""

    tvl_usd: Decimal
    volume_usd: Decimal | None = None
    fees_usd: Decimal | None = None
    pool_count: int | None = None
    extra: dict[str, str] = Field(default_factory=dict)


class UniswapMetrics(ProtocolMetricsBase):
    protocol: Literal["uniswap"] = "uniswap"
    tx_count: int
    eth_price_usd: Decimal


class AaveMetrics(ProtocolMetricsBase):
    protocol: Literal["aave"] = "aave"
    total_deposited_usd: Decimal
    total_borrowed_usd: Decimal
    deposit_apy: Decimal
    borrow_apy: Decimal
    reserve_count: int
    user_count: int


class CompoundMarketMetrics(BaseModel):
    name: str
    supply_rate: Decimal
    borrow_rate: Decimal
    total_supply_usd: Decimal
    total_borrows_usd: Decimal


class CompoundMetrics(ProtocolMetricsBase):
    protocol: Literal["compound"] = "compound"
    total_borrowed_usd: Decimal
    market_count: int
    markets: list[CompoundMarketMetrics] = Field(default_factory=list)


class BalancerMetrics(ProtocolMetricsBase):
    protocol: Literal["balancer"] = "balancer"


class CurveMetrics(ProtocolMetricsBase):
    protocol: Literal["curve"] = "curve"


ProtocolMetrics = Annotated[
    UniswapMetrics | AaveMetrics | CompoundMetrics | BalancerMetrics | CurveMetrics,
    Field(discriminator="protocol"),
]


class MetricPoint(BaseModel):
    """One point of the portfolio value time series."""

    timestamp: datetime
    value: Decimal
    change: Decimal | None = None
    change_percentage: Decimal | None = None


class PortfolioPosition(BaseModel):
    """
    Ledger position valued and enriched for a snapshot.

    ``id`` is stable within a snapshot only. ``ledger_index`` is set when the
    ledger source reports indices.

    """

    id: str
    network: str
    chain_id: int
    ledger_index: int | None = None
    token_address: str
    token_symbol: str
    amount: Decimal
    raw_amount: int
    entry_price: Decimal
    entry_timestamp: int
    protocol: str
    entry_value_usd: Decimal
    value_usd: Decimal
    current_price_usd: Decimal | None = None
    pnl_usd: Decimal | None = None
    pnl_percentage: Decimal | None = None
    apy: Decimal | None = None
    risk: Decimal | None = None
    valuation: Valuation = Valuation.ENTRY
    matched_sources: list[str] = Field(default_factory=list)

    @field_serializer("raw_amount")
    def _serialize_raw(self, value: int) -> str:
        return str(value)


class PortfolioSnapshot(BaseModel):
    """
    Freshly computed portfolio view. Never persisted.

    Attributes
    ----------
    owner : str
        Owner address
    total_value_usd : Decimal
        Sum of position values
    active_position_count : int
        Number of active ledger positions included
    networks_touched : list[str]
        Deduplicated networks of the included positions
    risk_score : Decimal
        Mean position risk under the configured unknown-risk policy
    positions : list[PortfolioPosition]
        Valued positions
    metrics_series : list[MetricPoint]
        Value history for the requested timeframe. Read from the time-series
        store before this snapshot was recorded, so it may lag ``positions``.
    metrics_updated_at : datetime | None
        Timestamp of the newest point in ``metrics_series``
    unavailable_sources : list[str]
        Protocols whose index could not be read for this snapshot
    last_updated : datetime
        When this snapshot was computed

    """

    owner: str
    total_value_usd: Decimal
    active_position_count: int
    networks_touched: list[str]
    risk_score: Decimal
    positions: list[PortfolioPosition]
    metrics_series: list[MetricPoint] = Field(default_factory=list)
    metrics_updated_at: datetime | None = None
    unavailable_sources: list[str] = Field(default_factory=list)
    last_updated: datetime


class RiskReport(BaseModel):
    """Portfolio risk score with the factors behind it."""

    risk_score: Decimal
    factors: list[str] = Field(default_factory=list)

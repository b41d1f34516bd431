"""Portfolio aggregation of ledger positions with protocol data."""

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime
from decimal import Decimal

from defi_portfolio_tracker.core.errors import TransientError
from defi_portfolio_tracker.core.fixedpoint import (
    DECIMAL_CONTEXT,
    WAD_DECIMALS,
    divide,
    fixed_point_product,
    multiply,
    to_decimal,
    total,
)
from defi_portfolio_tracker.core.matching import PositionMatcher, SymbolOverlapMatcher
from defi_portfolio_tracker.core.models import (
    MetricPoint,
    NormalizedPosition,
    PortfolioPosition,
    PortfolioSnapshot,
    Position,
    RiskReport,
    Timeframe,
    TokenInfo,
    Valuation,
)
from defi_portfolio_tracker.core.risk import RiskPolicy
from defi_portfolio_tracker.core.timeseries import InMemoryMetricsStore, MetricsStore
from defi_portfolio_tracker.ledger.reader import LedgerDirectory, LedgerReader
from defi_portfolio_tracker.protocols.service import ProtocolAdapterService
from defi_portfolio_tracker.rpc.chain import ChainAccessLayer

logger = logging.getLogger(__name__)

# Decimals assumed when a token's metadata cannot be read
FALLBACK_DECIMALS = 18

ALL_NETWORKS_SCOPE = "all"


def metrics_scope(chain_ids: Iterable[int] | None) -> str:
    """Key under which a (possibly filtered) portfolio's value history is kept."""
    if chain_ids is None:
        return ALL_NETWORKS_SCOPE
    return ",".join(str(c) for c in sorted(set(chain_ids)))


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PortfolioAggregator:
    """
    Builds portfolio snapshots from ledger positions and protocol data.

    Workflow:
    1. Read active ledger positions on every selected network
    2. Fetch protocol positions, token metadata and the value history
    3. Match each ledger position with protocol positions
    4. Value positions live where a protocol price exists, else at entry price
    5. Score risk and assemble the snapshot

    A ledger failure aborts the snapshot. Protocol and token metadata
    failures only degrade it.

    Parameters
    ----------
    ledgers : LedgerDirectory
        Ledger reader per network
    chain : ChainAccessLayer
        Token metadata reads
    adapters : ProtocolAdapterService
        Protocol adapters
    metrics_store : MetricsStore | None
        Value history. An in-memory store is used if None.
    matcher : PositionMatcher | None
        Matching strategy. Defaults to ``SymbolOverlapMatcher``.
    risk_policy : RiskPolicy | None
        Risk scoring. Defaults to counting unknown risk as zero.
    clock : Callable[[], datetime] | None
        Returns the current time

    """

    def __init__(
        self,
        ledgers: LedgerDirectory,
        chain: ChainAccessLayer,
        adapters: ProtocolAdapterService,
        metrics_store: MetricsStore | None = None,
        matcher: PositionMatcher | None = None,
        risk_policy: RiskPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.ledgers = ledgers
        self.chain = chain
        self.adapters = adapters
        self.metrics_store = metrics_store if metrics_store is not None else InMemoryMetricsStore()
        self.matcher = matcher or SymbolOverlapMatcher()
        self.risk_policy = risk_policy or RiskPolicy()
        self._clock = clock or _utcnow

    async def get_snapshot(
        self,
        owner: str,
        chain_ids: Sequence[int] | None = None,
        timeframe: Timeframe = Timeframe.DAILY,
        record: bool = False,
    ) -> PortfolioSnapshot:
        """
        Compute a fresh portfolio snapshot.

        Parameters
        ----------
        owner : str
            Owner address
        chain_ids : Sequence[int] | None
            Chains to include. Every configured network if None.
        timeframe : Timeframe
            Window of the returned value history
        record : bool
            Append the snapshot's total to the value history. Only the full
            portfolio view records; every other read leaves the store alone.

        Returns
        -------
        PortfolioSnapshot
            Valued positions, totals, risk and value history. The history is
            read before this snapshot's value is recorded, if it is.

        Raises
        ------
        NetworkUnavailable
            If a requested chain has no configured network
        ConfigurationError
            If a selected ledger is not deployed
        LedgerReadError
            If any selected ledger cannot be read

        """
        readers = self.ledgers.for_chain_ids(chain_ids)
        scope = metrics_scope(chain_ids)

        ledger_results = await asyncio.gather(*(reader.get_all_positions(owner) for reader in readers))
        entries = [(reader, position) for reader, positions in zip(readers, ledger_results) for position in positions]

        labels = {position.protocol_label for _, position in entries}
        protocols = {label: self.adapters.resolve(label) for label in labels}
        tokens = list(dict.fromkeys((reader.network, position.token) for reader, position in entries))

        collected, token_infos, series = await asyncio.gather(
            self.adapters.collect_user_positions([p for p in protocols.values() if p], owner),
            asyncio.gather(*(self._token_info(token, network) for network, token in tokens)),
            self.metrics_store.series(owner, scope, timeframe),
        )
        candidates = {name: result for name, result in collected.items() if result is not None}
        token_by_key = dict(zip(tokens, token_infos))

        positions = []
        for n, (reader, position) in enumerate(entries):
            info = token_by_key[(reader.network, position.token)]
            protocol = protocols[position.protocol_label]
            matches = self.matcher.match(position, info.symbol if info else position.token, protocol, candidates)
            positions.append(self._value_position(n, reader, position, info, matches))

        total_value = total(p.value_usd for p in positions)
        now = self._clock()
        if record:
            await self.metrics_store.record(owner, scope, total_value, now)

        unavailable = [name for name, result in collected.items() if result is None]
        return PortfolioSnapshot(
            owner=owner,
            total_value_usd=total_value,
            active_position_count=len(positions),
            networks_touched=list(dict.fromkeys(p.network for p in positions)),
            risk_score=self.risk_policy.score(p.risk for p in positions),
            positions=positions,
            metrics_series=series,
            metrics_updated_at=series[-1].timestamp if series else None,
            unavailable_sources=unavailable,
            last_updated=now,
        )

    async def _token_info(self, token: str, network: str) -> TokenInfo | None:
        try:
            return await self.chain.get_token_info(token, network)
        except TransientError as e:
            logger.warning("Token metadata unavailable for %s on %s, valuing with defaults: %s", token, network, e)
            return None

    def _value_position(
        self,
        n: int,
        reader: LedgerReader,
        position: Position,
        info: TokenInfo | None,
        matches: list[NormalizedPosition],
    ) -> PortfolioPosition:
        decimals = info.decimals if info else FALLBACK_DECIMALS
        amount = to_decimal(position.amount, decimals)
        entry_price = to_decimal(position.entry_price, WAD_DECIMALS)
        entry_value = fixed_point_product(position.amount, decimals, position.entry_price)

        price = next((m.derived_metrics.price_usd for m in matches if m.derived_metrics.price_usd is not None), None)
        apy = next((m.derived_metrics.supply_rate for m in matches if m.derived_metrics.supply_rate is not None), None)
        known_risks = [m.derived_metrics.risk_score for m in matches if m.derived_metrics.risk_score is not None]

        pnl = None
        pnl_percentage = None
        if price is not None:
            value = multiply(amount, price)
            valuation = Valuation.LIVE
            pnl = DECIMAL_CONTEXT.subtract(value, entry_value)
            if entry_value:
                pnl_percentage = divide(multiply(pnl, Decimal(100)), entry_value)
        else:
            value = entry_value
            valuation = Valuation.ENTRY

        index_part = position.index if position.index is not None else f"#{n}"
        return PortfolioPosition(
            id=f"{reader.network}:{index_part}",
            network=reader.network,
            chain_id=reader.chain_id,
            ledger_index=position.index,
            token_address=position.token,
            token_symbol=info.symbol if info else position.token,
            amount=amount,
            raw_amount=position.amount,
            entry_price=entry_price,
            entry_timestamp=position.entry_timestamp,
            protocol=position.protocol_label,
            entry_value_usd=entry_value,
            value_usd=value,
            current_price_usd=price,
            pnl_usd=pnl,
            pnl_percentage=pnl_percentage,
            apy=apy,
            risk=max(known_risks) if known_risks else None,
            valuation=valuation,
            matched_sources=[f"{m.source_protocol}:{m.pool_or_market_id}" for m in matches],
        )

    async def get_positions(self, owner: str, chain_ids: Sequence[int] | None = None) -> list[PortfolioPosition]:
        """Get the valued positions of a fresh snapshot."""
        snapshot = await self.get_snapshot(owner, chain_ids)
        return snapshot.positions

    async def get_metrics_series(
        self,
        owner: str,
        timeframe: Timeframe = Timeframe.DAILY,
        chain_ids: Sequence[int] | None = None,
    ) -> list[MetricPoint]:
        """
        Get the recorded value history without computing a snapshot.

        The history only grows when snapshots are computed, so it can lag the
        ledger.

        """
        return await self.metrics_store.series(owner, metrics_scope(chain_ids), timeframe)

    async def get_risk_report(self, owner: str, chain_ids: Sequence[int] | None = None) -> RiskReport:
        """
        Compute the portfolio risk score and the factors behind it.

        Returns
        -------
        RiskReport
            Score and human-readable factors

        """
        snapshot = await self.get_snapshot(owner, chain_ids)
        risks = [p.risk for p in snapshot.positions]

        factors = self.risk_policy.factors(risks)
        entry_valued = sum(1 for p in snapshot.positions if p.valuation is Valuation.ENTRY)
        if entry_valued:
            factors.append(f"{entry_valued} positions valued at entry price without live data")
        if snapshot.unavailable_sources:
            factors.append(f"Protocol data unavailable: {', '.join(snapshot.unavailable_sources)}")
        if len(snapshot.networks_touched) > 1:
            factors.append(f"Exposure across {len(snapshot.networks_touched)} networks")

        return RiskReport(risk_score=snapshot.risk_score, factors=factors)

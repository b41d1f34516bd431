"""Tests for the value history store and risk policy."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from defi_portfolio_tracker.core.aggregator import metrics_scope
from defi_portfolio_tracker.core.models import Timeframe
from defi_portfolio_tracker.core.risk import RiskPolicy, UnknownRisk
from defi_portfolio_tracker.core.timeseries import InMemoryMetricsStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
OWNER = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"


@pytest.fixture
def store():
    return InMemoryMetricsStore(clock=lambda: NOW)


@pytest.mark.asyncio
async def test_series_windows(store):
    await store.record(OWNER, "all", Decimal(100), NOW - timedelta(days=40))
    await store.record(OWNER, "all", Decimal(110), NOW - timedelta(days=10))
    await store.record(OWNER, "all", Decimal(120), NOW - timedelta(days=3))
    await store.record(OWNER, "all", Decimal(90), NOW - timedelta(hours=2))

    assert [p.value for p in await store.series(OWNER, "all", Timeframe.DAILY)] == [Decimal(90)]
    assert [p.value for p in await store.series(OWNER, "all", Timeframe.WEEKLY)] == [Decimal(120), Decimal(90)]
    assert len(await store.series(OWNER, "all", Timeframe.MONTHLY)) == 3
    assert len(await store.series(OWNER, "all", Timeframe.YEARLY)) == 4


@pytest.mark.asyncio
async def test_changes_between_points(store):
    await store.record(OWNER, "all", Decimal(0), NOW - timedelta(hours=3))
    await store.record(OWNER, "all", Decimal(200), NOW - timedelta(hours=2))
    await store.record(OWNER, "all", Decimal(150), NOW - timedelta(hours=1))

    first, second, third = await store.series(OWNER, "all", Timeframe.DAILY)

    assert first.change is None
    assert first.change_percentage is None
    assert second.change == Decimal(200)
    # No percentage against a zero value
    assert second.change_percentage is None
    assert third.change == Decimal(-50)
    assert third.change_percentage == Decimal(-25)


@pytest.mark.asyncio
async def test_points_are_ordered_and_keyed(store):
    await store.record(OWNER, "all", Decimal(2), NOW - timedelta(hours=1))
    await store.record(OWNER.lower(), "all", Decimal(1), NOW - timedelta(hours=2))
    await store.record(OWNER, "1", Decimal(5))

    series = await store.series(OWNER.upper().replace("0X", "0x"), "all", Timeframe.DAILY)

    assert [p.value for p in series] == [Decimal(1), Decimal(2)]
    assert [p.timestamp for p in await store.series(OWNER, "1", Timeframe.DAILY)] == [NOW]
    assert await store.series(OWNER, "137", Timeframe.DAILY) == []


@pytest.mark.asyncio
async def test_points_older_than_retention_are_dropped():
    store = InMemoryMetricsStore(clock=lambda: NOW, retention=timedelta(days=7))

    await store.record(OWNER, "all", Decimal(1), NOW - timedelta(days=10))
    await store.record(OWNER, "all", Decimal(2), NOW - timedelta(days=2))
    await store.record(OWNER, "all", Decimal(3))

    series = await store.series(OWNER, "all", Timeframe.YEARLY)

    assert [p.value for p in series] == [Decimal(2), Decimal(3)]
    # The first kept point has nothing earlier to compare against
    assert series[0].change is None


def test_default_retention_covers_longest_timeframe():
    assert InMemoryMetricsStore().retention == timedelta(days=365)


def test_metrics_scope():
    assert metrics_scope(None) == "all"
    assert metrics_scope([137, 1, 137]) == "1,137"


def test_risk_policy_score():
    risks = [Decimal(8), None, Decimal(2), None]

    assert RiskPolicy().score(risks) == Decimal("2.5")
    assert RiskPolicy(UnknownRisk.EXCLUDE).score(risks) == Decimal(5)
    assert RiskPolicy(UnknownRisk.EXCLUDE).score([None]) == Decimal(0)
    assert RiskPolicy().score([]) == Decimal(0)


def test_risk_policy_factors():
    factors = RiskPolicy(UnknownRisk.EXCLUDE).factors([Decimal(8), None])

    assert factors == [
        "1 of 2 positions have a risk figure",
        "1 positions without a risk figure are excluded",
        "1 positions at or above risk 7",
    ]
    assert RiskPolicy().factors([]) == ["No active positions"]

"""Portfolio value history."""

from bisect import bisect_left, insort
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Protocol

from defi_portfolio_tracker.core.fixedpoint import DECIMAL_CONTEXT, divide, multiply
from defi_portfolio_tracker.core.models import MetricPoint, Timeframe


class MetricsStore(Protocol):
    """
    Store of portfolio value points keyed by ``(owner, scope)``.

    The scope distinguishes value histories of differently filtered
    portfolios (e.g. all networks versus one chain).

    """

    async def record(self, owner: str, scope: str, value: Decimal, timestamp: datetime | None = None) -> None:
        """Append a value point."""
        ...

    async def series(self, owner: str, scope: str, timeframe: Timeframe) -> list[MetricPoint]:
        """Get points within the timeframe window, oldest first."""
        ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _timestamp(point: tuple[datetime, Decimal]) -> datetime:
    return point[0]


class InMemoryMetricsStore:
    """
    Process-local ``MetricsStore``.

    Points older than ``retention`` are dropped whenever a point is recorded,
    so each history stays bounded by the longest timeframe.

    Parameters
    ----------
    clock : Callable[[], datetime] | None
        Returns the current time used for points recorded without a timestamp
        and for timeframe windows
    retention : timedelta | None
        How long points are kept. Defaults to the longest timeframe.

    """

    def __init__(self, clock: Callable[[], datetime] | None = None, retention: timedelta | None = None) -> None:
        self._clock = clock or _utcnow
        self.retention = retention or timedelta(days=max(tf.days for tf in Timeframe))
        self._points: dict[tuple[str, str], list[tuple[datetime, Decimal]]] = {}

    @staticmethod
    def _key(owner: str, scope: str) -> tuple[str, str]:
        return owner.lower(), scope

    async def record(self, owner: str, scope: str, value: Decimal, timestamp: datetime | None = None) -> None:
        points = self._points.setdefault(self._key(owner, scope), [])
        insort(points, (timestamp or self._clock(), value), key=_timestamp)
        del points[: bisect_left(points, self._clock() - self.retention, key=_timestamp)]

    async def series(self, owner: str, scope: str, timeframe: Timeframe) -> list[MetricPoint]:
        since = self._clock() - timedelta(days=Timeframe(timeframe).days)
        points = self._points.get(self._key(owner, scope), [])
        points = points[bisect_left(points, since, key=_timestamp) :]

        series = []
        previous: Decimal | None = None
        for timestamp, value in points:
            change = None
            change_percentage = None
            if previous is not None:
                change = DECIMAL_CONTEXT.subtract(value, previous)
                if previous:
                    change_percentage = divide(multiply(change, Decimal(100)), previous)
            series.append(
                MetricPoint(
                    timestamp=timestamp,
                    value=value,
                    change=change,
                    change_percentage=change_percentage,
                )
            )
            previous = value
        return series

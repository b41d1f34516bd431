"""HTTP response bodies. JSON keys are camelCase; decimals are strings."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from defi_portfolio_tracker.core.models import MetricPoint, PortfolioPosition, PortfolioSnapshot, Timeframe


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PositionOut(ApiModel, PortfolioPosition):
    pass


class MetricPointOut(ApiModel, MetricPoint):
    pass


class PortfolioSummary(ApiModel):
    owner: str
    total_value_usd: Decimal
    active_position_count: int
    networks_touched: list[str]
    risk_score: Decimal
    unavailable_sources: list[str]
    metrics_updated_at: datetime | None = None
    last_updated: datetime

    @classmethod
    def from_snapshot(cls, snapshot: PortfolioSnapshot) -> "PortfolioSummary":
        return cls(
            owner=snapshot.owner,
            total_value_usd=snapshot.total_value_usd,
            active_position_count=snapshot.active_position_count,
            networks_touched=snapshot.networks_touched,
            risk_score=snapshot.risk_score,
            unavailable_sources=snapshot.unavailable_sources,
            metrics_updated_at=snapshot.metrics_updated_at,
            last_updated=snapshot.last_updated,
        )


def positions_out(positions: list[PortfolioPosition]) -> list[PositionOut]:
    return [PositionOut.model_validate(p.model_dump()) for p in positions]


def metrics_out(points: list[MetricPoint]) -> list[MetricPointOut]:
    return [MetricPointOut.model_validate(p.model_dump()) for p in points]


class PortfolioResponse(ApiModel):
    success: bool = True
    summary: PortfolioSummary
    positions: list[PositionOut]
    metrics: dict[Timeframe, list[MetricPointOut]]


class SummaryResponse(ApiModel):
    success: bool = True
    summary: PortfolioSummary


class PositionsResponse(ApiModel):
    success: bool = True
    positions: list[PositionOut]


class MetricsResponse(ApiModel):
    success: bool = True
    timeframe: Timeframe
    metrics: list[MetricPointOut]
    metrics_updated_at: datetime | None = None


class RiskResponse(ApiModel):
    success: bool = True
    risk_score: Decimal
    factors: list[str]


class ProtocolsResponse(ApiModel):
    success: bool = True
    protocols: list[str]


class ProtocolMetricsResponse(ApiModel):
    success: bool = True
    protocol: str
    metrics: dict[str, Any]


class HealthResponse(ApiModel):
    status: str = "ok"


def camelize(data: Any) -> Any:
    """Recursively convert dict keys to camelCase."""
    if isinstance(data, dict):
        return {to_camel(str(k)): camelize(v) for k, v in data.items()}
    if isinstance(data, list):
        return [camelize(v) for v in data]
    return data

"""FastAPI application exposing portfolio snapshots."""

import asyncio
import logging
import re
from contextlib import asynccontextmanager

from fastapi import FastAPI, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from defi_portfolio_tracker.api.schemas import (
    HealthResponse,
    MetricsResponse,
    PortfolioResponse,
    PortfolioSummary,
    PositionsResponse,
    ProtocolMetricsResponse,
    ProtocolsResponse,
    RiskResponse,
    SummaryResponse,
    camelize,
    metrics_out,
    positions_out,
)
from defi_portfolio_tracker.core.errors import (
    ConfigurationError,
    LedgerError,
    LedgerReadError,
    NetworkUnavailable,
    PortfolioError,
    SourceUnavailable,
    UnsupportedProtocol,
)
from defi_portfolio_tracker.core.models import Timeframe
from defi_portfolio_tracker.services import Services

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"

_CHAIN_IDS = re.compile(r"^\d+(,\d+)*$")


class InvalidRequest(PortfolioError):
    """Malformed query parameter."""


def parse_chain_ids(chain_ids: str | None) -> list[int] | None:
    """Parse a comma-separated ``chainIds`` value."""
    if chain_ids is None or not chain_ids.strip():
        return None
    value = chain_ids.replace(" ", "")
    if not _CHAIN_IDS.match(value):
        msg = f"Invalid chainIds: {chain_ids!r}"
        raise InvalidRequest(msg)
    return [int(c) for c in value.split(",")]


def _error(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


def create_app(services: Services) -> FastAPI:
    """
    Build the HTTP application around wired services.

    Parameters
    ----------
    services : Services
        Process-scoped components. Closed when the app shuts down.

    Returns
    -------
    FastAPI
        Application with portfolio, protocol and health routes

    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await services.aclose()

    app = FastAPI(title="DeFi Portfolio Tracker", lifespan=lifespan)
    app.state.services = services
    aggregator = services.aggregator

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(422, "Invalid request data", details=jsonable_errors(exc))

    @app.exception_handler(InvalidRequest)
    async def invalid_request(request: Request, exc: InvalidRequest) -> JSONResponse:
        return _error(422, str(exc))

    @app.exception_handler(LedgerError)
    async def ledger_misuse(request: Request, exc: LedgerError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(LedgerReadError)
    async def ledger_unreadable(request: Request, exc: LedgerReadError) -> JSONResponse:
        logger.error("Ledger read failed for %s: %s", request.url.path, exc)
        return _error(502, str(exc))

    @app.exception_handler(SourceUnavailable)
    async def source_unavailable(request: Request, exc: SourceUnavailable) -> JSONResponse:
        return _error(502, str(exc))

    @app.exception_handler(UnsupportedProtocol)
    async def unsupported_protocol(request: Request, exc: UnsupportedProtocol) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(NetworkUnavailable)
    async def network_unavailable(request: Request, exc: NetworkUnavailable) -> JSONResponse:
        return _error(503, str(exc))

    @app.exception_handler(ConfigurationError)
    async def configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error("Configuration error for %s: %s", request.url.path, exc)
        return _error(503, str(exc))

    @app.exception_handler(PortfolioError)
    async def portfolio_error(request: Request, exc: PortfolioError) -> JSONResponse:
        logger.error("Request %s failed: %s", request.url.path, exc)
        return _error(500, str(exc))

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse()

    @app.get("/portfolio/{address}", response_model=PortfolioResponse)
    async def get_portfolio(
        address: str = Path(pattern=ADDRESS_PATTERN),
        chain_ids: str | None = Query(None, alias="chainIds"),
    ) -> PortfolioResponse:
        selected = parse_chain_ids(chain_ids)
        snapshot = await aggregator.get_snapshot(address, selected, record=True)
        timeframes = list(Timeframe)
        series = await asyncio.gather(*(aggregator.get_metrics_series(address, tf, selected) for tf in timeframes))
        metrics = {tf: metrics_out(points) for tf, points in zip(timeframes, series)}
        return PortfolioResponse(
            summary=PortfolioSummary.from_snapshot(snapshot),
            positions=positions_out(snapshot.positions),
            metrics=metrics,
        )

    @app.get("/portfolio/{address}/summary", response_model=SummaryResponse)
    async def get_summary(
        address: str = Path(pattern=ADDRESS_PATTERN),
        chain_ids: str | None = Query(None, alias="chainIds"),
    ) -> SummaryResponse:
        snapshot = await aggregator.get_snapshot(address, parse_chain_ids(chain_ids))
        return SummaryResponse(summary=PortfolioSummary.from_snapshot(snapshot))

    @app.get("/portfolio/{address}/positions", response_model=PositionsResponse)
    async def get_positions(
        address: str = Path(pattern=ADDRESS_PATTERN),
        chain_ids: str | None = Query(None, alias="chainIds"),
    ) -> PositionsResponse:
        positions = await aggregator.get_positions(address, parse_chain_ids(chain_ids))
        return PositionsResponse(positions=positions_out(positions))

    @app.get("/portfolio/{address}/metrics", response_model=MetricsResponse)
    async def get_metrics(
        address: str = Path(pattern=ADDRESS_PATTERN),
        timeframe: Timeframe = Query(Timeframe.DAILY),
        chain_ids: str | None = Query(None, alias="chainIds"),
    ) -> MetricsResponse:
        series = await aggregator.get_metrics_series(address, timeframe, parse_chain_ids(chain_ids))
        return MetricsResponse(
            timeframe=timeframe,
            metrics=metrics_out(series),
            metrics_updated_at=series[-1].timestamp if series else None,
        )

    @app.get("/portfolio/{address}/risk", response_model=RiskResponse)
    async def get_risk(
        address: str = Path(pattern=ADDRESS_PATTERN),
        chain_ids: str | None = Query(None, alias="chainIds"),
    ) -> RiskResponse:
        report = await aggregator.get_risk_report(address, parse_chain_ids(chain_ids))
        return RiskResponse(risk_score=report.risk_score, factors=report.factors)

    @app.get("/protocols", response_model=ProtocolsResponse)
    async def list_protocols() -> ProtocolsResponse:
        return ProtocolsResponse(protocols=services.adapters.protocols)

    @app.get("/protocols/{protocol}/metrics", response_model=ProtocolMetricsResponse)
    async def get_protocol_metrics(protocol: str) -> ProtocolMetricsResponse:
        metrics = await services.adapters.get_protocol_metrics(protocol)
        return ProtocolMetricsResponse(protocol=metrics.protocol, metrics=camelize(metrics.model_dump(mode="json")))

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    """Validation errors reduced to location and message."""
    return [{"loc": list(error.get("loc", ())), "msg": str(error.get("msg", ""))} for error in exc.errors()]

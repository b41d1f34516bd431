"""Base protocol adapter with the shared GraphQL transport."""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar

import httpx
from pydantic import ValidationError

from defi_portfolio_tracker.core.errors import SourceUnavailable
from defi_portfolio_tracker.core.fixedpoint import divide, multiply
from defi_portfolio_tracker.core.models import NormalizedPosition, ProtocolMetrics

logger = logging.getLogger(__name__)

# Raised by parsers when a response does not have the expected schema
SCHEMA_ERRORS = (KeyError, IndexError, TypeError, ValueError, InvalidOperation, ValidationError)

MAX_RISK = Decimal(10)


def to_number(value: Any) -> Decimal:
    """
    Convert a subgraph number (BigDecimal/BigInt string) to ``Decimal``.

    Raises
    ------
    InvalidOperation
        If the value is missing or not a number

    """
    return Decimal(str(value))


def debt_risk(supplied: Decimal, borrowed: Decimal) -> Decimal:
    """
    Risk of a lending position on a 0-10 scale from its debt-to-supply ratio.

    No debt is 0; debt with nothing supplied, or debt at or above the
    supplied amount, is 10.

    """
    if borrowed <= 0:
        return Decimal(0)
    if supplied <= 0:
        return MAX_RISK
    return min(MAX_RISK, multiply(divide(borrowed, supplied), MAX_RISK))


class BaseProtocolAdapter(ABC):
    """
    Abstract base class for subgraph-backed protocol adapters.

    Subclasses declare the two GraphQL queries and parse their responses
    into the common models. Everything that can go wrong while fetching or
    parsing surfaces as ``SourceUnavailable``.

    Attributes
    ----------
    name : str
        Canonical protocol identifier (must be set in subclass)
    aliases : tuple[str, ...]
        Other ledger labels that mean this protocol
    METRICS_QUERY : str
        Query for protocol-wide figures
    POSITIONS_QUERY : str
        Query for a user's positions, taking a ``$user`` variable

    Parameters
    ----------
    url : str
        GraphQL endpoint
    client : httpx.AsyncClient | None
        Shared HTTP client. A private one is created if None.
    timeout : float
        Request timeout in seconds for a private client

    """

    name: ClassVar[str] = ""
    aliases: ClassVar[tuple[str, ...]] = ()
    METRICS_QUERY: ClassVar[str] = ""
    POSITIONS_QUERY: ClassVar[str] = ""

    def __init__(self, url: str, client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        if not self.name:
            msg = f"{self.__class__.__name__} must define 'name' attribute"
            raise ValueError(msg)
        self.url = url
        self._owns_client = client is None
        self.client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    async def _execute_query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Execute a GraphQL query.

        Parameters
        ----------
        query : str
            GraphQL query string
        variables : dict[str, Any] | None
            Query variables

        Returns
        -------
        dict[str, Any]
            Query response data

        Raises
        ------
        SourceUnavailable
            If the request fails or the response carries GraphQL errors

        """
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            response = await self.client.post(
                self.url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            result = response.json()
        except httpx.TimeoutException as e:
            msg = f"Request timeout: {e}"
            raise SourceUnavailable(self.name, msg) from e
        except httpx.HTTPStatusError as e:
            msg = f"HTTP error {e.response.status_code}"
            raise SourceUnavailable(self.name, msg) from e
        except httpx.HTTPError as e:
            msg = f"HTTP request failed: {e}"
            raise SourceUnavailable(self.name, msg) from e
        except ValueError as e:
            msg = f"Invalid JSON response: {e}"
            raise SourceUnavailable(self.name, msg) from e

        if not isinstance(result, dict):
            raise SourceUnavailable(self.name, "response is not a JSON object")

        # Check for GraphQL errors
        if result.get("errors"):
            error_messages = [str(e.get("message", "Unknown error")) for e in result["errors"]]
            msg = f"GraphQL errors: {'; '.join(error_messages)}"
            raise SourceUnavailable(self.name, msg)

        data = result.get("data")
        if not isinstance(data, dict):
            raise SourceUnavailable(self.name, "response has no data")
        return data

    async def get_protocol_metrics(self) -> ProtocolMetrics:
        """
        Fetch protocol-wide aggregate figures.

        Raises
        ------
        SourceUnavailable
            If the query fails or the response does not match the schema

        """
        data = await self._execute_query(self.METRICS_QUERY)
        try:
            return self._parse_metrics(data)
        except SCHEMA_ERRORS as e:
            msg = f"Unexpected metrics schema: {e!r}"
            raise SourceUnavailable(self.name, msg) from e

    async def get_user_positions(self, user_address: str) -> list[NormalizedPosition]:
        """
        Fetch a user's positions on this protocol.

        Parameters
        ----------
        user_address : str
            User wallet address

        Returns
        -------
        list[NormalizedPosition]
            Positions in the common shape

        Raises
        ------
        SourceUnavailable
            If the query fails or the response does not match the schema

        """
        data = await self._execute_query(self.POSITIONS_QUERY, {"user": user_address.lower()})
        try:
            return self._parse_positions(data)
        except SCHEMA_ERRORS as e:
            msg = f"Unexpected positions schema: {e!r}"
            raise SourceUnavailable(self.name, msg) from e

    @abstractmethod
    def _parse_metrics(self, data: dict[str, Any]) -> ProtocolMetrics:
        """Convert a metrics response to the protocol's metrics model."""
        ...

    @abstractmethod
    def _parse_positions(self, data: dict[str, Any]) -> list[NormalizedPosition]:
        """Convert a positions response to normalized positions."""
        ...

    async def aclose(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client:
            await self.client.aclose()

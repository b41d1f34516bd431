"""CLI for the DeFi portfolio tracker."""

import asyncio
import json
from collections.abc import Awaitable, Callable
from decimal import Decimal
from enum import StrEnum
from pathlib import Path
from typing import Any, TypeVar

import typer
import uvicorn
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

# Import all protocol adapters to trigger auto-registration
from defi_portfolio_tracker import protocols  # noqa: F401
from defi_portfolio_tracker.api import create_app
from defi_portfolio_tracker.config import Settings, load_settings
from defi_portfolio_tracker.core.errors import ConfigurationError, PortfolioError
from defi_portfolio_tracker.core.models import PortfolioSnapshot, Timeframe
from defi_portfolio_tracker.core.registry import AdapterRegistry
from defi_portfolio_tracker.data import get_all_supported_networks, get_network_config, get_subgraph_urls
from defi_portfolio_tracker.ledger.client import LedgerClient
from defi_portfolio_tracker.logging_setup import setup_logging
from defi_portfolio_tracker.rpc import RetryConfig, with_retry
from defi_portfolio_tracker.services import Services, build_services

T = TypeVar("T")

app = typer.Typer(
    name="defi-portfolio",
    help="Track ledger positions and DeFi protocol exposure across EVM networks",
    add_completion=False,
)

console = Console()


class OutputFormat(StrEnum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


@app.callback()
def main(
    env_file: Path | None = typer.Option(None, "--env-file", help="Load environment variables from this file"),
    log_level: str = typer.Option("WARNING", "--log-level", "-l", help="Log level"),
) -> None:
    """Load the environment and configure logging."""
    load_dotenv(env_file or find_dotenv(usecwd=True))
    setup_logging(log_level)


def _load_settings() -> Settings:
    try:
        return load_settings()
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(code=1) from e


def _run(work: Callable[[Services], Awaitable[T]], retries: int = 0, description: str | None = None) -> T:
    """
    Run one unit of async work against freshly built services.

    Parameters
    ----------
    work : Callable[[Services], Awaitable[T]]
        Coroutine function receiving the services
    retries : int
        Extra attempts on transient failures
    description : str | None
        Spinner text shown while the work runs

    Raises
    ------
    typer.Exit
        If the work fails

    """
    settings = _load_settings()
    if retries > 0:
        work = with_retry(RetryConfig(max_retries=retries))(work)

    async def _main() -> T:
        services = build_services(settings)
        try:
            return await work(services)
        finally:
            await services.aclose()

    try:
        if description is None:
            return asyncio.run(_main())
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(description, total=None)
            return asyncio.run(_main())
    except (PortfolioError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e


def _usd(value: Decimal | None) -> str:
    return f"${value:,.2f}" if value is not None else "-"


def _output_json(data: Any) -> None:
    """Output data as JSON."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in data]
    console.print(json.dumps(data, indent=2, default=str), markup=False, highlight=False, soft_wrap=True)


def _positions_table(title: str, positions: list) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Protocol", style="cyan")
    table.add_column("Network", style="blue")
    table.add_column("Token", style="green")
    table.add_column("Amount", style="white", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("Value", style="bold green", justify="right")
    table.add_column("PnL", justify="right")
    table.add_column("Risk", style="yellow", justify="right")
    table.add_column("Valuation", style="dim")

    for position in positions:
        table.add_row(
            position.id,
            position.protocol,
            position.network,
            position.token_symbol,
            f"{position.amount:,.4f}",
            _usd(position.entry_value_usd),
            _usd(position.value_usd),
            _usd(position.pnl_usd),
            str(position.risk) if position.risk is not None else "-",
            position.valuation.value,
        )
    return table


def _output_snapshot(snapshot: PortfolioSnapshot) -> None:
    """Output a snapshot as rich tables."""
    owner = snapshot.owner
    if not snapshot.positions:
        console.print("\n[yellow]No active positions[/yellow]")
    else:
        console.print("\n")
        console.print(_positions_table(f"Portfolio for {owner[:10]}...{owner[-8:]}", snapshot.positions))

    summary_table = Table(show_header=False, box=None)
    summary_table.add_column("Label", style="bold")
    summary_table.add_column("Value", style="bold green")

    summary_table.add_row("Total Value:", _usd(snapshot.total_value_usd))
    summary_table.add_row("Active Positions:", str(snapshot.active_position_count))
    summary_table.add_row("Risk Score:", f"{snapshot.risk_score:.2f}")
    summary_table.add_row("Networks:", ", ".join(snapshot.networks_touched) or "-")
    if snapshot.unavailable_sources:
        summary_table.add_row("Unavailable:", ", ".join(snapshot.unavailable_sources))

    if snapshot.metrics_series:
        summary_table.add_row("", "")
        summary_table.add_row("[bold]History:[/bold]", "")
        for point in snapshot.metrics_series[-5:]:
            change = f" ({point.change_percentage:+.2f}%)" if point.change_percentage is not None else ""
            summary_table.add_row(f"  {point.timestamp:%Y-%m-%d %H:%M}", f"{_usd(point.value)}{change}")

    console.print("\n")
    console.print(summary_table)
    console.print("\n")


def _output_mapping(title: str, data: dict[str, Any]) -> None:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    for key, value in data.items():
        if isinstance(value, dict):
            value = json.dumps(value, default=str)
        elif isinstance(value, list):
            value = f"{len(value)} entries"
        table.add_row(key, "-" if value is None else str(value))
    console.print(table)


ChainIdsOption = typer.Option(None, "--chain-id", "-c", help="Restrict to a chain id (repeatable)")
FormatOption = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format")
RetriesOption = typer.Option(0, "--retries", help="Retry transient failures this many times")


@app.command()
def portfolio(
    address: str = typer.Argument(..., help="Owner address"),
    chain_ids: list[int] | None = ChainIdsOption,
    timeframe: Timeframe = typer.Option(Timeframe.DAILY, "--timeframe", "-t", help="Metrics history window"),
    format: OutputFormat = FormatOption,
    retries: int = RetriesOption,
) -> None:
    """
    Show the full portfolio snapshot for an owner.

    Examples:

        # Every configured network
        defi-portfolio portfolio 0xABC...

        # Ethereum only, as JSON
        defi-portfolio portfolio 0xABC... --chain-id 1 --format json
    """

    async def work(services: Services) -> PortfolioSnapshot:
        return await services.aggregator.get_snapshot(address, chain_ids or None, timeframe, record=True)

    snapshot = _run(work, retries, description=f"Building portfolio for {address}...")
    if format == OutputFormat.JSON:
        _output_json(snapshot)
    else:
        _output_snapshot(snapshot)


@app.command()
def positions(
    address: str = typer.Argument(..., help="Owner address"),
    chain_ids: list[int] | None = ChainIdsOption,
    format: OutputFormat = FormatOption,
    retries: int = RetriesOption,
) -> None:
    """List the valued active positions of an owner."""

    async def work(services: Services) -> list:
        return await services.aggregator.get_positions(address, chain_ids or None)

    result = _run(work, retries)
    if format == OutputFormat.JSON:
        _output_json(result)
    elif not result:
        console.print("[yellow]No active positions[/yellow]")
    else:
        console.print(_positions_table("Positions", result))


@app.command()
def risk(
    address: str = typer.Argument(..., help="Owner address"),
    chain_ids: list[int] | None = ChainIdsOption,
    format: OutputFormat = FormatOption,
    retries: int = RetriesOption,
) -> None:
    """Show the risk score and the factors behind it."""

    async def work(services: Services):
        return await services.aggregator.get_risk_report(address, chain_ids or None)

    report = _run(work, retries)
    if format == OutputFormat.JSON:
        _output_json(report)
        return

    console.print(f"\n[bold]Risk score:[/bold] {report.risk_score:.2f}")
    for factor in report.factors:
        console.print(f"  • {factor}")


@app.command()
def protocol_metrics(
    protocol: str | None = typer.Argument(None, help="Protocol name or alias; every configured protocol if omitted"),
    format: OutputFormat = FormatOption,
    retries: int = RetriesOption,
) -> None:
    """Show protocol-wide metrics from the protocols' subgraphs."""
    if protocol is None:
        _all_protocol_metrics(format, retries)
        return

    async def work(services: Services):
        return await services.adapters.get_protocol_metrics(protocol)

    metrics = _run(work, retries, description=f"Querying {protocol} subgraph...")
    if format == OutputFormat.JSON:
        _output_json(metrics)
    else:
        _output_mapping(f"{metrics.protocol} metrics", metrics.model_dump(mode="json"))


def _all_protocol_metrics(format: OutputFormat, retries: int) -> None:
    """Query every configured protocol; unreachable subgraphs are shown as unavailable."""

    async def work(services: Services):
        return await services.adapters.collect_protocol_metrics()

    collected = _run(work, retries, description="Querying protocol subgraphs...")
    if format == OutputFormat.JSON:
        _output_json({name: metrics.model_dump(mode="json") if metrics else None for name, metrics in collected.items()})
        return

    table = Table(title="Protocol Metrics", show_header=True, header_style="bold magenta")
    table.add_column("Protocol", style="cyan")
    table.add_column("TVL", style="bold green", justify="right")
    table.add_column("Status", style="yellow")
    for name, metrics in collected.items():
        if metrics is None:
            table.add_row(name, "-", "unavailable")
        else:
            table.add_row(name, _usd(metrics.tvl_usd), "ok")
    console.print(table)


@app.command()
def token(
    address: str = typer.Argument(..., help="Token contract address"),
    network: str = typer.Option("ethereum", "--network", "-n", help="Network name"),
    format: OutputFormat = FormatOption,
    retries: int = RetriesOption,
) -> None:
    """Read ERC-20 metadata for a token."""

    async def work(services: Services):
        return await services.chain.get_token_info(address, network)

    info = _run(work, retries)
    if format == OutputFormat.JSON:
        _output_json(info)
    else:
        _output_mapping(f"Token {info.symbol}", info.model_dump(mode="json"))


@app.command()
def pool(
    address: str = typer.Argument(..., help="Pair contract address"),
    network: str = typer.Option("ethereum", "--network", "-n", help="Network name"),
    format: OutputFormat = FormatOption,
    retries: int = RetriesOption,
) -> None:
    """Read reserves and tokens of a two-token pool."""

    async def work(services: Services):
        return await services.chain.get_pool_info(address, network)

    info = _run(work, retries)
    if format == OutputFormat.JSON:
        _output_json(info)
        return

    data = info.model_dump(mode="json")
    table = Table(title=f"Pool {info.token0.symbol}/{info.token1.symbol}", header_style="bold magenta")
    table.add_column("Token", style="cyan")
    table.add_column("Address", style="dim")
    table.add_column("Reserve", justify="right")
    table.add_row(info.token0.symbol, info.token0.address, data["reserves"]["reserve0"])
    table.add_row(info.token1.symbol, info.token1.address, data["reserves"]["reserve1"])
    console.print(table)
    console.print(f"Total supply: {data['total_supply']}")


@app.command()
def lending(
    pool_address: str = typer.Argument(..., help="Lending pool contract address"),
    user: str = typer.Argument(..., help="Account address"),
    network: str = typer.Option("ethereum", "--network", "-n", help="Network name"),
    reserve: str | None = typer.Option(None, "--reserve", "-r", help="Also read this reserve asset"),
    format: OutputFormat = FormatOption,
    retries: int = RetriesOption,
) -> None:
    """Read a lending account and, optionally, one reserve."""

    async def work(services: Services):
        return await services.chain.get_lending_account_info(pool_address, user, network, reserve)

    info = _run(work, retries)
    if format == OutputFormat.JSON:
        _output_json(info)
        return

    _output_mapping("Account", info.account.model_dump(mode="json"))
    if info.reserve is not None:
        _output_mapping(f"Reserve {reserve}", info.reserve.model_dump(mode="json"))


@app.command()
def add_position(
    token: str = typer.Argument(..., help="Token contract address"),
    amount: str = typer.Argument(..., help="Amount in whole tokens, e.g. 1.5"),
    entry_price: str = typer.Argument(..., help="USD entry price, e.g. 2000"),
    protocol: str = typer.Argument(..., help="Protocol label"),
    chain_id: int = typer.Option(1, "--chain-id", "-c", help="Chain holding the ledger"),
    decimals: int = typer.Option(18, "--decimals", help="Token decimals"),
    confirmations: int = typer.Option(1, "--confirmations", help="Blocks to wait for"),
) -> None:
    """Record a position in the on-chain ledger."""

    async def work(services: Services) -> str:
        client = await LedgerClient.for_chain(services.pool, services.settings, chain_id)
        txn_hash = await client.add_position(token, amount, entry_price, protocol, token_decimals=decimals)
        await client.wait_for_confirmation(txn_hash, confirmations)
        return txn_hash

    txn_hash = _run(work, description="Submitting addPosition...")
    console.print(f"[bold green]✓ Position added[/bold green] {txn_hash}")


@app.command()
def remove_position(
    index: int = typer.Argument(..., help="Position index"),
    chain_id: int = typer.Option(1, "--chain-id", "-c", help="Chain holding the ledger"),
    confirmations: int = typer.Option(1, "--confirmations", help="Blocks to wait for"),
) -> None:
    """Deactivate a position in the on-chain ledger."""

    async def work(services: Services) -> str:
        client = await LedgerClient.for_chain(services.pool, services.settings, chain_id)
        txn_hash = await client.remove_position(index)
        await client.wait_for_confirmation(txn_hash, confirmations)
        return txn_hash

    txn_hash = _run(work, description="Submitting removePosition...")
    console.print(f"[bold green]✓ Position removed[/bold green] {txn_hash}")


@app.command()
def list_protocols() -> None:
    """List all supported protocols."""
    subgraphs = get_subgraph_urls()

    table = Table(title="Supported Protocols", show_header=True, header_style="bold magenta")
    table.add_column("Protocol", style="cyan")
    table.add_column("Aliases", style="yellow")
    table.add_column("Subgraph", style="green")

    for adapter_class in AdapterRegistry.get_all_adapters():
        table.add_row(
            adapter_class.name,
            ", ".join(adapter_class.aliases),
            subgraphs.get(adapter_class.name, "-"),
        )

    console.print(table)


@app.command()
def list_networks() -> None:
    """List all configured networks."""
    table = Table(title="Supported Networks", show_header=True, header_style="bold magenta")
    table.add_column("Network", style="cyan")
    table.add_column("Chain ID", style="green", justify="right")
    table.add_column("Ecosystem", style="blue")
    table.add_column("RPC variable", style="dim")

    for name in get_all_supported_networks():
        entry = get_network_config(name)
        table.add_row(name, str(entry.get("chain_id")), entry.get("ecosystem", name), entry.get("rpc_env") or "-")

    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
) -> None:
    """Serve the HTTP API."""
    services = build_services(_load_settings())
    uvicorn.run(create_app(services), host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()

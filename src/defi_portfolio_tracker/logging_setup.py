"""Logging configuration for the CLI and the HTTP server."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: int | str = logging.INFO, *, rich_output: bool = True) -> None:
    """
    Configure root logging.

    Parameters
    ----------
    level : int | str
        Log level name or number
    rich_output : bool
        Render through rich on stderr; plain text otherwise

    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    if rich_output:
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_path=False,
        )
        fmt = "%(message)s"
    else:
        handler = logging.StreamHandler()
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    logging.basicConfig(level=level, format=fmt, datefmt="[%X]", handlers=[handler], force=True)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

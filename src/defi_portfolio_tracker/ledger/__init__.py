"""Position ledger: in-process state machine, readers and transaction client."""

from defi_portfolio_tracker.ledger.client import (
    PLACEHOLDER_LEDGER_ADDRESS,
    LedgerClient,
    resolve_ledger_address,
)
from defi_portfolio_tracker.ledger.ledger import (
    LedgerEvent,
    PositionAdded,
    PositionLedger,
    PositionRemoved,
    PositionUpdated,
)
from defi_portfolio_tracker.ledger.reader import (
    ContractLedgerReader,
    LedgerDirectory,
    LedgerReader,
    LocalLedgerReader,
)

__all__ = [
    "PLACEHOLDER_LEDGER_ADDRESS",
    "ContractLedgerReader",
    "LedgerClient",
    "LedgerDirectory",
    "LedgerEvent",
    "LedgerReader",
    "LocalLedgerReader",
    "PositionAdded",
    "PositionLedger",
    "PositionRemoved",
    "PositionUpdated",
    "resolve_ledger_address",
]

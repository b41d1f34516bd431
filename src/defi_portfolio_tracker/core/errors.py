"""Exception taxonomy shared by the ledger, chain access, adapter and aggregation layers."""


class PortfolioError(Exception):
    """Base class for all portfolio tracker errors."""


class LedgerError(PortfolioError):
    """Ledger misuse by the caller. Surfaced verbatim and never retried."""


class InvalidPositionId(LedgerError):
    """Position index is out of range for the owner."""

    def __init__(self, owner: str, index: int) -> None:
        super().__init__(f"Invalid position id {index} for owner {owner}")
        self.owner = owner
        self.index = index


class PositionInactive(LedgerError):
    """Position has already been removed."""

    def __init__(self, owner: str, index: int) -> None:
        super().__init__(f"Position {index} for owner {owner} is inactive")
        self.owner = owner
        self.index = index


class LedgerOverflowError(LedgerError, OverflowError):
    """Value cannot be represented in the ledger's uint256 fixed-point scale."""


class TransientError(PortfolioError):
    """Infrastructure failure. Safe for the caller to retry with backoff."""


class NetworkUnavailable(TransientError):
    """No usable connection for the requested network."""

    def __init__(self, network: str, reason: str | None = None) -> None:
        msg = f"Network unavailable: {network}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)
        self.network = network


class ChainReadError(TransientError):
    """An on-chain read failed."""


class TokenReadError(ChainReadError):
    """Token metadata could not be read."""


class LedgerReadError(TransientError):
    """The ledger could not be read. Aborts any aggregation that depends on it."""


class SourceUnavailable(TransientError):
    """A protocol index could not be queried or returned an unexpected schema."""

    def __init__(self, protocol: str, reason: str) -> None:
        super().__init__(f"{protocol} source unavailable: {reason}")
        self.protocol = protocol
        self.reason = reason


class ConfigurationError(PortfolioError):
    """Missing or invalid configuration. Fatal for the call."""


class UnsupportedProtocol(ConfigurationError):
    """No adapter is registered for the protocol."""

    def __init__(self, protocol: str) -> None:
        super().__init__(f"Unsupported protocol: {protocol}")
        self.protocol = protocol


class LedgerNotDeployed(ConfigurationError):
    """No ledger contract address is configured for a chain in production."""

    def __init__(self, chain_id: int) -> None:
        super().__init__(
            f"Ledger contract not deployed on chain {chain_id}. "
            f"Set the LEDGER_ADDRESS_{chain_id} environment variable."
        )
        self.chain_id = chain_id

"""Reconciliation of ledger positions with protocol-reported positions."""

from collections.abc import Mapping, Sequence
from typing import Protocol

from defi_portfolio_tracker.core.models import NormalizedPosition, Position


class PositionMatcher(Protocol):
    """
    Strategy that finds the protocol positions describing a ledger position.

    Matching is heuristic: implementations may return no match or several.

    """

    def match(
        self,
        position: Position,
        token_symbol: str,
        protocol: str | None,
        candidates: Mapping[str, Sequence[NormalizedPosition]],
    ) -> list[NormalizedPosition]:
        """
        Select candidates that describe ``position``.

        Parameters
        ----------
        position : Position
            Ledger position
        token_symbol : str
            Symbol of the ledger position's token
        protocol : str | None
            Canonical adapter name for the position's label, None if the
            label has no adapter
        candidates : Mapping[str, Sequence[NormalizedPosition]]
            Protocol positions of the owner by canonical protocol name

        Returns
        -------
        list[NormalizedPosition]
            Matching protocol positions, possibly empty

        """
        ...


class SymbolOverlapMatcher:
    """
    Match on protocol and asset symbol.

    A protocol position matches when it comes from the same protocol as the
    ledger label and lists the ledger token's symbol among its assets,
    compared case-insensitively.

    """

    def match(
        self,
        position: Position,
        token_symbol: str,
        protocol: str | None,
        candidates: Mapping[str, Sequence[NormalizedPosition]],
    ) -> list[NormalizedPosition]:
        if protocol is None:
            return []
        symbol = token_symbol.upper()
        return [
            candidate
            for candidate in candidates.get(protocol, ())
            if symbol in (s.upper() for s in candidate.asset_symbols)
        ]

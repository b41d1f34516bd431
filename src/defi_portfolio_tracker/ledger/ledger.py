"""In-process position ledger with append-only, soft-delete storage."""

import logging
import time
from collections.abc import Callable

from pydantic import BaseModel

from defi_portfolio_tracker.core.errors import InvalidPositionId, PositionInactive
from defi_portfolio_tracker.core.fixedpoint import check_uint256
from defi_portfolio_tracker.core.models import Position

logger = logging.getLogger(__name__)


class PositionAdded(BaseModel):
    owner: str
    index: int
    token: str
    amount: int
    entry_price: int
    entry_timestamp: int
    protocol_label: str


class PositionRemoved(BaseModel):
    owner: str
    index: int


class PositionUpdated(BaseModel):
    owner: str
    index: int
    new_amount: int
    new_entry_price: int


LedgerEvent = PositionAdded | PositionRemoved | PositionUpdated


def _system_clock() -> int:
    return int(time.time())


class PositionLedger:
    """
    Append-only ledger of positions per owner.

    Positions move ``active -> inactive`` and never back. Removing a position
    replaces its slot with an inactive copy; slots are never erased, so an
    index always refers to the same position.

    Parameters
    ----------
    clock : Callable[[], int] | None
        Returns the current unix timestamp used to stamp new positions

    """

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        self._clock = clock or _system_clock
        self._positions: dict[str, list[Position]] = {}
        self._active_counts: dict[str, int] = {}
        self._listeners: list[Callable[[LedgerEvent], None]] = []
        self.events: list[LedgerEvent] = []

    @staticmethod
    def _key(owner: str) -> str:
        return owner.lower()

    def subscribe(self, listener: Callable[[LedgerEvent], None]) -> Callable[[], None]:
        """
        Register a listener called with every event after it is logged.

        Returns
        -------
        Callable[[], None]
            Unsubscribe function; calling it again does nothing

        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: LedgerEvent) -> None:
        self.events.append(event)
        for listener in list(self._listeners):
            listener(event)

    def _slot(self, owner: str, index: int) -> Position:
        slots = self._positions.get(self._key(owner), [])
        if index < 0 or index >= len(slots):
            raise InvalidPositionId(owner, index)
        return slots[index]

    def _active_slot(self, owner: str, index: int) -> Position:
        position = self._slot(owner, index)
        if not position.active:
            raise PositionInactive(owner, index)
        return position

    def add_position(self, sender: str, token: str, amount: int, entry_price: int, protocol_label: str) -> int:
        """
        Append a new active position for ``sender``.

        Parameters
        ----------
        sender : str
            Caller identity; becomes the position owner
        token : str
            Token contract address
        amount : int
            Amount in token-native decimals
        entry_price : int
            Entry price as an 18-decimal fixed-point integer
        protocol_label : str
            Free-form protocol label

        Returns
        -------
        int
            Index of the new position for this owner

        Raises
        ------
        LedgerOverflowError
            If amount or entry_price is not a uint256. The ledger is unchanged.

        """
        check_uint256(amount, "amount")
        check_uint256(entry_price, "entry_price")

        key = self._key(sender)
        slots = self._positions.setdefault(key, [])
        index = len(slots)
        position = Position(
            owner=sender,
            token=token,
            amount=amount,
            entry_price=entry_price,
            entry_timestamp=self._clock(),
            protocol_label=protocol_label,
            active=True,
            index=index,
        )
        slots.append(position)
        self._active_counts[key] = self._active_counts.get(key, 0) + 1

        logger.debug("Position %d added for %s (%s)", index, sender, protocol_label)
        self._emit(
            PositionAdded(
                owner=sender,
                index=index,
                token=token,
                amount=amount,
                entry_price=entry_price,
                entry_timestamp=position.entry_timestamp,
                protocol_label=protocol_label,
            )
        )
        return index

    def remove_position(self, sender: str, index: int) -> None:
        """
        Soft-delete one of ``sender``'s positions.

        Amount and entry price are kept on the inactive record.

        Raises
        ------
        InvalidPositionId
            If the index is out of range
        PositionInactive
            If the position was already removed

        """
        position = self._active_slot(sender, index)
        key = self._key(sender)
        self._positions[key][index] = position.model_copy(update={"active": False})
        self._active_counts[key] -= 1

        logger.debug("Position %d removed for %s", index, sender)
        self._emit(PositionRemoved(owner=sender, index=index))

    def update_position(self, sender: str, index: int, new_amount: int, new_entry_price: int) -> None:
        """
        Overwrite the amount and entry price of an active position.

        Protocol label and entry timestamp are left unchanged.

        Raises
        ------
        InvalidPositionId
            If the index is out of range
        PositionInactive
            If the position was removed
        LedgerOverflowError
            If a new value is not a uint256

        """
        position = self._active_slot(sender, index)
        check_uint256(new_amount, "amount")
        check_uint256(new_entry_price, "entry_price")

        self._positions[self._key(sender)][index] = position.model_copy(
            update={"amount": new_amount, "entry_price": new_entry_price}
        )

        logger.debug("Position %d updated for %s", index, sender)
        self._emit(PositionUpdated(owner=sender, index=index, new_amount=new_amount, new_entry_price=new_entry_price))

    def get_position(self, owner: str, index: int) -> Position:
        """
        Get a position by index, active or not.

        Raises
        ------
        InvalidPositionId
            If the index is out of range

        """
        return self._slot(owner, index)

    def get_all_positions(self, owner: str) -> list[Position]:
        """
        Get active positions in append order.

        The returned list is contiguous; use ``Position.index`` for the
        ledger index, not the list position.

        """
        return [p for p in self._positions.get(self._key(owner), []) if p.active]

    def get_position_count(self, owner: str) -> int:
        """Get the number of active positions."""
        return self._active_counts.get(self._key(owner), 0)

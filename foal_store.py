# app/foal_store.py
"""
Per-session cache slot for the account's pending foal.

The slot lives in the session's own storage mapping, never in a process-wide
registry, so two sessions can't see each other's value. Reading the slot
never touches the network; only FoalForgeService.refresh() writes to it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from web3 import Web3

from chain.models import FoalState, PendingFoal
from errors import ConfigurationError

logger = logging.getLogger(__name__)

FOAL_SLOT_KEY = "speed_horses.foal"

Listener = Callable[[Optional[PendingFoal]], None]


@dataclass
class Session:
    """
    A connected wallet as seen by the foal client.

    `signer` must offer `sign_and_submit(descriptor)`, sync or async, and may
    return a tx hash, an awaitable/future, an object with `wait()`, or a
    push-style object with `subscribe(on_next, on_error)`.
    """
    address: Optional[str]
    chain_id: int
    signer: Any = None
    storage: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.address:
            if not Web3.is_address(self.address):
                raise ConfigurationError(f"Session address {self.address!r} is not a valid address")
            self.address = Web3.to_checksum_address(self.address)


class FoalSlot:
    """Single current value + listeners. New listeners get the value replayed at once."""

    def __init__(self) -> None:
        self._value: Optional[PendingFoal] = None
        self._listeners: List[Listener] = []
        self.state = FoalState.ABSENT

    @property
    def value(self) -> Optional[PendingFoal]:
        return self._value

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        listener(self._value)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, foal: Optional[PendingFoal]) -> None:
        self._value = foal
        self.state = FoalState.PENDING if foal is not None else FoalState.ABSENT
        for listener in list(self._listeners):
            try:
                listener(foal)
            except Exception:
                logger.exception("foal listener failed")

    def settle(self) -> None:
        """Put the state back in line with the cached value (after an aborted submit)."""
        self.state = FoalState.PENDING if self._value is not None else FoalState.ABSENT

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


def foal_slot(session: Session) -> FoalSlot:
    slot = session.storage.get(FOAL_SLOT_KEY)
    if slot is None:
        slot = FoalSlot()
        session.storage[FOAL_SLOT_KEY] = slot
    return slot

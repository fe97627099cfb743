# app/foal_service.py
"""
Pending-foal lifecycle on the FoalForge minter.

Pattern for every paid action: build descriptor -> session signer approves
and submits -> wait for inclusion -> re-read getPendingHorse -> publish to
the session's slot -> return the authoritative foal.

    Absent  --startHorseMint (600)--> Submitting -> Confirming -> Pending|Absent
    Pending --randomizeHorse (100)--> Submitting -> Confirming -> Pending
    Pending --buyExtraPoints (200)--> Submitting -> Confirming -> Pending
    Pending --claimHorse     (0)  --> Submitting -> Confirming -> Absent

A rejected signature leaves the slot untouched. Once a tx is submitted the
slot is always refreshed, even if waiting for inclusion failed.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import logging
from typing import Any, Awaitable, Optional

from web3 import Web3
from web3.exceptions import TimeExhausted

from config import INCLUSION_TIMEOUT
from chain.client import ContractClient, TransactionDescriptor
from chain.models import FoalState, PendingFoal, TransactionRecord
from chain.roles import ContractRole
from errors import (
    ConfigurationError,
    ContractRevertError,
    InclusionTimeoutError,
    NetworkError,
    TransactionError,
)
from foal_store import Listener, Session, foal_slot

logger = logging.getLogger(__name__)

BASE_CREATION_COST = Web3.to_wei(600, "ether")
RANDOMIZE_COST = Web3.to_wei(100, "ether")
EXTRA_POINTS_COST = Web3.to_wei(200, "ether")


def _tx_hash(submitted: Any) -> Optional[str]:
    if isinstance(submitted, str):
        return submitted
    if isinstance(submitted, (bytes, bytearray)):
        return Web3.to_hex(submitted)
    value = getattr(submitted, "hash", None)
    if isinstance(value, (str, bytes, bytearray)):
        return _tx_hash(value)
    return None


def _check_receipt(receipt: Any, tx_hash: Optional[str]) -> Any:
    try:
        status = receipt["status"]
    except (TypeError, KeyError, IndexError):
        status = getattr(receipt, "status", None)
    if status == 0:
        raise ContractRevertError(f"Transaction {tx_hash} reverted on-chain")
    return receipt


def _gas_used(receipt: Any) -> Optional[int]:
    try:
        return int(receipt["gasUsed"])
    except (TypeError, KeyError, IndexError, ValueError):
        value = getattr(receipt, "gasUsed", None)
        return int(value) if isinstance(value, int) else None


def _from_push(source: Any) -> "asyncio.Future":
    """Bridge a push-style `subscribe(on_next, on_error)` source to a future."""
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def on_next(value=None):
        loop.call_soon_threadsafe(lambda: future.done() or future.set_result(value))

    def on_error(error):
        loop.call_soon_threadsafe(lambda: future.done() or future.set_exception(error))

    source.subscribe(on_next, on_error)
    return future


class FoalForgeService:
    def __init__(self, client: ContractClient, inclusion_timeout: float = INCLUSION_TIMEOUT):
        self.client = client
        self.inclusion_timeout = inclusion_timeout

    # ------------------------------------------------------------
    # Cache access (no network)
    # ------------------------------------------------------------

    def current_foal(self, session: Session) -> Optional[PendingFoal]:
        return foal_slot(session).value

    def state(self, session: Session) -> FoalState:
        return foal_slot(session).state

    def subscribe(self, session: Session, listener: Listener):
        return foal_slot(session).subscribe(listener)

    # ------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------

    async def refresh(self, session: Session) -> Optional[PendingFoal]:
        """Re-read the pending foal and publish it. A failed read publishes None."""
        slot = foal_slot(session)
        if not session.address:
            slot.publish(None)
            return None
        try:
            foal = await self.client.pending_foal(session.address, session.chain_id)
        except NetworkError as e:
            logger.error("refresh of pending foal for %s failed: %s", session.address, e)
            foal = None
        slot.publish(foal)
        return foal

    # ------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------

    def _descriptor(self, session: Session, function: str, *args, value: int = 0) -> TransactionDescriptor:
        return self.client.transaction(
            ContractRole.MINTER_FOAL_FORGE,
            session.chain_id,
            function,
            *args,
            value=value,
            label=f"FoalForge.{function}",
        )

    async def start_mint(self, session: Session) -> Optional[PendingFoal]:
        if not session.address:
            return await self.refresh(session)
        tx = self._descriptor(session, "startHorseMint", value=BASE_CREATION_COST)
        return await self._execute(session, tx)

    async def randomize(
        self,
        session: Session,
        keep_image: bool = False,
        keep_stats: bool = False,
        keep_shoes: bool = False,
    ) -> Optional[PendingFoal]:
        """Re-roll the pending foal. Without one in the cache this starts a new mint."""
        if not session.address:
            return await self.refresh(session)
        if self.current_foal(session) is None:
            return await self.start_mint(session)
        tx = self._descriptor(
            session, "randomizeHorse", keep_image, keep_stats, keep_shoes, value=RANDOMIZE_COST
        )
        return await self._execute(session, tx)

    async def buy_extra_points(self, session: Session) -> Optional[PendingFoal]:
        if not session.address:
            return await self.refresh(session)
        tx = self._descriptor(session, "buyExtraPoints", value=EXTRA_POINTS_COST)
        return await self._execute(session, tx)

    async def claim(self, session: Session) -> Optional[PendingFoal]:
        """Claim the foal as an NFT. Returns the pre-claim snapshot; the slot ends Absent."""
        if not session.address:
            return await self.refresh(session)
        snapshot = self.current_foal(session)
        if snapshot is None:
            snapshot = await self.refresh(session)
        tx = self._descriptor(session, "claimHorse")
        await self._execute(session, tx)
        return snapshot

    # ------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------

    async def _execute(self, session: Session, descriptor: TransactionDescriptor) -> Optional[PendingFoal]:
        slot = foal_slot(session)
        if session.signer is None:
            raise ConfigurationError(f"Session {session.address} has no signer to submit {descriptor.title}")

        slot.state = FoalState.SUBMITTING
        try:
            submitted = session.signer.sign_and_submit(descriptor)
            if inspect.iscoroutine(submitted):
                submitted = await submitted
        except Exception as e:
            slot.settle()
            record = TransactionRecord(action=descriptor.title, error=str(e) or e.__class__.__name__)
            logger.warning("%s rejected before submission: %s", descriptor.title, record.error)
            raise TransactionError(record, e) from e

        slot.state = FoalState.CONFIRMING
        record = TransactionRecord(action=descriptor.title, tx_hash=_tx_hash(submitted))
        failure: Optional[BaseException] = None
        try:
            receipt = await self._await_inclusion(submitted, record.tx_hash)
            if receipt is not None:
                record.receipt = receipt
                record.tx_hash = record.tx_hash or _tx_hash(getattr(receipt, "transactionHash", None))
                record.gas_used = _gas_used(receipt)
        except Exception as e:
            failure = e
            record.error = str(e) or e.__class__.__name__

        foal = await self.refresh(session)

        if failure is not None:
            logger.error("%s failed after submission (tx %s): %s", descriptor.title, record.tx_hash, record.error)
            raise TransactionError(record, failure) from failure
        logger.info("%s confirmed: tx=%s gasUsed=%s", descriptor.title, record.tx_hash, record.gas_used)
        return foal

    def _inclusion_waiter(self, submitted: Any, tx_hash: Optional[str]) -> Optional[Awaitable]:
        if submitted is None:
            return None
        if isinstance(submitted, concurrent.futures.Future):
            return asyncio.wrap_future(submitted)
        if inspect.isawaitable(submitted):
            return submitted

        wait = getattr(submitted, "wait", None)
        if callable(wait):
            return self._call_wait(wait)

        subscribe = getattr(submitted, "subscribe", None)
        if callable(subscribe):
            return _from_push(submitted)

        if tx_hash:
            return self._wait_for_receipt(tx_hash)
        logger.warning("signer returned %r, no way to await inclusion", submitted)
        return None

    async def _call_wait(self, wait) -> Any:
        if inspect.iscoroutinefunction(wait):
            return await wait()
        result = await asyncio.to_thread(wait)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _wait_for_receipt(self, tx_hash: str) -> Any:
        try:
            return await asyncio.to_thread(
                self.client.w3.eth.wait_for_transaction_receipt, tx_hash, timeout=self.inclusion_timeout
            )
        except TimeExhausted as e:
            raise InclusionTimeoutError(tx_hash, self.inclusion_timeout) from e

    async def _await_inclusion(self, submitted: Any, tx_hash: Optional[str]) -> Any:
        waiter = self._inclusion_waiter(submitted, tx_hash)
        if waiter is None:
            return None
        try:
            receipt = await asyncio.wait_for(waiter, timeout=self.inclusion_timeout)
        except asyncio.TimeoutError as e:
            raise InclusionTimeoutError(tx_hash or "<unknown>", self.inclusion_timeout) from e
        if receipt is not None:
            _check_receipt(receipt, tx_hash)
        return receipt

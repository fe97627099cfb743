# app/chain/client.py
"""
Contract client shared by the ops scripts and the runtime foal service.

One ContractClient is built per process (or per FastAPI app) and passed to
every collaborator. It binds (role, chain id) to an address from the
AddressBook plus that role's ABI, and caches the resulting web3 contract.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from errors import ConfigurationError, NetworkError
from .abi import abi_for
from .address_book import AddressBook
from .decoding import decode_pending_foal
from .models import PendingFoal
from .roles import ContractRole

logger = logging.getLogger(__name__)


def connect(rpc_url: str) -> Web3:
    w3 = Web3(Web3.HTTPProvider(rpc_url))
    # tolerate PoA chains whose blocks carry oversized extraData
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return w3


@dataclass(frozen=True)
class TransactionDescriptor:
    """Everything a signer needs to submit one state-changing call."""
    role: ContractRole
    chain_id: int
    address: str
    function: str
    args: Tuple[Any, ...] = ()
    value: int = 0
    label: str = field(default="", compare=False)

    @property
    def title(self) -> str:
        return self.label or f"{self.role.value}.{self.function}"


class ContractClient:
    def __init__(
        self,
        w3: Web3,
        book: AddressBook,
        abi_loader: Callable[[ContractRole], List[Dict[str, Any]]] = abi_for,
    ):
        self.w3 = w3
        self.book = book
        self._abi_loader = abi_loader
        self._handles: Dict[Tuple[ContractRole, int], Any] = {}

    def chain_id(self) -> int:
        try:
            return int(self.w3.eth.chain_id)
        except Exception as e:
            raise NetworkError(f"Could not read chain id from provider: {e}") from e

    def get_handle(self, role: ContractRole, chain_id: int):
        key = (role, int(chain_id))
        cached = self._handles.get(key)
        if cached is not None:
            return cached

        address = self.book.resolve(role, chain_id)
        if not address:
            raise ConfigurationError(
                f"{role.value} contract address not configured for chain {chain_id}"
            )
        handle = self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=self._abi_loader(role),
        )
        self._handles[key] = handle
        logger.debug("bound %s on chain %s at %s", role.value, chain_id, address)
        return handle

    def forget(self, role: ContractRole, chain_id: int) -> None:
        """Drop a cached handle, e.g. after the address book entry changed."""
        self._handles.pop((role, int(chain_id)), None)

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def call(self, role: ContractRole, chain_id: int, function: str, *args) -> Any:
        handle = self.get_handle(role, chain_id)
        return handle.functions[function](*args).call()

    async def call_async(self, role: ContractRole, chain_id: int, function: str, *args) -> Any:
        return await asyncio.to_thread(self.call, role, chain_id, function, *args)

    async def pending_foal(self, owner: str, chain_id: int) -> Optional[PendingFoal]:
        """Read and decode FoalForge.getPendingHorse(owner). None means no foal."""
        owner = Web3.to_checksum_address(owner)
        try:
            raw = await self.call_async(ContractRole.MINTER_FOAL_FORGE, chain_id, "getPendingHorse", owner)
        except ConfigurationError:
            raise
        except Exception as e:
            raise NetworkError(f"getPendingHorse({owner}) failed on chain {chain_id}: {e}") from e
        return decode_pending_foal(raw)

    # ------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------

    def transaction(
        self,
        role: ContractRole,
        chain_id: int,
        function: str,
        *args,
        value: int = 0,
        label: str = "",
    ) -> TransactionDescriptor:
        handle = self.get_handle(role, chain_id)
        return TransactionDescriptor(
            role=role,
            chain_id=int(chain_id),
            address=handle.address,
            function=function,
            args=tuple(args),
            value=value,
            label=label,
        )

    def bind(self, descriptor: TransactionDescriptor):
        """The web3 ContractFunction a descriptor refers to."""
        handle = self.get_handle(descriptor.role, descriptor.chain_id)
        return handle.functions[descriptor.function](*descriptor.args)

# app/chain/wallet.py
"""
Local-key signer used by the deploy script and by server-side foal sessions.

Pattern: build tx -> sign with the local key -> send -> wait for receipt.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from config import INCLUSION_TIMEOUT, PRIVATE_KEY_FILE, load_private_key
from errors import ConfigurationError, ContractRevertError, InclusionTimeoutError

logger = logging.getLogger(__name__)

NO_SIGNER_HELP = "\n".join([
    "No signer available for the selected network.",
    "",
    "How to fix:",
    "1) Ensure PRIVATE_KEY_FILE is set and points to a readable file with a single private key (no spaces, no quotes).",
    "   Example content: 0x<hex-64>",
    "   Example path:    ./scripts/pk.testnet",
    "2) The key must have funds on the target network (deploying costs gas).",
    "3) Relative paths are resolved from the current working directory.",
    "   If you run from another folder, use an absolute path or cd into the project root.",
    "",
    "Quick checks:",
    "• echo $PRIVATE_KEY_FILE",
    "• ls -l ./scripts | grep pk",
    "• cat ./scripts/pk.testnet  (should output a single hex key)",
])


class Wallet:
    def __init__(self, w3: Web3, account, inclusion_timeout: float = INCLUSION_TIMEOUT):
        self.w3 = w3
        self.account = account
        self.inclusion_timeout = inclusion_timeout

    @classmethod
    def from_key_file(cls, w3: Web3, path: str = PRIVATE_KEY_FILE, **kwargs) -> "Wallet":
        key = load_private_key(path)
        if not key:
            raise ConfigurationError(NO_SIGNER_HELP)
        try:
            account = Account.from_key(key)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"PRIVATE_KEY_FILE does not hold a valid key: {e}\n\n{NO_SIGNER_HELP}") from e
        return cls(w3, account, **kwargs)

    @property
    def address(self) -> str:
        return self.account.address

    def balance(self) -> int:
        return self.w3.eth.get_balance(self.address)

    def sign_and_send(self, tx: dict) -> str:
        w3 = self.w3
        tx = dict(tx)
        tx.pop("gasPrice", None)

        try:
            base_fee = w3.eth.get_block("latest").baseFeePerGas
            priority = w3.eth.max_priority_fee * 150 // 100
            tx["type"] = 2
            tx["maxFeePerGas"] = base_fee * 2 + priority
            tx["maxPriorityFeePerGas"] = priority
        except Exception:
            # pre-London chains have no baseFeePerGas
            for key in ("type", "maxFeePerGas", "maxPriorityFeePerGas"):
                tx.pop(key, None)
            tx["gasPrice"] = w3.eth.gas_price * 120 // 100

        tx["from"] = self.address
        tx["nonce"] = w3.eth.get_transaction_count(self.address, "pending")
        tx["chainId"] = w3.eth.chain_id

        if "gas" not in tx:
            tx["gas"] = w3.eth.estimate_gas(tx) * 120 // 100

        signed = self.account.sign_transaction(tx)
        return Web3.to_hex(w3.eth.send_raw_transaction(signed.raw_transaction))

    def wait(self, tx_hash: str, timeout: Optional[float] = None):
        """Block until `tx_hash` is mined. Reverted receipts raise ContractRevertError."""
        timeout = self.inclusion_timeout if timeout is None else timeout
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as e:
            raise InclusionTimeoutError(tx_hash, timeout) from e
        if receipt["status"] == 0:
            raise ContractRevertError(f"Transaction {tx_hash} reverted on-chain (gasUsed={receipt['gasUsed']})")
        return receipt

    def deploy(self, abi: List[Dict[str, Any]], bytecode: str) -> Tuple[str, str, Any]:
        """Send a contract creation tx. Returns (address, tx_hash, receipt)."""
        factory = self.w3.eth.contract(abi=abi, bytecode=bytecode)
        tx = factory.constructor().build_transaction({"from": self.address})
        tx_hash = self.sign_and_send(tx)
        receipt = self.wait(tx_hash)
        address = receipt["contractAddress"]
        if not address:
            raise ContractRevertError(f"Creation tx {tx_hash} has no contractAddress in its receipt")
        return Web3.to_checksum_address(address), tx_hash, receipt

    def transact(self, contract_function, value: int = 0) -> Tuple[str, Any]:
        """Send a state-changing call. Returns (tx_hash, receipt)."""
        try:
            tx = contract_function.build_transaction({"from": self.address, "value": value})
        except ContractLogicError as e:
            raise ContractRevertError(str(e)) from e
        tx_hash = self.sign_and_send(tx)
        return tx_hash, self.wait(tx_hash)


class WalletSigner:
    """
    Session signer backed by a local key.

    Implements the `sign_and_submit(descriptor)` capability expected by
    foal_service: it returns the tx hash and lets the pipeline await
    inclusion through the provider.
    """

    def __init__(self, wallet: Wallet, client):
        self.wallet = wallet
        self.client = client

    def _build_and_send(self, descriptor) -> str:
        # build_transaction estimates gas and reads fees over RPC
        contract_function = self.client.bind(descriptor)
        try:
            tx = contract_function.build_transaction({"from": self.wallet.address, "value": descriptor.value})
        except ContractLogicError as e:
            raise ContractRevertError(str(e)) from e
        return self.wallet.sign_and_send(tx)

    async def sign_and_submit(self, descriptor) -> str:
        return await asyncio.to_thread(self._build_and_send, descriptor)

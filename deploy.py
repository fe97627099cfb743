# app/deploy.py
"""
Deploy and wire the Speed Horses contract graph.

    python deploy.py [--network telosTestnet] [--address-book ./contracts.json]

Roles that already have a non-zero address for the active chain in the
address book are reused; the rest are deployed from the Hardhat artifacts.
Then every wiring edge is applied in declaration order. Each step is one line
in the console and in the markdown transcript; the first failure aborts the
run (already applied edges stay applied). The address book and the flat
addresses.<network>.json are only written after a fully successful run.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from config import (
    ADDRESS_BOOK_PATH,
    ADDRESSES_DIR,
    DEPLOY_LOG_DIR,
    NETWORK_NAME,
    RPC_URL,
)
from chain.abi import load_artifact
from chain.address_book import AddressBook
from chain.client import ContractClient, connect
from chain.models import TransactionRecord
from chain.roles import DECLARED_ROLES, WIRING_EDGES, ContractRole, DeploymentEdge
from chain.wallet import Wallet
from deploy_log import Transcript
from errors import ConfigurationError, ContractRevertError, SpeedHorsesError

logger = logging.getLogger(__name__)


class Orchestrator:
    def __init__(
        self,
        client: ContractClient,
        wallet: Wallet,
        transcript: Transcript,
        artifact_loader: Callable[[str], Dict[str, Any]] = load_artifact,
    ):
        self.client = client
        self.book = client.book
        self.wallet = wallet
        self.transcript = transcript
        self._load_artifact = artifact_loader
        self._last_balance: Optional[int] = None
        self.records: List[TransactionRecord] = []

    # ------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------

    def _execute(self, action: str, send: Callable[[], Tuple[str, Any]]) -> TransactionRecord:
        """Run one transaction, log it, re-raise on failure."""
        try:
            tx_hash, receipt = send()
        except Exception as e:
            record = TransactionRecord(action=action, error=str(e) or e.__class__.__name__)
            self.records.append(record)
            self.transcript.record(record)
            logger.error("❌ %s — %s", action, record.error)
            if isinstance(e, SpeedHorsesError):
                raise
            raise ContractRevertError(f"{action}: {record.error}") from e

        record = TransactionRecord(
            action=action,
            tx_hash=tx_hash,
            receipt=receipt,
            gas_used=receipt["gasUsed"] if receipt is not None else None,
        )
        self.records.append(record)
        self.transcript.record(record)
        logger.info("✅ %s — tx %s, gasUsed %s", action, tx_hash, record.gas_used)
        return record

    def _balance(self) -> int:
        self._last_balance = self.transcript.balance(self.wallet.balance(), self._last_balance)
        return self._last_balance

    def deploy_role(self, role: ContractRole, chain_id: int) -> str:
        try:
            artifact = self._load_artifact(role.value)
        except (FileNotFoundError, ValueError) as e:
            self.transcript.record(TransactionRecord(action=f"Deploy {role.value}", error=str(e)))
            raise ConfigurationError(str(e)) from e
        deployed: Dict[str, str] = {}

        def send():
            address, tx_hash, receipt = self.wallet.deploy(artifact["abi"], artifact["bytecode"])
            deployed["address"] = address
            return tx_hash, receipt

        self._execute(f"Deploy {role.value}", send)
        address = deployed["address"]
        self.book.assign(role, chain_id, address)
        self.client.forget(role, chain_id)
        self.transcript.address(role.value, address)
        return address

    def deploy_roles(self, chain_id: int) -> Dict[ContractRole, str]:
        self.transcript.section("Deploy contracts")
        resolved: Dict[ContractRole, str] = {}
        for role in DECLARED_ROLES:
            existing = self.book.resolve(role, chain_id)
            if existing:
                self.transcript.subsection(f"Reusing existing `{role.value}`")
                self.transcript.address(role.value, existing)
                logger.info("Reusing %s at %s", role.value, existing)
                resolved[role] = existing
                continue

            self.transcript.subsection(f"Deploy `{role.value}`")
            logger.info("Deploying %s ...", role.value)
            resolved[role] = self.deploy_role(role, chain_id)
            self._balance()

        missing = [r.value for r in DECLARED_ROLES if not self.book.resolve(r, chain_id)]
        if missing:
            raise ConfigurationError(
                f"Contract address for {', '.join(missing)} on chain {chain_id} is missing. Deploy aborted."
            )
        return resolved

    def apply_edge(self, edge: DeploymentEdge, chain_id: int) -> TransactionRecord:
        target = self.book.resolve(edge.target, chain_id)
        if not self.book.resolve(edge.source, chain_id) or not target:
            raise ConfigurationError(f"{edge.label}: both ends must be deployed on chain {chain_id}")
        handle = self.client.get_handle(edge.source, chain_id)
        call = handle.functions[edge.setter](*edge.setter_args(target))
        return self._execute(edge.label, lambda: self.wallet.transact(call))

    def apply_edges(self, chain_id: int) -> None:
        self.transcript.section("Set contract references")
        for edge in WIRING_EDGES:
            self.apply_edge(edge, chain_id)

    def write_outputs(self, chain_id: int, network: str, book_path: Path, addresses_dir: Path) -> Path:
        flat = self.book.for_chain(chain_id)

        self.transcript.section("Final balance")
        self._balance()

        self.transcript.section("Address book")
        for name, address in flat.items():
            self.transcript.append(f"- {name}: `{address}`")

        addresses_dir = Path(addresses_dir)
        addresses_dir.mkdir(parents=True, exist_ok=True)
        dump_path = addresses_dir / f"addresses.{network}.json"
        dump_path.write_text(json.dumps(flat, indent=4) + "\n", encoding="utf-8")
        self.transcript.append(f"\n> Addresses JSON written at: `{dump_path}`")

        self.book.save(book_path)
        self.transcript.append(f"> Updated address book at: `{book_path}`")
        logger.info("Address book saved to %s, addresses dumped to %s", book_path, dump_path)
        return dump_path

    # ------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------

    def run(
        self,
        network: str = NETWORK_NAME,
        book_path: Path = ADDRESS_BOOK_PATH,
        addresses_dir: Path = ADDRESSES_DIR,
    ) -> Dict[str, str]:
        chain_id = self.client.chain_id()
        logger.info("Deployer %s on %s (chain %s)", self.wallet.address, network, chain_id)

        self.transcript.section("Deployer")
        self.transcript.append(f"- address: `{self.wallet.address}`")
        self.transcript.append(f"- chainId: `{chain_id}`")
        self._balance()

        self.deploy_roles(chain_id)
        self.apply_edges(chain_id)
        self.write_outputs(chain_id, network, book_path, addresses_dir)
        return self.book.for_chain(chain_id)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Deploy and wire the Speed Horses contracts.")
    parser.add_argument("--rpc-url", default=RPC_URL)
    parser.add_argument("--network", default=NETWORK_NAME, help="name used for addresses.<network>.json")
    parser.add_argument("--address-book", type=Path, default=ADDRESS_BOOK_PATH)
    parser.add_argument("--addresses-dir", type=Path, default=ADDRESSES_DIR)
    parser.add_argument("--log-dir", type=Path, default=DEPLOY_LOG_DIR)
    parser.add_argument("--check-accounts", action="store_true",
                        help="print the signer address and exit")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    try:
        w3 = connect(args.rpc_url)
        wallet = Wallet.from_key_file(w3)
        if args.check_accounts:
            print("signers:", [wallet.address])
            return 0

        client = ContractClient(w3, AddressBook.load(args.address_book))
        transcript = Transcript.start(args.log_dir, args.network)
        logger.info("Transcript: %s", transcript.path)
        Orchestrator(client, wallet, transcript).run(args.network, args.address_book, args.addresses_dir)
    except SpeedHorsesError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

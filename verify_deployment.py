# app/verify_deployment.py
"""
Read-only check that a deployed Speed Horses graph is wired correctly.

    python verify_deployment.py [--address-book ./contracts.json]

For the active chain it resolves every role from the address book, reads
back every wiring edge (reference getters compared against the expected
checksummed address, minter flags against True) and finally every
contract's version() string. One line per check; the first mismatch raises
VerificationError and stops the run.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from web3 import Web3

from config import ADDRESS_BOOK_PATH, RPC_URL
from chain.address_book import AddressBook
from chain.client import ContractClient, connect
from chain.roles import DECLARED_ROLES, WIRING_EDGES, ContractRole, DeploymentEdge
from errors import ConfigurationError, ContractRevertError, SpeedHorsesError, VerificationError

logger = logging.getLogger(__name__)


def _same_address(expected: str, received: Any) -> bool:
    try:
        return Web3.to_checksum_address(received) == Web3.to_checksum_address(expected)
    except (TypeError, ValueError):
        return False


class VerificationProbe:
    def __init__(self, client: ContractClient, emit: Optional[Callable[[str], None]] = None):
        self.client = client
        self.emit = emit or (lambda line: logger.info("%s", line))
        self.lines: List[str] = []

    def _ok(self, line: str) -> None:
        line = f"✅ {line}"
        self.lines.append(line)
        self.emit(line)

    def _read(self, label: str, role: ContractRole, chain_id: int, function: str, *args) -> Any:
        try:
            return self.client.call(role, chain_id, function, *args)
        except SpeedHorsesError:
            raise
        except Exception as e:
            raise ContractRevertError(f"{label}: {function}() call failed: {e}") from e

    def resolve_all(self, chain_id: int) -> Dict[ContractRole, str]:
        resolved = {}
        missing = []
        for role in DECLARED_ROLES:
            address = self.client.book.resolve(role, chain_id)
            if address:
                resolved[role] = Web3.to_checksum_address(address)
            else:
                missing.append(role.value)
        if missing:
            raise ConfigurationError(
                f"Missing address for {', '.join(missing)} on chain {chain_id}. Deploy first."
            )
        return resolved

    def check_edge(self, edge: DeploymentEdge, chain_id: int, resolved: Dict[ContractRole, str]) -> None:
        target = resolved[edge.target]
        received = self._read(edge.label, edge.source, chain_id, edge.getter, *edge.getter_args(target))

        if edge.authorize:
            label = f"{edge.source.value}.{edge.getter}({edge.target.short_name})"
            if received is not True:
                raise VerificationError(label, True, received)
            self._ok(f"{label} == true")
            return

        label = f"{edge.source.value}.{edge.getter}()"
        if not _same_address(target, received):
            raise VerificationError(label, target, received)
        self._ok(f"{label} == {edge.target.short_name} ({target})")

    def check_version(self, role: ContractRole, chain_id: int) -> None:
        label = f"{role.value}.version()"
        received = self._read(label, role, chain_id, "version")
        if received != role.expected_version:
            raise VerificationError(label, role.expected_version, received)
        self._ok(f"{label} == {received}")

    def run(self, chain_id: Optional[int] = None) -> List[str]:
        chain_id = self.client.chain_id() if chain_id is None else chain_id
        resolved = self.resolve_all(chain_id)
        for edge in WIRING_EDGES:
            self.check_edge(edge, chain_id, resolved)
        for role in DECLARED_ROLES:
            self.check_version(role, chain_id)
        self.emit(f"All {len(WIRING_EDGES)} references and {len(DECLARED_ROLES)} versions verified on chain {chain_id}.")
        return self.lines


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Verify the Speed Horses contract wiring on-chain.")
    parser.add_argument("--rpc-url", default=RPC_URL)
    parser.add_argument("--address-book", type=Path, default=ADDRESS_BOOK_PATH)
    parser.add_argument("--chain-id", type=int, default=None, help="defaults to the provider's chain id")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    try:
        client = ContractClient(connect(args.rpc_url), AddressBook.load(args.address_book))
        VerificationProbe(client).run(args.chain_id)
    except VerificationError as e:
        logger.error("❌ %s\n   expected: %s\n   received: %s", e.label, e.expected, e.received)
        return 1
    except SpeedHorsesError as e:
        logger.error("❌ %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

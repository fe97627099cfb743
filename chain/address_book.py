# app/chain/address_book.py
"""
Persisted role -> chain id -> address map.

This file is the only source of truth for "is role X deployed on chain Y".
The deploy script reuses every non-zero entry for the active chain and
rewrites the whole file after a successful run. Serialization is a pure
function of the content: declared roles first, extra roles alphabetically,
chain ids in ascending numeric order.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

from web3 import Web3

from errors import ConfigurationError
from .roles import DECLARED_ROLES, ZERO_ADDRESS, ContractRole

logger = logging.getLogger(__name__)

RoleKey = Union[ContractRole, str]


def _role_name(role: RoleKey) -> str:
    return role.value if isinstance(role, ContractRole) else str(role)


def is_zero_address(address: Optional[str]) -> bool:
    return not address or address.lower() == ZERO_ADDRESS


class AddressBook:
    def __init__(self, entries: Optional[Mapping[str, Mapping[Union[int, str], str]]] = None):
        self._entries: Dict[str, Dict[int, str]] = {}
        for role, networks in (entries or {}).items():
            for chain_id, address in networks.items():
                self.assign(role, chain_id, address)

    # ------------------------------------------------------------
    # Lookup / mutation
    # ------------------------------------------------------------

    def resolve(self, role: RoleKey, chain_id: Union[int, str]) -> Optional[str]:
        """Stored address, or None when absent or the zero address."""
        address = self._entries.get(_role_name(role), {}).get(int(chain_id))
        if is_zero_address(address):
            return None
        return address

    def assign(self, role: RoleKey, chain_id: Union[int, str], address: Optional[str]) -> None:
        """Store `address`; an empty or None address means not deployed."""
        name = _role_name(role)
        if not address:
            self._entries.get(name, {}).pop(int(chain_id), None)
            return
        self._entries.setdefault(name, {})[int(chain_id)] = Web3.to_checksum_address(address)

    def roles(self) -> List[str]:
        known = [r.value for r in DECLARED_ROLES]
        extras = sorted(name for name in self._entries if name not in known)
        return known + extras

    def for_chain(self, chain_id: Union[int, str], roles: Iterable[RoleKey] = DECLARED_ROLES) -> Dict[str, str]:
        """Flat {role: address} for the roles resolved on `chain_id`."""
        out = {}
        for role in roles:
            address = self.resolve(role, chain_id)
            if address:
                out[_role_name(role)] = address
        return out

    # ------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        out: Dict[str, Dict[str, str]] = {}
        for name in self.roles():
            networks = self._entries.get(name, {})
            out[name] = {str(chain_id): networks[chain_id] for chain_id in sorted(networks)}
        return out

    def serialize(self) -> str:
        return json.dumps(self.to_dict(), indent=4) + "\n"

    @classmethod
    def parse(cls, text: str, source: str = "<text>") -> "AddressBook":
        """
        Raises:
            ConfigurationError naming `source` on bad JSON, a bad shape,
            a non-numeric chain id or an invalid address.
        """
        try:
            data = json.loads(text) if text.strip() else {}
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object of {role: {chainId: address}}")
            for role, networks in data.items():
                if networks is not None and not isinstance(networks, dict):
                    raise ValueError(f"entry for {role} must be an object of {{chainId: address}}")
            return cls({role: networks or {} for role, networks in data.items()})
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Address book {source} is invalid: {e}") from e

    @classmethod
    def load(cls, path: Path) -> "AddressBook":
        path = Path(path)
        if not path.exists():
            logger.warning("Address book %s not found, starting empty", path)
            return cls()
        return cls.parse(path.read_text(encoding="utf-8"), source=str(path))

    def save(self, path: Path) -> None:
        """Write the book atomically (temp file in the same dir + rename)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self.serialize())
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AddressBook):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"AddressBook({self.to_dict()!r})"

# app/tests/conftest.py
"""
In-memory stand-ins for web3 and the deployer wallet.

FakeWeb3.eth.contract(address=...) returns one FakeContract per address;
tests program its view functions through `contract.reads[name]` (a value, or
a callable receiving the call args).
"""
import itertools

import pytest
from web3 import Web3

from chain.address_book import AddressBook
from chain.client import ContractClient
from chain.roles import DECLARED_ROLES, WIRING_EDGES
from errors import ContractRevertError

CHAIN_ID = 41


def addr(n: int) -> str:
    return Web3.to_checksum_address(f"0x{n:040x}")


class FakeCall:
    def __init__(self, contract, name, args):
        self.contract = contract
        self.name = name
        self.args = args

    def call(self):
        self.contract.eth.read_count += 1
        value = self.contract.reads[self.name]
        if isinstance(value, Exception):
            raise value
        return value(*self.args) if callable(value) else value

    def build_transaction(self, params):
        return {"to": self.contract.address, "fn": self.name, "args": self.args, **params}


class FakeFunctions:
    def __init__(self, contract):
        self._contract = contract

    def __getitem__(self, name):
        return lambda *args: FakeCall(self._contract, name, args)


class FakeContract:
    def __init__(self, eth, address, abi):
        self.eth = eth
        self.address = address
        self.abi = abi
        self.reads = {}
        self.functions = FakeFunctions(self)


class FakeEth:
    def __init__(self, chain_id=CHAIN_ID):
        self.chain_id = chain_id
        self.contracts = {}
        self.read_count = 0
        self.receipts = {}

    def contract(self, address=None, abi=None, bytecode=None):
        if address not in self.contracts:
            self.contracts[address] = FakeContract(self, address, abi)
        return self.contracts[address]

    def wait_for_transaction_receipt(self, tx_hash, timeout=120):
        return self.receipts.get(tx_hash, {"status": 1, "gasUsed": 21000, "transactionHash": tx_hash})


class FakeWeb3:
    def __init__(self, chain_id=CHAIN_ID):
        self.eth = FakeEth(chain_id)


class FakeWallet:
    """Deployer stand-in: deploys get sequential addresses, transacts are recorded."""

    address = addr(0xDE9)

    def __init__(self, fail_on=None, first_address=0x1000):
        self.fail_on = fail_on
        self.deployed = []
        self.sent = []
        self._balance = 1000 * 10**18
        self._next = itertools.count(first_address)
        self._hashes = itertools.count(1)

    def _hash(self):
        return f"0x{next(self._hashes):064x}"

    def balance(self):
        return self._balance

    def deploy(self, abi, bytecode):
        address = addr(next(self._next))
        self.deployed.append(address)
        self._balance -= 2 * 10**16
        return address, self._hash(), {"status": 1, "gasUsed": 1_500_000, "contractAddress": address}

    def transact(self, call, value=0):
        if self.fail_on is not None and (call.contract.address, call.name, call.args) == self.fail_on:
            raise ContractRevertError("execution reverted: Ownable: caller is not the owner")
        self.sent.append(call)
        self._balance -= 10**15
        return self._hash(), {"status": 1, "gasUsed": 47_000}


def full_book(chain_id=CHAIN_ID, start=0x100) -> AddressBook:
    book = AddressBook()
    for i, role in enumerate(DECLARED_ROLES):
        book.assign(role, chain_id, addr(start + i))
    return book


def wire(w3: FakeWeb3, book: AddressBook, chain_id=CHAIN_ID):
    """Program every getter so the graph looks correctly wired."""
    authorized = {}
    for edge in WIRING_EDGES:
        source = w3.eth.contract(address=book.resolve(edge.source, chain_id))
        target = book.resolve(edge.target, chain_id)
        if edge.authorize:
            authorized.setdefault(source.address, set()).add(target)
            allowed = authorized[source.address]
            source.reads[edge.getter] = lambda minter, allowed=allowed: minter in allowed
        else:
            source.reads[edge.getter] = target
    for role in DECLARED_ROLES:
        w3.eth.contract(address=book.resolve(role, chain_id)).reads["version"] = role.expected_version


@pytest.fixture
def fake_w3():
    return FakeWeb3()


@pytest.fixture
def make_client(fake_w3):
    def _make(book):
        return ContractClient(fake_w3, book, abi_loader=lambda role: [])
    return _make

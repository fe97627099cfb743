# app/tests/test_foal_service.py
"""
Tests for the pending-foal lifecycle: submit -> inclusion -> refresh -> publish.

The fake chain applies each FoalForge call to its per-owner state as soon as
the signer submits it, so the refresh that follows reads the new state.
"""
import asyncio

import pytest

from chain.address_book import AddressBook
from chain.models import FoalState
from chain.roles import ContractRole
from errors import (
    ConfigurationError,
    ContractRevertError,
    InclusionTimeoutError,
    TransactionError,
)
from foal_service import (
    BASE_CREATION_COST,
    EXTRA_POINTS_COST,
    RANDOMIZE_COST,
    FoalForgeService,
)
from foal_store import Session, foal_slot
from conftest import CHAIN_ID, addr

STATS = (20, 10, 30, 10, 20, 60, 50, 40)
SHOES = [(0, 3, (8, 2, 0, 0, 0, 0, 0, 0)), (0, 4, (0, 0, 3, 0, 7, 0, 0, 0))]
NO_FOAL = (0, 0, (0,) * 8, 0, 0, [])

ALICE = addr(0xA11CE)
BOB = addr(0xB0B)

RECEIPT = {"status": 1, "gasUsed": 81_000}


class FakeForge:
    """Per-owner pending foal state behind getPendingHorse()."""

    def __init__(self):
        self.foals = {}

    def get_pending_horse(self, owner):
        return self.foals.get(owner, NO_FOAL)

    def apply(self, owner, descriptor):
        current = self.foals.get(owner)
        if descriptor.function == "startHorseMint":
            self.foals[owner] = (1, 7, STATS, 120, 0, SHOES)
        elif descriptor.function == "randomizeHorse":
            category, number, stats, total, extra, shoes = current
            self.foals[owner] = (category, number + 1, stats, total, extra, shoes)
        elif descriptor.function == "buyExtraPoints":
            category, number, stats, total, extra, shoes = current
            self.foals[owner] = (category, number, stats, total + 50, extra + 1, shoes)
        elif descriptor.function == "claimHorse":
            self.foals.pop(owner, None)


class PushReceipt:
    def __init__(self, receipt):
        self.receipt = receipt

    def subscribe(self, on_next, on_error):
        on_next(self.receipt)


class WaitReceipt:
    def __init__(self, receipt):
        self.receipt = receipt

    def wait(self):
        return self.receipt


class FakeSigner:
    """Wallet session stand-in. `reply` picks what sign_and_submit hands back."""

    def __init__(self, forge, owner, reply="hash", receipt=RECEIPT):
        self.forge = forge
        self.owner = owner
        self.reply = reply
        self.receipt = receipt
        self.reject = False
        self.submitted = []
        self.on_submit = None

    async def sign_and_submit(self, descriptor):
        if self.on_submit:
            self.on_submit()
        if self.reject:
            raise PermissionError("User rejected the request.")
        self.submitted.append(descriptor)
        self.forge.apply(self.owner, descriptor)

        if self.reply == "hash":
            return f"0x{len(self.submitted):064x}"
        if self.reply == "wait":
            return WaitReceipt(self.receipt)
        if self.reply == "push":
            return PushReceipt(self.receipt)
        future = asyncio.get_running_loop().create_future()
        if self.reply == "future":
            future.set_result(self.receipt)
        # "pending": never included
        return future


@pytest.fixture
def forge(fake_w3):
    forge = FakeForge()
    address = addr(0xF0A1)
    fake_w3.eth.contract(address=address).reads["getPendingHorse"] = forge.get_pending_horse
    forge.address = address
    return forge


@pytest.fixture
def service(make_client, forge):
    book = AddressBook()
    book.assign(ContractRole.MINTER_FOAL_FORGE, CHAIN_ID, forge.address)
    return FoalForgeService(make_client(book), inclusion_timeout=1)


def session_for(forge, owner=ALICE, **kw):
    return Session(owner, CHAIN_ID, signer=FakeSigner(forge, owner, **kw))


def run(coro):
    return asyncio.run(coro)


# ────────────────────────────────────────────────────────────
# Cache
# ────────────────────────────────────────────────────────────

class TestCache:
    def test_new_session_is_absent_without_network(self, service, forge, fake_w3):
        session = session_for(forge)
        assert service.current_foal(session) is None
        assert service.state(session) is FoalState.ABSENT
        assert fake_w3.eth.read_count == 0

    def test_subscribe_replays_current_value(self, service, forge):
        session = session_for(forge)
        seen = []
        unsubscribe = service.subscribe(session, seen.append)
        assert seen == [None]

        foal = run(service.start_mint(session))
        assert seen == [None, foal]

        unsubscribe()
        run(service.claim(session))
        assert seen == [None, foal]
        assert foal_slot(session).listener_count == 0

    def test_failing_listener_does_not_break_publish(self, service, forge):
        session = session_for(forge)
        seen = []

        def broken(foal):
            if foal is not None:
                raise RuntimeError("listener bug")

        service.subscribe(session, broken)
        service.subscribe(session, seen.append)
        run(service.start_mint(session))
        assert seen[-1] is not None

    def test_sessions_are_independent(self, service, forge):
        alice = session_for(forge, ALICE)
        bob = session_for(forge, BOB)
        run(service.start_mint(alice))

        assert service.current_foal(alice) is not None
        assert service.current_foal(bob) is None
        assert run(service.refresh(bob)) is None
        assert service.current_foal(alice) is not None


# ────────────────────────────────────────────────────────────
# Actions
# ────────────────────────────────────────────────────────────

class TestActions:
    def test_start_mint(self, service, forge):
        session = session_for(forge)
        states = []
        session.signer.on_submit = lambda: states.append(service.state(session))

        foal = run(service.start_mint(session))

        assert states == [FoalState.SUBMITTING]
        assert foal.totalPoints == 120
        assert foal.imgNumber == 7
        assert service.current_foal(session) == foal
        assert service.state(session) is FoalState.PENDING
        tx = session.signer.submitted[0]
        assert tx.function == "startHorseMint"
        assert tx.value == BASE_CREATION_COST
        assert tx.address == forge.address
        assert tx.title == "FoalForge.startHorseMint"

    def test_randomize_passes_keep_flags(self, service, forge):
        session = session_for(forge)
        run(service.start_mint(session))
        foal = run(service.randomize(session, keep_image=True, keep_shoes=True))

        tx = session.signer.submitted[-1]
        assert tx.function == "randomizeHorse"
        assert tx.args == (True, False, True)
        assert tx.value == RANDOMIZE_COST
        assert foal.imgNumber == 8

    def test_randomize_without_foal_starts_a_mint(self, service, forge):
        session = session_for(forge)
        foal = run(service.randomize(session))
        assert [tx.function for tx in session.signer.submitted] == ["startHorseMint"]
        assert foal.totalPoints == 120

    def test_buy_extra_points(self, service, forge):
        session = session_for(forge)
        run(service.start_mint(session))
        foal = run(service.buy_extra_points(session))

        assert session.signer.submitted[-1].value == EXTRA_POINTS_COST
        assert foal.totalPoints == 170
        assert foal.extraPackagesBought == 1

    def test_claim_on_fresh_session_returns_the_onchain_foal(self, service, forge):
        forge.foals[ALICE] = (1, 7, STATS, 120, 0, SHOES)
        session = session_for(forge)
        assert service.current_foal(session) is None

        claimed = run(service.claim(session))

        assert claimed is not None
        assert claimed.totalPoints == 120
        assert [tx.function for tx in session.signer.submitted] == ["claimHorse"]
        assert service.current_foal(session) is None

    def test_claim_returns_snapshot_and_clears(self, service, forge):
        session = session_for(forge)
        minted = run(service.start_mint(session))
        claimed = run(service.claim(session))

        assert claimed == minted
        assert session.signer.submitted[-1].value == 0
        assert service.current_foal(session) is None
        assert service.state(session) is FoalState.ABSENT
        assert run(service.refresh(session)) is None

    @pytest.mark.parametrize("reply", ["hash", "future", "wait", "push"])
    def test_every_inclusion_style(self, service, forge, reply):
        session = session_for(forge, reply=reply)
        foal = run(service.start_mint(session))
        assert foal is not None
        assert service.state(session) is FoalState.PENDING

    def test_no_address_short_circuits(self, service, forge, fake_w3):
        session = Session(None, CHAIN_ID, signer=FakeSigner(forge, None))
        assert run(service.start_mint(session)) is None
        assert run(service.claim(session)) is None
        assert session.signer.submitted == []
        assert fake_w3.eth.read_count == 0

    def test_invalid_session_address(self):
        with pytest.raises(ConfigurationError, match="not a valid address"):
            Session("0xnot-an-address", CHAIN_ID)

    def test_session_address_is_checksummed(self):
        assert Session(ALICE.lower(), CHAIN_ID).address == ALICE

    def test_no_signer(self, service):
        with pytest.raises(ConfigurationError):
            run(service.start_mint(Session(ALICE, CHAIN_ID)))


# ────────────────────────────────────────────────────────────
# Failures
# ────────────────────────────────────────────────────────────

class TestFailures:
    def test_rejected_signature_leaves_cache_untouched(self, service, forge, fake_w3):
        session = session_for(forge)
        foal = run(service.start_mint(session))
        reads = fake_w3.eth.read_count

        session.signer.reject = True
        with pytest.raises(TransactionError) as exc:
            run(service.buy_extra_points(session))

        assert isinstance(exc.value.cause, PermissionError)
        assert exc.value.record.tx_hash is None
        assert service.current_foal(session) == foal
        assert service.state(session) is FoalState.PENDING
        assert fake_w3.eth.read_count == reads

    def test_inclusion_timeout_still_refreshes(self, make_client, forge):
        book = AddressBook()
        book.assign(ContractRole.MINTER_FOAL_FORGE, CHAIN_ID, forge.address)
        service = FoalForgeService(make_client(book), inclusion_timeout=0.05)
        session = session_for(forge, reply="pending")

        with pytest.raises(TransactionError) as exc:
            run(service.start_mint(session))

        assert isinstance(exc.value.cause, InclusionTimeoutError)
        assert service.current_foal(session) is not None

    def test_reverted_receipt(self, service, forge):
        session = session_for(forge, reply="future", receipt={"status": 0, "gasUsed": 30_000})
        with pytest.raises(TransactionError) as exc:
            run(service.start_mint(session))
        assert isinstance(exc.value.cause, ContractRevertError)
        assert service.state(session) is FoalState.PENDING

    def test_failed_read_publishes_none(self, service, forge, fake_w3):
        session = session_for(forge)
        run(service.start_mint(session))
        fake_w3.eth.contract(address=forge.address).reads["getPendingHorse"] = ConnectionError("rpc down")

        assert run(service.refresh(session)) is None
        assert service.current_foal(session) is None

    def test_unconfigured_forge_is_a_configuration_error(self, make_client):
        service = FoalForgeService(make_client(AddressBook()))
        with pytest.raises(ConfigurationError, match="not configured"):
            run(service.refresh(Session(ALICE, CHAIN_ID)))

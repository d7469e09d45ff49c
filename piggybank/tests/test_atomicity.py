"""
Failed operations leave no trace: balances, vault records, treasury and the
event log all look exactly as they did before the call.
"""
from __future__ import annotations

import pytest

from piggybank.clock import ManualClock
from piggybank.config import load_config
from piggybank.errors import InvalidAllowance
from piggybank.events import EV_PIGGY_BANK_WITHDRAWN, InMemoryEventLog
from piggybank.factory import PiggyFactory
from piggybank.state import Journal
from piggybank.tokens import InMemoryToken, TokenRegistry
from piggybank.types import derive_address

UNIT = 10**18
THIRTY_DAYS = 30 * 24 * 60 * 60


def det_address(tag: str) -> str:
    return derive_address("test", tag)


ADMIN = det_address("admin")
ALICE = det_address("alice")


class BrokenFeeToken(InMemoryToken):
    """Refuses any transfer into `blocked`, simulating a token that fails mid-withdrawal."""

    blocked = None

    def transfer(self, caller, to, amount):
        if self.blocked is not None and to == self.blocked:
            raise RuntimeError("transfer rejected")
        return super().transfer(caller, to, amount)


@pytest.fixture
def world():
    j = Journal()
    clock = ManualClock(start=1_700_000_000)
    good = InMemoryToken(j, "Good", "GOOD")
    other = InMemoryToken(j, "Other", "OTH")
    broken = BrokenFeeToken(j, "Broken", "BRK")
    for t in (good, other, broken):
        t.mint(ALICE, 1_000 * UNIT)
    log = InMemoryEventLog()
    f = PiggyFactory(
        j, TokenRegistry(good, other, broken), [good.address, other.address, broken.address],
        owner=ADMIN, clock=clock, events=log, config=load_config(env={}),
    )
    v = f.create_piggy_bank(ALICE, "House", clock.now() + THIRTY_DAYS)
    for t in (good, broken):
        t.approve(ALICE, f.address, 100 * UNIT)
        f.save_piggy_bank(ALICE, v, t.address, 100 * UNIT)
    broken.blocked = f.address
    clock.advance(THIRTY_DAYS)
    return f, v, good, broken, log


def test_failed_fee_transfer_rolls_back_whole_withdrawal(world):
    f, v, good, broken, log = world
    seen = len(log)

    with pytest.raises(RuntimeError):
        f.withdraw_piggy_bank(ALICE, v)

    assert good.balance_of(v) == 100 * UNIT
    assert good.balance_of(ALICE) == 900 * UNIT
    assert broken.balance_of(v) == 100 * UNIT
    assert f.get_factory_balance(good.address) == 0
    assert not f.get_vault(v).withdrawn
    assert len(log) == seen
    assert log.last(EV_PIGGY_BANK_WITHDRAWN) is None


def test_factory_usable_after_rollback(world):
    f, v, good, broken, log = world
    with pytest.raises(RuntimeError):
        f.withdraw_piggy_bank(ALICE, v)

    broken.blocked = None
    splits = f.withdraw_piggy_bank(ALICE, v)
    assert splits[good.address].fee == 15 * UNIT
    assert splits[broken.address].payout == 85 * UNIT
    assert f.get_vault(v).withdrawn
    assert log.last(EV_PIGGY_BANK_WITHDRAWN)["vault"] == v


def test_failed_deposit_keeps_history_and_allowance(world):
    f, v, good, _broken, log = world
    seen = len(log)
    good.approve(ALICE, f.address, 5 * UNIT)

    with pytest.raises(InvalidAllowance):
        f.save_piggy_bank(ALICE, v, good.address, 10 * UNIT)

    assert good.allowance(ALICE, f.address) == 5 * UNIT
    assert len(f.get_savings_history(v)) == 2
    assert len(log) == seen


def test_reentrant_call_is_rejected(world):
    f, v, good, _broken, _log = world

    class Reentrant(InMemoryToken):
        def transfer(self, caller, to, amount):
            f.create_piggy_bank(ALICE, "nested", 2_000_000_000)
            return super().transfer(caller, to, amount)

    sneaky = Reentrant(f._j, "Sneaky", "SNK")
    f._tokens.register(sneaky)
    f.set_supported_tokens(ADMIN, [good.address, sneaky.address, det_address("x")])
    sneaky.mint(ALICE, UNIT)
    sneaky.approve(ALICE, f.address, UNIT)
    f.save_piggy_bank(ALICE, v, sneaky.address, UNIT)

    count = f.vault_count()
    with pytest.raises(RuntimeError, match="re-entrant"):
        f.withdraw_piggy_bank(ALICE, v)
    assert f.vault_count() == count
    assert sneaky.balance_of(v) == UNIT

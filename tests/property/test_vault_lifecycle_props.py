"""
Property tests driving a factory through random deposit sequences.

Each example builds its own world (journal, clock, tokens, factory) so no
state leaks between Hypothesis examples.

Checked properties:
- token supply is conserved across saves and withdrawals;
- the savings history grows by exactly one record per successful deposit;
- ordinary withdrawal never succeeds before the deadline;
- after withdrawal the creator holds the payouts and the treasury holds the fees.
"""
from __future__ import annotations

from typing import List, Tuple

import pytest
from hypothesis import given, strategies as st

from piggybank.clock import ManualClock
from piggybank.config import load_config
from piggybank.errors import DeadlineNotReached, InvalidAllowance, InvalidAmount
from piggybank.factory import PiggyFactory
from piggybank.fees import split_fee
from piggybank.state import Journal
from piggybank.tokens import InMemoryToken, TokenRegistry
from piggybank.types import derive_address

START = 1_700_000_000
FUNDING = 10**24

ADMIN = derive_address("props", "admin")
SAVERS = [derive_address("props", f"saver-{i}") for i in range(3)]
CREATOR = SAVERS[0]


def _world(lock: int):
    j = Journal()
    clock = ManualClock(start=START)
    toks = [InMemoryToken(j, f"Token{i}", f"T{i}") for i in range(3)]
    for t in toks:
        for s in SAVERS:
            t.mint(s, FUNDING)
    f = PiggyFactory(
        j, TokenRegistry(*toks), [t.address for t in toks],
        owner=ADMIN, clock=clock, config=load_config(env={}),
    )
    v = f.create_piggy_bank(CREATOR, "goal", START + lock)
    return f, v, toks, clock


# (saver index, token index, amount, approve exactly / short / not at all)
deposits = st.lists(
    st.tuples(
        st.integers(min_value=0, max_value=len(SAVERS) - 1),
        st.integers(min_value=0, max_value=2),
        st.integers(min_value=0, max_value=10**21),
        st.sampled_from(["exact", "short", "none"]),
    ),
    max_size=12,
)
locks = st.integers(min_value=1, max_value=365 * 24 * 3600)


def _apply(f: PiggyFactory, v: str, toks: List[InMemoryToken], ops) -> List[Tuple[int, int]]:
    """Run deposits, returning (token index, amount) for those that landed."""
    landed = []
    for saver_i, tok_i, amount, approval in ops:
        saver, tok = SAVERS[saver_i], toks[tok_i]
        if approval == "exact":
            tok.approve(saver, f.address, amount)
        elif approval == "short" and amount > 0:
            tok.approve(saver, f.address, amount - 1)
        else:
            tok.approve(saver, f.address, 0)
        try:
            f.save_piggy_bank(saver, v, tok.address, amount)
        except (InvalidAmount, InvalidAllowance):
            continue
        landed.append((tok_i, amount))
    return landed


@given(deposits, locks)
def test_history_counts_successful_deposits(ops, lock):
    f, v, toks, _clock = _world(lock)
    landed = _apply(f, v, toks, ops)
    assert len(f.get_savings_history(v)) == len(landed)
    for i, t in enumerate(toks):
        expected = sum(a for ti, a in landed if ti == i)
        assert f.get_vault_balance(v, t.address) == expected
        assert f.get_vault(v).balance(t.address) == expected


@given(deposits, locks, st.integers(min_value=0, max_value=365 * 24 * 3600))
def test_withdraw_never_before_deadline(ops, lock, elapsed):
    f, v, toks, clock = _world(lock)
    _apply(f, v, toks, ops)
    clock.advance(elapsed)
    if elapsed < lock:
        with pytest.raises(DeadlineNotReached):
            f.withdraw_piggy_bank(CREATOR, v)
        assert not f.get_vault(v).withdrawn
    else:
        f.withdraw_piggy_bank(CREATOR, v)
        assert f.get_vault(v).withdrawn


@given(deposits, locks)
def test_withdraw_conserves_supply_and_routes_fees(ops, lock):
    f, v, toks, clock = _world(lock)
    landed = _apply(f, v, toks, ops)
    before = {t.address: t.balance_of(CREATOR) for t in toks}
    supply = {t.address: t.total_supply() for t in toks}

    clock.advance(lock)
    splits = f.withdraw_piggy_bank(CREATOR, v)

    for i, t in enumerate(toks):
        held = sum(a for ti, a in landed if ti == i)
        s = split_fee(held)
        assert t.total_supply() == supply[t.address]
        assert t.balance_of(v) == 0
        assert t.balance_of(CREATOR) == before[t.address] + s.payout
        assert t.balance_of(f.address) == s.fee
        assert f.get_factory_balance(t.address) == s.fee
        if held:
            assert splits[t.address] == s
        else:
            assert t.address not in splits

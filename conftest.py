"""
Repository-wide pytest fixtures.

Provides a deterministic world for factory tests: a shared journal, a manual
clock, three supported tokens with funded accounts and a stray token the
allow-list does not know about.

Usage (inside a test file):
    def test_flow(factory, accounts, tokens):
        alice = accounts["user1"]
        v = factory.create_piggy_bank(alice, "Vacation Fund", factory_deadline)
"""
from __future__ import annotations

import hashlib
import os
from typing import Dict, List

import pytest

from piggybank.clock import ManualClock
from piggybank.config import load_config
from piggybank.events import InMemoryEventLog
from piggybank.factory import PiggyFactory
from piggybank.state import Journal
from piggybank.tokens import InMemoryToken, TokenRegistry

os.environ.setdefault("PYTHONHASHSEED", "0")
os.environ.setdefault("TZ", "UTC")

UNIT = 10**18
TOTAL_SUPPLY = 10_000_000 * UNIT
USER_FUNDING = 1_000 * UNIT
THIRTY_DAYS = 30 * 24 * 60 * 60


def det_address(tag: str) -> str:
    """Stable 20-byte hex address (0x...) from a tag."""
    return "0x" + hashlib.sha3_256(tag.encode("utf-8")).hexdigest()[:40]


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=1_700_000_000)


@pytest.fixture
def journal() -> Journal:
    return Journal()


@pytest.fixture
def accounts() -> Dict[str, str]:
    return {name: det_address(name) for name in ("deployer", "user1", "user2")}


@pytest.fixture
def tokens(journal: Journal, accounts: Dict[str, str]) -> List[InMemoryToken]:
    out = []
    for name, symbol in (("TokenOne", "ONE"), ("TokenTwo", "TWO"), ("TokenThree", "THREE")):
        t = InMemoryToken(journal, name, symbol)
        t.mint(accounts["deployer"], TOTAL_SUPPLY)
        t.transfer(accounts["deployer"], accounts["user1"], USER_FUNDING)
        out.append(t)
    return out


@pytest.fixture
def stray_token(journal: Journal, accounts: Dict[str, str]) -> InMemoryToken:
    t = InMemoryToken(journal, "EmergencyToken", "EMR")
    t.mint(accounts["deployer"], TOTAL_SUPPLY)
    t.transfer(accounts["deployer"], accounts["user1"], USER_FUNDING)
    return t


@pytest.fixture
def registry(tokens: List[InMemoryToken], stray_token: InMemoryToken) -> TokenRegistry:
    return TokenRegistry(*tokens, stray_token)


@pytest.fixture
def event_log() -> InMemoryEventLog:
    return InMemoryEventLog()


@pytest.fixture
def factory(
    journal: Journal,
    registry: TokenRegistry,
    tokens: List[InMemoryToken],
    accounts: Dict[str, str],
    clock: ManualClock,
    event_log: InMemoryEventLog,
) -> PiggyFactory:
    return PiggyFactory(
        journal,
        registry,
        [t.address for t in tokens],
        owner=accounts["deployer"],
        clock=clock,
        events=event_log,
        config=load_config(env={}),
    )


@pytest.fixture
def vault(factory: PiggyFactory, accounts: Dict[str, str], clock: ManualClock) -> str:
    """A fresh 'Vacation Fund' vault owned by user1, maturing in 30 days."""
    return factory.create_piggy_bank(accounts["user1"], "Vacation Fund", clock.now() + THIRTY_DAYS)

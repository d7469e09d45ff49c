"""
piggybank.vault — one savings goal and its lifecycle.

States
------
    OPEN ──(clock reaches deadline)──▶ MATURED ──(withdraw)──▶ SETTLED

OPEN and MATURED are derived from the clock at call time; SETTLED is stored
(`withdrawn=True`). Emergency rescue of non-supported tokens is orthogonal and
allowed in every state; it never sets `withdrawn`.

A `Vault` is an immutable record. Transitions are pure functions that validate
and return a new record; the factory persists the result in its journal and
performs the token movements. Nothing here touches tokens or the clock.

Balances
--------
`balances` tracks what was credited through deposits, per token. The token
collaborator remains the authority for what the vault address actually holds
(tokens can be sent to a vault directly); withdrawal and rescue move that
actual balance and zero the tracked entry.
The mapping is read-only; only the transitions below produce a new one.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, Mapping, Tuple

from .errors import (DeadlineNotReached, InvalidAmount, InvalidDeadline,
                     InvalidPurpose, Unauthorized)
from .types import DepositRecord, VaultDetails, VaultStatus, to_address


@dataclass(frozen=True)
class Vault:
    address: str
    creator: str
    purpose: str
    deadline: int
    created_at: int
    balances: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    history: Tuple[DepositRecord, ...] = ()
    withdrawn: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.balances, MappingProxyType):
            object.__setattr__(self, "balances", MappingProxyType(dict(self.balances)))

    def balance(self, token: str) -> int:
        return self.balances.get(token, 0)

    def status(self, now: int) -> VaultStatus:
        if self.withdrawn:
            return VaultStatus.SETTLED
        return VaultStatus.MATURED if now >= self.deadline else VaultStatus.OPEN

    def details(self) -> VaultDetails:
        return VaultDetails(
            vault=self.address,
            creator=self.creator,
            purpose=self.purpose,
            deadline=self.deadline,
            created_at=self.created_at,
            withdrawn=self.withdrawn,
        )


def create_vault(
    address: str,
    creator: str,
    purpose: str,
    deadline: int,
    *,
    now: int,
    max_purpose_len: int = 0,
) -> Vault:
    if not isinstance(purpose, str) or purpose == "":
        raise InvalidPurpose()
    if max_purpose_len and len(purpose) > max_purpose_len:
        raise InvalidPurpose(f"purpose longer than {max_purpose_len} characters", length=len(purpose))
    if not isinstance(deadline, int) or isinstance(deadline, bool) or deadline <= now:
        raise InvalidDeadline(deadline=deadline if isinstance(deadline, int) else None, now=now)
    return Vault(
        address=to_address(address),
        creator=to_address(creator),
        purpose=purpose,
        deadline=deadline,
        created_at=now,
    )


def record_deposit(vault: Vault, token: str, amount: int, payer: str, *, now: int) -> Vault:
    """Credit `amount` of `token` and append a history entry. Repeated deposits accumulate."""
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InvalidAmount(amount=amount if isinstance(amount, int) else None)
    balances = dict(vault.balances)
    balances[token] = balances.get(token, 0) + amount
    entry = DepositRecord(token=token, amount=amount, timestamp=now, payer=payer)
    return replace(vault, balances=MappingProxyType(balances), history=vault.history + (entry,))


def require_creator(vault: Vault, caller: str) -> None:
    if to_address(caller) != vault.creator:
        raise Unauthorized(caller=to_address(caller), vault=vault.address)


def require_matured(vault: Vault, now: int) -> None:
    if now < vault.deadline:
        raise DeadlineNotReached(deadline=vault.deadline, now=now)


def clear_balances(vault: Vault, tokens: Iterable[str]) -> Vault:
    balances = dict(vault.balances)
    for t in tokens:
        balances.pop(t, None)
    return replace(vault, balances=MappingProxyType(balances))


def settle(vault: Vault, supported: Iterable[str]) -> Vault:
    """Zero the tracked supported-token balances and mark the vault SETTLED."""
    return replace(clear_balances(vault, supported), withdrawn=True)


__all__ = [
    "Vault",
    "create_vault",
    "record_deposit",
    "require_creator",
    "require_matured",
    "clear_balances",
    "settle",
]

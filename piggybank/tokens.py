"""
piggybank.tokens — the fungible-token capability consumed by the factory.

The factory treats tokens as black boxes addressed by identity. Anything
implementing `Token` is a valid collaborator:

    balance_of(holder) -> int
    allowance(owner, spender) -> int
    approve(caller, spender, amount) -> bool
    transfer(caller, to, amount) -> bool
    transfer_from(caller, owner, to, amount) -> bool

Mutating calls take the acting identity explicitly (no ambient sender).
Failures raise `InsufficientBalance`, `InvalidAllowance`, `InvalidAmount` or
`InvalidAddress`; they never return False.

`InMemoryToken` is the reference implementation. Its balances and allowances
live in a shared `Journal`, so a failing factory operation rolls back token
movements together with vault bookkeeping.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, Optional, Protocol, runtime_checkable

from .errors import (InsufficientBalance, InvalidAddress, InvalidAllowance,
                     InvalidAmount)
from .state import Journal
from .types import (ZERO_ADDRESS, AddressLike, derive_address,
                    require_nonzero_address, to_address)

log = logging.getLogger(__name__)

U256_MAX = (1 << 256) - 1


@runtime_checkable
class Token(Protocol):
    address: str

    def balance_of(self, holder: AddressLike) -> int: ...

    def allowance(self, owner: AddressLike, spender: AddressLike) -> int: ...

    def approve(self, caller: AddressLike, spender: AddressLike, amount: int) -> bool: ...

    def transfer(self, caller: AddressLike, to: AddressLike, amount: int) -> bool: ...

    def transfer_from(self, caller: AddressLike, owner: AddressLike, to: AddressLike, amount: int) -> bool: ...


def _require_amount(amount: int) -> int:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0 or amount > U256_MAX:
        raise InvalidAmount("amount must be a u256 integer", amount=amount if isinstance(amount, int) else None)
    return amount


class InMemoryToken:
    """
    ERC-20-like token backed by a `Journal`.

    Storage layout (journal keys):
        ("tok", address, "bal", holder)            -> int
        ("tok", address, "allow", owner, spender)  -> int
        ("tok", address, "supply")                 -> int
    """

    def __init__(
        self,
        journal: Journal,
        name: str,
        symbol: str,
        *,
        decimals: int = 18,
        address: Optional[AddressLike] = None,
    ) -> None:
        if not name or not symbol:
            raise ValueError("token name and symbol must be non-empty")
        self._j = journal
        self.name = name
        self.symbol = symbol.upper()
        self.decimals = int(decimals)
        self.address = (
            require_nonzero_address(address, what="token")
            if address is not None
            else derive_address("token", name, self.symbol)
        )

    def __repr__(self) -> str:  # pragma: no cover - debug aid
        return f"InMemoryToken({self.symbol} @ {self.address})"

    # -- keys -----------------------------------------------------------------

    def _k_bal(self, holder: str):
        return ("tok", self.address, "bal", holder)

    def _k_allow(self, owner: str, spender: str):
        return ("tok", self.address, "allow", owner, spender)

    # -- views ----------------------------------------------------------------

    def total_supply(self) -> int:
        return self._j.get(("tok", self.address, "supply"), 0)

    def balance_of(self, holder: AddressLike) -> int:
        return self._j.get(self._k_bal(to_address(holder)), 0)

    def allowance(self, owner: AddressLike, spender: AddressLike) -> int:
        return self._j.get(self._k_allow(to_address(owner), to_address(spender)), 0)

    # -- mutations ------------------------------------------------------------

    def mint(self, to: AddressLike, amount: int) -> None:
        to_a = require_nonzero_address(to, what="recipient")
        _require_amount(amount)
        with self._j.atomic():
            self._j.set(("tok", self.address, "supply"), self.total_supply() + amount)
            self._j.set(self._k_bal(to_a), self.balance_of(to_a) + amount)
        log.debug("mint %s %d -> %s", self.symbol, amount, to_a)

    def approve(self, caller: AddressLike, spender: AddressLike, amount: int) -> bool:
        owner = require_nonzero_address(caller, what="owner")
        spender_a = require_nonzero_address(spender, what="spender")
        _require_amount(amount)
        self._j.set(self._k_allow(owner, spender_a), amount)
        return True

    def transfer(self, caller: AddressLike, to: AddressLike, amount: int) -> bool:
        self._move(to_address(caller), require_nonzero_address(to, what="recipient"), _require_amount(amount))
        return True

    def transfer_from(self, caller: AddressLike, owner: AddressLike, to: AddressLike, amount: int) -> bool:
        spender = to_address(caller)
        owner_a = to_address(owner)
        to_a = require_nonzero_address(to, what="recipient")
        _require_amount(amount)
        current = self.allowance(owner_a, spender)
        if current < amount:
            raise InvalidAllowance(owner=owner_a, spender=spender, needed=amount, allowance=current)
        with self._j.atomic():
            self._move(owner_a, to_a, amount)
            self._j.set(self._k_allow(owner_a, spender), current - amount)
        return True

    def _move(self, frm: str, to: str, amount: int) -> None:
        bal = self.balance_of(frm)
        if bal < amount:
            raise InsufficientBalance(holder=frm, needed=amount, balance=bal)
        if frm == to or amount == 0:
            return
        with self._j.atomic():
            self._j.set(self._k_bal(frm), bal - amount)
            self._j.set(self._k_bal(to), self.balance_of(to) + amount)


class TokenRegistry:
    """
    Resolves token identities to capabilities. The factory never talks to a
    token it cannot resolve.
    """

    def __init__(self, *tokens: Token) -> None:
        self._tokens: Dict[str, Token] = {}
        for t in tokens:
            self.register(t)

    def register(self, token: Token) -> str:
        addr = to_address(token.address)
        if addr == ZERO_ADDRESS:
            raise InvalidAddress("token must not be the zero address", address=addr, reason="zero")
        prev = self._tokens.get(addr)
        if prev is not None and prev is not token:
            raise ValueError(f"token address already registered: {addr}")
        self._tokens[addr] = token
        return addr

    def get(self, address: AddressLike) -> Optional[Token]:
        return self._tokens.get(to_address(address))

    def resolve(self, address: AddressLike) -> Token:
        addr = require_nonzero_address(address, what="token")
        tok = self._tokens.get(addr)
        if tok is None:
            raise InvalidAddress("unknown token", address=addr, reason="unregistered")
        return tok

    def __contains__(self, address: object) -> bool:
        try:
            return to_address(address) in self._tokens  # type: ignore[arg-type]
        except InvalidAddress:
            return False

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._tokens))

    def __len__(self) -> int:
        return len(self._tokens)


__all__ = ["Token", "InMemoryToken", "TokenRegistry", "U256_MAX"]

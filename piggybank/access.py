"""
piggybank.access — owner-only gating for administrative operations.

Minimal Ownable: a single owner identity stored in the journal, checked by
`require_owner`, transferable with `transfer_ownership` and droppable with
`renounce_ownership`. After renouncing, every owner-only call fails.

Events:
    "OwnershipTransferred" {"previous": str, "new": str}
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from .errors import InvalidAddress, OwnableUnauthorizedAccount
from .state import Journal
from .types import ZERO_ADDRESS, AddressLike, to_address
from .events import EV_OWNERSHIP_TRANSFERRED

Emit = Callable[[str, Mapping[str, Any]], None]


class Ownable:
    def __init__(self, journal: Journal, namespace: str, emit: Emit) -> None:
        self._j = journal
        self._key = ("own", namespace, "owner")
        self._emit = emit

    def init_owner(self, owner: AddressLike) -> None:
        """Set the first owner. Idempotent: never overwrites an existing owner."""
        if self._j.get(self._key) is None:
            self._j.set(self._key, to_address(owner))

    @property
    def owner(self) -> Optional[str]:
        v = self._j.get(self._key)
        return None if v in (None, ZERO_ADDRESS) else v

    def require_owner(self, caller: AddressLike) -> str:
        c = to_address(caller)
        if self.owner is None or self.owner != c:
            raise OwnableUnauthorizedAccount(c)
        return c

    def transfer_ownership(self, caller: AddressLike, new_owner: AddressLike) -> None:
        self.require_owner(caller)
        new = to_address(new_owner)
        if new == ZERO_ADDRESS:
            raise InvalidAddress("new owner must not be the zero address", address=new, reason="zero")
        previous = self.owner or ZERO_ADDRESS
        self._j.set(self._key, new)
        self._emit(EV_OWNERSHIP_TRANSFERRED, {"previous": previous, "new": new})

    def renounce_ownership(self, caller: AddressLike) -> None:
        self.require_owner(caller)
        previous = self.owner or ZERO_ADDRESS
        self._j.set(self._key, ZERO_ADDRESS)
        self._emit(EV_OWNERSHIP_TRANSFERRED, {"previous": previous, "new": ZERO_ADDRESS})


__all__ = ["Ownable"]

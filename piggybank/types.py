"""
piggybank.types — identities and immutable records shared across the package.

Addresses
---------
Every identity (account, token, vault, factory) is a 20-byte address rendered
as lowercase, 0x-prefixed hex. `to_address()` is the single normalization
point; it accepts hex strings (any case, with or without 0x) or raw bytes.
The all-zero address is the null identity and is rejected wherever an
operation needs a real counterparty.

Vault and factory addresses are derived deterministically with SHA3-256, so
the same sequence of operations always yields the same identities.
"""

from __future__ import annotations

import enum
import hashlib
from dataclasses import asdict, dataclass
from typing import Any, Dict, Union

from .errors import InvalidAddress

AddressLike = Union[str, bytes, bytearray, memoryview]

ADDRESS_BYTES = 20
ZERO_ADDRESS = "0x" + "00" * ADDRESS_BYTES


def to_address(value: AddressLike) -> str:
    """
    Normalize an address to canonical form. Raises InvalidAddress on malformed input.
    The zero address is well-formed; callers decide whether they accept it.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
    elif isinstance(value, str):
        s = value.strip()
        if s.startswith(("0x", "0X")):
            s = s[2:]
        try:
            raw = bytes.fromhex(s)
        except ValueError:
            raise InvalidAddress("malformed address", address=str(value), reason="not hex") from None
    else:
        raise InvalidAddress("malformed address", address=repr(value), reason="unsupported type")
    if len(raw) != ADDRESS_BYTES:
        raise InvalidAddress("malformed address", address=str(value), reason=f"expected {ADDRESS_BYTES} bytes")
    return "0x" + raw.hex()


def is_zero_address(value: AddressLike) -> bool:
    return to_address(value) == ZERO_ADDRESS


def require_nonzero_address(value: AddressLike, *, what: str = "address") -> str:
    """Normalize and reject the null identity."""
    addr = to_address(value)
    if addr == ZERO_ADDRESS:
        raise InvalidAddress(f"{what} must not be the zero address", address=addr, reason="zero")
    return addr


def derive_address(*parts: Union[str, bytes, int]) -> str:
    """
    Deterministic address from labelled parts: last 20 bytes of
    sha3_256(b"piggybank|" + part_0 + b"|" + part_1 ...). Ints are 32-byte big-endian.
    """
    h = hashlib.sha3_256(b"piggybank")
    for p in parts:
        h.update(b"|")
        if isinstance(p, int):
            h.update(p.to_bytes(32, "big"))
        elif isinstance(p, str):
            h.update(p.encode("utf-8"))
        else:
            h.update(bytes(p))
    return "0x" + h.digest()[-ADDRESS_BYTES:].hex()


# ------------------------------------------------------------------------------
# Records
# ------------------------------------------------------------------------------


class VaultStatus(str, enum.Enum):
    """Lifecycle state. `OPEN` and `MATURED` are derived from the clock; `SETTLED` is stored."""

    OPEN = "open"
    MATURED = "matured"
    SETTLED = "settled"


@dataclass(frozen=True)
class DepositRecord:
    """One successful `save` into a vault."""

    token: str
    amount: int
    timestamp: int
    payer: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VaultDetails:
    """Read-only projection of a vault returned by the factory's creator index."""

    vault: str
    creator: str
    purpose: str
    deadline: int
    created_at: int
    withdrawn: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "AddressLike",
    "ADDRESS_BYTES",
    "ZERO_ADDRESS",
    "to_address",
    "is_zero_address",
    "require_nonzero_address",
    "derive_address",
    "VaultStatus",
    "DepositRecord",
    "VaultDetails",
]

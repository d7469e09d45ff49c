"""
piggybank.errors — typed exceptions for vault and factory operations.

Every failure of a public operation surfaces as a subclass of `VaultError`.
The factory reverts the enclosing journal checkpoint before the exception
reaches the caller, so a raised error always means "no state changed".

Hierarchy
---------
VaultError (base)
 ├─ InvalidPurpose              : empty (or over-long) goal description
 ├─ InvalidDeadline             : deadline not strictly in the future
 ├─ InvalidAddress              : zero/unknown identity, or a supported token passed to rescue
 │   └─ InvalidTokenSet         : allow-list of the wrong size, with duplicates or zero entries
 ├─ InvalidAmount               : zero or negative amount
 ├─ InvalidAllowance            : payer granted the spender less than the amount
 ├─ InsufficientBalance         : holder owns less than the amount
 ├─ Unauthorized                : caller is not the vault creator
 ├─ DeadlineNotReached          : ordinary withdrawal before maturity
 ├─ OwnableUnauthorizedAccount  : non-owner attempted an admin operation
 └─ InsufficientTreasury        : owner requested more than the accumulated fees

`code` strings are stable and safe to match on in logs and tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence


@dataclass
class VaultError(Exception):
    """
    Base error.

    Attributes:
        message: Human-readable explanation.
        code:    Stable machine code string (e.g., 'INVALID_ADDRESS').
        data:    Optional structured details (kept JSON-serializable).
    """
    message: str = "vault error"
    code: str = "VAULT_ERROR"
    data: Optional[Dict[str, Any]] = field(default=None)

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.data:
            return f"{self.code}: {self.message} ({self.data})"
        return f"{self.code}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe dict for event logs and API layers."""
        out: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


def _details(**kw: Any) -> Optional[Dict[str, Any]]:
    d = {k: v for k, v in kw.items() if v is not None}
    return d or None


class InvalidPurpose(VaultError):
    def __init__(self, message: str = "purpose must not be empty", *, length: Optional[int] = None):
        super().__init__(message=message, code="INVALID_PURPOSE", data=_details(length=length))


class InvalidDeadline(VaultError):
    def __init__(self, message: str = "deadline must be in the future", *, deadline: Optional[int] = None, now: Optional[int] = None):
        super().__init__(message=message, code="INVALID_DEADLINE", data=_details(deadline=deadline, now=now))


class InvalidAddress(VaultError):
    """
    Zero identity, an identity nobody registered, or a token the operation
    refuses (e.g. a supported token passed to emergency rescue).
    """
    def __init__(self, message: str = "invalid address", *, address: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(message=message, code="INVALID_ADDRESS", data=_details(address=address, reason=reason))


class InvalidTokenSet(InvalidAddress):
    def __init__(self, message: str = "invalid supported token set", *, tokens: Optional[Sequence[str]] = None, reason: Optional[str] = None):
        super().__init__(message=message, reason=reason)
        if tokens is not None:
            self.data = dict(self.data or {}, tokens=list(tokens))


class InvalidAmount(VaultError):
    def __init__(self, message: str = "amount must be positive", *, amount: Optional[int] = None):
        super().__init__(message=message, code="INVALID_AMOUNT", data=_details(amount=amount))


class InvalidAllowance(VaultError):
    def __init__(
        self,
        message: str = "insufficient allowance",
        *,
        owner: Optional[str] = None,
        spender: Optional[str] = None,
        needed: Optional[int] = None,
        allowance: Optional[int] = None,
    ):
        super().__init__(
            message=message,
            code="INVALID_ALLOWANCE",
            data=_details(owner=owner, spender=spender, needed=needed, allowance=allowance),
        )


class InsufficientBalance(VaultError):
    def __init__(
        self,
        message: str = "insufficient balance",
        *,
        holder: Optional[str] = None,
        needed: Optional[int] = None,
        balance: Optional[int] = None,
    ):
        super().__init__(
            message=message,
            code="INSUFFICIENT_BALANCE",
            data=_details(holder=holder, needed=needed, balance=balance),
        )


class Unauthorized(VaultError):
    def __init__(self, message: str = "caller is not the vault creator", *, caller: Optional[str] = None, vault: Optional[str] = None):
        super().__init__(message=message, code="UNAUTHORIZED", data=_details(caller=caller, vault=vault))


class DeadlineNotReached(VaultError):
    def __init__(self, message: str = "deadline not reached", *, deadline: Optional[int] = None, now: Optional[int] = None):
        super().__init__(message=message, code="DEADLINE_NOT_REACHED", data=_details(deadline=deadline, now=now))


class OwnableUnauthorizedAccount(VaultError):
    """Non-owner attempted an owner-only operation. `account` is the offending caller."""

    def __init__(self, account: Optional[str] = None, message: str = "caller is not the owner"):
        super().__init__(message=message, code="OWNABLE_UNAUTHORIZED_ACCOUNT", data=_details(account=account))
        self.account = account


class InsufficientTreasury(VaultError):
    def __init__(
        self,
        message: str = "amount exceeds accumulated fees",
        *,
        token: Optional[str] = None,
        requested: Optional[int] = None,
        available: Optional[int] = None,
    ):
        super().__init__(
            message=message,
            code="INSUFFICIENT_TREASURY",
            data=_details(token=token, requested=requested, available=available),
        )


def error_to_record(err: VaultError) -> Dict[str, Any]:
    """
    Map a VaultError to canonical result fields:

        {"status": "REVERT", "error": {code, message, data?}}
    """
    return {"status": "REVERT", "error": err.to_dict()}


__all__ = [
    "VaultError",
    "InvalidPurpose",
    "InvalidDeadline",
    "InvalidAddress",
    "InvalidTokenSet",
    "InvalidAmount",
    "InvalidAllowance",
    "InsufficientBalance",
    "Unauthorized",
    "DeadlineNotReached",
    "OwnableUnauthorizedAccount",
    "InsufficientTreasury",
    "error_to_record",
]

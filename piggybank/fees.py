"""
piggybank.fees — withdrawal fee split.

    fee    = balance * fee_bps // 10_000     (floor)
    payout = balance - fee

The payout is derived from the fee, never computed independently, so
`payout + fee == balance` for every balance and no unit is lost or created.
With the default 1500 bps this is exactly `balance * 15 // 100`.
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import BPS_DENOM
from .errors import InvalidAmount


@dataclass(frozen=True)
class FeeSplit:
    balance: int
    fee: int
    payout: int


def split_fee(balance: int, fee_bps: int = 1500) -> FeeSplit:
    if balance < 0:
        raise InvalidAmount("balance must be non-negative", amount=balance)
    if not (0 <= fee_bps <= BPS_DENOM):
        raise ValueError(f"fee_bps must be in [0,{BPS_DENOM}]")
    fee = balance * fee_bps // BPS_DENOM
    return FeeSplit(balance=balance, fee=fee, payout=balance - fee)


__all__ = ["FeeSplit", "split_fee"]

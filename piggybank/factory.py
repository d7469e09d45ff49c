"""
piggybank.factory — vault registry, dispatch, fee treasury and administration.

`PiggyFactory` is the single entry point callers use. It:

- mints one `Vault` per goal and indexes vaults by creator (creation order);
- relays save / withdraw / rescue requests by vault identity;
- owns the supported-token allow-list and the per-token fee treasury;
- gates allow-list changes and treasury withdrawals behind `Ownable`.

Atomicity
---------
Every public mutating call is one transition: it runs inside a journal
checkpoint and either commits completely or reverts completely. Token
collaborators that share the factory's `Journal` (e.g. `InMemoryToken`) roll
back with it. Events are buffered during the transition and appended to the
event log only after commit, so observers never see a reverted operation.

Callers pass their identity explicitly (`caller=`); time comes from the
injected clock and is read once per transition.

Example
-------
    j = Journal()
    usdt, usdc, dai = (InMemoryToken(j, n, n) for n in ("USDT", "USDC", "DAI"))
    f = PiggyFactory(j, TokenRegistry(usdt, usdc, dai),
                     [usdt.address, usdc.address, dai.address], owner=admin)
    v = f.create_piggy_bank(alice, "Vacation Fund", clock.now() + 30 * 86400)
    usdt.approve(alice, f.address, 100)
    f.save_piggy_bank(alice, v, usdt.address, 100)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import (Any, Dict, Iterator, List, Mapping, Optional, Sequence,
                    Tuple)

from .access import Ownable
from .clock import Clock, SystemClock
from .config import FactoryConfig, get_config
from .errors import (InsufficientTreasury, InvalidAddress, InvalidAllowance,
                     InvalidAmount, InvalidTokenSet, VaultError)
from .events import (EV_EMERGENCY_WITHDRAWAL, EV_FACTORY_BALANCE_WITHDRAWN,
                     EV_PIGGY_BANK_CREATED, EV_PIGGY_BANK_WITHDRAWN,
                     EV_SAVING_ADDED, EV_SUPPORTED_TOKENS_UPDATED, EventLog,
                     InMemoryEventLog)
from .fees import FeeSplit, split_fee
from .state import Journal
from .tokens import TokenRegistry
from .types import (ZERO_ADDRESS, AddressLike, DepositRecord, VaultDetails,
                    VaultStatus, derive_address, require_nonzero_address,
                    to_address)
from .vault import (Vault, clear_balances, create_vault, record_deposit,
                    require_creator, require_matured, settle)
from .version import __version__

log = logging.getLogger(__name__)


class PiggyFactory:
    def __init__(
        self,
        journal: Journal,
        tokens: TokenRegistry,
        supported_tokens: Optional[Sequence[AddressLike]] = None,
        *,
        owner: AddressLike,
        clock: Optional[Clock] = None,
        events: Optional[EventLog] = None,
        config: Optional[FactoryConfig] = None,
        address: Optional[AddressLike] = None,
    ) -> None:
        self._j = journal
        self._tokens = tokens
        self._clock: Clock = clock or SystemClock()
        self._events: EventLog = events if events is not None else InMemoryEventLog()
        self._cfg = config or get_config()
        self._pending: Optional[List[Tuple[str, Dict[str, Any]]]] = None

        owner_a = require_nonzero_address(owner, what="owner")
        initial = self._cfg.default_tokens if supported_tokens is None else supported_tokens
        with self._j.atomic():
            if address is None:
                n = self._j.get(("pf-deployments",), 0)
                self._j.set(("pf-deployments",), n + 1)
                address = derive_address("factory", owner_a, n)
            self.address = require_nonzero_address(address, what="factory")
            self._ns = ("pf", self.address)
            self._ownable = Ownable(journal, self.address, self._emit)
            self._ownable.init_owner(owner_a)
            self._j.set(self._k("supported"), self._validate_token_set(initial))
        log.info(
            "factory %s deployed version=%s owner=%s supported=%s fee=%dbps",
            self.address, __version__, owner_a, list(self.get_supported_tokens()), self._cfg.fees.fee_bps,
        )

    # ------------------------------------------------------------------ #
    # Transition plumbing
    # ------------------------------------------------------------------ #

    @contextmanager
    def _transition(self, op: str) -> Iterator[None]:
        if self._pending is not None:
            raise RuntimeError(f"{op}: re-entrant factory call")
        self._pending = []
        try:
            with self._j.atomic():
                yield
        except VaultError as e:
            log.debug("%s reverted: %s", op, e.to_dict())
            raise
        else:
            for name, fields in self._pending:
                self._events.append(name, fields)
        finally:
            self._pending = None

    def _emit(self, name: str, fields: Mapping[str, Any]) -> None:
        if self._pending is None:
            raise RuntimeError(f"event {name} emitted outside a transition")
        self._pending.append((name, dict(fields)))

    def _k(self, *parts: Any) -> Tuple[Any, ...]:
        return self._ns + parts

    def _load_vault(self, vault: AddressLike) -> Vault:
        addr = require_nonzero_address(vault, what="vault")
        v = self._j.get(self._k("vault", addr))
        if v is None:
            raise InvalidAddress("unknown vault", address=addr, reason="unregistered")
        return v

    def _store_vault(self, v: Vault) -> None:
        self._j.set(self._k("vault", v.address), v)

    def _validate_token_set(self, tokens: Sequence[AddressLike]) -> Tuple[str, ...]:
        want = self._cfg.limits.supported_token_count
        try:
            normalized = tuple(to_address(t) for t in tokens)
        except TypeError:
            raise InvalidTokenSet("supported tokens must be a sequence", reason="type") from None
        if len(normalized) != want:
            raise InvalidTokenSet(f"exactly {want} supported tokens required", tokens=normalized, reason="size")
        if ZERO_ADDRESS in normalized:
            raise InvalidTokenSet("supported tokens must not include the zero address", tokens=normalized, reason="zero")
        if len(set(normalized)) != len(normalized):
            raise InvalidTokenSet("supported tokens must be distinct", tokens=normalized, reason="duplicate")
        return normalized

    # ------------------------------------------------------------------ #
    # Vault lifecycle
    # ------------------------------------------------------------------ #

    def create_piggy_bank(self, caller: AddressLike, purpose: str, deadline: int) -> str:
        """Create a vault owned by `caller`. Returns the new vault address."""
        creator = require_nonzero_address(caller, what="creator")
        now = self._clock.now()
        with self._transition("create_piggy_bank"):
            nonce = self._j.get(self._k("nonce"), 0)
            addr = derive_address("vault", self.address, creator, nonce)
            v = create_vault(
                addr, creator, purpose, deadline,
                now=now, max_purpose_len=self._cfg.limits.max_purpose_len,
            )
            self._store_vault(v)
            self._j.set(self._k("nonce"), nonce + 1)
            index = self._j.get(self._k("by_creator", creator), ())
            self._j.set(self._k("by_creator", creator), index + (addr,))
            self._emit(EV_PIGGY_BANK_CREATED, {
                "creator": creator, "vault": addr, "purpose": purpose, "deadline": deadline,
            })
        log.info("vault created vault=%s creator=%s deadline=%d", addr, creator, deadline)
        return addr

    def save_piggy_bank(self, caller: AddressLike, vault: AddressLike, token: AddressLike, amount: int) -> None:
        """
        Pull `amount` of `token` from `caller` into `vault`. The caller must have
        approved the factory for at least `amount` beforehand. Anyone may save
        into any vault, at any time.
        """
        now = self._clock.now()
        with self._transition("save_piggy_bank"):
            payer = require_nonzero_address(caller, what="payer")
            v = self._load_vault(vault)
            tok = require_nonzero_address(token, what="token")
            cap = self._tokens.resolve(tok)
            v = record_deposit(v, tok, amount, payer, now=now)
            granted = cap.allowance(payer, self.address)
            if granted < amount:
                raise InvalidAllowance(owner=payer, spender=self.address, needed=amount, allowance=granted)
            cap.transfer_from(self.address, payer, v.address, amount)
            self._store_vault(v)
            self._emit(EV_SAVING_ADDED, {"payer": payer, "vault": v.address, "token": tok, "amount": amount})
        log.info("saving added vault=%s token=%s amount=%d payer=%s", v.address, tok, amount, payer)

    def withdraw_piggy_bank(self, caller: AddressLike, vault: AddressLike) -> Dict[str, FeeSplit]:
        """
        Creator-only, after the deadline. For every currently supported token the
        vault holds, pay `balance - fee` to the creator and `fee` to the treasury.
        Returns the split applied per token (empty when nothing was held).
        """
        now = self._clock.now()
        splits: Dict[str, FeeSplit] = {}
        with self._transition("withdraw_piggy_bank"):
            v = self._load_vault(vault)
            require_creator(v, to_address(caller))
            require_matured(v, now)
            supported = self.get_supported_tokens()
            for tok in supported:
                cap = self._tokens.get(tok)
                if cap is None:
                    # nothing can have been deposited in an unresolvable token
                    continue
                held = cap.balance_of(v.address)
                if held == 0:
                    continue
                s = split_fee(held, self._cfg.fees.fee_bps)
                if s.payout:
                    cap.transfer(v.address, v.creator, s.payout)
                if s.fee:
                    cap.transfer(v.address, self.address, s.fee)
                    key = self._k("treasury", tok)
                    self._j.set(key, self._j.get(key, 0) + s.fee)
                splits[tok] = s
            self._store_vault(settle(v, supported))
            self._emit(EV_PIGGY_BANK_WITHDRAWN, {"creator": v.creator, "vault": v.address})
        log.info(
            "vault withdrawn vault=%s creator=%s tokens=%d fees=%s",
            v.address, v.creator, len(splits), {t: s.fee for t, s in splits.items()},
        )
        return splits

    def emergency_withdraw_piggy_bank(
        self, caller: AddressLike, vault: AddressLike, tokens: Sequence[AddressLike]
    ) -> Dict[str, int]:
        """
        Creator-only, any time. Return the full balance of each listed token to
        the creator, without fee. Every listed token must be outside the current
        allow-list. Tokens with nothing held are skipped. Returns amounts moved.
        """
        rescued: Dict[str, int] = {}
        with self._transition("emergency_withdraw_piggy_bank"):
            v = self._load_vault(vault)
            require_creator(v, to_address(caller))
            listed = [require_nonzero_address(t, what="token") for t in tokens]
            limit = self._cfg.limits.max_rescue_tokens
            if limit and len(listed) > limit:
                raise InvalidTokenSet(f"at most {limit} tokens per rescue", reason="size")
            supported = set(self.get_supported_tokens())
            for tok in listed:
                if tok in supported:
                    raise InvalidAddress("supported tokens cannot be rescued", address=tok, reason="supported")
            for tok in listed:
                cap = self._tokens.resolve(tok)
                held = cap.balance_of(v.address)
                if held == 0:
                    continue
                cap.transfer(v.address, v.creator, held)
                rescued[tok] = rescued.get(tok, 0) + held
            self._store_vault(clear_balances(v, listed))
            self._emit(EV_EMERGENCY_WITHDRAWAL, {"creator": v.creator, "vault": v.address, "tokens": listed})
        log.info("emergency withdrawal vault=%s creator=%s rescued=%s", v.address, v.creator, rescued)
        return rescued

    # ------------------------------------------------------------------ #
    # Administration
    # ------------------------------------------------------------------ #

    @property
    def owner(self) -> Optional[str]:
        return self._ownable.owner

    def set_supported_tokens(self, caller: AddressLike, tokens: Sequence[AddressLike]) -> None:
        """Owner-only: replace the allow-list. Vault balances are untouched."""
        with self._transition("set_supported_tokens"):
            self._ownable.require_owner(caller)
            normalized = self._validate_token_set(tokens)
            self._j.set(self._k("supported"), normalized)
            self._emit(EV_SUPPORTED_TOKENS_UPDATED, {"tokens": list(normalized)})
        log.info("supported tokens updated tokens=%s", list(normalized))

    def withdraw_factory_balance(
        self, caller: AddressLike, token: AddressLike, receiver: AddressLike, amount: int
    ) -> None:
        """Owner-only: send `amount` of accumulated fees in `token` to `receiver`."""
        with self._transition("withdraw_factory_balance"):
            self._ownable.require_owner(caller)
            tok = require_nonzero_address(token, what="token")
            recv = require_nonzero_address(receiver, what="receiver")
            if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
                raise InvalidAmount(amount=amount if isinstance(amount, int) else None)
            key = self._k("treasury", tok)
            available = self._j.get(key, 0)
            if amount > available:
                raise InsufficientTreasury(token=tok, requested=amount, available=available)
            self._j.set(key, available - amount)
            self._tokens.resolve(tok).transfer(self.address, recv, amount)
            self._emit(EV_FACTORY_BALANCE_WITHDRAWN, {"token": tok, "receiver": recv, "amount": amount})
        log.info("factory balance withdrawn token=%s receiver=%s amount=%d", tok, recv, amount)

    def transfer_ownership(self, caller: AddressLike, new_owner: AddressLike) -> None:
        with self._transition("transfer_ownership"):
            self._ownable.transfer_ownership(caller, new_owner)
        log.info("ownership transferred to %s", self.owner)

    def renounce_ownership(self, caller: AddressLike) -> None:
        with self._transition("renounce_ownership"):
            self._ownable.renounce_ownership(caller)
        log.warning("factory %s ownership renounced", self.address)

    # ------------------------------------------------------------------ #
    # Read accessors (never fail for unknown creators/tokens)
    # ------------------------------------------------------------------ #

    def get_supported_tokens(self) -> Tuple[str, ...]:
        return self._j.get(self._k("supported"), ())

    def is_supported(self, token: AddressLike) -> bool:
        return to_address(token) in self.get_supported_tokens()

    def get_piggy_bank_details(self, creator: AddressLike) -> List[VaultDetails]:
        index = self._j.get(self._k("by_creator", to_address(creator)), ())
        return [self._j.get(self._k("vault", a)).details() for a in index]

    def get_savings_history(self, vault: AddressLike) -> List[DepositRecord]:
        v = self._j.get(self._k("vault", to_address(vault)))
        return list(v.history) if v is not None else []

    def get_factory_balance(self, token: AddressLike) -> int:
        return self._j.get(self._k("treasury", to_address(token)), 0)

    def get_vault(self, vault: AddressLike) -> Vault:
        return self._load_vault(vault)

    def get_status(self, vault: AddressLike) -> VaultStatus:
        return self._load_vault(vault).status(self._clock.now())

    def get_vault_balance(self, vault: AddressLike, token: AddressLike) -> int:
        """What the vault address actually holds at the token collaborator."""
        cap = self._tokens.get(token)
        return cap.balance_of(to_address(vault)) if cap is not None else 0

    def vault_count(self) -> int:
        return self._j.get(self._k("nonce"), 0)

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def config(self) -> FactoryConfig:
        return self._cfg


__all__ = ["PiggyFactory"]

"""
piggybank.config — runtime configuration for factories and vaults.

This module centralizes knobs for:
  • Fee policy (withdrawal fee in basis points)
  • Limits (allow-list size, purpose length, rescue batch size)
  • Defaults (initial allow-list, event log path, log level)

Configuration may be provided via environment variables. Safe defaults match
the protocol as deployed: a 15% fee and an allow-list of exactly 3 tokens.

Environment variables (all optional):
  PIGGYBANK_FEE_BPS                 -> integer in [0, 10000] (default: 1500)
  PIGGYBANK_SUPPORTED_TOKEN_COUNT   -> integer >= 1 (default: 3)
  PIGGYBANK_MAX_PURPOSE_LEN         -> integer, 0 = unlimited (default: 0)
  PIGGYBANK_MAX_RESCUE_TOKENS       -> integer, 0 = unlimited (default: 0)
  PIGGYBANK_DEFAULT_TOKENS          -> comma-separated addresses (default: empty)
  PIGGYBANK_EVENT_LOG               -> path of a JSONL event log (default: unset)
  PIGGYBANK_LOG_LEVEL               -> logging level name (default: INFO)

Programmatic usage:
    from piggybank.config import get_config
    cfg = get_config()
    fee = cfg.fees.fee_bps
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple, Union

from .types import to_address

BPS_DENOM = 10_000

# ----------------------------- helpers -------------------------------------


def _int_env(value: Optional[str], default: int, *, name: str) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value.strip(), 0)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _tokens_env(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(to_address(p) for p in value.split(",") if p.strip())


# ------------------------------ dataclasses ---------------------------------


@dataclass(frozen=True)
class FeePolicy:
    """
    fee_bps:
        Share of each supported-token balance routed to the factory treasury on
        ordinary withdrawal, in basis points. 1500 = 15%.
    """
    fee_bps: int = 1500

    @property
    def percent(self) -> float:
        return self.fee_bps / 100.0


@dataclass(frozen=True)
class Limits:
    supported_token_count: int = 3
    max_purpose_len: int = 0  # 0 = unlimited
    max_rescue_tokens: int = 0  # 0 = unlimited


@dataclass(frozen=True)
class FactoryConfig:
    fees: FeePolicy = field(default_factory=FeePolicy)
    limits: Limits = field(default_factory=Limits)
    default_tokens: Tuple[str, ...] = ()
    event_log_path: Optional[Path] = None
    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, object]:
        d = asdict(self)
        d["default_tokens"] = list(self.default_tokens)
        d["event_log_path"] = str(self.event_log_path) if self.event_log_path else None
        return d


# ------------------------------ loader --------------------------------------


def _validate(cfg: FactoryConfig) -> FactoryConfig:
    if not (0 <= cfg.fees.fee_bps <= BPS_DENOM):
        raise ValueError(f"fee_bps must be in [0,{BPS_DENOM}]")
    l = cfg.limits
    if l.supported_token_count < 1:
        raise ValueError("supported_token_count must be ≥ 1")
    if l.max_purpose_len < 0:
        raise ValueError("max_purpose_len must be ≥ 0")
    if l.max_rescue_tokens < 0:
        raise ValueError("max_rescue_tokens must be ≥ 0")
    if cfg.default_tokens and len(cfg.default_tokens) != l.supported_token_count:
        raise ValueError(
            f"default_tokens must list exactly {l.supported_token_count} addresses"
        )
    if logging.getLevelName(cfg.log_level) == f"Level {cfg.log_level}":
        raise ValueError(f"unknown log level: {cfg.log_level!r}")
    return cfg


def load_config(
    env: Optional[Mapping[str, str]] = None,
    *,
    overrides: Optional[Mapping[str, Union[str, int, Path, Tuple[str, ...]]]] = None,
) -> FactoryConfig:
    """
    Build a FactoryConfig from environment and optional overrides.

    Args:
        env: mapping to read variables from (default: os.environ)
        overrides: explicit field overrides; keys support:
          'fee_bps', 'supported_token_count', 'max_purpose_len',
          'max_rescue_tokens', 'default_tokens', 'event_log_path', 'log_level'
    """
    env = os.environ if env is None else env
    overrides = dict(overrides or {})

    fees = FeePolicy(
        fee_bps=int(
            overrides.get(
                "fee_bps",
                _int_env(env.get("PIGGYBANK_FEE_BPS"), 1500, name="PIGGYBANK_FEE_BPS"),
            )
        ),
    )

    limits = Limits(
        supported_token_count=int(
            overrides.get(
                "supported_token_count",
                _int_env(
                    env.get("PIGGYBANK_SUPPORTED_TOKEN_COUNT"),
                    3,
                    name="PIGGYBANK_SUPPORTED_TOKEN_COUNT",
                ),
            )
        ),
        max_purpose_len=int(
            overrides.get(
                "max_purpose_len",
                _int_env(
                    env.get("PIGGYBANK_MAX_PURPOSE_LEN"),
                    0,
                    name="PIGGYBANK_MAX_PURPOSE_LEN",
                ),
            )
        ),
        max_rescue_tokens=int(
            overrides.get(
                "max_rescue_tokens",
                _int_env(
                    env.get("PIGGYBANK_MAX_RESCUE_TOKENS"),
                    0,
                    name="PIGGYBANK_MAX_RESCUE_TOKENS",
                ),
            )
        ),
    )

    if "default_tokens" in overrides:
        default_tokens = tuple(to_address(t) for t in overrides["default_tokens"])  # type: ignore[union-attr]
    else:
        default_tokens = _tokens_env(env.get("PIGGYBANK_DEFAULT_TOKENS"))

    raw_log = overrides.get("event_log_path", env.get("PIGGYBANK_EVENT_LOG"))
    event_log_path = Path(str(raw_log)).expanduser() if raw_log else None

    log_level = str(overrides.get("log_level", env.get("PIGGYBANK_LOG_LEVEL", "INFO"))).strip().upper()

    return _validate(
        FactoryConfig(
            fees=fees,
            limits=limits,
            default_tokens=default_tokens,
            event_log_path=event_log_path,
            log_level=log_level,
        )
    )


@lru_cache(maxsize=1)
def get_config() -> FactoryConfig:
    """Cached global config. Suitable for application bootstraps."""
    return load_config()


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the configured level to the root logger (no-op if handlers already exist)."""
    lvl = (level or get_config().log_level).upper()
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("piggybank").setLevel(lvl)


# ----------------------------- pretty-print ---------------------------------


def summary(cfg: Optional[FactoryConfig] = None) -> str:
    """One-line summary of the most important knobs."""
    cfg = cfg or get_config()
    l = cfg.limits
    return (
        "piggybank{"
        f"fee={cfg.fees.fee_bps}bps, tokens={l.supported_token_count}, "
        f"purpose_max={l.max_purpose_len or 'inf'}, rescue_max={l.max_rescue_tokens or 'inf'}, "
        f"defaults={len(cfg.default_tokens)}, events={cfg.event_log_path or '-'}, "
        f"log={cfg.log_level}"
        "}"
    )


__all__ = [
    "BPS_DENOM",
    "FeePolicy",
    "Limits",
    "FactoryConfig",
    "load_config",
    "get_config",
    "configure_logging",
    "summary",
]

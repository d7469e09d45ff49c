"""
piggybank.events — ordered, append-only record of factory state transitions.

The factory appends one record per committed transition; external observers
poll the sink (or tail the JSONL file). Records of a failed operation are never
appended.

Backends
--------
- InMemoryEventLog: keeps all records in RAM; test/dev friendly.
- JsonlEventLog: append-only JSONL file; reloads existing lines on open and
  continues the sequence.
- NullEventLog: discards everything, still counts sequence numbers.

Record shape
------------
    EventRecord(seq=3, name="SavingAdded",
                fields={"payer": "0x…", "vault": "0x…", "token": "0x…", "amount": 100})

`seq` strictly increases per sink. Field values are JSON-safe (str, int,
bool, list of str).
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import (Any, Dict, Iterable, List, Mapping, Optional, Protocol,
                    runtime_checkable)

log = logging.getLogger(__name__)

# ------------------------------------------------------------------------------
# Canonical event names
# ------------------------------------------------------------------------------

EV_PIGGY_BANK_CREATED = "PiggyBankCreated"
EV_SAVING_ADDED = "SavingAdded"
EV_PIGGY_BANK_WITHDRAWN = "PiggyBankWithdrawn"
EV_EMERGENCY_WITHDRAWAL = "EmergencyWithdrawal"
EV_SUPPORTED_TOKENS_UPDATED = "SupportedTokensUpdated"
EV_FACTORY_BALANCE_WITHDRAWN = "FactoryBalanceWithdrawn"
EV_OWNERSHIP_TRANSFERRED = "OwnershipTransferred"

EVENT_NAMES = (
    EV_PIGGY_BANK_CREATED,
    EV_SAVING_ADDED,
    EV_PIGGY_BANK_WITHDRAWN,
    EV_EMERGENCY_WITHDRAWAL,
    EV_SUPPORTED_TOKENS_UPDATED,
    EV_FACTORY_BALANCE_WITHDRAWN,
    EV_OWNERSHIP_TRANSFERRED,
)


def _freeze(v: Any) -> Any:
    if isinstance(v, (list, tuple)):
        return tuple(_freeze(x) for x in v)
    return v


def _thaw(v: Any) -> Any:
    if isinstance(v, tuple):
        return [_thaw(x) for x in v]
    return v


@dataclass(frozen=True)
class EventRecord:
    seq: int
    name: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]

    def matches(self, name: Optional[str] = None, **filters: Any) -> bool:
        if name is not None and self.name != name:
            return False
        for k, want in filters.items():
            if _freeze(self.fields.get(k)) != _freeze(want):
                return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "name": self.name,
            "fields": {k: _thaw(v) for k, v in self.fields.items()},
        }

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "EventRecord":
        return cls(
            seq=int(obj["seq"]),
            name=str(obj["name"]),
            fields={k: _freeze(v) for k, v in dict(obj.get("fields") or {}).items()},
        )


# =============================================================================
# Sink interface
# =============================================================================


@runtime_checkable
class EventLog(Protocol):
    def append(self, name: str, fields: Mapping[str, Any]) -> EventRecord:
        """Append one record. Returns the stored record."""

    def get_events(self, name: Optional[str] = None, **filters: Any) -> List[EventRecord]:
        """Records in ascending `seq` order, optionally filtered by name and field values."""

    def flush(self) -> None:
        """Force persistence, if applicable."""

    def close(self) -> None:
        """Release resources."""


# =============================================================================
# In-memory
# =============================================================================


class InMemoryEventLog:
    def __init__(self, records: Iterable[EventRecord] = ()) -> None:
        self._records: List[EventRecord] = list(records)
        self._next_seq = self._records[-1].seq + 1 if self._records else 0
        self._lock = threading.RLock()

    def append(self, name: str, fields: Mapping[str, Any]) -> EventRecord:
        with self._lock:
            rec = EventRecord(
                seq=self._next_seq,
                name=name,
                fields={k: _freeze(v) for k, v in fields.items()},
            )
            self._records.append(rec)
            self._next_seq += 1
            return rec

    def get_events(self, name: Optional[str] = None, **filters: Any) -> List[EventRecord]:
        with self._lock:
            return [r for r in self._records if r.matches(name, **filters)]

    def last(self, name: Optional[str] = None) -> Optional[EventRecord]:
        matches = self.get_events(name)
        return matches[-1] if matches else None

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._records)

    def __enter__(self) -> "InMemoryEventLog":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


# =============================================================================
# JSONL
# =============================================================================


class JsonlEventLog(InMemoryEventLog):
    """
    Append-only JSONL persistence. One object per line:

        {"seq":0,"name":"PiggyBankCreated","fields":{...}}

    Existing lines are loaded on open so queries cover history and `seq`
    continues where the file left off. Safe for concurrent appends from
    threads sharing one instance.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        records: List[EventRecord] = []
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as fh:
                for lineno, line in enumerate(fh, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        records.append(EventRecord.from_dict(json.loads(line)))
                    except (ValueError, KeyError) as e:
                        raise ValueError(f"{path}:{lineno}: corrupt event record") from e
        super().__init__(records)
        self._fh = open(path, "a", encoding="utf-8", buffering=1)
        log.debug("event log %s opened with %d records", path, len(records))

    def append(self, name: str, fields: Mapping[str, Any]) -> EventRecord:
        with self._lock:
            rec = super().append(name, fields)
            self._fh.write(json.dumps(rec.to_dict(), separators=(",", ":")) + "\n")
            return rec

    def flush(self) -> None:
        with self._lock:
            self._fh.flush()
            os.fsync(self._fh.fileno())

    def close(self) -> None:
        with self._lock:
            if not self._fh.closed:
                self._fh.flush()
                self._fh.close()

    @property
    def closed(self) -> bool:
        return self._fh.closed


# =============================================================================
# Null
# =============================================================================


class NullEventLog:
    """No-op sink for benchmarks or setups that ignore events."""

    def __init__(self) -> None:
        self._next_seq = 0

    def append(self, name: str, fields: Mapping[str, Any]) -> EventRecord:
        rec = EventRecord(seq=self._next_seq, name=name, fields=dict(fields))
        self._next_seq += 1
        return rec

    def get_events(self, name: Optional[str] = None, **filters: Any) -> List[EventRecord]:
        return []

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __len__(self) -> int:
        return 0

    def __enter__(self) -> "NullEventLog":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def open_event_log(path: Optional[str] = None) -> EventLog:
    """JSONL log at `path` (or the configured PIGGYBANK_EVENT_LOG), else in-memory."""
    if path is None:
        from .config import get_config

        cfg_path = get_config().event_log_path
        path = str(cfg_path) if cfg_path else None
    if path:
        return JsonlEventLog(path)
    return InMemoryEventLog()


__all__ = [
    "EV_PIGGY_BANK_CREATED",
    "EV_SAVING_ADDED",
    "EV_PIGGY_BANK_WITHDRAWN",
    "EV_EMERGENCY_WITHDRAWAL",
    "EV_SUPPORTED_TOKENS_UPDATED",
    "EV_FACTORY_BALANCE_WITHDRAWN",
    "EV_OWNERSHIP_TRANSFERRED",
    "EVENT_NAMES",
    "EventRecord",
    "EventLog",
    "InMemoryEventLog",
    "JsonlEventLog",
    "NullEventLog",
    "open_event_log",
]

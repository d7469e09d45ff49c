"""
piggybank.state.journal — journaling writes, checkpoints, revert/commit.

A deterministic, in-memory write journal layered over a plain mapping. Nested
checkpoints are a stack of overlays: writes go to the top overlay, reads
consult overlays from top → base. `commit()` merges the top overlay into the
next layer (or the base mapping if it is the last one); `revert()` discards it.

Keys are tuples whose first element names the owning component, e.g.

    ("tok", <token>, "bal", <holder>)  -> int
    ("pf", <factory>, "vault", <vault>) -> Vault

Values must be treated as immutable: callers replace them, never mutate them
in place, otherwise a revert cannot restore the previous value.

Intended usage
--------------
    j = Journal()
    with j.atomic():
        j.set(key, 1)
        raise SomeError()      # the write above is discarded
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import (Any, Dict, Hashable, Iterator, List, MutableMapping,
                    Optional, Set, Tuple)

Key = Tuple[Hashable, ...]

_DELETED = object()


@dataclass
class _Overlay:
    """A single journal layer. `_DELETED` marks a staged deletion."""

    writes: Dict[Key, Any] = field(default_factory=dict)


class Journal:
    """
    A copy-on-write key/value journal with nested checkpoints.

    API highlights
    --------------
    - begin() / commit() / revert() / atomic()
    - get(), set(), delete(), contains(), scan()
    - checkpoint() / commit_to(marker) / revert_to(marker)
    """

    def __init__(self, base: Optional[MutableMapping[Key, Any]] = None) -> None:
        self._base: MutableMapping[Key, Any] = {} if base is None else base
        self._layers: List[_Overlay] = []

    # --------------------------------------------------------------------- #
    # Checkpointing
    # --------------------------------------------------------------------- #

    def depth(self) -> int:
        """Number of open checkpoints (0 when writes go straight to the base)."""
        return len(self._layers)

    def begin(self) -> int:
        """Start a new checkpoint. Returns the new depth marker."""
        self._layers.append(_Overlay())
        return len(self._layers)

    def commit(self) -> None:
        """Merge the top overlay into its parent, or apply it to the base."""
        if not self._layers:
            raise RuntimeError("commit without an open checkpoint")
        top = self._layers.pop()
        if self._layers:
            self._layers[-1].writes.update(top.writes)
        else:
            self._apply_to_base(top)

    def revert(self) -> None:
        """Discard the top overlay."""
        if not self._layers:
            raise RuntimeError("revert without an open checkpoint")
        self._layers.pop()

    def checkpoint(self) -> int:
        """Alias for `begin()` returning a marker token (new depth)."""
        return self.begin()

    def commit_to(self, marker: int) -> None:
        """Commit repeatedly until the current depth equals `marker`."""
        if marker < 0:
            raise ValueError("marker must be >= 0")
        while len(self._layers) > marker:
            self.commit()

    def revert_to(self, marker: int) -> None:
        """Revert repeatedly until the current depth equals `marker`."""
        if marker < 0:
            raise ValueError("marker must be >= 0")
        while len(self._layers) > marker:
            self.revert()

    @contextmanager
    def atomic(self) -> Iterator["Journal"]:
        """
        Run a block inside its own checkpoint: commit if it returns, revert
        (and re-raise) if it raises. Nests freely.
        """
        marker = self.begin()
        try:
            yield self
        except BaseException:
            self.revert_to(marker - 1)
            raise
        else:
            self.commit_to(marker - 1)

    # --------------------------------------------------------------------- #
    # Key/value API
    # --------------------------------------------------------------------- #

    def get(self, key: Key, default: Any = None) -> Any:
        for layer in reversed(self._layers):
            if key in layer.writes:
                v = layer.writes[key]
                return default if v is _DELETED else v
        return self._base.get(key, default)

    def contains(self, key: Key) -> bool:
        return self.get(key, _DELETED) is not _DELETED

    def set(self, key: Key, value: Any) -> None:
        if value is _DELETED:
            raise ValueError("reserved sentinel")
        if self._layers:
            self._layers[-1].writes[key] = value
        else:
            self._base[key] = value

    def delete(self, key: Key) -> None:
        if self._layers:
            self._layers[-1].writes[key] = _DELETED
        else:
            self._base.pop(key, None)

    def scan(self, prefix: Key) -> Iterator[Tuple[Key, Any]]:
        """
        Iterate visible (key, value) pairs whose key starts with `prefix`,
        with overlay precedence. Order follows first insertion.
        """
        n = len(prefix)
        visible: Dict[Key, Any] = {
            k: v for k, v in self._base.items() if k[:n] == prefix
        }
        for layer in self._layers:
            for k, v in layer.writes.items():
                if k[:n] != prefix:
                    continue
                if v is _DELETED:
                    visible.pop(k, None)
                else:
                    visible[k] = v
        return iter(list(visible.items()))

    # --------------------------------------------------------------------- #
    # Internal apply / introspection
    # --------------------------------------------------------------------- #

    def _apply_to_base(self, layer: _Overlay) -> None:
        for k, v in layer.writes.items():
            if v is _DELETED:
                self._base.pop(k, None)
            else:
                self._base[k] = v

    def pending_keys(self) -> Set[Key]:
        """Keys with staged writes in any open checkpoint."""
        s: Set[Key] = set()
        for layer in self._layers:
            s.update(layer.writes.keys())
        return s


__all__ = ["Journal", "Key"]

"""Collision-resistant ``dealUniqueId`` generation."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    """Source of wall-clock milliseconds."""

    def now_ms(self) -> int:
        """Return the current time in epoch milliseconds."""
        ...


class SystemClock:
    """Reads the system wall clock."""

    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class IdScope:
    """Identifies who an id is generated for.

    Attributes:
        vu_id: Virtual user index.
        kind: Id family, e.g. ``"SINGLE"`` or ``"BULK"``.
        sub_index: Position inside a multi-item batch, if any.
    """

    vu_id: int
    kind: str = "SINGLE"
    sub_index: int | None = None


class IdentifierGenerator:
    """Builds ids of the form ``PREFIX_KIND_VU_MILLIS[_SUB]``.

    The millisecond stamp never repeats for a given (vu, kind) pair: if the
    clock has not moved past the last stamp handed out, the stamp is bumped
    by one. Ids are therefore distinct across a run as long as virtual user
    indices are distinct, regardless of pacing or clock resolution.

    Each virtual user may own its own generator; the only thing generators
    share is the clock.
    """

    def __init__(self, prefix: str = "K6", clock: Clock | None = None) -> None:
        self.prefix = prefix
        self._clock: Clock = clock or SystemClock()
        self._last_stamp: dict[tuple[int, str], int] = {}

    def next(self, scope: IdScope) -> str:
        """Return a fresh id for ``scope``."""
        stamp = self._stamp(scope.vu_id, scope.kind)
        return self._compose(scope.vu_id, scope.kind, stamp, scope.sub_index)

    def next_batch(self, vu_id: int, size: int, kind: str = "BULK") -> list[str]:
        """Return ``size`` ids sharing one stamp, with sub-indices 1..size."""
        stamp = self._stamp(vu_id, kind)
        return [self._compose(vu_id, kind, stamp, i) for i in range(1, size + 1)]

    def _stamp(self, vu_id: int, kind: str) -> int:
        key = (vu_id, kind)
        now = self._clock.now_ms()
        last = self._last_stamp.get(key)
        if last is not None and now <= last:
            now = last + 1
        self._last_stamp[key] = now
        return now

    def _compose(self, vu_id: int, kind: str, stamp: int, sub_index: int | None) -> str:
        base = f"{self.prefix}_{kind}_{vu_id}_{stamp}"
        if sub_index is None:
            return base
        return f"{base}_{sub_index}"

from __future__ import annotations
"""
Locked-amount oracle (vesting streams).

Investors are weighted by the amount still locked in their vesting stream.
The oracle reads that amount; `build_investor_records` turns (destination,
stream) pairs into the `InvestorRecord`s the engine consumes.

`InMemoryLockOracle` keeps stream locks in a dict. Each lock records the
program that wrote it; reading a lock written by another program is refused,
just as reading an account with an unexpected owner would be.
"""

from dataclasses import dataclass
from threading import RLock
from typing import Dict, Iterable, List, Optional, Protocol, Tuple, runtime_checkable

from ..economics.checked import ensure_u64
from ..errors import LockedAmountReadError
from ..state.investor import InvestorRecord

DEFAULT_PROGRAM = "streamflow"


@runtime_checkable
class LockedAmountOracle(Protocol):
    def lookup(self, stream: str) -> int:
        """Currently locked amount of `stream`; raises LockedAmountReadError."""
        ...


@dataclass(frozen=True)
class StreamLock:
    stream: str
    locked_amount: int
    owner: str = DEFAULT_PROGRAM


class InMemoryLockOracle:
    def __init__(self, program: str = DEFAULT_PROGRAM) -> None:
        self.program = program
        self._locks: Dict[str, StreamLock] = {}
        self._lock = RLock()

    def set_locked_amount(self, stream: str, locked_amount: int, *, owner: Optional[str] = None) -> StreamLock:
        ensure_u64(locked_amount, "locked_amount")
        rec = StreamLock(stream=stream, locked_amount=locked_amount, owner=owner or self.program)
        with self._lock:
            self._locks[stream] = rec
        return rec

    def lookup(self, stream: str) -> int:
        with self._lock:
            rec = self._locks.get(stream)
        if rec is None:
            raise LockedAmountReadError(stream=stream)
        if rec.owner != self.program:
            raise LockedAmountReadError(stream=stream, reason=f"unexpected owner {rec.owner!r}")
        return rec.locked_amount


def build_investor_records(
    oracle: LockedAmountOracle,
    entries: Iterable[Tuple[str, str]],
) -> List[InvestorRecord]:
    """Resolve (destination, stream) pairs into investor records, in order."""
    return [
        InvestorRecord(destination=dest, locked_amount=oracle.lookup(stream), stream=stream)
        for dest, stream in entries
    ]


__all__ = [
    "DEFAULT_PROGRAM",
    "LockedAmountOracle",
    "StreamLock",
    "InMemoryLockOracle",
    "build_investor_records",
]

from __future__ import annotations
"""
AMM collaborator: fee claims and pool/position lookups.

The engine never talks to an AMM directly; it is handed two small interfaces:

- FeeClaimer.claim(position) moves whatever fees the position has accrued
  into custody (the position owner's account) and reports the amounts.
- PoolDirectory answers the questions asked once, at initialization: what
  are a pool's (base, quote) mints, and which pool/ticks/mode does a position
  have.

`InMemoryAmm` implements both against a `CustodyLedger`. It models a
constant-product pool whose positions accrue fees per side; a quote-only
position is one configured to accrue only the quote side, but the stub lets
tests accrue base fees on it anyway to exercise the quote-only guard.
"""

import logging
from dataclasses import dataclass, replace
from threading import RLock
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable

from ..economics.checked import U64_MAX
from ..state.position import HonoraryPosition
from .custody import CustodyLedger

log = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────────
# Interfaces
# ────────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ClaimedFees:
    """Amounts a claimer reports having moved into custody."""

    base: int = 0
    quote: int = 0


@dataclass(frozen=True)
class PositionInfo:
    position: str
    pool: str
    owner: str
    tick_lower: int
    tick_upper: int
    quote_only: bool


@runtime_checkable
class FeeClaimer(Protocol):
    def claim(self, position: HonoraryPosition) -> ClaimedFees: ...


@runtime_checkable
class PoolDirectory(Protocol):
    def pool_mints(self, pool: str) -> Optional[Tuple[str, str]]:
        """(base_mint, quote_mint) of `pool`, or None if unknown."""
        ...

    def position_info(self, position: str) -> Optional[PositionInfo]: ...


# ────────────────────────────────────────────────────────────────────────────────
# In-memory AMM
# ────────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class _Pool:
    base_mint: str
    quote_mint: str


@dataclass(frozen=True)
class _Position:
    info: PositionInfo
    accrued_base: int = 0
    accrued_quote: int = 0


def _saturating_add(a: int, b: int) -> int:
    return min(a + b, U64_MAX)


class InMemoryAmm:
    """Pools and fee-accruing positions backed by a CustodyLedger."""

    def __init__(self, custody: CustodyLedger) -> None:
        self.custody = custody
        self._pools: Dict[str, _Pool] = {}
        self._positions: Dict[str, _Position] = {}
        self._lock = RLock()

    # --- setup ---

    def init_pool(self, pool: str, *, base_mint: str, quote_mint: str) -> str:
        with self._lock:
            if pool in self._pools:
                raise ValueError(f"pool {pool!r} already exists")
            self._pools[pool] = _Pool(base_mint=base_mint, quote_mint=quote_mint)
            log.debug("amm: pool %s base=%s quote=%s", pool, base_mint, quote_mint)
            return pool

    def create_position(
        self,
        pool: str,
        owner: str,
        *,
        tick_lower: int,
        tick_upper: int,
        quote_only: bool = True,
        position: Optional[str] = None,
    ) -> str:
        with self._lock:
            if pool not in self._pools:
                raise KeyError(f"unknown pool {pool!r}")
            pid = position or f"position:{pool}:{owner}"
            if pid in self._positions:
                raise ValueError(f"position {pid!r} already exists")
            self._positions[pid] = _Position(
                PositionInfo(
                    position=pid,
                    pool=pool,
                    owner=owner,
                    tick_lower=tick_lower,
                    tick_upper=tick_upper,
                    quote_only=quote_only,
                )
            )
            return pid

    def accrue_fees(self, position: str, *, base: int = 0, quote: int = 0) -> None:
        with self._lock:
            pos = self._positions[position]
            self._positions[position] = replace(
                pos,
                accrued_base=_saturating_add(pos.accrued_base, base),
                accrued_quote=_saturating_add(pos.accrued_quote, quote),
            )

    def accrued(self, position: str) -> ClaimedFees:
        pos = self._positions[position]
        return ClaimedFees(base=pos.accrued_base, quote=pos.accrued_quote)

    # --- PoolDirectory ---

    def pool_mints(self, pool: str) -> Optional[Tuple[str, str]]:
        p = self._pools.get(pool)
        return None if p is None else (p.base_mint, p.quote_mint)

    def position_info(self, position: str) -> Optional[PositionInfo]:
        pos = self._positions.get(position)
        return None if pos is None else pos.info

    # --- FeeClaimer ---

    def claim(self, position: HonoraryPosition) -> ClaimedFees:
        """Mint accrued fees into the position owner's custody account and zero them."""
        with self._lock:
            pos = self._positions[position.position]
            if pos.info.pool != position.pool:
                raise ValueError(f"position {position.position!r} is not in pool {position.pool!r}")
            mints = self._pools[pos.info.pool]
            if pos.accrued_base:
                self.custody.mint_to(pos.info.owner, mints.base_mint, pos.accrued_base, reason="claim_fees")
            if pos.accrued_quote:
                self.custody.mint_to(pos.info.owner, mints.quote_mint, pos.accrued_quote, reason="claim_fees")
            claimed = ClaimedFees(base=pos.accrued_base, quote=pos.accrued_quote)
            self._positions[position.position] = replace(pos, accrued_base=0, accrued_quote=0)
            return claimed

    # --- rollback ---

    def snapshot(self) -> Dict[str, _Position]:
        with self._lock:
            return dict(self._positions)

    def restore(self, snap: Dict[str, _Position]) -> None:
        with self._lock:
            self._positions = dict(snap)


__all__ = ["ClaimedFees", "PositionInfo", "FeeClaimer", "PoolDirectory", "InMemoryAmm"]

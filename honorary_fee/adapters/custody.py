from __future__ import annotations

"""
Custody ledger: token balances held by the engine and its payees
-----------------------------------------------------------------

A deterministic, storage-agnostic ledger of (account, mint) → balance. The
engine's treasury account for a vault receives claimed fees (the AMM "mints"
into it) and pays investors and the creator out of it with `transfer`.

Amounts are integer base units bounded by u64. All operations check:
  • Non-negativity
  • Sufficient balance before debits/transfers (InsufficientTreasury)
  • No balance overflows its u64 range (ArithmeticOverflow)

Concurrency: a coarse `threading.RLock` protects mutating methods.

`snapshot()` / `restore()` let the engine roll a failed call back; `dump()` /
`load()` give a JSON-friendly form for persistence or inspection.
"""

from dataclasses import asdict, dataclass, field
from threading import RLock
from typing import Any, Dict, Iterable, List, Literal, Tuple

from ..economics.checked import U64_MAX, add
from ..errors import InsufficientTreasury

Amount = int
OpName = Literal["mint", "transfer"]


def _ensure_nonneg(x: int, name: str) -> None:
    if not isinstance(x, int) or isinstance(x, bool) or x < 0:
        raise ValueError(f"{name} must be a non-negative int, got {x!r}")


@dataclass(frozen=True)
class JournalEntry:
    seq: int
    op: OpName
    mint: str
    amount: Amount
    src: str = ""
    dst: str = ""
    meta: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CustodyLedger:
    """
    In-memory custody balances keyed by (account, mint).

    The journal is retained in-memory for observability and rolled back
    together with balances by `restore()`.
    """

    def __init__(self) -> None:
        self._balances: Dict[Tuple[str, str], Amount] = {}
        self._journal: List[JournalEntry] = []
        self._seq = 0
        self._lock = RLock()

    # --- introspection ---

    def balance(self, account: str, mint: str) -> Amount:
        with self._lock:
            return self._balances.get((account, mint), 0)

    def balances(self, account: str) -> Dict[str, Amount]:
        """All non-zero balances of `account`, by mint."""
        with self._lock:
            return {m: v for (a, m), v in sorted(self._balances.items()) if a == account and v}

    def total_supply(self, mint: str) -> Amount:
        with self._lock:
            return sum(v for (_, m), v in self._balances.items() if m == mint)

    def journal(self) -> Iterable[JournalEntry]:
        return tuple(self._journal)

    # --- mutations (all locked) ---

    def _record(self, op: OpName, mint: str, amount: Amount, src: str, dst: str, reason: str) -> JournalEntry:
        self._seq += 1
        je = JournalEntry(
            seq=self._seq, op=op, mint=mint, amount=amount, src=src, dst=dst, meta={"reason": reason}
        )
        self._journal.append(je)
        return je

    def mint_to(self, account: str, mint: str, amount: Amount, *, reason: str = "mint") -> JournalEntry:
        """Credit `amount` of `mint` to `account` out of thin air (fee claims, funding)."""
        _ensure_nonneg(amount, "amount")
        with self._lock:
            key = (account, mint)
            self._balances[key] = add(self._balances.get(key, 0), amount, bound=U64_MAX)
            return self._record("mint", mint, amount, "", account, reason)

    def transfer(
        self,
        src: str,
        dst: str,
        mint: str,
        amount: Amount,
        *,
        reason: str = "transfer",
    ) -> JournalEntry:
        _ensure_nonneg(amount, "amount")
        with self._lock:
            have = self._balances.get((src, mint), 0)
            if have < amount:
                raise InsufficientTreasury(account=src, mint=mint, available=have, required=amount)
            credited = add(self._balances.get((dst, mint), 0), amount, bound=U64_MAX)
            self._balances[(src, mint)] = have - amount
            self._balances[(dst, mint)] = credited
            return self._record("transfer", mint, amount, src, dst, reason)

    # --- rollback / persistence ---

    def snapshot(self) -> Tuple[Dict[Tuple[str, str], Amount], int, int]:
        with self._lock:
            return dict(self._balances), len(self._journal), self._seq

    def restore(self, snap: Tuple[Dict[Tuple[str, str], Amount], int, int]) -> None:
        balances, journal_len, seq = snap
        with self._lock:
            self._balances = dict(balances)
            del self._journal[journal_len:]
            self._seq = seq

    def dump(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "balances": [
                    {"account": a, "mint": m, "amount": v}
                    for (a, m), v in sorted(self._balances.items())
                    if v
                ]
            }

    @classmethod
    def load(cls, data: Dict[str, Any]) -> "CustodyLedger":
        led = cls()
        for row in data.get("balances", []):
            led.mint_to(str(row["account"]), str(row["mint"]), int(row["amount"]), reason="load")
        led._journal.clear()
        led._seq = 0
        return led


__all__ = ["CustodyLedger", "JournalEntry"]

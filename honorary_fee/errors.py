from __future__ import annotations
# honorary_fee/errors.py
"""
Error types for the honorary fee distribution engine. These are lightweight,
serializable, and safe to surface over RPC/logs.

Every failure of `DistributionEngine.initialize` or `distribute_page` is one of
these; a failed call leaves the vault's state exactly as it was.

Exports:
- HonoraryFeeError (base)
- setup:      InvalidPolicy, InvalidTickRange, InvalidQuoteMint,
              InvalidPoolTokenOrder, NotQuoteOnly, InvalidPosition,
              AlreadyInitialized
- gating:     DayGateNotOpen, InvalidPaginationCursor, PageCapacityExceeded
- invariant:  BaseFeesObserved
- arithmetic: ArithmeticOverflow
- resource:   InsufficientTreasury
- input:      InvalidInvestorRecord, LockedAmountReadError
- lookup:     VaultNotFound
"""


from typing import Any, Dict, Mapping, Optional
import json


class HonoraryFeeError(Exception):
    """Base class for honorary fee domain errors."""

    code: str = "HONORARY_FEE_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            # Keep this compact and stable for logs
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"))
            except (TypeError, ValueError):
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


def _with_vault(details: Optional[Mapping[str, Any]], vault: Optional[str]) -> Dict[str, Any]:
    d = dict(details or {})
    if vault is not None:
        d.setdefault("vault", vault)
    return d


# ────────────────────────────────────────────────────────────────────────────────
# Setup validation
# ────────────────────────────────────────────────────────────────────────────────


class InvalidPolicy(HonoraryFeeError):
    """Policy parameters out of range (e.g. investor share above 10000 bps)."""
    code = "HONORARY_INVALID_POLICY"


class InvalidTickRange(HonoraryFeeError):
    """tick_lower must be strictly below tick_upper."""
    code = "HONORARY_INVALID_TICK_RANGE"

    def __init__(
        self,
        *,
        tick_lower: int,
        tick_upper: int,
        message: str = "position tick range validation failed",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update({"tick_lower": int(tick_lower), "tick_upper": int(tick_upper)})
        super().__init__(message, details=d)


class InvalidQuoteMint(HonoraryFeeError):
    """The quote unit supplied at setup is not the pool's quote unit."""
    code = "HONORARY_INVALID_QUOTE_MINT"


class InvalidPoolTokenOrder(HonoraryFeeError):
    """The pool's token pair does not identify a single quote unit."""
    code = "HONORARY_INVALID_POOL_TOKEN_ORDER"


class NotQuoteOnly(HonoraryFeeError):
    """The position configuration may accrue base fees."""
    code = "HONORARY_NOT_QUOTE_ONLY"


class InvalidPosition(HonoraryFeeError):
    """The position does not belong to the pool it is being bound to."""
    code = "HONORARY_INVALID_POSITION"


class AlreadyInitialized(HonoraryFeeError):
    """A Policy/Progress pair already exists for the vault."""
    code = "HONORARY_ALREADY_INITIALIZED"

    def __init__(self, *, vault: str, message: str = "vault already initialized") -> None:
        super().__init__(message, details={"vault": vault})


# ────────────────────────────────────────────────────────────────────────────────
# Gating
# ────────────────────────────────────────────────────────────────────────────────


class DayGateNotOpen(HonoraryFeeError):
    """A new distribution day cannot open yet (or the clock moved backwards)."""
    code = "HONORARY_DAY_GATE_NOT_OPEN"

    def __init__(
        self,
        *,
        now: int,
        day_id: int,
        last_distribution_ts: int,
        vault: Optional[str] = None,
        message: str = "distribution day gate is not open",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = _with_vault(details, vault)
        d.update(
            {
                "now": int(now),
                "day_id": int(day_id),
                "last_distribution_ts": int(last_distribution_ts),
            }
        )
        super().__init__(message, details=d)


class InvalidPaginationCursor(HonoraryFeeError):
    """Pages must be processed in order; gaps are forbidden."""
    code = "HONORARY_INVALID_PAGINATION_CURSOR"

    def __init__(
        self,
        *,
        page_index: int,
        cursor: int,
        vault: Optional[str] = None,
        message: str = "invalid pagination cursor",
    ) -> None:
        d = _with_vault(None, vault)
        d.update({"page_index": int(page_index), "cursor": int(cursor)})
        super().__init__(message, details=d)


class PageCapacityExceeded(HonoraryFeeError):
    """The page index is beyond what the processed-page bitmap can track."""
    code = "HONORARY_PAGE_CAPACITY_EXCEEDED"

    def __init__(
        self,
        *,
        page_index: int,
        capacity: int,
        vault: Optional[str] = None,
        message: str = "page index beyond per-day capacity",
    ) -> None:
        d = _with_vault(None, vault)
        d.update({"page_index": int(page_index), "capacity": int(capacity)})
        super().__init__(message, details=d)


# ────────────────────────────────────────────────────────────────────────────────
# Invariant breach / arithmetic / resources
# ────────────────────────────────────────────────────────────────────────────────


class BaseFeesObserved(HonoraryFeeError):
    """The fee claim moved base-unit fees; distribution is halted for the call."""
    code = "HONORARY_BASE_FEES_OBSERVED"

    def __init__(
        self,
        *,
        base_claimed: int,
        vault: Optional[str] = None,
        message: str = "base fees were observed during claim - distribution aborted",
    ) -> None:
        d = _with_vault(None, vault)
        d["base_claimed"] = int(base_claimed)
        super().__init__(message, details=d)


class ArithmeticOverflow(HonoraryFeeError):
    """A checked addition/multiplication/subtraction left its representable range."""
    code = "HONORARY_ARITHMETIC_OVERFLOW"


class InsufficientTreasury(HonoraryFeeError):
    """The custody account lacks the balance for a transfer."""
    code = "HONORARY_INSUFFICIENT_TREASURY"

    def __init__(
        self,
        *,
        account: str,
        mint: str,
        available: int,
        required: int,
        message: str = "insufficient treasury balance",
    ) -> None:
        super().__init__(
            message,
            details={
                "account": account,
                "mint": mint,
                "available": int(available),
                "required": int(required),
            },
        )


# ────────────────────────────────────────────────────────────────────────────────
# Inputs / lookups
# ────────────────────────────────────────────────────────────────────────────────


class InvalidInvestorRecord(HonoraryFeeError):
    """A caller-supplied investor record failed structural validation."""
    code = "HONORARY_INVALID_INVESTOR_RECORD"


class LockedAmountReadError(HonoraryFeeError):
    """The locked-amount oracle could not read a stream (absent or foreign owner)."""
    code = "HONORARY_LOCKED_AMOUNT_READ_ERROR"

    def __init__(
        self,
        *,
        stream: str,
        reason: str = "stream not found",
        message: str = "failed to read locked amount",
    ) -> None:
        super().__init__(message, details={"stream": stream, "reason": reason})


class VaultNotFound(HonoraryFeeError):
    """No Policy/Progress has been initialized for the vault."""
    code = "HONORARY_VAULT_NOT_FOUND"

    def __init__(self, *, vault: str, message: str = "vault not initialized") -> None:
        super().__init__(message, details={"vault": vault})


__all__ = [
    "HonoraryFeeError",
    "InvalidPolicy",
    "InvalidTickRange",
    "InvalidQuoteMint",
    "InvalidPoolTokenOrder",
    "NotQuoteOnly",
    "InvalidPosition",
    "AlreadyInitialized",
    "DayGateNotOpen",
    "InvalidPaginationCursor",
    "PageCapacityExceeded",
    "BaseFeesObserved",
    "ArithmeticOverflow",
    "InsufficientTreasury",
    "InvalidInvestorRecord",
    "LockedAmountReadError",
    "VaultNotFound",
]

from __future__ import annotations

"""
Distribution policy for one vault.

A Policy is written once, when the honorary position is initialized, and is
read-only afterwards. It carries the parameters of the payout formula:

    investor share  : investor_fee_share_bps ∈ [0, 10000]
    daily cap       : optional ceiling on what investors receive per day
    min payout      : individual payouts below this are deferred as dust
    y0              : total investor allocation at the baseline epoch

Persisted as a fixed-width little-endian record (see `LAYOUT`).
"""


import struct
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

from ..economics.checked import BPS_DENOM, U64_MAX
from ..errors import InvalidPolicy
from .codec import ID_WIDTH, LAYOUT_VERSION, check_version, pack_id, unpack_exact, unpack_id

# version, vault, pool, quote_mint, creator, bps, has_cap, cap, min_payout, y0
LAYOUT = struct.Struct("<B64s64s64s64sHBQQQ")


def _u64(name: str, v: Any) -> None:
    if not isinstance(v, int) or isinstance(v, bool) or not (0 <= v <= U64_MAX):
        raise InvalidPolicy(f"{name} must be an integer in [0, 2^64-1]", details={name: v})


@dataclass(frozen=True)
class Policy:
    """
    Immutable distribution parameters.

    Attributes:
        vault: identifier scoping this Policy/Progress pair.
        pool: pool the honorary position lives in.
        quote_mint: the single unit fees are accrued and paid in.
        creator: destination of each day's remainder.
        investor_fee_share_bps: investors' maximum share of claimed fees.
        daily_cap: total quote units investors may receive per day (None = no cap).
        min_payout: floor below which an individual payout is deferred.
        y0: investor allocation at the baseline epoch.
    """

    vault: str
    pool: str
    quote_mint: str
    creator: str
    investor_fee_share_bps: int
    daily_cap: Optional[int] = None
    min_payout: int = 0
    y0: int = 0

    def __post_init__(self) -> None:
        for name in ("vault", "pool", "quote_mint", "creator"):
            v = getattr(self, name)
            if not isinstance(v, str) or not v or len(v.encode("utf-8")) > ID_WIDTH:
                raise InvalidPolicy(f"{name} must be a non-empty string of at most {ID_WIDTH} bytes")
        bps = self.investor_fee_share_bps
        if not isinstance(bps, int) or isinstance(bps, bool) or not (0 <= bps <= BPS_DENOM):
            raise InvalidPolicy(
                "investor_fee_share_bps must be within [0, 10000]",
                details={"investor_fee_share_bps": bps},
            )
        if self.daily_cap is not None:
            _u64("daily_cap", self.daily_cap)
        _u64("min_payout", self.min_payout)
        _u64("y0", self.y0)

    # ------------------------------ codec ------------------------------ #

    def to_bytes(self) -> bytes:
        return LAYOUT.pack(
            LAYOUT_VERSION,
            pack_id(self.vault, "vault"),
            pack_id(self.pool, "pool"),
            pack_id(self.quote_mint, "quote_mint"),
            pack_id(self.creator, "creator"),
            self.investor_fee_share_bps,
            0 if self.daily_cap is None else 1,
            self.daily_cap or 0,
            self.min_payout,
            self.y0,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "Policy":
        (version, vault, pool, quote, creator, bps, has_cap, cap, min_payout, y0) = unpack_exact(
            LAYOUT, data, "policy"
        )
        check_version(version, "policy")
        return cls(
            vault=unpack_id(vault),
            pool=unpack_id(pool),
            quote_mint=unpack_id(quote),
            creator=unpack_id(creator),
            investor_fee_share_bps=bps,
            daily_cap=cap if has_cap else None,
            min_payout=min_payout,
            y0=y0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Policy":
        cap = d.get("daily_cap")
        return cls(
            vault=str(d["vault"]),
            pool=str(d["pool"]),
            quote_mint=str(d["quote_mint"]),
            creator=str(d["creator"]),
            investor_fee_share_bps=int(d["investor_fee_share_bps"]),
            daily_cap=None if cap is None else int(cap),
            min_payout=int(d.get("min_payout", 0)),
            y0=int(d.get("y0", 0)),
        )


__all__ = ["Policy", "LAYOUT"]

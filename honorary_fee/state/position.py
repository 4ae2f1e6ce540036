from __future__ import annotations

"""Honorary (fee-only) position record, bound to a vault at initialization."""

import struct
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping

from ..errors import InvalidTickRange
from .codec import LAYOUT_VERSION, check_version, pack_id, unpack_exact, unpack_id

# version, pool, position, owner, quote_mint, base_mint, tick_lower, tick_upper
LAYOUT = struct.Struct("<B64s64s64s64s64sii")


@dataclass(frozen=True)
class HonoraryPosition:
    """
    Read-only description of the position whose fees are distributed.

    `owner` is the engine's position owner account; claimed fees land in the
    vault's treasury account in custody.
    """

    pool: str
    position: str
    owner: str
    quote_mint: str
    base_mint: str
    tick_lower: int
    tick_upper: int

    def __post_init__(self) -> None:
        if self.tick_lower >= self.tick_upper:
            raise InvalidTickRange(tick_lower=self.tick_lower, tick_upper=self.tick_upper)

    def to_bytes(self) -> bytes:
        return LAYOUT.pack(
            LAYOUT_VERSION,
            pack_id(self.pool, "pool"),
            pack_id(self.position, "position"),
            pack_id(self.owner, "owner"),
            pack_id(self.quote_mint, "quote_mint"),
            pack_id(self.base_mint, "base_mint"),
            self.tick_lower,
            self.tick_upper,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "HonoraryPosition":
        version, pool, position, owner, quote, base, lo, hi = unpack_exact(LAYOUT, data, "position")
        check_version(version, "position")
        return cls(
            pool=unpack_id(pool),
            position=unpack_id(position),
            owner=unpack_id(owner),
            quote_mint=unpack_id(quote),
            base_mint=unpack_id(base),
            tick_lower=lo,
            tick_upper=hi,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "HonoraryPosition":
        return cls(
            pool=str(d["pool"]),
            position=str(d["position"]),
            owner=str(d["owner"]),
            quote_mint=str(d["quote_mint"]),
            base_mint=str(d["base_mint"]),
            tick_lower=int(d["tick_lower"]),
            tick_upper=int(d["tick_upper"]),
        )


__all__ = ["HonoraryPosition", "LAYOUT"]

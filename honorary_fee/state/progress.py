from __future__ import annotations

"""
Per-vault distribution progress.

Progress is the only record the engine mutates. It tracks the current
distribution day, how much of it has been paid out, the carry-over owed to the
creator at close, and which pages of investors have been processed.

Page tracking
-------------
`cursor` is the next page index that may be processed and `pages` is a bitmap
of processed indices (512 bits by default). Within a day:

    * every index < cursor is marked
    * no index >= cursor is marked
    * cursor never decreases

Both are cleared when a new day opens.

Layout
------
    header  "<B64sQqQQQIBH"  version, vault, day_id, last_distribution_ts,
                              cumulative_distributed_today, carry_over,
                              claimed_today, cursor, is_closed, bitmap_len
    bitmap  bitmap_len bytes (little-endian bit order within each byte)
"""


import struct
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, Mapping

from ..config import MAX_PAGES
from ..economics.checked import ensure_u64
from .codec import LAYOUT_VERSION, check_version, pack_id, unpack_exact, unpack_id

HEADER = struct.Struct("<B64sQqQQQIBH")


# ------------------------------ Page bitmap ------------------------------ #


@dataclass(frozen=True)
class PageBitmap:
    """Fixed-capacity set of processed page indices."""

    bits: bytes = bytes(MAX_PAGES // 8)

    @classmethod
    def empty(cls, capacity: int = MAX_PAGES) -> "PageBitmap":
        if capacity <= 0 or capacity % 8:
            raise ValueError("bitmap capacity must be a positive multiple of 8")
        return cls(bytes(capacity // 8))

    @property
    def capacity(self) -> int:
        return len(self.bits) * 8

    def _locate(self, index: int) -> tuple[int, int]:
        if not (0 <= index < self.capacity):
            raise IndexError(f"page index {index} outside bitmap capacity {self.capacity}")
        return index >> 3, 1 << (index & 7)

    def is_set(self, index: int) -> bool:
        byte, mask = self._locate(index)
        return bool(self.bits[byte] & mask)

    def with_set(self, index: int) -> "PageBitmap":
        byte, mask = self._locate(index)
        buf = bytearray(self.bits)
        buf[byte] |= mask
        return PageBitmap(bytes(buf))

    def cleared(self) -> "PageBitmap":
        return PageBitmap(bytes(len(self.bits)))

    def indices(self) -> Iterator[int]:
        for i in range(self.capacity):
            if self.bits[i >> 3] & (1 << (i & 7)):
                yield i

    def count(self) -> int:
        return sum(bin(b).count("1") for b in self.bits)


# ------------------------------ Progress ------------------------------ #


@dataclass(frozen=True)
class Progress:
    """
    Day-scoped distribution state of one vault.

    Attributes:
        vault: owning vault identifier.
        day_id: index of the current distribution day (now // seconds_per_day).
        last_distribution_ts: unix seconds of the last processed page (0 = never).
        cumulative_distributed_today: quote paid to investors during day_id.
        carry_over: unsettled quote from earlier pages (dust + unassigned),
                    swept to the creator when the day closes.
        claimed_today: quote claimed from the position during day_id.
        cursor: next page index to process.
        is_closed: True once the final page of the day has been processed.
        pages: processed-page bitmap.
    """

    vault: str
    day_id: int = 0
    last_distribution_ts: int = 0
    cumulative_distributed_today: int = 0
    carry_over: int = 0
    claimed_today: int = 0
    cursor: int = 0
    is_closed: bool = True
    pages: PageBitmap = field(default_factory=PageBitmap)

    @classmethod
    def initial(cls, vault: str, *, capacity: int = MAX_PAGES) -> "Progress":
        """State of a freshly initialized vault: closed, no prior distribution."""
        return cls(vault=vault, pages=PageBitmap.empty(capacity))

    # ------------------------------ transitions ------------------------------ #

    def rolled_over(self, *, day: int, now: int, keep_carry: bool) -> "Progress":
        return replace(
            self,
            day_id=day,
            last_distribution_ts=now,
            cumulative_distributed_today=0,
            carry_over=self.carry_over if keep_carry else 0,
            claimed_today=0,
            cursor=0,
            is_closed=False,
            pages=self.pages.cleared(),
        )

    def page_processed(self, page_index: int) -> "Progress":
        return replace(self, cursor=page_index + 1, pages=self.pages.with_set(page_index))

    def is_processed(self, page_index: int) -> bool:
        return self.pages.is_set(page_index)

    # ------------------------------ codec ------------------------------ #

    def to_bytes(self) -> bytes:
        head = HEADER.pack(
            LAYOUT_VERSION,
            pack_id(self.vault, "vault"),
            ensure_u64(self.day_id, "day_id"),
            self.last_distribution_ts,
            ensure_u64(self.cumulative_distributed_today, "cumulative_distributed_today"),
            ensure_u64(self.carry_over, "carry_over"),
            ensure_u64(self.claimed_today, "claimed_today"),
            self.cursor,
            1 if self.is_closed else 0,
            len(self.pages.bits),
        )
        return head + self.pages.bits

    @classmethod
    def from_bytes(cls, data: bytes) -> "Progress":
        (
            version,
            vault,
            day_id,
            last_ts,
            cumulative,
            carry,
            claimed,
            cursor,
            closed,
            bitmap_len,
        ) = unpack_exact(HEADER, data, "progress")
        check_version(version, "progress")
        bits = bytes(data[HEADER.size : HEADER.size + bitmap_len])
        if len(bits) != bitmap_len:
            raise ValueError(f"progress bitmap truncated: {len(bits)} < {bitmap_len}")
        return cls(
            vault=unpack_id(vault),
            day_id=day_id,
            last_distribution_ts=last_ts,
            cumulative_distributed_today=cumulative,
            carry_over=carry,
            claimed_today=claimed,
            cursor=cursor,
            is_closed=bool(closed),
            pages=PageBitmap(bits),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vault": self.vault,
            "day_id": self.day_id,
            "last_distribution_ts": self.last_distribution_ts,
            "cumulative_distributed_today": self.cumulative_distributed_today,
            "carry_over": self.carry_over,
            "claimed_today": self.claimed_today,
            "cursor": self.cursor,
            "is_closed": self.is_closed,
            "processed_pages": list(self.pages.indices()),
            "page_capacity": self.pages.capacity,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Progress":
        bitmap = PageBitmap.empty(int(d.get("page_capacity", MAX_PAGES)))
        for idx in d.get("processed_pages", ()):
            bitmap = bitmap.with_set(int(idx))
        return cls(
            vault=str(d["vault"]),
            day_id=int(d.get("day_id", 0)),
            last_distribution_ts=int(d.get("last_distribution_ts", 0)),
            cumulative_distributed_today=int(d.get("cumulative_distributed_today", 0)),
            carry_over=int(d.get("carry_over", 0)),
            claimed_today=int(d.get("claimed_today", 0)),
            cursor=int(d.get("cursor", 0)),
            is_closed=bool(d.get("is_closed", True)),
            pages=bitmap,
        )


__all__ = ["PageBitmap", "Progress", "HEADER"]

from __future__ import annotations
"""
Events emitted by the distribution engine.

Every successful engine call returns the events it produced, in order. Events
are plain frozen dataclasses with JSON-serializable fields and small helpers
to (de)serialize them; the RPC and CLI layers ship them as dicts.

Events:
  - HonoraryPositionInitialized: a vault was bound to its fee-only position.
  - QuoteFeesClaimed:            quote fees were claimed into custody for a page.
  - InvestorPayout:              one investor was paid on a page.
  - InvestorPayoutPage:          summary of a page (also for duplicate pages).
  - CreatorPayoutDayClosed:      the final page paid the creator and closed the day.

Timestamps are the engine's `now` in UNIX seconds, so replays are deterministic.
"""


from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Type, Union


class EventType(str, Enum):
    POSITION_INITIALIZED = "HonoraryPositionInitialized"
    QUOTE_FEES_CLAIMED = "QuoteFeesClaimed"
    INVESTOR_PAYOUT = "InvestorPayout"
    INVESTOR_PAYOUT_PAGE = "InvestorPayoutPage"
    CREATOR_PAYOUT_DAY_CLOSED = "CreatorPayoutDayClosed"


# ────────────────────────────────────────────────────────────────────────────────
# Event payloads
# ────────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class _Event:
    etype: ClassVar[EventType]

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["etype"] = self.etype.value
        return d

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]):
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})


@dataclass(frozen=True)
class HonoraryPositionInitialized(_Event):
    etype: ClassVar[EventType] = EventType.POSITION_INITIALIZED

    ts: int
    vault: str
    pool: str
    position: str
    owner: str
    quote_mint: str
    tick_lower: int = 0
    tick_upper: int = 0


@dataclass(frozen=True)
class QuoteFeesClaimed(_Event):
    etype: ClassVar[EventType] = EventType.QUOTE_FEES_CLAIMED

    ts: int
    vault: str
    day_id: int
    page_index: int
    amount: int
    reported_amount: int


@dataclass(frozen=True)
class InvestorPayout(_Event):
    etype: ClassVar[EventType] = EventType.INVESTOR_PAYOUT

    ts: int
    vault: str
    day_id: int
    page_index: int
    destination: str
    amount: int
    stream: Optional[str] = None


@dataclass(frozen=True)
class InvestorPayoutPage(_Event):
    etype: ClassVar[EventType] = EventType.INVESTOR_PAYOUT_PAGE

    ts: int
    vault: str
    day_id: int
    page_index: int
    paid_total: int
    investor_count: int
    f_locked_bps: int = 0
    deferred_total: int = 0
    duplicate: bool = False


@dataclass(frozen=True)
class CreatorPayoutDayClosed(_Event):
    etype: ClassVar[EventType] = EventType.CREATOR_PAYOUT_DAY_CLOSED

    ts: int
    vault: str
    day_id: int
    creator: str
    remainder: int
    total_investor_payout: int


HonoraryEvent = Union[
    HonoraryPositionInitialized,
    QuoteFeesClaimed,
    InvestorPayout,
    InvestorPayoutPage,
    CreatorPayoutDayClosed,
]

_BY_TYPE: Dict[EventType, Type[_Event]] = {
    EventType.POSITION_INITIALIZED: HonoraryPositionInitialized,
    EventType.QUOTE_FEES_CLAIMED: QuoteFeesClaimed,
    EventType.INVESTOR_PAYOUT: InvestorPayout,
    EventType.INVESTOR_PAYOUT_PAGE: InvestorPayoutPage,
    EventType.CREATOR_PAYOUT_DAY_CLOSED: CreatorPayoutDayClosed,
}


# ────────────────────────────────────────────────────────────────────────────────
# Generic (de)serialization
# ────────────────────────────────────────────────────────────────────────────────


def serialize_event(ev: HonoraryEvent) -> Dict[str, Any]:
    """Serialize any engine event to a JSON-serializable dict."""
    return ev.to_dict()


def deserialize_event(d: Mapping[str, Any]) -> HonoraryEvent:
    """Instantiate a concrete event from a dict with an 'etype' discriminator."""
    etype = EventType(d["etype"])
    return _BY_TYPE[etype].from_dict(d)  # type: ignore[return-value]


__all__ = [
    "EventType",
    "HonoraryPositionInitialized",
    "QuoteFeesClaimed",
    "InvestorPayout",
    "InvestorPayoutPage",
    "CreatorPayoutDayClosed",
    "HonoraryEvent",
    "serialize_event",
    "deserialize_event",
]

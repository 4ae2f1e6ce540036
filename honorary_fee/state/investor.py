from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..economics.checked import U64_MAX
from ..errors import InvalidInvestorRecord


@dataclass(frozen=True)
class InvestorRecord:
    """
    One investor on a page: where to pay, and how much is still locked.

    Supplied by the caller for a single call and otherwise untrusted; only the
    structure is validated here.
    """

    destination: str
    locked_amount: int
    stream: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.destination, str) or not self.destination:
            raise InvalidInvestorRecord(
                "investor destination must be a non-empty string",
                details={"destination": repr(self.destination)},
            )
        amt = self.locked_amount
        if not isinstance(amt, int) or isinstance(amt, bool) or not (0 <= amt <= U64_MAX):
            raise InvalidInvestorRecord(
                "locked_amount must be an integer in [0, 2^64-1]",
                details={"destination": self.destination, "locked_amount": repr(amt)},
            )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"destination": self.destination, "locked_amount": self.locked_amount}
        if self.stream is not None:
            d["stream"] = self.stream
        return d

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "InvestorRecord":
        try:
            destination = d["destination"]
            locked = d["locked_amount"]
        except (KeyError, TypeError) as e:
            raise InvalidInvestorRecord(f"investor record missing field: {e}") from e
        if isinstance(locked, str) and locked.isdigit():
            locked = int(locked)
        stream = d.get("stream")
        return cls(destination=destination, locked_amount=locked, stream=None if stream is None else str(stream))


__all__ = ["InvestorRecord"]

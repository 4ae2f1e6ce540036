from __future__ import annotations
"""
Payout plan for one page of investors.

Given the quote amount `Q` claimed for the page, the investors on the page and
the vault's Policy/Progress, compute who gets paid what. Pure integer
arithmetic; every intermediate is checked (see `checked`).

    total_locked       = Σ locked_i                                (u128)
    f_locked_bps       = total_locked * 10000 // y0     (0 if y0 == 0; unclamped)
    eligible_bps       = min(investor_fee_share_bps, f_locked_bps)
    investor_fee_quote = Q * eligible_bps // 10000
                         then min(…, daily_cap - cumulative_distributed_today)
    payout_i           = investor_fee_quote * locked_i // total_locked  (locked_i > 0)

A payout below `min_payout` (or zero) is deferred: it is not transferred and
stays in the vault as carry-over. Whatever part of `Q` is not paid on this
page (creator share, capped amount, rounding residue, deferred dust) is added
to `carry_over` on an ordinary page. On the final page of the day the creator
receives

    remainder = Q - paid_total + carry_over

and carry-over returns to zero.

Example
-------
>>> from honorary_fee.state import Policy, InvestorRecord
>>> pol = Policy(vault="v", pool="p", quote_mint="q", creator="c",
...              investor_fee_share_bps=5000, y0=1_000_000)
>>> plan = plan_page(pol, claimed=1000, investors=[
...     InvestorRecord("a", 300_000), InvestorRecord("b", 100_000)])
>>> [p.amount for p in plan.payouts], plan.investor_fee_quote
([300, 100], 400)
"""


from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from ..state.investor import InvestorRecord
from ..state.policy import Policy
from .checked import (BPS_DENOM, U128_MAX, add, checked_sum, ensure_u64,
                      mul, mul_div, sub)


@dataclass(frozen=True)
class Payout:
    """A computed share for one investor (transferred or deferred)."""

    destination: str
    amount: int
    locked_amount: int
    stream: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "destination": self.destination,
            "amount": self.amount,
            "locked_amount": self.locked_amount,
            "stream": self.stream,
        }


@dataclass(frozen=True)
class PagePlan:
    """
    Everything the engine needs to settle one page.

    Attributes:
        claimed: Q, the quote amount claimed for this page.
        total_locked: Σ locked_i over the page.
        f_locked_bps: locked fraction of y0 in bps (not clamped to 10000).
        eligible_bps: min(policy share, f_locked_bps).
        investor_fee_quote: investors' share of Q after the daily cap.
        payouts: transfers to make (amount >= min_payout, > 0).
        deferred: computed shares withheld as dust.
        paid_total: Σ payouts.
        unassigned: Q minus every computed share (creator share + residue).
        is_final: whether this page closes the day.
        remainder: amount owed to the creator (final page only, else 0).
        cumulative_after: cumulative_distributed_today after this page.
        carry_over_after: carry_over after this page.
    """

    claimed: int
    total_locked: int
    f_locked_bps: int
    eligible_bps: int
    investor_fee_quote: int
    payouts: Tuple[Payout, ...]
    deferred: Tuple[Payout, ...]
    paid_total: int
    unassigned: int
    is_final: bool
    remainder: int
    cumulative_after: int
    carry_over_after: int

    @property
    def deferred_total(self) -> int:
        return sum(p.amount for p in self.deferred)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "claimed": self.claimed,
            "total_locked": self.total_locked,
            "f_locked_bps": self.f_locked_bps,
            "eligible_bps": self.eligible_bps,
            "investor_fee_quote": self.investor_fee_quote,
            "payouts": [p.to_dict() for p in self.payouts],
            "deferred": [p.to_dict() for p in self.deferred],
            "paid_total": self.paid_total,
            "deferred_total": self.deferred_total,
            "unassigned": self.unassigned,
            "is_final": self.is_final,
            "remainder": self.remainder,
            "cumulative_after": self.cumulative_after,
            "carry_over_after": self.carry_over_after,
        }


# --------------------------------- Helpers ---------------------------------- #


def locked_fraction_bps(total_locked: int, y0: int) -> int:
    """total_locked / y0 in basis points; 0 when y0 is 0. Not clamped."""
    if y0 == 0:
        return 0
    return mul(total_locked, BPS_DENOM) // y0


def cap_remaining(daily_cap: Optional[int], cumulative: int) -> Optional[int]:
    if daily_cap is None:
        return None
    if cumulative >= daily_cap:
        return 0
    return sub(daily_cap, cumulative)


def investor_share(
    claimed: int,
    eligible_bps: int,
    *,
    daily_cap: Optional[int] = None,
    cumulative: int = 0,
) -> int:
    """Q * eligible_bps // 10000, limited by what is left of the daily cap."""
    share = mul_div(claimed, eligible_bps, BPS_DENOM)
    room = cap_remaining(daily_cap, cumulative)
    if room is not None and share > room:
        share = room
    return share


# ------------------------------- Page planning ------------------------------ #


def plan_page(
    policy: Policy,
    *,
    claimed: int,
    investors: Sequence[InvestorRecord],
    cumulative_distributed_today: int = 0,
    carry_over: int = 0,
    is_final: bool = False,
) -> PagePlan:
    """
    Compute the payout plan for one page.

    `cumulative_distributed_today` and `carry_over` are the vault's values
    before this page. Raises ArithmeticOverflow if any amount leaves range.
    """
    ensure_u64(claimed, "claimed")
    ensure_u64(carry_over, "carry_over")

    total_locked = checked_sum((inv.locked_amount for inv in investors), bound=U128_MAX)
    f_locked = locked_fraction_bps(total_locked, policy.y0)
    eligible = min(policy.investor_fee_share_bps, f_locked)
    share = investor_share(
        claimed,
        eligible,
        daily_cap=policy.daily_cap,
        cumulative=cumulative_distributed_today,
    )

    payouts = []
    deferred = []
    computed = 0
    if share > 0 and total_locked > 0:
        for inv in investors:
            if inv.locked_amount == 0:
                continue
            amount = mul_div(share, inv.locked_amount, total_locked)
            computed = add(computed, amount)
            p = Payout(inv.destination, amount, inv.locked_amount, inv.stream)
            if amount == 0 or amount < policy.min_payout:
                deferred.append(p)
            else:
                payouts.append(p)

    paid_total = checked_sum(p.amount for p in payouts)
    paid_total = ensure_u64(paid_total, "paid_total")
    unassigned = sub(claimed, computed)
    unsettled = sub(claimed, paid_total)
    cumulative_after = add(cumulative_distributed_today, paid_total)

    if is_final:
        remainder = add(unsettled, carry_over)
        carry_after = 0
    else:
        remainder = 0
        carry_after = add(carry_over, unsettled)

    return PagePlan(
        claimed=claimed,
        total_locked=total_locked,
        f_locked_bps=f_locked,
        eligible_bps=eligible,
        investor_fee_quote=share,
        payouts=tuple(payouts),
        deferred=tuple(deferred),
        paid_total=paid_total,
        unassigned=unassigned,
        is_final=is_final,
        remainder=remainder,
        cumulative_after=cumulative_after,
        carry_over_after=carry_after,
    )


__all__ = [
    "Payout",
    "PagePlan",
    "locked_fraction_bps",
    "cap_remaining",
    "investor_share",
    "plan_page",
]

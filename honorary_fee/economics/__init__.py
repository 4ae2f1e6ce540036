from __future__ import annotations
"""
honorary_fee.economics
======================

Deterministic, side-effect free building blocks of a distribution page:

- checked     : u64/u128 checked arithmetic (ArithmeticOverflow on overflow)
- daygate     : the 24h day-gate state machine over Progress
- pagination  : page admission (duplicate / in-order / capacity)
- payouts     : the per-page payout plan (eligible share, cap, dust, remainder)

Import the submodules directly; this package only re-exports the constants.
"""

from .checked import BPS_DENOM, U64_MAX, U128_MAX

__all__ = ["BPS_DENOM", "U64_MAX", "U128_MAX"]

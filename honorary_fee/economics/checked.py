from __future__ import annotations

"""
Checked integer arithmetic for the payout path.

Python integers never wrap, so overflow has to be policed explicitly: every
amount that is persisted in Progress (or moved through custody) must fit in an
unsigned 64-bit word, and intermediates such as `Q * eligible_bps` or
`investor_fee_quote * locked_i` must fit in 128 bits. Leaving either range
raises `ArithmeticOverflow` instead of truncating.
"""


from typing import Iterable

from ..errors import ArithmeticOverflow

U64_MAX = (1 << 64) - 1
U128_MAX = (1 << 128) - 1
BPS_DENOM = 10_000


def ensure_u64(x: int, name: str = "amount") -> int:
    if not isinstance(x, int) or isinstance(x, bool):
        raise ArithmeticOverflow(f"{name} must be an int, got {type(x).__name__}")
    if x < 0 or x > U64_MAX:
        raise ArithmeticOverflow(f"{name} out of u64 range", details={name: x})
    return x


def _check(c: int, bound: int, op: str, a: int, b: int) -> int:
    if c < 0 or c > bound:
        raise ArithmeticOverflow(
            f"overflow in {op}", details={"a": a, "b": b, "bits": bound.bit_length()}
        )
    return c


def add(a: int, b: int, *, bound: int = U64_MAX) -> int:
    return _check(a + b, bound, "addition", a, b)


def sub(a: int, b: int, *, bound: int = U64_MAX) -> int:
    """Subtraction that refuses to go negative."""
    return _check(a - b, bound, "subtraction", a, b)


def mul(a: int, b: int, *, bound: int = U128_MAX) -> int:
    return _check(a * b, bound, "multiplication", a, b)


def mul_div(a: int, b: int, denom: int) -> int:
    """floor(a * b / denom) with a 128-bit intermediate and a u64 result."""
    if denom <= 0:
        raise ArithmeticOverflow("division by non-positive denominator", details={"denom": denom})
    return ensure_u64(mul(a, b) // denom, "quotient")


def checked_sum(values: Iterable[int], *, bound: int = U128_MAX) -> int:
    total = 0
    for v in values:
        total = add(total, v, bound=bound)
    return total


__all__ = [
    "U64_MAX",
    "U128_MAX",
    "BPS_DENOM",
    "ensure_u64",
    "add",
    "sub",
    "mul",
    "mul_div",
    "checked_sum",
]

from __future__ import annotations

import pytest

from honorary_fee.economics.checked import (U64_MAX, U128_MAX, add, checked_sum,
                                            ensure_u64, mul, mul_div, sub)
from honorary_fee.errors import ArithmeticOverflow


def test_add_within_and_beyond_u64():
    assert add(U64_MAX - 1, 1) == U64_MAX
    with pytest.raises(ArithmeticOverflow):
        add(U64_MAX, 1)


def test_sub_refuses_negative():
    assert sub(10, 10) == 0
    with pytest.raises(ArithmeticOverflow):
        sub(1, 2)


def test_mul_uses_u128_bound():
    assert mul(U64_MAX, U64_MAX) < U128_MAX
    with pytest.raises(ArithmeticOverflow):
        mul(U128_MAX, 2)


def test_mul_div_floors_and_bounds_result():
    assert mul_div(1000, 4000, 10_000) == 400
    assert mul_div(7, 1, 2) == 3
    with pytest.raises(ArithmeticOverflow):
        mul_div(U64_MAX, U64_MAX, 1)
    with pytest.raises(ArithmeticOverflow):
        mul_div(1, 1, 0)


def test_checked_sum_accumulates_in_128_bits():
    assert checked_sum([U64_MAX, U64_MAX]) == 2 * U64_MAX
    with pytest.raises(ArithmeticOverflow):
        checked_sum([U64_MAX, 1], bound=U64_MAX)


@pytest.mark.parametrize("bad", [-1, U64_MAX + 1, True, 1.5])
def test_ensure_u64_rejects(bad):
    with pytest.raises(ArithmeticOverflow):
        ensure_u64(bad)

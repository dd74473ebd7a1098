"""
Checked Arithmetic
==================
Unsigned 64-bit operations that raise instead of wrapping.
"""

from tranche_sale.core.errors import ArithmeticOverflow

U64_MAX = 2**64 - 1


def _check(operation: str, left: int, right: int, value: int) -> int:
    if value < 0 or value > U64_MAX:
        raise ArithmeticOverflow(operation, left, right)
    return value


def checked_add(left: int, right: int) -> int:
    return _check("+", left, right, left + right)


def checked_sub(left: int, right: int) -> int:
    return _check("-", left, right, left - right)


def checked_mul(left: int, right: int) -> int:
    return _check("*", left, right, left * right)


def checked_div(left: int, right: int) -> int:
    """Floor division; a zero divisor counts as an overflow."""
    if right == 0:
        raise ArithmeticOverflow("/", left, right)
    return _check("/", left, right, left // right)


def is_u64(value: int) -> bool:
    return 0 <= value <= U64_MAX

"""
Overflow-checked integer arithmetic for pool, fee and payout bookkeeping.

Python integers never wrap, so widening is implicit; what these helpers add
is the range discipline of the persisted fields. A result outside
``[0, limit]`` is rejected with the ``Overflow`` resource error instead of
being stored.
"""
from .errors import ledger_error
from .params import U64_MAX


def checked_add(a: int, b: int, limit: int = U64_MAX) -> int:
    result = a + b
    if result > limit:
        raise ledger_error('Overflow', f"{a} + {b} exceeds {limit}")
    return result


def checked_sub(a: int, b: int) -> int:
    result = a - b
    if result < 0:
        raise ledger_error('Overflow', f"{a} - {b} underflows")
    return result


def mul_div_floor(a: int, b: int, denominator: int, limit: int = U64_MAX) -> int:
    """
    floor(a * b / denominator) with the product taken at full width.
    """
    if denominator <= 0:
        raise ledger_error('Overflow', "division by zero")
    if a < 0 or b < 0:
        raise ledger_error('Overflow', "negative operand")
    result = (a * b) // denominator
    if result > limit:
        raise ledger_error('Overflow', f"{result} exceeds {limit}")
    return result

"""
Arbitrary-precision decimal arithmetic for the evaluator.

Values are plain `decimal.Decimal` instances. Addition, subtraction and
multiplication run in an unbounded context and are therefore exact;
division is the only operation that rounds.
"""
import decimal
from decimal import Decimal

from smath.smath_datatypes import DivideByZero, NotAPositive, NotAPrimitive, NotAWhole

# Significant digits kept by a division whose quotient does not terminate.
DIVISION_PRECISION = 100

I64_MIN = -(1 << 63)
I64_MAX = (1 << 63) - 1
USIZE_MAX = (1 << 64) - 1

ZERO = Decimal(0)
ONE = Decimal(1)

# Only safe for operations with an exact result: an inexact one would try
# to allocate MAX_PREC digits.
EXACT = decimal.Context(
    prec=decimal.MAX_PREC,
    Emax=decimal.MAX_EMAX,
    Emin=decimal.MIN_EMIN,
    traps=[decimal.InvalidOperation, decimal.DivisionByZero, decimal.Overflow],
)


def _division_context(precision: int) -> decimal.Context:
    return decimal.Context(
        prec=precision,
        Emax=decimal.MAX_EMAX,
        Emin=decimal.MIN_EMIN,
        traps=[decimal.InvalidOperation, decimal.DivisionByZero, decimal.Overflow],
    )


def add(a: Decimal, b: Decimal) -> Decimal:
    return EXACT.add(a, b)


def sub(a: Decimal, b: Decimal) -> Decimal:
    return EXACT.subtract(a, b)


def mul(a: Decimal, b: Decimal) -> Decimal:
    return EXACT.multiply(a, b)


def div(a: Decimal, b: Decimal, precision: int = DIVISION_PRECISION) -> Decimal:
    """Divides `a` by `b`, rounding to `precision` significant digits."""
    if b.is_zero():
        raise DivideByZero()
    return _division_context(precision).divide(a, b)


def is_whole(num: Decimal) -> bool:
    return num == num.to_integral_value()


def require_whole(num: Decimal):
    if not is_whole(num):
        raise NotAWhole()


def require_positive(num: Decimal):
    """Zero counts as positive here; only a minus sign is rejected."""
    if num.is_signed() and not num.is_zero():
        raise NotAPositive()


def _truncate(num: Decimal, primitive: str, low: int, high: int) -> int:
    # Reject huge magnitudes before int() materialises every digit.
    if not num.is_finite() or num.adjusted() > 20:
        raise NotAPrimitive(primitive)
    value = int(num)
    if value < low or value > high:
        raise NotAPrimitive(primitive)
    return value


def to_i64(num: Decimal) -> int:
    """Narrows to a signed 64-bit integer, dropping any fraction."""
    return _truncate(num, "i64", I64_MIN, I64_MAX)


def to_usize(num: Decimal) -> int:
    """Narrows to an unsigned machine-width integer, dropping any fraction."""
    return _truncate(num, "usize", 0, USIZE_MAX)


def to_bigint(num: Decimal) -> int:
    require_whole(num)
    return int(num)


def factorial(num: Decimal) -> Decimal:
    """Calculates the factorial of `num`."""
    require_whole(num)
    require_positive(num)

    result = 1
    for n in range(int(num), 1, -1):
        result *= n
    return Decimal(result)


def power(num: Decimal, exponent: Decimal, precision: int = DIVISION_PRECISION) -> Decimal:
    """Calculates `num` to the power of `exponent`.

    The base must not be negative and the exponent must be whole. A negative
    exponent gives the reciprocal of the positive power, rounded to
    `precision` significant digits.
    """
    require_positive(num)
    require_whole(exponent)

    remaining = abs(int(exponent))
    result = ONE
    square = num
    while remaining:
        if remaining & 1:
            result = mul(result, square)
        remaining >>= 1
        if remaining:
            square = mul(square, square)

    if exponent.is_signed() and not exponent.is_zero():
        if num.is_zero():
            raise DivideByZero()
        return div(ONE, result, precision)
    return result

from __future__ import annotations

import decimal
import functools
import logging
import numbers
from decimal import Decimal
from typing import Union

from .errors import DomainError, InvalidInput

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, str]

# Results are rounded to PRECISION significant digits; intermediate work
# carries GUARD_DIGITS more.
PRECISION = 34
GUARD_DIGITS = 16

_TRAPS = [decimal.InvalidOperation, decimal.DivisionByZero, decimal.Overflow]

KERNEL_CONTEXT = decimal.Context(
    prec=PRECISION + GUARD_DIGITS,
    rounding=decimal.ROUND_HALF_EVEN,
    Emin=-999,
    Emax=999,
    traps=_TRAPS,
)

_RESULT_CONTEXT = decimal.Context(
    prec=PRECISION,
    rounding=decimal.ROUND_HALF_EVEN,
    Emin=-999,
    Emax=999,
    traps=_TRAPS,
)

ZERO = Decimal(0)
ONE = Decimal(1)
TWO = Decimal(2)

LN2 = Decimal("0.69314718055994530941723212145817656807550013436025")
LN10 = Decimal("2.30258509299404568401799145468436420760110148862877")

# Largest 96-bit fixed-point magnitude; exp() clamps to it instead of overflowing.
DECIMAL_MAX = Decimal("79228162514264337593543950335")
EXP_UPPER_LIMIT = Decimal(66)
EXP_LOWER_LIMIT = Decimal(-66)

TAYLOR_EXP_TERMS = 30
EXP_HALVINGS = 8
ATANH_MAX_TERMS = 100
SQRT_MAX_ITERATIONS = 60
NTH_ROOT_MAX_ITERATIONS = 40

_SERIES_CUTOFF = Decimal("1e-52")
_RELATIVE_TOLERANCE = Decimal("1e-48")
_LN_REDUCED_UPPER = Decimal("1.5")


def to_decimal(value: Number, name: str = "value") -> Decimal:
    """
    Convert a Decimal, int or numeric string to a finite Decimal.

    Binary floats are refused: a float has already lost the digits the kernel
    is meant to preserve.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise TypeError(f"{name} must be a Decimal, int or str, got bool")
    elif isinstance(value, numbers.Integral):
        result = Decimal(int(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except decimal.InvalidOperation as exc:
            raise InvalidInput(f"{name}: cannot parse {value!r} as a decimal") from exc
    else:
        raise TypeError(
            f"{name} must be a Decimal, int or str, got {type(value).__name__} "
            "(binary floats are not accepted)"
        )

    if not result.is_finite():
        raise InvalidInput(f"{name} must be finite, got {result}")
    return result


def kernel_precision(func):
    """Run ``func`` inside a private copy of KERNEL_CONTEXT."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with decimal.localcontext(KERNEL_CONTEXT):
            return func(*args, **kwargs)

    return wrapper


def _finish(value: Decimal) -> Decimal:
    return _RESULT_CONTEXT.plus(value)


def _int_pow(base: Decimal, n: int) -> Decimal:
    # square-and-multiply, n >= 0
    result = ONE
    while n:
        if n & 1:
            result *= base
        n >>= 1
        if n:
            base *= base
    return result


def _saturated(negative: bool) -> Decimal:
    return -DECIMAL_MAX if negative else DECIMAL_MAX


def _integral_pow(base: Decimal, n: int) -> Decimal:
    """base**n for integer n; overflow saturates at +/-DECIMAL_MAX, underflow gives 0."""
    negative = base < 0 and n % 2 == 1
    try:
        power = _int_pow(base, abs(n))
    except decimal.Overflow:
        return ZERO if n < 0 else _saturated(negative)
    if n >= 0:
        return power
    if power == 0:
        return _saturated(negative)
    try:
        return ONE / power
    except decimal.Overflow:
        return _saturated(negative)


def _split(x: Decimal):
    # x > 0 as (m, e), x = m * 10**e, 1 <= m < 10; exact, no context involved
    digits = x.as_tuple().digits
    return Decimal((0, digits, 1 - len(digits))), x.adjusted()


def _scale10(value: Decimal, q: int) -> Decimal:
    # value * 10**q, saturating outside the context's exponent range
    if value == 0:
        return value
    context = decimal.getcontext()
    adjusted = value.adjusted() + q
    if adjusted > context.Emax:
        return _saturated(value < 0)
    if adjusted < context.Etiny():
        return ZERO
    return value.scaleb(q)


def _exp_core(x: Decimal) -> Decimal:
    # x = k*ln2 + r, |r| <= ln2/2; exp(r) = exp(r / 2^h)^(2^h)
    k = int((x / LN2).to_integral_value(rounding=decimal.ROUND_HALF_EVEN))
    r = (x - k * LN2) / (2 ** EXP_HALVINGS)

    total = ONE
    term = ONE
    for n in range(1, TAYLOR_EXP_TERMS + 1):
        term = term * r / n
        total += term
        if abs(term) < _SERIES_CUTOFF:
            break

    for _ in range(EXP_HALVINGS):
        total *= total

    if k > 0:
        total *= _int_pow(TWO, k)
    elif k < 0:
        total /= _int_pow(TWO, -k)
    return total


def _exp(x: Decimal) -> Decimal:
    if x == 0:
        return ONE
    if x < EXP_LOWER_LIMIT:
        return ZERO
    if x > EXP_UPPER_LIMIT:
        return DECIMAL_MAX
    return _exp_core(x)


def _ln(x: Decimal) -> Decimal:
    # x > 0. x = m * 10^e * 2^j with m in [0.75, 1.5); ln(m) = 2*atanh((m-1)/(m+1))
    if x == 1:
        return ZERO

    m, e = _split(x)
    j = 0
    while m >= _LN_REDUCED_UPPER:
        m /= 2
        j += 1

    u = (m - 1) / (m + 1)
    u_squared = u * u
    power = u
    series = u
    for k in range(1, ATANH_MAX_TERMS + 1):
        power *= u_squared
        term = power / (2 * k + 1)
        series += term
        if abs(term) < _SERIES_CUTOFF:
            break

    return e * LN10 + j * LN2 + 2 * series


def _nth_root(x: Decimal, n: int) -> Decimal:
    # x > 0, n >= 2. x = y * 10^(q*n) with 1 <= y < 10^n, so root(x) = root(y) * 10^q.
    # root(y) is seeded from exp(ln(y)/n) and polished with Newton on g^n = y.
    m, e = _split(x)
    q, r = divmod(e, n)
    _, digits, exponent = m.as_tuple()
    y = Decimal((0, digits, exponent + r))

    guess = _exp_core(_ln(y) / n)
    try:
        for _ in range(NTH_ROOT_MAX_ITERATIONS):
            g_n_minus_1 = _int_pow(guess, n - 1)
            if g_n_minus_1 == 0:
                break
            delta = (g_n_minus_1 * guess - y) / (n * g_n_minus_1)
            guess -= delta
            if delta == 0 or abs(delta) <= _RELATIVE_TOLERANCE * abs(guess):
                break
    except decimal.Overflow:
        # g**(n-1) left the exponent range; keep the exp/ln estimate
        guess = _exp_core(_ln(y) / n)
    return _scale10(guess, q)


@kernel_precision
def decimal_exp(x: Number) -> Decimal:
    """
    e**x without binary floating point.

    Range reduction x = k*ln2 + r followed by a Taylor series on r / 2^8 and
    repeated squaring. Exactly 1 at x == 0. Below EXP_LOWER_LIMIT the result
    clamps to 0; above EXP_UPPER_LIMIT it clamps to DECIMAL_MAX.
    Relative error is below 1e-32 across the unclamped range.
    """
    x = to_decimal(x, "x")
    if x == 0:
        return ONE
    if x > EXP_UPPER_LIMIT:
        logger.debug(f"decimal_exp({x}) above {EXP_UPPER_LIMIT}; clamped to DECIMAL_MAX")
    return _finish(_exp(x))


@kernel_precision
def decimal_ln(x: Number) -> Decimal:
    """
    Natural logarithm via ln(1+u) = 2*atanh(u/(u+2)) after scaling x into
    [0.75, 1.5) by powers of ten and two.

    Exactly 0 at x == 1. Non-positive x returns the sentinel 0 (use
    ``checked_ln`` to get a DomainError instead).
    """
    x = to_decimal(x, "x")
    if x <= 0:
        logger.debug(f"decimal_ln({x}) outside domain; returning sentinel 0")
        return ZERO
    return _finish(_ln(x))


@kernel_precision
def decimal_sqrt(x: Number) -> Decimal:
    """
    Square root by Newton's method g <- (g + x/g)/2 on the mantissa of x,
    rescaled by half its decimal exponent.

    x <= 0 returns 0 (a sentinel for negative x, the true root for 0).
    Roots outside the kernel's exponent range saturate to DECIMAL_MAX or 0.
    """
    x = to_decimal(x, "x")
    if x <= 0:
        if x < 0:
            logger.debug(f"decimal_sqrt({x}) outside domain; returning sentinel 0")
        return ZERO
    if x == 1:
        return ONE

    m, e = _split(x)
    q, r = divmod(e, 2)
    y = m * 10 if r else m

    guess = TWO if y < 10 else Decimal(6)
    for _ in range(SQRT_MAX_ITERATIONS):
        nxt = (guess + y / guess) / 2
        if nxt == guess:
            break
        guess = nxt
    return _finish(_scale10(guess, q))


@kernel_precision
def decimal_pow(base: Number, exponent: Number) -> Decimal:
    """
    base**exponent.

    Integral exponents use square-and-multiply and are exact up to the
    working precision (negative exponents invert the result). Fractional
    exponents compose exp(exponent * ln(base)); the relative error is then
    bounded by |exponent * ln(base)| times the error of ln plus the error of
    exp, roughly |exponent * ln(base)| * 1e-48 + 1e-32, and the result is
    subject to exp's clamping.

    Sentinels: 0**negative and negative**fractional return 0.
    """
    base = to_decimal(base, "base")
    exponent = to_decimal(exponent, "exponent")

    if exponent == 0 or base == 1:
        return ONE
    if base == 0:
        if exponent < 0:
            logger.debug(f"decimal_pow(0, {exponent}) undefined; returning sentinel 0")
        return ZERO

    if exponent == exponent.to_integral_value():
        return _finish(_integral_pow(base, int(exponent)))

    if base < 0:
        logger.debug(f"decimal_pow({base}, {exponent}) has no real value; returning sentinel 0")
        return ZERO
    try:
        log_power = exponent * _ln(base)
    except decimal.Overflow:
        return DECIMAL_MAX if (exponent > 0) == (base > 1) else ZERO
    return _finish(_exp(log_power))


@kernel_precision
def nth_root(x: Number, n: int) -> Decimal:
    """
    Real n-th root of x by Newton's method on g**n = x.

    Used for monthly/annual rate conversions (n = 12). Odd roots of negative
    numbers are negative; even roots of negative numbers and n < 1 return the
    sentinel 0. Roots beyond the kernel's exponent range saturate to
    DECIMAL_MAX or 0.
    """
    x = to_decimal(x, "x")
    if isinstance(n, bool) or not isinstance(n, numbers.Integral):
        raise TypeError(f"n must be an integer, got {type(n).__name__}")
    n = int(n)

    if n < 1:
        logger.debug(f"nth_root({x}, {n}) undefined for n < 1; returning sentinel 0")
        return ZERO
    if x == 0:
        return ZERO
    if x == 1:
        return ONE
    if n == 1:
        return _finish(_scale10(x, 0))
    if x < 0:
        if n % 2 == 0:
            logger.debug(f"nth_root({x}, {n}) has no real value; returning sentinel 0")
            return ZERO
        return _finish(-_nth_root(-x, n))
    return _finish(_nth_root(x, n))


def checked_ln(x: Number) -> Decimal:
    x = to_decimal(x, "x")
    if x <= 0:
        raise DomainError("ln", x, "argument must be positive")
    return decimal_ln(x)


def checked_sqrt(x: Number) -> Decimal:
    x = to_decimal(x, "x")
    if x < 0:
        raise DomainError("sqrt", x, "argument must be non-negative")
    return decimal_sqrt(x)


def checked_pow(base: Number, exponent: Number) -> Decimal:
    base = to_decimal(base, "base")
    exponent = to_decimal(exponent, "exponent")
    if base == 0 and exponent < 0:
        raise DomainError("pow", base, f"zero cannot be raised to negative power {exponent}")
    if base < 0 and exponent != exponent.to_integral_value():
        raise DomainError("pow", base, f"negative base with fractional exponent {exponent}")
    return decimal_pow(base, exponent)


def checked_nth_root(x: Number, n: int) -> Decimal:
    x = to_decimal(x, "x")
    if isinstance(n, bool) or not isinstance(n, numbers.Integral):
        raise TypeError(f"n must be an integer, got {type(n).__name__}")
    if n < 1:
        raise DomainError("nth_root", x, f"root degree must be >= 1, got {n}")
    if x < 0 and n % 2 == 0:
        raise DomainError("nth_root", x, f"even root ({n}) of a negative number")
    return nth_root(x, n)

from __future__ import annotations

from decimal import Decimal

from .decimal_math import ONE, ZERO, Number, decimal_exp, decimal_ln, decimal_pow, kernel_precision, nth_root, to_decimal
from .discount import check_frequency
from .errors import InvalidInput

MONTHS_PER_YEAR = 12


@kernel_precision
def cpr_to_smm(cpr: Number) -> Decimal:
    """SMM = 1 - (1 - CPR)**(1/12), clamped to [0, 1]."""
    cpr = to_decimal(cpr, "cpr")
    if cpr <= 0:
        return ZERO
    if cpr >= 1:
        return ONE
    return ONE - nth_root(ONE - cpr, MONTHS_PER_YEAR)


@kernel_precision
def smm_to_cpr(smm: Number) -> Decimal:
    """CPR = 1 - (1 - SMM)**12, clamped to [0, 1]."""
    smm = to_decimal(smm, "smm")
    if smm <= 0:
        return ZERO
    if smm >= 1:
        return ONE
    return ONE - decimal_pow(ONE - smm, MONTHS_PER_YEAR)


def _check_rate(rate: Number, frequency: int) -> Decimal:
    rate = to_decimal(rate, "rate")
    if rate / frequency <= -1:
        raise InvalidInput(f"rate must be greater than -100% per period, got {rate}")
    return rate


@kernel_precision
def periodic_to_effective_annual(rate: Number, frequency: int) -> Decimal:
    """(1 + r/f)**f - 1"""
    frequency = check_frequency(frequency)
    rate = _check_rate(rate, frequency)
    return decimal_pow(ONE + rate / frequency, frequency) - ONE


@kernel_precision
def effective_annual_to_periodic(rate: Number, frequency: int) -> Decimal:
    """f * ((1 + r)**(1/f) - 1)"""
    frequency = check_frequency(frequency)
    rate = _check_rate(rate, 1)
    return frequency * (nth_root(ONE + rate, frequency) - ONE)


@kernel_precision
def continuous_to_periodic(rate: Number, frequency: int) -> Decimal:
    frequency = check_frequency(frequency)
    rate = to_decimal(rate, "rate")
    return frequency * (decimal_exp(rate / frequency) - ONE)


@kernel_precision
def periodic_to_continuous(rate: Number, frequency: int) -> Decimal:
    frequency = check_frequency(frequency)
    rate = _check_rate(rate, frequency)
    return frequency * decimal_ln(ONE + rate / frequency)

from __future__ import annotations

import decimal
import numbers
from decimal import Decimal
from typing import Iterator, List, Tuple, Union

from .curves import Curve, interpolate
from .decimal_math import ONE, ZERO, Number, decimal_pow, kernel_precision, to_decimal
from .errors import DivisionByZero, InvalidInput
from .schedule import Cashflow, CashflowSchedule

RateOrCurve = Union[Decimal, int, str, Curve]


def check_frequency(frequency: int) -> int:
    if isinstance(frequency, bool) or not isinstance(frequency, numbers.Integral) or frequency <= 0:
        raise InvalidInput(f"frequency must be a positive integer, got {frequency!r}")
    return int(frequency)


def _check_periods(periods: int, minimum: int = 0) -> int:
    if isinstance(periods, bool) or not isinstance(periods, numbers.Integral) or periods < minimum:
        raise InvalidInput(f"periods must be an integer >= {minimum}, got {periods!r}")
    return int(periods)


def _growth(rate: Decimal) -> Decimal:
    if rate <= -1:
        raise InvalidInput(f"rate must be greater than -100% per period, got {rate}")
    return ONE + rate


def _grow(factor: Decimal, growth: Decimal, periods: int, last_period: int) -> Decimal:
    # factor * growth**periods, one period at a time
    try:
        for _ in range(periods):
            factor *= growth
    except decimal.Overflow as exc:
        raise DivisionByZero(
            f"compound factor overflowed; discount factor underflows at period {last_period}"
        ) from exc
    if factor == 0:
        raise DivisionByZero(f"compound factor underflowed to zero at period {last_period}")
    return factor


@kernel_precision
def compound_factor(rate: Number, t: Number) -> Decimal:
    """(1 + rate)**t; whole-number t multiplies period by period, fractional t uses decimal_pow."""
    rate = to_decimal(rate, "rate")
    t = to_decimal(t, "t")
    growth = _growth(rate)

    if t != t.to_integral_value():
        return decimal_pow(growth, t)

    n = int(t)
    if n >= 0:
        return _grow(ONE, growth, n, n)
    try:
        return ONE / _grow(ONE, growth, -n, -n)
    except DivisionByZero:
        if growth > 1:
            # (1 + rate)**-n vanishes below the context's smallest exponent
            return ZERO
        raise


@kernel_precision
def discount_factor(rate: Number, t: Number) -> Decimal:
    factor = compound_factor(rate, t)
    if factor == 0:
        raise DivisionByZero(f"discount factor for rate {rate} at t={t}")
    return ONE / factor


@kernel_precision
def future_value(amount: Number, rate: Number, t: Number) -> Decimal:
    return to_decimal(amount, "amount") * compound_factor(rate, t)


@kernel_precision
def annuity_pv(rate: Number, periods: int, payment: Number, future_value: Number = 0) -> Decimal:
    """``payment`` at the end of each period plus ``future_value`` with the last, valued today."""
    rate = to_decimal(rate, "rate")
    periods = _check_periods(periods)
    payment = to_decimal(payment, "payment")
    fv = to_decimal(future_value, "future_value")

    if rate == 0:
        return payment * periods + fv
    df = discount_factor(rate, periods)
    return payment * (ONE - df) / rate + fv * df


@kernel_precision
def annuity_fv(rate: Number, periods: int, payment: Number, present_value: Number = 0) -> Decimal:
    rate = to_decimal(rate, "rate")
    periods = _check_periods(periods)
    payment = to_decimal(payment, "payment")
    pv = to_decimal(present_value, "present_value")

    if rate == 0:
        return pv + payment * periods
    factor = compound_factor(rate, periods)
    return pv * factor + payment * (factor - ONE) / rate


@kernel_precision
def payment(rate: Number, periods: int, present_value: Number, future_value: Number = 0) -> Decimal:
    """Level payment that amortises ``present_value`` down to ``future_value`` over ``periods``."""
    rate = to_decimal(rate, "rate")
    periods = _check_periods(periods, minimum=1)
    pv = to_decimal(present_value, "present_value")
    fv = to_decimal(future_value, "future_value")

    if rate == 0:
        return (pv - fv) / periods
    df = discount_factor(rate, periods)
    annuity = (ONE - df) / rate
    if annuity == 0:
        raise DivisionByZero("payment: annuity factor is zero")
    return (pv - fv * df) / annuity


def iter_discounting(
    schedule: CashflowSchedule,
    rate_or_curve: RateOrCurve,
    frequency: int = 1,
    spread: Number = 0,
) -> Iterator[Tuple[Cashflow, Decimal, Decimal]]:
    """
    Walk ``schedule`` yielding (cashflow, compound factor, per-period growth).

    The compound factor of a cashflow at offset n is growth**n. When it
    underflows to zero, or overflows so that the discount factor would
    underflow, DivisionByZero is raised. For a flat rate one factor is
    carried forward period by period.
    """
    frequency = check_frequency(frequency)
    spread = to_decimal(spread, "spread")

    if isinstance(rate_or_curve, Curve):
        for flow in schedule:
            t = Decimal(flow.period_offset) / frequency
            growth = _growth((interpolate(rate_or_curve, t) + spread) / frequency)
            factor = _grow(ONE, growth, flow.period_offset, flow.period_offset)
            yield flow, factor, growth
        return

    growth = _growth((to_decimal(rate_or_curve, "rate") + spread) / frequency)
    factor = ONE
    period = 0
    for flow in schedule:
        factor = _grow(factor, growth, flow.period_offset - period, flow.period_offset)
        period = flow.period_offset
        yield flow, factor, growth


@kernel_precision
def discount_factors(
    schedule: CashflowSchedule,
    rate_or_curve: RateOrCurve,
    frequency: int = 1,
    spread: Number = 0,
) -> List[Decimal]:
    return [ONE / factor for _, factor, _ in iter_discounting(schedule, rate_or_curve, frequency, spread)]


@kernel_precision
def present_value(
    schedule: CashflowSchedule,
    rate_or_curve: RateOrCurve,
    frequency: int = 1,
    spread: Number = 0,
) -> Decimal:
    total = ZERO
    for flow, factor, _ in iter_discounting(schedule, rate_or_curve, frequency, spread):
        total += flow.amount / factor
    return total

from __future__ import annotations

from decimal import Decimal

from .curves import Curve
from .decimal_math import ZERO, Number, kernel_precision, to_decimal
from .discount import check_frequency, iter_discounting, present_value
from .errors import DivisionByZero
from .schedule import CashflowSchedule
from .yields import price_derivative

ONE_BP = Decimal("0.0001")


def _nonzero_price(price: Decimal, what: str) -> Decimal:
    if price == 0:
        raise DivisionByZero(f"{what}: price is zero")
    return price


@kernel_precision
def macaulay_duration(schedule: CashflowSchedule, y: Number, frequency: int = 1) -> Decimal:
    frequency = check_frequency(frequency)
    price = ZERO
    weighted = ZERO
    for flow, factor, _ in iter_discounting(schedule, y, frequency):
        pv = flow.amount / factor
        price += pv
        weighted += Decimal(flow.period_offset) / frequency * pv
    return weighted / _nonzero_price(price, "macaulay_duration")


@kernel_precision
def modified_duration(schedule: CashflowSchedule, y: Number, frequency: int = 1) -> Decimal:
    price = _nonzero_price(present_value(schedule, y, frequency), "modified_duration")
    return -price_derivative(schedule, y, frequency) / price


@kernel_precision
def convexity(schedule: CashflowSchedule, y: Number, frequency: int = 1) -> Decimal:
    frequency = check_frequency(frequency)
    price = ZERO
    second = ZERO
    for flow, factor, growth in iter_discounting(schedule, y, frequency):
        n = flow.period_offset
        pv = flow.amount / factor
        price += pv
        second += n * (n + 1) * pv / (frequency * frequency * growth * growth)
    return second / _nonzero_price(price, "convexity")


@kernel_precision
def dv01(schedule: CashflowSchedule, y: Number, frequency: int = 1, bp: Number = ONE_BP) -> Decimal:
    """Price change per 1bp, central difference. Negative for a long bond."""
    y = to_decimal(y, "y")
    h = to_decimal(bp, "bp")
    up = present_value(schedule, y + h, frequency)
    down = present_value(schedule, y - h, frequency)
    return (up - down) / 2 * (ONE_BP / h)


def duration_from_dv01(dv01_value: Number, price: Number) -> Decimal:
    dv01_value = to_decimal(dv01_value, "dv01")
    price = _nonzero_price(to_decimal(price, "price"), "duration_from_dv01")
    return -dv01_value / (price * ONE_BP)


@kernel_precision
def spread_duration(
    schedule: CashflowSchedule,
    curve: Curve,
    z_spread: Number,
    frequency: int = 1,
) -> Decimal:
    z = to_decimal(z_spread, "z_spread")
    base = _nonzero_price(present_value(schedule, curve, frequency, spread=z), "spread_duration")
    down = present_value(schedule, curve, frequency, spread=z - ONE_BP)
    up = present_value(schedule, curve, frequency, spread=z + ONE_BP)
    return (down - up) / (2 * base * ONE_BP)

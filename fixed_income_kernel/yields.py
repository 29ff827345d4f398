from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from .curves import Curve, interpolate
from .decimal_math import ONE, ZERO, Number, decimal_pow, kernel_precision, nth_root, to_decimal
from .discount import RateOrCurve, check_frequency, compound_factor, discount_factor, iter_discounting, present_value
from .errors import InvalidInput
from .schedule import CashflowSchedule
from .solver import (
    BOND_YIELD_CONFIG,
    IRR_CONFIG,
    Z_SPREAD_CONFIG,
    SolverConfig,
    SolverOutcome,
    newton_raphson,
)

logger = logging.getLogger(__name__)


def _years_to_last_cashflow(schedule: CashflowSchedule, frequency: int) -> Decimal:
    if schedule.last_offset == 0:
        raise InvalidInput("Schedule has no cashflow after offset 0; nothing to discount.")
    return Decimal(schedule.last_offset) / frequency


def _check_price(target_price: Number) -> Decimal:
    target = to_decimal(target_price, "target_price")
    if target <= 0:
        raise InvalidInput(f"target_price must be positive, got {target}")
    return target


@kernel_precision
def price_from_yield(schedule: CashflowSchedule, y: Number, frequency: int = 1) -> Decimal:
    """Price at annual yield ``y`` compounded ``frequency`` times a year."""
    return present_value(schedule, y, frequency)


@kernel_precision
def price_derivative(
    schedule: CashflowSchedule,
    rate_or_curve: RateOrCurve,
    frequency: int = 1,
    spread: Number = 0,
) -> Decimal:
    """dP/dy in closed form; with a curve, the derivative with respect to the spread."""
    frequency = check_frequency(frequency)
    total = ZERO
    for flow, factor, growth in iter_discounting(schedule, rate_or_curve, frequency, spread):
        total -= flow.period_offset * (flow.amount / factor) / (frequency * growth)
    return total


@kernel_precision
def yield_outcome(
    schedule: CashflowSchedule,
    target_price: Number,
    config: SolverConfig = BOND_YIELD_CONFIG,
    frequency: int = 1,
    initial_guess: Optional[Number] = None,
    name: str = "solve_yield",
) -> SolverOutcome:
    frequency = check_frequency(frequency)
    target = _check_price(target_price)
    years = _years_to_last_cashflow(schedule, frequency)

    if initial_guess is None:
        initial_guess = (schedule.total / target - ONE) / years

    def f(y: Decimal) -> Decimal:
        return present_value(schedule, y, frequency) - target

    def f_prime(y: Decimal) -> Decimal:
        return price_derivative(schedule, y, frequency)

    return newton_raphson(f, f_prime, initial_guess, config, name)


def solve_yield(
    schedule: CashflowSchedule,
    target_price: Number,
    config: SolverConfig = BOND_YIELD_CONFIG,
    frequency: int = 1,
    initial_guess: Optional[Number] = None,
) -> Decimal:
    """Annual yield reconciling ``schedule`` with ``target_price``; raises ConvergenceFailure."""
    return yield_outcome(schedule, target_price, config, frequency, initial_guess).unwrap()


def solve_yield_to_call(
    schedule: CashflowSchedule,
    call_offset: int,
    call_price: Number,
    target_price: Number,
    config: SolverConfig = BOND_YIELD_CONFIG,
    frequency: int = 1,
    initial_guess: Optional[Number] = None,
) -> Decimal:
    """
    Yield assuming redemption at ``call_price`` on ``call_offset``: cashflows
    after the call date are dropped and the call price is paid with the
    cashflow on the call date.
    """
    if call_offset >= schedule.last_offset:
        raise InvalidInput(
            f"call_offset ({call_offset}) must fall before the final cashflow ({schedule.last_offset})"
        )
    to_call = schedule.truncated(call_offset).with_cashflow(call_offset, call_price)
    return yield_outcome(
        to_call, target_price, config, frequency, initial_guess, name="solve_yield_to_call"
    ).unwrap()


@kernel_precision
def irr_outcome(
    schedule: CashflowSchedule,
    config: SolverConfig = IRR_CONFIG,
    frequency: int = 1,
    initial_guess: Optional[Number] = None,
) -> SolverOutcome:
    frequency = check_frequency(frequency)
    years = _years_to_last_cashflow(schedule, frequency)

    inflows = sum((a for a in schedule.amounts if a > 0), ZERO)
    outflows = -sum((a for a in schedule.amounts if a < 0), ZERO)
    if inflows == 0 or outflows == 0:
        raise InvalidInput("IRR needs at least one positive and one negative cashflow.")

    if initial_guess is None:
        initial_guess = (inflows / outflows - ONE) / years

    def f(y: Decimal) -> Decimal:
        return present_value(schedule, y, frequency)

    def f_prime(y: Decimal) -> Decimal:
        return price_derivative(schedule, y, frequency)

    return newton_raphson(f, f_prime, initial_guess, config, "solve_irr")


def solve_irr(
    schedule: CashflowSchedule,
    config: SolverConfig = IRR_CONFIG,
    frequency: int = 1,
    initial_guess: Optional[Number] = None,
) -> Decimal:
    """Rate at which the schedule's net present value is zero."""
    return irr_outcome(schedule, config, frequency, initial_guess).unwrap()


@kernel_precision
def z_spread_outcome(
    schedule: CashflowSchedule,
    curve: Curve,
    target_price: Number,
    config: SolverConfig = Z_SPREAD_CONFIG,
    frequency: int = 1,
    initial_guess: Optional[Number] = None,
) -> SolverOutcome:
    frequency = check_frequency(frequency)
    target = _check_price(target_price)
    years = _years_to_last_cashflow(schedule, frequency)

    if initial_guess is None:
        yield_guess = (schedule.total / target - ONE) / years
        initial_guess = yield_guess - interpolate(curve, years)

    def f(z: Decimal) -> Decimal:
        return present_value(schedule, curve, frequency, spread=z) - target

    def f_prime(z: Decimal) -> Decimal:
        return price_derivative(schedule, curve, frequency, spread=z)

    return newton_raphson(f, f_prime, initial_guess, config, "solve_z_spread")


def solve_z_spread(
    schedule: CashflowSchedule,
    curve: Curve,
    target_price: Number,
    config: SolverConfig = Z_SPREAD_CONFIG,
    frequency: int = 1,
    initial_guess: Optional[Number] = None,
) -> Decimal:
    return z_spread_outcome(schedule, curve, target_price, config, frequency, initial_guess).unwrap()


@kernel_precision
def implied_forward_rate(curve: Curve, t1: Number, t2: Number, frequency: int = 1) -> Decimal:
    """Forward rate between t1 and t2 (years) implied by a zero curve."""
    frequency = check_frequency(frequency)
    t1 = to_decimal(t1, "t1")
    t2 = to_decimal(t2, "t2")
    if t1 < 0:
        raise InvalidInput(f"t1 must be non-negative, got {t1}")
    if t2 <= t1:
        raise InvalidInput(f"t2 ({t2}) must be after t1 ({t1})")

    growth_1 = compound_factor(interpolate(curve, t1) / frequency, t1 * frequency)
    growth_2 = compound_factor(interpolate(curve, t2) / frequency, t2 * frequency)
    ratio = growth_2 / growth_1

    periods = (t2 - t1) * frequency
    if periods == periods.to_integral_value():
        per_period = nth_root(ratio, int(periods))
    else:
        per_period = decimal_pow(ratio, ONE / periods)
    return frequency * (per_period - ONE)


@kernel_precision
def par_rate(curve: Curve, periods: int, frequency: int = 1) -> Decimal:
    frequency = check_frequency(frequency)
    if isinstance(periods, bool) or not isinstance(periods, int) or periods <= 0:
        raise InvalidInput(f"periods must be a positive integer, got {periods!r}")

    dfs = [
        discount_factor(interpolate(curve, Decimal(i) / frequency) / frequency, i)
        for i in range(1, periods + 1)
    ]
    annuity = sum(dfs, ZERO)
    # c = f * (1 - DF_n) / sum(DF_i)
    rate = frequency * (ONE - dfs[-1]) / annuity
    logger.debug(f"par_rate over {periods} periods (frequency {frequency}): {rate}")
    return rate


def _check_par_points(par_points, frequency: int) -> List[Tuple[Decimal, Decimal]]:
    points = [(to_decimal(m, "maturity"), to_decimal(c, "par_rate")) for m, c in par_points]
    if not points:
        raise InvalidInput("bootstrap_spot_curve needs at least one par point.")

    previous = ZERO
    for maturity, _ in points:
        if maturity <= previous:
            raise InvalidInput(
                f"par maturities must be positive and strictly increasing, got {maturity} after {previous}"
            )
        periods = maturity * frequency
        if periods != periods.to_integral_value():
            raise InvalidInput(f"maturity {maturity} is not a whole number of periods at frequency {frequency}")
        previous = maturity
    return points


@kernel_precision
def bootstrap_spot_curve(
    par_points: Iterable[Tuple[Number, Number]],
    frequency: int = 1,
    config: SolverConfig = BOND_YIELD_CONFIG,
    name: str = "spot",
) -> Curve:
    """
    Zero curve repricing each (maturity, par coupon) bullet at exactly par.

    Maturities are taken shortest first. Each new knot is solved with the
    earlier knots held fixed; coupon dates between the previous knot and the
    new maturity read the linear interpolation towards the unknown endpoint.
    Raises ConvergenceFailure if a knot cannot be solved.
    """
    frequency = check_frequency(frequency)
    knots: List[Tuple[Decimal, Decimal]] = []

    for maturity, par in _check_par_points(par_points, frequency):
        periods = int(maturity * frequency)
        coupon = par / frequency
        prev_maturity = knots[-1][0] if knots else None

        def weight(t: Decimal) -> Decimal:
            # sensitivity of curve(t) to the unknown knot value
            if prev_maturity is None:
                return ONE
            if t <= prev_maturity:
                return ZERO
            return (t - prev_maturity) / (maturity - prev_maturity)

        def terms(s: Decimal):
            trial = Curve.from_points(knots + [(maturity, s)], name)
            for i in range(1, periods + 1):
                t = Decimal(i) / frequency
                rate = interpolate(trial, t) / frequency
                cash = coupon + ONE if i == periods else coupon
                yield i, t, cash, discount_factor(rate, i), ONE + rate

        def f(s: Decimal) -> Decimal:
            return sum((cash * df for _, _, cash, df, _ in terms(s)), ZERO) - ONE

        def f_prime(s: Decimal) -> Decimal:
            return -sum(
                (i * weight(t) * cash * df / (frequency * growth) for i, t, cash, df, growth in terms(s)),
                ZERO,
            )

        spot = newton_raphson(f, f_prime, par, config, "bootstrap_spot_curve").unwrap()
        logger.debug(f"bootstrap_spot_curve: {maturity}y par {par} -> spot {spot}")
        knots.append((maturity, spot))

    return Curve.from_points(knots, name)


@kernel_precision
def xirr_outcome(
    flows: Iterable[Tuple[Number, Number]],
    config: SolverConfig = IRR_CONFIG,
    initial_guess: Optional[Number] = None,
) -> SolverOutcome:
    dated = [(to_decimal(t, "t"), to_decimal(a, "amount")) for t, a in flows]
    if len(dated) < 2:
        raise InvalidInput("XIRR needs at least two cashflows.")
    if any(t < 0 for t, _ in dated):
        raise InvalidInput("XIRR cashflow times must be non-negative year fractions.")

    inflows = sum((a for _, a in dated if a > 0), ZERO)
    outflows = -sum((a for _, a in dated if a < 0), ZERO)
    if inflows == 0 or outflows == 0:
        raise InvalidInput("XIRR needs at least one positive and one negative cashflow.")
    horizon = max(t for t, _ in dated)
    if horizon == 0:
        raise InvalidInput("XIRR needs a cashflow after t=0.")

    if initial_guess is None:
        initial_guess = (inflows / outflows - ONE) / horizon

    def f(r: Decimal) -> Decimal:
        return sum((a / compound_factor(r, t) for t, a in dated), ZERO)

    def f_prime(r: Decimal) -> Decimal:
        return -sum((t * (a / compound_factor(r, t)) / (ONE + r) for t, a in dated), ZERO)

    return newton_raphson(f, f_prime, initial_guess, config, "solve_xirr")


def solve_xirr(
    flows: Iterable[Tuple[Number, Number]],
    config: SolverConfig = IRR_CONFIG,
    initial_guess: Optional[Number] = None,
) -> Decimal:
    """Annual IRR of (year_fraction, amount) cashflows at irregular times."""
    return xirr_outcome(flows, config, initial_guess).unwrap()

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable

from .decimal_math import Number, kernel_precision, to_decimal
from .errors import ConvergenceFailure, InvalidInput

logger = logging.getLogger(__name__)

PriceFunction = Callable[[Decimal], Decimal]


@dataclass(frozen=True)
class SolverConfig:
    """
    Iteration budget, tolerance and divergence clamp for one solve.

    Iterates are clamped into [lower_bound, upper_bound] after every step.
    """
    max_iterations: int
    epsilon: Decimal
    lower_bound: Decimal
    upper_bound: Decimal

    def __post_init__(self):
        if isinstance(self.max_iterations, bool) or not isinstance(self.max_iterations, int):
            raise InvalidInput(f"max_iterations must be an int, got {self.max_iterations!r}")
        if self.max_iterations <= 0:
            raise InvalidInput(f"max_iterations must be positive, got {self.max_iterations}")

        epsilon = to_decimal(self.epsilon, "epsilon")
        lower = to_decimal(self.lower_bound, "lower_bound")
        upper = to_decimal(self.upper_bound, "upper_bound")
        if epsilon <= 0:
            raise InvalidInput(f"epsilon must be positive, got {epsilon}")
        if lower >= upper:
            raise InvalidInput(f"lower_bound ({lower}) must be below upper_bound ({upper})")

        object.__setattr__(self, "epsilon", epsilon)
        object.__setattr__(self, "lower_bound", lower)
        object.__setattr__(self, "upper_bound", upper)

    def clamp(self, value: Decimal) -> Decimal:
        if value < self.lower_bound:
            return self.lower_bound
        if value > self.upper_bound:
            return self.upper_bound
        return value


# Per-instrument presets. Bounds are annualised rates (or spreads).
BOND_YIELD_CONFIG = SolverConfig(100, Decimal("1e-10"), Decimal("-0.99"), Decimal("5"))
Z_SPREAD_CONFIG = SolverConfig(50, Decimal("1e-7"), Decimal("-0.99"), Decimal("5"))
IRR_CONFIG = SolverConfig(100, Decimal("1e-7"), Decimal("-0.99"), Decimal("100"))
POLICY_RATE_CONFIG = SolverConfig(20, Decimal("1e-4"), Decimal("-0.5"), Decimal("1"))


class SolverStatus(Enum):
    CONVERGED = "converged"
    ZERO_DERIVATIVE = "zero_derivative"
    MAX_ITERATIONS = "max_iterations"


@dataclass(frozen=True)
class SolverOutcome:
    status: SolverStatus
    value: Decimal
    iterations: int
    residual: Decimal
    function: str = "newton_raphson"

    @property
    def converged(self) -> bool:
        return self.status is SolverStatus.CONVERGED

    def unwrap(self) -> Decimal:
        """The root, or ConvergenceFailure when the solve did not converge."""
        if self.converged:
            return self.value

        reason = (
            "derivative evaluated to zero"
            if self.status is SolverStatus.ZERO_DERIVATIVE
            else "iteration budget exhausted"
        )
        raise ConvergenceFailure(
            function=self.function,
            iterations=self.iterations,
            last_residual=self.residual,
            last_value=self.value,
            reason=reason,
        )


@kernel_precision
def newton_raphson(
    f: PriceFunction,
    f_prime: PriceFunction,
    initial_guess: Number,
    config: SolverConfig,
    name: str = "newton_raphson",
) -> SolverOutcome:
    """
    Newton-Raphson on f(y) = 0: y <- y - f(y)/f'(y).

    Converged once |f(y)| < config.epsilon. ``iterations`` counts Newton
    steps taken. A zero derivative stops the solve at once; it is never
    divided by.
    """
    y = config.clamp(to_decimal(initial_guess, "initial_guess"))

    for i in range(config.max_iterations):
        residual = to_decimal(f(y), "f(y)")
        if abs(residual) < config.epsilon:
            logger.debug(f"{name} converged to {y} after {i} iterations (residual {residual})")
            return SolverOutcome(SolverStatus.CONVERGED, y, i, residual, name)

        slope = to_decimal(f_prime(y), "f'(y)")
        if slope == 0:
            logger.warning(f"{name}: zero derivative at y={y} after {i} iterations (residual {residual})")
            return SolverOutcome(SolverStatus.ZERO_DERIVATIVE, y, i, residual, name)

        y = config.clamp(y - residual / slope)

    residual = to_decimal(f(y), "f(y)")
    if abs(residual) < config.epsilon:
        logger.debug(f"{name} converged to {y} after {config.max_iterations} iterations (residual {residual})")
        return SolverOutcome(SolverStatus.CONVERGED, y, config.max_iterations, residual, name)

    logger.warning(
        f"{name}: no convergence within {config.max_iterations} iterations; "
        f"last value {y}, residual {residual}"
    )
    return SolverOutcome(SolverStatus.MAX_ITERATIONS, y, config.max_iterations, residual, name)


def solve_root(
    f: PriceFunction,
    f_prime: PriceFunction,
    initial_guess: Number,
    config: SolverConfig,
    name: str = "solve_root",
) -> Decimal:
    """Converged root of f, or ConvergenceFailure{iterations, last_residual}."""
    return newton_raphson(f, f_prime, initial_guess, config, name).unwrap()

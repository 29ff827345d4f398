import logging
from decimal import Decimal

import pytest

from fixed_income_kernel.errors import ConvergenceFailure, InvalidInput
from fixed_income_kernel.solver import (
    BOND_YIELD_CONFIG,
    IRR_CONFIG,
    POLICY_RATE_CONFIG,
    Z_SPREAD_CONFIG,
    SolverConfig,
    SolverStatus,
    newton_raphson,
    solve_root,
)


@pytest.fixture(scope="module")
def config():
    return SolverConfig(20, Decimal("1e-12"), Decimal("-10"), Decimal("10"))


def test_linear_function_converges_in_one_step(config):
    target = Decimal("0.0425")
    outcome = newton_raphson(lambda y: y - target, lambda y: Decimal(1), 0, config)
    assert outcome.converged
    assert outcome.value == target
    assert outcome.iterations == 1, "Newton on a line should need exactly one step"
    assert outcome.residual == 0


def test_initial_guess_already_a_root(config):
    outcome = newton_raphson(lambda y: y - 2, lambda y: Decimal(1), 2, config)
    assert outcome.converged
    assert outcome.iterations == 0


def test_square_root_of_two(config):
    root = solve_root(lambda y: y * y - 2, lambda y: 2 * y, 1, config)
    assert abs(root - Decimal(2).sqrt()) < Decimal("1e-12")


def test_zero_derivative_fails_without_dividing(config):
    outcome = newton_raphson(lambda y: y * y + 1, lambda y: 2 * y, 0, config)
    assert outcome.status is SolverStatus.ZERO_DERIVATIVE
    assert outcome.iterations == 0
    assert outcome.residual == 1

    with pytest.raises(ConvergenceFailure) as excinfo:
        solve_root(lambda y: y * y + 1, lambda y: 2 * y, 0, config)
    assert excinfo.value.iterations == 0
    assert excinfo.value.last_residual == 1


def test_iteration_budget_exhausted(config):
    outcome = newton_raphson(lambda y: Decimal(1), lambda y: Decimal(1), 0, config, name="constant")
    assert outcome.status is SolverStatus.MAX_ITERATIONS
    assert outcome.iterations == config.max_iterations
    assert outcome.value == config.lower_bound

    with pytest.raises(ConvergenceFailure) as excinfo:
        outcome.unwrap()
    assert excinfo.value.function == "constant"
    assert excinfo.value.iterations == 20
    assert excinfo.value.last_residual == 1


def test_iterates_are_clamped(config):
    narrow = SolverConfig(5, Decimal("1e-12"), Decimal("-1"), Decimal("1"))
    outcome = newton_raphson(lambda y: y - 10, lambda y: Decimal(1), 0, narrow)
    assert not outcome.converged
    assert outcome.value == 1
    assert outcome.residual == -9


def test_initial_guess_is_clamped(config):
    outcome = newton_raphson(lambda y: y - 3, lambda y: Decimal(1), 500, config)
    assert outcome.converged
    assert outcome.value == 3


def test_failures_are_logged(config, caplog):
    with caplog.at_level(logging.WARNING, logger="fixed_income_kernel.solver"):
        newton_raphson(lambda y: Decimal(1), lambda y: Decimal(0), 0, config, name="flat")
    assert "flat: zero derivative" in caplog.text


def test_float_returning_function_is_rejected(config):
    with pytest.raises(TypeError):
        newton_raphson(lambda y: float(y) - 1.0, lambda y: Decimal(1), 0, config)


@pytest.mark.parametrize(
    "args",
    [
        (0, "1e-7", "-1", "1"),
        (10, "0", "-1", "1"),
        (10, "-1e-7", "-1", "1"),
        (10, "1e-7", "1", "1"),
        (10, "1e-7", "2", "1"),
    ],
)
def test_config_validation(args):
    with pytest.raises(InvalidInput):
        SolverConfig(*args)


def test_config_normalizes_to_decimal():
    cfg = SolverConfig(10, "1e-7", -1, "1")
    assert cfg.epsilon == Decimal("1e-7")
    assert isinstance(cfg.lower_bound, Decimal)
    with pytest.raises(TypeError):
        SolverConfig(10, 1e-7, -1, 1)


def test_presets():
    assert BOND_YIELD_CONFIG.max_iterations == 100
    assert BOND_YIELD_CONFIG.epsilon == Decimal("1e-10")
    assert Z_SPREAD_CONFIG.max_iterations == 50
    assert Z_SPREAD_CONFIG.epsilon == Decimal("1e-7")
    assert IRR_CONFIG.upper_bound == 100
    assert POLICY_RATE_CONFIG.max_iterations == 20
    assert POLICY_RATE_CONFIG.epsilon == Decimal("1e-4")

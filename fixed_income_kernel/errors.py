from __future__ import annotations

from decimal import Decimal
from typing import Optional


class KernelError(Exception):
    """Base class for every failure raised by the kernel."""


class InvalidInput(KernelError, ValueError):
    """Malformed schedule, curve, config or rate."""


class DomainError(KernelError, ValueError):
    """
    Operand outside a primitive's mathematical domain.

    Only the ``checked_*`` primitives raise this; the plain primitives
    return their documented sentinel instead.
    """

    def __init__(self, function: str, operand: Decimal, reason: str):
        self.function = function
        self.operand = operand
        self.reason = reason
        super().__init__(f"{function}({operand}): {reason}")


class DivisionByZero(KernelError, ZeroDivisionError):
    """A discount factor or derivative evaluated to exactly zero."""

    def __init__(self, context: str):
        self.context = context
        super().__init__(f"Division by zero: {context}")


class ConvergenceFailure(KernelError):
    """
    Root finder stopped without meeting epsilon.

    Carries the iteration count reached and the last residual so the caller
    can retry with another guess, widen bounds, or surface the failure.
    """

    def __init__(
        self,
        function: str,
        iterations: int,
        last_residual: Decimal,
        last_value: Optional[Decimal] = None,
        reason: str = "iteration budget exhausted",
    ):
        self.function = function
        self.iterations = iterations
        self.last_residual = last_residual
        self.last_value = last_value
        self.reason = reason
        super().__init__(
            f"{function} failed to converge after {iterations} iterations "
            f"({reason}); last residual {last_residual}"
        )

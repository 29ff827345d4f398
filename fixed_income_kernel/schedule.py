from __future__ import annotations

import numbers
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Iterator, List, Tuple, Union

import pandas as pd

from .decimal_math import Number, kernel_precision, to_decimal
from .errors import InvalidInput


@dataclass(frozen=True)
class Cashflow:
    period_offset: int
    amount: Decimal


FlowLike = Union[Cashflow, Tuple[int, Number]]


def _to_offset(value, name: str = "period_offset") -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise InvalidInput(f"{name} must be an integer, got {value!r}")
    offset = int(value)
    if offset < 0:
        raise InvalidInput(f"{name} must be non-negative, got {offset}")
    return offset


@dataclass(frozen=True)
class CashflowSchedule:
    """
    Ordered (period_offset, amount) pairs.

    Offsets are whole periods from the valuation point, non-negative and
    strictly increasing; the schedule is never empty.
    """
    flows: Tuple[Cashflow, ...]

    def __post_init__(self):
        normalized: List[Cashflow] = []
        for flow in self.flows:
            if isinstance(flow, Cashflow):
                offset, amount = flow.period_offset, flow.amount
            else:
                offset, amount = flow
            normalized.append(Cashflow(_to_offset(offset), to_decimal(amount, "amount")))

        if not normalized:
            raise InvalidInput("Cashflow schedule must not be empty.")

        offsets = [f.period_offset for f in normalized]
        if any(offsets[i] >= offsets[i + 1] for i in range(len(offsets) - 1)):
            raise InvalidInput(f"Cashflow offsets must be strictly increasing: {offsets}")

        object.__setattr__(self, "flows", tuple(normalized))

    def __iter__(self) -> Iterator[Cashflow]:
        return iter(self.flows)

    def __len__(self) -> int:
        return len(self.flows)

    @property
    def offsets(self) -> List[int]:
        return [f.period_offset for f in self.flows]

    @property
    def amounts(self) -> List[Decimal]:
        return [f.amount for f in self.flows]

    @property
    def last_offset(self) -> int:
        return self.flows[-1].period_offset

    @property
    @kernel_precision
    def total(self) -> Decimal:
        return sum(self.amounts, Decimal(0))

    def truncated(self, offset: int) -> "CashflowSchedule":
        """Cashflows at or before ``offset``."""
        offset = _to_offset(offset, "offset")
        kept = [f for f in self.flows if f.period_offset <= offset]
        if not kept:
            raise InvalidInput(f"No cashflows at or before offset {offset}.")
        return CashflowSchedule(tuple(kept))

    @kernel_precision
    def with_cashflow(self, offset: int, amount: Number) -> "CashflowSchedule":
        """Add ``amount`` at ``offset``, merging with an existing cashflow there."""
        offset = _to_offset(offset, "offset")
        amount = to_decimal(amount, "amount")

        merged = {f.period_offset: f.amount for f in self.flows}
        merged[offset] = merged.get(offset, Decimal(0)) + amount
        return CashflowSchedule(tuple(sorted(merged.items())))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"period_offset": self.offsets, "amount": self.amounts})


def make_schedule(flows: Iterable[FlowLike]) -> CashflowSchedule:
    return CashflowSchedule(tuple(flows))


@kernel_precision
def bullet_bond_schedule(
    face: Number,
    coupon_rate: Number,
    years: Number,
    frequency: int = 1,
) -> CashflowSchedule:
    """
    Fixed-coupon bullet bond: coupon face*coupon_rate/frequency every period,
    face repaid with the last coupon. ``years * frequency`` must be whole.
    """
    face = to_decimal(face, "face")
    coupon_rate = to_decimal(coupon_rate, "coupon_rate")
    years = to_decimal(years, "years")
    frequency = _to_offset(frequency, "frequency")
    if frequency == 0:
        raise InvalidInput("frequency must be positive")

    periods = years * frequency
    if periods <= 0 or periods != periods.to_integral_value():
        raise InvalidInput(f"years * frequency must be a positive whole number, got {periods}")
    n = int(periods)

    coupon = face * coupon_rate / frequency
    flows = [(i, coupon) for i in range(1, n)]
    flows.append((n, coupon + face))
    return CashflowSchedule(tuple(flows))


def level_payment_schedule(amount: Number, periods: int, start: int = 1) -> CashflowSchedule:
    """``periods`` equal payments at offsets start, start+1, ..."""
    periods = _to_offset(periods, "periods")
    if periods == 0:
        raise InvalidInput("periods must be positive")
    amount = to_decimal(amount, "amount")
    start = _to_offset(start, "start")
    return CashflowSchedule(tuple((start + i, amount) for i in range(periods)))


def schedule_from_frame(
    df: pd.DataFrame,
    offset_col: str = "period_offset",
    amount_col: str = "amount",
) -> CashflowSchedule:
    missing = [c for c in (offset_col, amount_col) if c not in df.columns]
    if missing:
        raise InvalidInput(f"DataFrame is missing required columns: {missing}")
    if df[offset_col].isna().any() or df[amount_col].isna().any():
        raise InvalidInput("Cashflow frame has null offsets or amounts.")

    ordered = df.sort_values(offset_col)
    return CashflowSchedule(tuple(zip(ordered[offset_col], ordered[amount_col])))

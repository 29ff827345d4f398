from __future__ import annotations

import logging
from typing import List, Mapping

import pandas as pd

from .decimal_math import Number, kernel_precision
from .discount import RateOrCurve, discount_factors, present_value
from .errors import DivisionByZero, InvalidInput
from .schedule import CashflowSchedule
from .solver import BOND_YIELD_CONFIG, SolverConfig
from .yields import yield_outcome

logger = logging.getLogger(__name__)


def build_cashflow_table(schedules: Mapping[str, CashflowSchedule]) -> pd.DataFrame:
    rows = []
    for instrument_id, schedule in schedules.items():
        for flow in schedule:
            rows.append((str(instrument_id), flow.period_offset, flow.amount))

    return pd.DataFrame(rows, columns=["instrument_id", "period_offset", "amount"])


@kernel_precision
def discounted_cashflow_table(
    schedules: Mapping[str, CashflowSchedule],
    rate_or_curve: RateOrCurve,
    frequency: int = 1,
) -> pd.DataFrame:
    """Cashflow table with the discount factor and PV of every cashflow."""
    cf = build_cashflow_table(schedules)
    if cf.empty:
        raise InvalidInput("Cashflow table is empty. Check the portfolio schedules.")

    dfs: List = []
    for schedule in schedules.values():
        dfs.extend(discount_factors(schedule, rate_or_curve, frequency))

    cf["discount_factor"] = dfs
    cf["pv_cf"] = [a * d for a, d in zip(cf["amount"], cf["discount_factor"])]
    return cf


def revalue_portfolio(
    schedules: Mapping[str, CashflowSchedule],
    rate_or_curve: RateOrCurve,
    frequency: int = 1,
) -> pd.DataFrame:
    """
    PV per instrument. Each instrument is valued independently; one whose
    discount factor underflows is flagged instead of aborting the batch.
    """
    if not schedules:
        raise InvalidInput("Portfolio is empty.")

    rows = []
    for instrument_id, schedule in schedules.items():
        flags: List[str] = []
        try:
            pv = present_value(schedule, rate_or_curve, frequency)
        except DivisionByZero as exc:
            logger.warning(f"Instrument '{instrument_id}' could not be discounted: {exc}")
            pv = None
            flags.append("DISCOUNT_UNDERFLOW")

        rows.append(
            {
                "instrument_id": str(instrument_id),
                "n_cashflows": len(schedule),
                "last_offset": schedule.last_offset,
                "total_cashflow": schedule.total,
                "pv": pv,
                "flags": "|".join(flags),
            }
        )

    return pd.DataFrame(rows)


def solve_portfolio_yields(
    schedules: Mapping[str, CashflowSchedule],
    prices: Mapping[str, Number],
    config: SolverConfig = BOND_YIELD_CONFIG,
    frequency: int = 1,
) -> pd.DataFrame:
    """
    Yield per instrument from its market price.

    Failures are recorded per row (``status`` / ``flags``) so that one
    unconverged instrument never hides the rest of the book. ``yield`` is
    only populated for converged rows.
    """
    rows = []
    for instrument_id, schedule in schedules.items():
        row = {
            "instrument_id": str(instrument_id),
            "price": prices.get(instrument_id),
            "yield": None,
            "status": None,
            "iterations": None,
            "residual": None,
            "flags": "",
        }

        if row["price"] is None:
            row["flags"] = "NO_PRICE"
            rows.append(row)
            continue

        try:
            outcome = yield_outcome(schedule, row["price"], config, frequency)
        except (InvalidInput, DivisionByZero) as exc:
            logger.warning(f"Yield for '{instrument_id}' not attempted: {exc}")
            row["flags"] = "INVALID_INPUT" if isinstance(exc, InvalidInput) else "DISCOUNT_UNDERFLOW"
            rows.append(row)
            continue

        row["status"] = outcome.status.value
        row["iterations"] = outcome.iterations
        row["residual"] = outcome.residual
        if outcome.converged:
            row["yield"] = outcome.value
        else:
            row["flags"] = "NO_CONVERGENCE"
        rows.append(row)

    return pd.DataFrame(rows)

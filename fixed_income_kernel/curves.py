from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Tuple

import numpy as np
import pandas as pd

from .decimal_math import Number, decimal_exp, decimal_ln, kernel_precision, to_decimal
from .errors import InvalidInput


@dataclass(frozen=True, eq=False)
class Curve:
    """
    Knots (maturity, value), maturities strictly increasing.

    The same object carries discount, forward, zero and repo-term curves;
    maturity (or tenor, in years) is always the independent variable.
    Knots are held as read-only numpy object arrays of Decimal.
    """
    maturities: np.ndarray
    values: np.ndarray
    name: str = ""

    def __post_init__(self):
        maturities = np.array([to_decimal(m, "maturity") for m in self.maturities], dtype=object)
        values = np.array([to_decimal(v, "value") for v in self.values], dtype=object)

        if len(maturities) == 0:
            raise InvalidInput(f"Curve '{self.name}' has no points.")
        if len(maturities) != len(values):
            raise InvalidInput(
                f"Curve '{self.name}': {len(maturities)} maturities but {len(values)} values."
            )
        if np.any(np.diff(maturities) <= 0):
            raise InvalidInput(
                f"Curve '{self.name}' has non-strictly-increasing maturities (duplicate or out of order)."
            )

        maturities.flags.writeable = False
        values.flags.writeable = False
        object.__setattr__(self, "maturities", maturities)
        object.__setattr__(self, "values", values)

    @classmethod
    def from_points(cls, points: Iterable[Tuple[Number, Number]], name: str = "") -> "Curve":
        pts = list(points)
        return cls([m for m, _ in pts], [v for _, v in pts], name)

    @property
    def points(self) -> List[Tuple[Decimal, Decimal]]:
        return list(zip(self.maturities, self.values))

    def __len__(self) -> int:
        return len(self.maturities)

    @kernel_precision
    def shifted(self, spread: Number) -> "Curve":
        """Parallel shift of every knot value by ``spread``."""
        s = to_decimal(spread, "spread")
        return Curve(self.maturities, [v + s for v in self.values], self.name)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"maturity": list(self.maturities), "value": list(self.values)})


@kernel_precision
def interpolate(curve: Curve, t: Number) -> Decimal:
    """Piecewise-linear value at maturity ``t``, flat beyond both end knots."""
    t = to_decimal(t, "t")
    xs = curve.maturities
    vs = curve.values

    if t <= xs[0]:
        return vs[0]
    if t >= xs[-1]:
        return vs[-1]

    j = bisect_right(xs, t)
    t1, t2 = xs[j - 1], xs[j]
    v1, v2 = vs[j - 1], vs[j]

    if t2 == t1:
        return v1
    return v1 + (v2 - v1) * (t - t1) / (t2 - t1)


@kernel_precision
def interpolate_log_df(curve: Curve, t: Number) -> Decimal:
    """
    Discount factor at ``t`` from a curve of discount factors.

    - Between knots: linear in ln(DF).
    - Short end (t < first knot): flat zero rate implied by the first knot,
      i.e. linear in ln(DF) through DF(0) = 1.
    - Long end: flat DF at the last knot.
    """
    t = to_decimal(t, "t")
    xs = curve.maturities
    dfs = curve.values

    if any(df <= 0 for df in dfs):
        raise InvalidInput(f"Curve '{curve.name}': discount factors must be positive.")

    if t <= 0:
        return Decimal(1)

    if t < xs[0]:
        if xs[0] <= 0:
            return dfs[0]
        return decimal_exp(decimal_ln(dfs[0]) * t / xs[0])
    if t >= xs[-1]:
        return dfs[-1]

    j = bisect_right(xs, t)
    t1, t2 = xs[j - 1], xs[j]
    if t2 == t1:
        return dfs[j - 1]

    w = (t - t1) / (t2 - t1)
    ln_df1 = decimal_ln(dfs[j - 1])
    ln_df2 = decimal_ln(dfs[j])
    return decimal_exp(ln_df1 + w * (ln_df2 - ln_df1))


def curve_from_frame(
    df: pd.DataFrame,
    maturity_col: str = "maturity",
    value_col: str = "value",
    name: str = "",
) -> Curve:
    """
    Build a Curve from a DataFrame whose columns hold Decimal, int or str.

    Rows are sorted by maturity; duplicate maturities are rejected.
    """
    missing = [c for c in (maturity_col, value_col) if c not in df.columns]
    if missing:
        raise InvalidInput(f"DataFrame is missing required columns: {missing}")
    if df.empty:
        raise InvalidInput(f"No points found for curve '{name}'.")
    if df[maturity_col].isna().any() or df[value_col].isna().any():
        raise InvalidInput(f"Curve '{name}' has null maturities or values.")

    points = [
        (to_decimal(m, maturity_col), to_decimal(v, value_col))
        for m, v in zip(df[maturity_col], df[value_col])
    ]
    points.sort(key=lambda p: p[0])
    return Curve.from_points(points, name)


@kernel_precision
def curve_qc_report(curve: Curve) -> pd.DataFrame:
    """Per-knot spacing, slope and sign checks."""
    xs = list(curve.maturities)
    vs = list(curve.values)

    gaps = [None] + [xs[i] - xs[i - 1] for i in range(1, len(xs))]
    slopes = [None] + [(vs[i] - vs[i - 1]) / gaps[i] for i in range(1, len(xs))]

    return pd.DataFrame(
        {
            "maturity": xs,
            "value": vs,
            "gap": gaps,
            "slope": slopes,
            "value_positive": [v > 0 for v in vs],
            "value_non_increasing": [True] + [vs[i] <= vs[i - 1] for i in range(1, len(vs))],
        }
    )

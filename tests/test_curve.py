import decimal
from decimal import Decimal

import numpy as np
import pandas as pd
import pytest


from fixed_income_kernel.curves import (
    Curve,
    curve_from_frame,
    curve_qc_report,
    interpolate,
    interpolate_log_df,
)
from fixed_income_kernel.errors import InvalidInput


@pytest.fixture(scope="module")
def zero_curve():
    return Curve.from_points([("1", "0.02"), ("5", "0.03"), ("10", "0.04")], name="zero")


@pytest.fixture(scope="module")
def df_curve():
    # discount factors off a 4% annual-compounded flat zero curve
    points = [(t, Decimal(1) / Decimal("1.04") ** t) for t in (1, 2, 5, 10)]
    return Curve.from_points(points, name="df")


def test_curve_knots_increasing(zero_curve):
    assert np.all(np.diff(zero_curve.maturities) > 0), "Maturities must be strictly increasing"
    assert len(zero_curve) == 3


def test_curve_knots_are_read_only(zero_curve):
    with pytest.raises(ValueError):
        zero_curve.values[0] = Decimal("0.5")


@pytest.mark.parametrize(
    "points",
    [
        [],
        [("5", "0.03"), ("1", "0.02")],
        [("1", "0.02"), ("1", "0.025")],
    ],
)
def test_curve_rejects_bad_knots(points):
    with pytest.raises(InvalidInput):
        Curve.from_points(points)


def test_curve_rejects_mismatched_lengths():
    with pytest.raises(InvalidInput):
        Curve(["1", "2"], ["0.01"])


def test_curve_rejects_float_knots():
    with pytest.raises(TypeError):
        Curve.from_points([(1.0, 0.02)])


def test_interpolate_between_knots(zero_curve):
    assert interpolate(zero_curve, 3) == Decimal("0.025")
    assert interpolate(zero_curve, "7.5") == Decimal("0.035")


def test_interpolate_returns_knot_values_exactly(zero_curve):
    for m, v in zero_curve.points:
        assert interpolate(zero_curve, m) == v, f"Knot at {m} should be reproduced exactly"


def test_interpolate_is_flat_beyond_both_ends(zero_curve):
    assert interpolate(zero_curve, 0) == Decimal("0.02")
    assert interpolate(zero_curve, "0.25") == Decimal("0.02")
    assert interpolate(zero_curve, 30) == Decimal("0.04")
    assert interpolate(zero_curve, 1000) == Decimal("0.04")


def test_single_point_curve_is_flat():
    curve = Curve.from_points([("2", "0.015")])
    assert interpolate(curve, 0) == Decimal("0.015")
    assert interpolate(curve, 50) == Decimal("0.015")


def test_shifted_curve_moves_every_knot(zero_curve):
    shifted = zero_curve.shifted("0.0025")
    assert list(shifted.values) == [Decimal("0.0225"), Decimal("0.0325"), Decimal("0.0425")]
    assert list(shifted.maturities) == list(zero_curve.maturities)
    assert interpolate(shifted, 3) == Decimal("0.0275")


def test_log_df_interpolation_at_knots(df_curve):
    for m, df in df_curve.points:
        assert abs(interpolate_log_df(df_curve, m) - df) < Decimal("1e-30")


def test_log_df_interpolation_recovers_flat_rate(df_curve):
    """Between knots, log-linear DFs off a flat curve are the flat-curve DFs."""
    for t in ("3", "7", "2.5"):
        with decimal.localcontext(decimal.Context(prec=50)):
            expected = Decimal(1) / (Decimal("1.04") ** Decimal(t))
        assert abs(interpolate_log_df(df_curve, t) - expected) < Decimal("1e-25")


def test_log_df_short_and_long_end(df_curve):
    assert interpolate_log_df(df_curve, 0) == 1

    first = df_curve.values[0]
    half = interpolate_log_df(df_curve, "0.5")
    assert first < half < 1, "Short-end DF should sit between 1 and the first knot"
    # flat zero rate through DF(0) = 1
    assert abs(half * half - first) < Decimal("1e-25")

    assert interpolate_log_df(df_curve, 40) == df_curve.values[-1]


def test_log_df_rejects_non_positive_factors():
    curve = Curve.from_points([("1", "0.99"), ("2", "0")])
    with pytest.raises(InvalidInput):
        interpolate_log_df(curve, "1.5")


def test_curve_from_frame_sorts_rows():
    frame = pd.DataFrame({"tenor": ["10", "1", "5"], "rate": ["0.04", "0.02", "0.03"]})
    curve = curve_from_frame(frame, maturity_col="tenor", value_col="rate", name="sofr")
    assert curve.name == "sofr"
    assert list(curve.maturities) == [Decimal(1), Decimal(5), Decimal(10)]
    assert interpolate(curve, 3) == Decimal("0.025")


def test_curve_from_frame_validates_columns():
    with pytest.raises(InvalidInput):
        curve_from_frame(pd.DataFrame({"maturity": ["1"]}))
    with pytest.raises(InvalidInput):
        curve_from_frame(pd.DataFrame({"maturity": ["1", None], "value": ["0.01", "0.02"]}))


def test_curve_frame_round_trip(zero_curve):
    rebuilt = curve_from_frame(zero_curve.to_frame())
    assert rebuilt.points == zero_curve.points


def test_curve_qc_report_flags(zero_curve, df_curve):
    qc = curve_qc_report(zero_curve)
    assert list(qc.columns) == ["maturity", "value", "gap", "slope", "value_positive", "value_non_increasing"]
    assert qc["value_positive"].all()
    assert qc.loc[1, "slope"] == Decimal("0.0025")
    assert not qc["value_non_increasing"].iloc[1:].any(), "Upward-sloping zero curve flagged as increasing"

    qc_df = curve_qc_report(df_curve)
    assert qc_df["value_non_increasing"].all(), "Discount factors should be non-increasing across knots"

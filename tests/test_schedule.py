from decimal import Decimal

import pandas as pd
import pytest

from fixed_income_kernel.errors import InvalidInput
from fixed_income_kernel.schedule import (
    Cashflow,
    CashflowSchedule,
    bullet_bond_schedule,
    level_payment_schedule,
    make_schedule,
    schedule_from_frame,
)


@pytest.fixture(scope="module")
def bond():
    return bullet_bond_schedule(1000, "0.05", 10)


def test_bullet_bond_cashflows(bond):
    assert len(bond) == 10
    assert bond.offsets == list(range(1, 11))
    assert bond.amounts[:-1] == [Decimal(50)] * 9
    assert bond.amounts[-1] == Decimal(1050)
    assert bond.total == Decimal(1500)


def test_semiannual_bullet_bond():
    sched = bullet_bond_schedule(100, "0.06", "2.5", frequency=2)
    assert sched.offsets == [1, 2, 3, 4, 5]
    assert sched.amounts[0] == Decimal(3)
    assert sched.last_offset == 5


def test_bullet_bond_needs_whole_periods():
    with pytest.raises(InvalidInput):
        bullet_bond_schedule(100, "0.05", "2.25", frequency=2)
    with pytest.raises(InvalidInput):
        bullet_bond_schedule(100, "0.05", 5, frequency=0)


def test_schedule_accepts_tuples_and_cashflows():
    sched = make_schedule([(0, "-1000"), Cashflow(1, Decimal(400)), (2, 400)])
    assert all(isinstance(f, Cashflow) for f in sched)
    assert sched.amounts == [Decimal(-1000), Decimal(400), Decimal(400)]


@pytest.mark.parametrize(
    "flows",
    [
        [],
        [(2, 100), (1, 100)],
        [(1, 100), (1, 100)],
        [(-1, 100)],
        [(1.5, 100)],
        [(True, 100)],
    ],
)
def test_schedule_rejects_bad_offsets(flows):
    with pytest.raises(InvalidInput):
        make_schedule(flows)


def test_schedule_rejects_float_amounts():
    with pytest.raises(TypeError):
        make_schedule([(1, 100.0)])


def test_truncated_and_with_cashflow(bond):
    to_call = bond.truncated(5).with_cashflow(5, 1020)
    assert to_call.last_offset == 5
    assert to_call.amounts[-1] == Decimal(1070)
    assert len(to_call) == 5

    inserted = bond.truncated(2).with_cashflow(4, 7)
    assert inserted.offsets == [1, 2, 4]

    with pytest.raises(InvalidInput):
        bond.truncated(0)


def test_level_payment_schedule():
    sched = level_payment_schedule("250", 4, start=2)
    assert sched.offsets == [2, 3, 4, 5]
    assert sched.total == Decimal(1000)
    with pytest.raises(InvalidInput):
        level_payment_schedule(100, 0)


def test_schedule_frame_round_trip(bond):
    frame = bond.to_frame()
    assert list(frame.columns) == ["period_offset", "amount"]
    assert schedule_from_frame(frame) == bond


def test_schedule_from_unsorted_frame():
    frame = pd.DataFrame({"n": [3, 1, 2], "cf": ["30", "10", "20"]})
    sched = schedule_from_frame(frame, offset_col="n", amount_col="cf")
    assert sched.offsets == [1, 2, 3]
    assert sched.amounts == [Decimal(10), Decimal(20), Decimal(30)]

    with pytest.raises(InvalidInput):
        schedule_from_frame(frame)

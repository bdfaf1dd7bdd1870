# tests/test_late_fee.py
from datetime import date, datetime, timedelta

import pytest

from rental_app.core.late_fee import LateFeeLine, compute_late_fee, overdue_days

DUE = date(2024, 12, 10)
LINES = [LateFeeLine(item_id="tenda", qty=1, late_fee_per_day=50_000)]


@pytest.mark.parametrize("today", [date(2024, 12, 1), date(2024, 12, 9), DUE])
def test_no_fee_on_or_before_due_date(today):
    assert overdue_days(DUE, today) == 0
    assert compute_late_fee(DUE, today, LINES) == 0


def test_three_days_late():
    assert overdue_days(DUE, date(2024, 12, 13)) == 3
    assert compute_late_fee(DUE, date(2024, 12, 13), LINES) == 150_000


def test_time_of_day_is_ignored():
    due = datetime(2024, 12, 10, 23, 59)
    today = datetime(2024, 12, 11, 0, 1)
    assert overdue_days(due, today) == 1


def test_sums_over_lines_and_qty():
    lines = [
        LateFeeLine(item_id="tenda", qty=2, late_fee_per_day=50_000),
        LateFeeLine(item_id="kamera", qty=1, late_fee_per_day=75_000),
    ]
    assert compute_late_fee(DUE, date(2024, 12, 12), lines) == (2 * 50_000 + 75_000) * 2


def test_monotonic_after_due_date():
    fees = [compute_late_fee(DUE, DUE + timedelta(days=d), LINES) for d in range(0, 30)]
    assert fees == sorted(fees)
    assert fees[-1] == 29 * 50_000


def test_empty_lines():
    assert compute_late_fee(DUE, date(2024, 12, 20), []) == 0

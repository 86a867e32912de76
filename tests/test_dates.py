from __future__ import annotations

from datetime import date

import pytest

from rentflow.core.dates import add_months, contract_end_date, cutoff_in_month, previous_cutoff


@pytest.mark.parametrize(
    "start,months,expected",
    [
        (date(2025, 2, 1), 12, date(2026, 2, 1)),
        (date(2025, 1, 31), 1, date(2025, 2, 28)),
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2025, 11, 15), 3, date(2026, 2, 15)),
        (date(2025, 3, 31), -1, date(2025, 2, 28)),
        (date(2025, 1, 20), -6, date(2024, 7, 20)),
    ],
)
def test_add_months(start, months, expected):
    assert add_months(start, months) == expected


def test_contract_end_date_is_derived_from_duration():
    assert contract_end_date(date(2025, 6, 1), 3) == date(2025, 9, 1)


def test_cutoff_clamps_to_month_length():
    assert cutoff_in_month(2025, 2, 31) == date(2025, 2, 28)
    assert cutoff_in_month(2025, 4, 10) == date(2025, 4, 10)


def test_previous_cutoff_crosses_year_boundary():
    assert previous_cutoff(date(2025, 1, 5), 10) == date(2024, 12, 10)
    assert previous_cutoff(date(2025, 3, 20), 31) == date(2025, 2, 28)

from __future__ import annotations

import calendar
from datetime import date


def add_months(start: date, months: int) -> date:
    """Shift `start` by whole calendar months, clamping to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def contract_end_date(start: date, duration_months: int) -> date:
    """end_date is always derived from start_date and duration_months."""
    return add_months(start, duration_months)


def cutoff_in_month(year: int, month: int, day: int) -> date:
    """Billing cut-off for a month; days past the month's length fall on its last day."""
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def previous_cutoff(today: date, day: int) -> date:
    """Most recent cut-off strictly before this month's one."""
    prev = add_months(date(today.year, today.month, 1), -1)
    return cutoff_in_month(prev.year, prev.month, day)

"""Domain layer: upcoming-birthday window across the year boundary.

Dates are compared as ``month * 100 + day`` keys. When the window crosses
New Year (e.g. Dec 20 -> Jan 10) the range wraps, and keys that fall in
the new year are pushed forward by 1200 so they sort after December.
"""
from datetime import date, timedelta
from typing import Any, Iterable, List, Tuple

from app.domain.months import month_number

WEEK_HORIZON_DAYS = 7
MONTH_HORIZON_DAYS = 30


def date_key(month: int, day: int) -> int:
    return month * 100 + day


def window_keys(today: date, horizon_days: int) -> Tuple[int, int]:
    # Closes at the end of the day after the horizon: Dec 28 + 7 reaches Jan 5
    end = today + timedelta(days=horizon_days + 1)
    return date_key(today.month, today.day), date_key(end.month, end.day)


def in_window(key: int, start_key: int, end_key: int) -> bool:
    if start_key <= end_key:
        return start_key <= key <= end_key
    return key >= start_key or key <= end_key


def upcoming_birthdays(records: Iterable[Any], today: date, horizon_days: int) -> List[Any]:
    """Records whose birthday falls within [today, today + horizon_days + 1], nearest first."""
    start_key, end_key = window_keys(today, horizon_days)
    selected = []
    for record in records:
        number = month_number(record.month)
        if number is None:
            continue
        key = date_key(number, record.day)
        if not in_window(key, start_key, end_key):
            continue
        sort_key = key if key >= start_key else key + 1200
        selected.append((sort_key, record.name.casefold(), record))
    selected.sort(key=lambda item: (item[0], item[1]))
    return [record for _, _, record in selected]

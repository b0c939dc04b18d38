from datetime import date, datetime, timedelta
from enum import StrEnum


class WindowPosition(StrEnum):
    PAST = "past"
    IN_WINDOW = "in_window"
    BEYOND_WINDOW = "beyond_window"


def as_date(value: date) -> date:
    """Drop any time-of-day component; datetimes compare by calendar day only."""
    if isinstance(value, datetime):
        return value.date()
    return value


def classify_window(day: date, *, today: date, window_days: int) -> WindowPosition:
    """
    Place `day` relative to the rolling booking window starting at `today`.
    The last day of the window (today + window_days) is still bookable.
    """
    day = as_date(day)
    today = as_date(today)
    if day < today:
        return WindowPosition.PAST
    if day > today + timedelta(days=window_days):
        return WindowPosition.BEYOND_WINDOW
    return WindowPosition.IN_WINDOW

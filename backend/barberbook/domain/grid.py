from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import StrEnum
from typing import List, Sequence, Tuple


class CalendarView(StrEnum):
    MONTH = "month"
    WEEK = "week"
    DAY = "day"


@dataclass(frozen=True)
class CalendarCell:
    date: date
    in_month: bool = True


def week_start(day: date) -> date:
    """Sunday on or before `day`."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _span(start: date, days: int, *, month: int | None = None) -> List[CalendarCell]:
    cells: List[CalendarCell] = []
    for offset in range(days):
        current = start + timedelta(days=offset)
        cells.append(CalendarCell(date=current, in_month=month is None or current.month == month))
    return cells


def month_grid(year: int, month: int) -> List[CalendarCell]:
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    start = week_start(first)
    end = week_start(last) + timedelta(days=6)
    return _span(start, (end - start).days + 1, month=month)


def build_grid(reference: date, view: CalendarView) -> List[CalendarCell]:
    if view == CalendarView.MONTH:
        return month_grid(reference.year, reference.month)
    if view == CalendarView.WEEK:
        return _span(week_start(reference), 7)
    return [CalendarCell(date=reference)]


def date_range(cells: Sequence[CalendarCell]) -> Tuple[date, date]:
    """First and last date covered by a non-empty grid."""
    return cells[0].date, cells[-1].date

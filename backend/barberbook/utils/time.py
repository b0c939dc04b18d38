import re
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

_SLOT_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def shop_now(tz_name: str) -> datetime:
    """Current wall-clock time in the shop's timezone, as a naive datetime."""
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


def shop_today(tz_name: str) -> date:
    return shop_now(tz_name).date()


def parse_slot(value: str) -> time:
    match = _SLOT_PATTERN.match(value)
    if match is None:
        raise ValueError(f"invalid time slot {value!r}, expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def format_slot(value: time) -> str:
    return value.strftime("%H:%M")


def parse_year_month(value: str) -> tuple[int, int]:
    match = _MONTH_PATTERN.match(value)
    if match is None:
        raise ValueError(f"invalid month {value!r}, expected YYYY-MM")
    return int(match.group(1)), int(match.group(2))

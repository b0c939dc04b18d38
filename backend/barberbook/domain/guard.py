from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from enum import StrEnum
from typing import Iterable, Tuple

from ..models import Booking
from .lifecycle import occupies_capacity
from .window import as_date


class OnConflict(StrEnum):
    """What the admin chose to do when the guard reports affected bookings."""

    WARN = "warn"
    APPLY = "apply"
    CANCEL_AFFECTED = "cancel_affected"


@dataclass(frozen=True)
class ConflictReport:
    bookings: Tuple[Booking, ...] = field(default_factory=tuple)

    @property
    def count(self) -> int:
        return len(self.bookings)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.bookings)


def _affected(bookings: Iterable[Booking], day: date, slot: time | None) -> Tuple[Booking, ...]:
    selected = [
        b
        for b in bookings
        if occupies_capacity(b.status)
        and b.appointment_date == day
        and (slot is None or b.appointment_time == slot)
    ]
    selected.sort(key=lambda b: (b.appointment_time, b.ticket_number))
    return tuple(selected)


def find_block_conflicts(bookings: Iterable[Booking], *, day: date, slot: time | None = None) -> ConflictReport:
    """Occupying bookings a whole-day (slot=None) or slot block would displace. Read-only."""
    return ConflictReport(bookings=_affected(bookings, as_date(day), slot))


def find_override_conflicts(
    bookings: Iterable[Booking],
    *,
    day: date,
    slot: time,
    capacity: int,
) -> ConflictReport:
    """Occupying bookings of the slot, reported only when they no longer fit the new capacity."""
    affected = _affected(bookings, as_date(day), slot)
    if len(affected) <= capacity:
        return ConflictReport()
    return ConflictReport(bookings=affected)

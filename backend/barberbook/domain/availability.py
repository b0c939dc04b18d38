"""
Availability classification: merges resolved capacity, occupancy and the
booking window into per-slot and per-day statuses.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from enum import StrEnum
from typing import Iterable, List, Mapping, Sequence, Tuple

from ..models import BlockedSlot, CapacityOverride
from .capacity import CapacityResolution, resolve_capacity
from .occupancy import SlotKey
from .policy import ShopPolicy
from .window import WindowPosition, as_date, classify_window


class SlotStatus(StrEnum):
    AVAILABLE = "available"
    LIMITED = "limited"
    FULL = "full"
    BLOCKED = "blocked"
    PAST = "past"


BOOKABLE_STATUSES = frozenset({SlotStatus.AVAILABLE, SlotStatus.LIMITED})
CLOSED_STATUSES = frozenset({SlotStatus.BLOCKED, SlotStatus.PAST})


@dataclass(frozen=True)
class SlotAvailability:
    date: date
    time_slot: time
    capacity: int
    booked: int
    status: SlotStatus

    @property
    def remaining(self) -> int:
        return max(self.capacity - self.booked, 0)

    @property
    def is_bookable(self) -> bool:
        return self.status in BOOKABLE_STATUSES


@dataclass(frozen=True)
class DayAvailability:
    date: date
    window: WindowPosition
    day_status: SlotStatus
    slots: Tuple[SlotAvailability, ...]
    in_month: bool = True

    def slot(self, time_slot: time) -> SlotAvailability | None:
        for entry in self.slots:
            if entry.time_slot == time_slot:
                return entry
        return None


def classify_slot(resolution: CapacityResolution, booked: int, window: WindowPosition) -> SlotStatus:
    if window == WindowPosition.PAST:
        return SlotStatus.PAST
    if window == WindowPosition.BEYOND_WINDOW:
        return SlotStatus.BLOCKED
    if resolution.is_blocked:
        return SlotStatus.BLOCKED
    if booked >= resolution.capacity:
        return SlotStatus.FULL
    if resolution.capacity - booked <= 1:
        return SlotStatus.LIMITED
    return SlotStatus.AVAILABLE


def summarize_day(statuses: Iterable[SlotStatus]) -> SlotStatus:
    """Reduce slot statuses to the status shown on a month-view day cell."""
    seen = set(statuses)
    open_statuses = seen - CLOSED_STATUSES
    if not open_statuses:
        return SlotStatus.BLOCKED
    if not open_statuses & BOOKABLE_STATUSES:
        return SlotStatus.FULL
    if SlotStatus.LIMITED in open_statuses:
        return SlotStatus.LIMITED
    return SlotStatus.AVAILABLE


def candidate_slots(day: date, base_slots: Sequence[time], occupancy: Mapping[SlotKey, int]) -> List[time]:
    """Configured slots plus any off-grid time that still holds an occupying booking on `day`."""
    extra = {slot for (booked_day, slot), count in occupancy.items() if booked_day == day and count > 0}
    return sorted(set(base_slots) | extra)


def evaluate_slot(
    day: date,
    time_slot: time,
    *,
    window: WindowPosition,
    policy: ShopPolicy,
    overrides: Iterable[CapacityOverride],
    blocks: Iterable[BlockedSlot],
    occupancy: Mapping[SlotKey, int],
) -> SlotAvailability:
    resolution = resolve_capacity(
        day,
        time_slot,
        overrides=overrides,
        blocks=blocks,
        rule=policy.capacity_rule,
    )
    booked = occupancy.get((day, time_slot), 0)
    return SlotAvailability(
        date=day,
        time_slot=time_slot,
        capacity=resolution.capacity,
        booked=booked,
        status=classify_slot(resolution, booked, window),
    )


def evaluate_day(
    day: date,
    *,
    today: date,
    policy: ShopPolicy,
    overrides: Iterable[CapacityOverride],
    blocks: Iterable[BlockedSlot],
    occupancy: Mapping[SlotKey, int],
    in_month: bool = True,
) -> DayAvailability:
    day = as_date(day)
    window = classify_window(day, today=today, window_days=policy.booking_window_days)
    day_overrides = [o for o in overrides if o.override_date == day]
    day_blocks = [b for b in blocks if b.block_date == day]
    slots = tuple(
        evaluate_slot(
            day,
            time_slot,
            window=window,
            policy=policy,
            overrides=day_overrides,
            blocks=day_blocks,
            occupancy=occupancy,
        )
        for time_slot in candidate_slots(day, policy.slot_times, occupancy)
    )
    return DayAvailability(
        date=day,
        window=window,
        day_status=summarize_day(s.status for s in slots),
        slots=slots,
        in_month=in_month,
    )

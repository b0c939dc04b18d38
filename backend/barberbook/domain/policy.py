from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from typing import Tuple

DEFAULT_SLOT_TIMES: Tuple[time, ...] = (
    time(10, 0),
    time(10, 40),
    time(11, 20),
    time(12, 0),
    time(12, 40),
    time(13, 20),
    time(14, 0),
    time(14, 20),
)


@dataclass(frozen=True)
class WeeklyCapacityRule:
    """Default seats per slot, indexed by `date.weekday()` (Monday = 0)."""

    capacities: Tuple[int, ...] = (2, 2, 2, 3, 3, 3, 3)

    def __post_init__(self) -> None:
        if len(self.capacities) != 7:
            raise ValueError("weekly capacity rule needs exactly 7 values")
        if any(value < 0 for value in self.capacities):
            raise ValueError("capacity must be >= 0")

    def capacity_for(self, day: date) -> int:
        return self.capacities[day.weekday()]


@dataclass(frozen=True)
class ShopPolicy:
    slot_times: Tuple[time, ...] = DEFAULT_SLOT_TIMES
    capacity_rule: WeeklyCapacityRule = field(default_factory=WeeklyCapacityRule)
    booking_window_days: int = 90
    cancellation_cutoff_hours: int = 2

    def is_known_slot(self, slot: time) -> bool:
        return slot in self.slot_times

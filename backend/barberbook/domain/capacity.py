from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time
from enum import StrEnum
from typing import Iterable, List

from ..models import BlockedSlot, CapacityOverride
from .policy import WeeklyCapacityRule
from .window import as_date

logger = logging.getLogger(__name__)


class CapacitySource(StrEnum):
    DAY_BLOCK = "day_block"
    SLOT_BLOCK = "slot_block"
    OVERRIDE = "override"
    DEFAULT = "default"


@dataclass(frozen=True)
class CapacityResolution:
    capacity: int
    is_blocked: bool
    source: CapacitySource


def pick_override(overrides: Iterable[CapacityOverride], day: date, slot: time) -> CapacityOverride | None:
    """Active override for (day, slot); the most recently created one wins when several exist."""
    matches: List[CapacityOverride] = [
        o for o in overrides if o.is_active and o.override_date == day and o.time_slot == slot
    ]
    if not matches:
        return None
    if len(matches) > 1:
        logger.warning(
            "data integrity: %d active capacity overrides for %s %s (ids=%s); using the most recent",
            len(matches),
            day.isoformat(),
            slot.strftime("%H:%M"),
            sorted(o.id for o in matches if o.id is not None),
        )
    return max(matches, key=lambda o: (o.created_at, o.id or 0))


def resolve_capacity(
    day: date,
    slot: time,
    *,
    overrides: Iterable[CapacityOverride],
    blocks: Iterable[BlockedSlot],
    rule: WeeklyCapacityRule,
) -> CapacityResolution:
    """
    Effective seat capacity of one slot. First match wins:
    whole-day block, slot block, active override, weekly default.
    """
    day = as_date(day)
    day_blocks = [b for b in blocks if b.block_date == day]
    override = pick_override(overrides, day, slot)

    if any(b.is_whole_day for b in day_blocks):
        if override is not None:
            logger.warning(
                "data integrity: override %s on %s %s is shadowed by a whole-day block",
                override.id,
                day.isoformat(),
                slot.strftime("%H:%M"),
            )
        return CapacityResolution(capacity=0, is_blocked=True, source=CapacitySource.DAY_BLOCK)

    if any(b.time_slot == slot for b in day_blocks):
        if override is not None:
            logger.warning(
                "data integrity: override %s on %s %s is shadowed by a slot block",
                override.id,
                day.isoformat(),
                slot.strftime("%H:%M"),
            )
        return CapacityResolution(capacity=0, is_blocked=True, source=CapacitySource.SLOT_BLOCK)

    if override is not None:
        return CapacityResolution(capacity=override.capacity, is_blocked=False, source=CapacitySource.OVERRIDE)

    return CapacityResolution(capacity=rule.capacity_for(day), is_blocked=False, source=CapacitySource.DEFAULT)

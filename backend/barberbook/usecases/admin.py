"""
Admin-side mutations of shop capacity: capacity overrides and blocks.

Every write that can take seats away first runs the mutation guard. With
``on_conflict=warn`` a non-empty conflict set aborts the write by raising
``ConflictWarning``; ``apply`` writes regardless; ``cancel_affected`` writes
and then cancels the displaced bookings as the admin.
"""

import logging
from datetime import date, datetime, time
from typing import List, Sequence

from ..domain.errors import (
    BlockNotFoundError,
    ConflictWarning,
    DuplicateBlockError,
    DuplicateOverrideError,
    InvalidSlotError,
    OverrideNotFoundError,
)
from ..domain.guard import ConflictReport, OnConflict, find_block_conflicts, find_override_conflicts
from ..domain.policy import ShopPolicy
from ..domain.repositories import BlockRepository, BookingRepository, OverrideRepository
from ..models import BlockedSlot, Booking, CancelledBy, CapacityOverride
from . import bookings as booking_usecase

logger = logging.getLogger(__name__)

BLOCK_CANCELLATION_REASON = "Slot blocked by the shop"
OVERRIDE_CANCELLATION_REASON = "Slot capacity reduced by the shop"


def _check_slot(policy: ShopPolicy, slot: time | None) -> None:
    if slot is not None and not policy.is_known_slot(slot):
        raise InvalidSlotError(f"{slot:%H:%M} is not a configured slot")


async def _cancel_all(
    booking_repo: BookingRepository,
    affected: Sequence[Booking],
    *,
    reason: str,
    now: datetime,
    policy: ShopPolicy,
) -> List[Booking]:
    cancelled: List[Booking] = []
    for booking in affected:
        updated, _ = await booking_usecase.cancel_booking(
            booking_repo,
            ticket_number=booking.ticket_number,
            initiator=CancelledBy.ADMIN,
            reason=reason,
            now=now,
            policy=policy,
        )
        cancelled.append(updated)
    if cancelled:
        logger.info("cancelled %d booking(s): %s", len(cancelled), reason)
    return cancelled


async def check_block_conflicts(
    booking_repo: BookingRepository,
    *,
    day: date,
    slot: time | None,
    policy: ShopPolicy,
) -> ConflictReport:
    _check_slot(policy, slot)
    bookings = await booking_repo.list_occupying(day, slot)
    return find_block_conflicts(bookings, day=day, slot=slot)


async def list_blocks(block_repo: BlockRepository, *, start: date, end: date) -> Sequence[BlockedSlot]:
    return await block_repo.list_between(start, end)


async def create_block(
    booking_repo: BookingRepository,
    block_repo: BlockRepository,
    *,
    day: date,
    slot: time | None,
    reason: str | None,
    on_conflict: OnConflict,
    now: datetime,
    policy: ShopPolicy,
) -> tuple[BlockedSlot, List[Booking]]:
    _check_slot(policy, slot)
    if await block_repo.find(day, slot) is not None:
        raise DuplicateBlockError("an identical block already exists")

    report = await check_block_conflicts(booking_repo, day=day, slot=slot, policy=policy)
    if report.has_conflicts and on_conflict == OnConflict.WARN:
        raise ConflictWarning(report)

    if slot is None:
        block = BlockedSlot.whole_day(day, reason=reason, created_at=now)
    else:
        block = BlockedSlot.single_slot(day, slot, reason=reason, created_at=now)
    block = await block_repo.create(block)

    cancelled: List[Booking] = []
    if on_conflict == OnConflict.CANCEL_AFFECTED:
        cancelled = await _cancel_all(
            booking_repo,
            report.bookings,
            reason=reason or BLOCK_CANCELLATION_REASON,
            now=now,
            policy=policy,
        )
    elif report.has_conflicts:
        logger.warning("block on %s left %d booking(s) in place", day.isoformat(), report.count)
    return block, cancelled


async def delete_block(block_repo: BlockRepository, *, block_id: int) -> BlockedSlot:
    block = await block_repo.get(block_id)
    if block is None:
        raise BlockNotFoundError("block not found")
    await block_repo.delete(block)
    return block


async def list_overrides(
    override_repo: OverrideRepository,
    *,
    start: date,
    end: date,
    active_only: bool = True,
) -> Sequence[CapacityOverride]:
    return await override_repo.list_between(start, end, active_only=active_only)


async def _guard_override(
    booking_repo: BookingRepository,
    override_repo: OverrideRepository,
    *,
    day: date,
    slot: time,
    capacity: int,
    on_conflict: OnConflict,
    exclude_id: int | None = None,
) -> ConflictReport:
    active = [o for o in await override_repo.list_active_for(day, slot) if o.id != exclude_id]
    if active:
        raise DuplicateOverrideError("an active override already exists for this slot")

    occupying = await booking_repo.list_occupying(day, slot)
    report = find_override_conflicts(occupying, day=day, slot=slot, capacity=capacity)
    if report.has_conflicts and on_conflict == OnConflict.WARN:
        raise ConflictWarning(report)
    return report


async def _guard_release(
    booking_repo: BookingRepository,
    override: CapacityOverride,
    *,
    on_conflict: OnConflict,
    policy: ShopPolicy,
) -> tuple[ConflictReport, int]:
    # Without the override the slot falls back to the weekday capacity.
    day, slot = override.override_date, override.time_slot
    fallback = policy.capacity_rule.capacity_for(day)
    occupying = await booking_repo.list_occupying(day, slot)
    report = find_override_conflicts(occupying, day=day, slot=slot, capacity=fallback)
    if report.has_conflicts and on_conflict == OnConflict.WARN:
        raise ConflictWarning(report)
    return report, fallback


async def _resolve_override_conflicts(
    booking_repo: BookingRepository,
    report: ConflictReport,
    *,
    capacity: int,
    on_conflict: OnConflict,
    now: datetime,
    policy: ShopPolicy,
) -> List[Booking]:
    if not report.has_conflicts or on_conflict != OnConflict.CANCEL_AFFECTED:
        return []
    # Keep the earliest tickets; the latest ones no longer fit.
    by_ticket = sorted(report.bookings, key=lambda b: b.ticket_number)
    excess = by_ticket[capacity:]
    return await _cancel_all(booking_repo, excess, reason=OVERRIDE_CANCELLATION_REASON, now=now, policy=policy)


async def create_override(
    booking_repo: BookingRepository,
    override_repo: OverrideRepository,
    *,
    day: date,
    slot: time,
    capacity: int,
    is_active: bool,
    on_conflict: OnConflict,
    now: datetime,
    policy: ShopPolicy,
) -> tuple[CapacityOverride, List[Booking]]:
    _check_slot(policy, slot)
    if capacity < 0:
        raise ValueError("capacity must be >= 0")

    report = ConflictReport()
    if is_active:
        report = await _guard_override(
            booking_repo,
            override_repo,
            day=day,
            slot=slot,
            capacity=capacity,
            on_conflict=on_conflict,
        )

    override = await override_repo.create(
        override_date=day,
        time_slot=slot,
        capacity=capacity,
        is_active=is_active,
        now=now,
    )
    cancelled = await _resolve_override_conflicts(
        booking_repo,
        report,
        capacity=capacity,
        on_conflict=on_conflict,
        now=now,
        policy=policy,
    )
    return override, cancelled


async def update_override(
    booking_repo: BookingRepository,
    override_repo: OverrideRepository,
    *,
    override_id: int,
    capacity: int | None,
    is_active: bool | None,
    on_conflict: OnConflict,
    now: datetime,
    policy: ShopPolicy,
) -> tuple[CapacityOverride, List[Booking]]:
    override = await override_repo.get(override_id)
    if override is None:
        raise OverrideNotFoundError("override not found")

    new_capacity = override.capacity if capacity is None else capacity
    new_active = override.is_active if is_active is None else is_active
    if new_capacity < 0:
        raise ValueError("capacity must be >= 0")

    report = ConflictReport()
    effective = new_capacity
    if new_active:
        report = await _guard_override(
            booking_repo,
            override_repo,
            day=override.override_date,
            slot=override.time_slot,
            capacity=new_capacity,
            on_conflict=on_conflict,
            exclude_id=override.id,
        )
    elif override.is_active:
        report, effective = await _guard_release(booking_repo, override, on_conflict=on_conflict, policy=policy)

    override.capacity = new_capacity
    override.is_active = new_active
    override.updated_at = now
    override = await override_repo.save(override)
    cancelled = await _resolve_override_conflicts(
        booking_repo,
        report,
        capacity=effective,
        on_conflict=on_conflict,
        now=now,
        policy=policy,
    )
    return override, cancelled


async def delete_override(
    booking_repo: BookingRepository,
    override_repo: OverrideRepository,
    *,
    override_id: int,
    on_conflict: OnConflict,
    now: datetime,
    policy: ShopPolicy,
) -> tuple[CapacityOverride, List[Booking]]:
    override = await override_repo.get(override_id)
    if override is None:
        raise OverrideNotFoundError("override not found")

    report, fallback = ConflictReport(), 0
    if override.is_active:
        report, fallback = await _guard_release(booking_repo, override, on_conflict=on_conflict, policy=policy)

    await override_repo.delete(override)
    cancelled = await _resolve_override_conflicts(
        booking_repo,
        report,
        capacity=fallback,
        on_conflict=on_conflict,
        now=now,
        policy=policy,
    )
    return override, cancelled

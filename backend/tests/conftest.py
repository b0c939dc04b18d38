from dataclasses import dataclass
from datetime import date, datetime, time
from itertools import count
from typing import Callable, List, Optional

import pytest
from barberbook.domain.policy import ShopPolicy
from barberbook.models import BlockedSlot, BlockScope, Booking, BookingStatus, CapacityOverride

# Friday 2024-11-01, shop local time.
TODAY = date(2024, 11, 1)
NOW = datetime(2024, 11, 1, 9, 0)

_ids = count(1)


def _booking(
    day: date,
    slot: time,
    status: BookingStatus = BookingStatus.CONFIRMED,
    *,
    ticket_number: Optional[str] = None,
    customer_name: str = "Alex Murphy",
    created_at: datetime = NOW,
) -> Booking:
    booking_id = next(_ids)
    return Booking(
        id=booking_id,
        ticket_number=ticket_number or f"TKT-{day:%Y%m%d}-{booking_id:03d}",
        status=status,
        appointment_date=day,
        appointment_time=slot,
        customer_name=customer_name,
        customer_email="alex@example.com",
        customer_phone="+353830000000",
        created_at=created_at,
        updated_at=created_at,
    )


def _override(
    day: date,
    slot: time,
    capacity: int,
    *,
    is_active: bool = True,
    created_at: datetime = NOW,
) -> CapacityOverride:
    return CapacityOverride(
        id=next(_ids),
        override_date=day,
        time_slot=slot,
        capacity=capacity,
        is_active=is_active,
        created_at=created_at,
        updated_at=created_at,
    )


def _block(day: date, slot: Optional[time] = None, *, reason: Optional[str] = None) -> BlockedSlot:
    if slot is None:
        block = BlockedSlot.whole_day(day, reason=reason, created_at=NOW)
    else:
        block = BlockedSlot.single_slot(day, slot, reason=reason, created_at=NOW)
    block.id = next(_ids)
    return block


@pytest.fixture
def make_booking() -> Callable[..., Booking]:
    return _booking


@pytest.fixture
def make_override() -> Callable[..., CapacityOverride]:
    return _override


@pytest.fixture
def make_block() -> Callable[..., BlockedSlot]:
    return _block


@pytest.fixture
def policy() -> ShopPolicy:
    return ShopPolicy()


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def now() -> datetime:
    return NOW


class FakeBookingRepo:
    def __init__(self, bookings: Optional[List[Booking]] = None) -> None:
        self.bookings: List[Booking] = list(bookings or [])
        self.locked: List[tuple[date, time]] = []
        self.saved: List[Booking] = []

    def _occupying(self, day: date, slot: Optional[time]) -> List[Booking]:
        return [
            b
            for b in self.bookings
            if b.appointment_date == day
            and b.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED)
            and (slot is None or b.appointment_time == slot)
        ]

    async def list_between(self, start: date, end: date) -> List[Booking]:
        return [b for b in self.bookings if start <= b.appointment_date <= end]

    async def list_bookings(
        self,
        start: date,
        end: date,
        *,
        status: Optional[BookingStatus] = None,
        query: Optional[str] = None,
    ) -> List[Booking]:
        needle = (query or "").lower()
        found = [
            b
            for b in self.bookings
            if start <= b.appointment_date <= end
            and (status is None or b.status == status)
            and (
                not needle
                or any(
                    needle in field.lower()
                    for field in (b.ticket_number, b.customer_name, b.customer_phone, b.customer_email)
                )
            )
        ]
        return sorted(found, key=lambda b: (b.appointment_date, b.appointment_time), reverse=True)

    async def find_by_phone(self, phone: str, day: date) -> List[Booking]:
        found = [b for b in self.bookings if b.customer_phone == phone and b.appointment_date == day]
        return sorted(found, key=lambda b: b.appointment_time)

    async def list_occupying(self, day: date, slot: Optional[time] = None) -> List[Booking]:
        return self._occupying(day, slot)

    async def lock_occupying(self, day: date, slot: time) -> List[Booking]:
        self.locked.append((day, slot))
        return self._occupying(day, slot)

    async def get_by_ticket(self, ticket_number: str) -> Optional[Booking]:
        for b in self.bookings:
            if b.ticket_number.upper() == ticket_number.upper():
                return b
        return None

    async def get_by_ticket_for_update(self, ticket_number: str) -> Optional[Booking]:
        return await self.get_by_ticket(ticket_number)

    async def max_ticket_sequence(self, day: date) -> int:
        prefix = f"TKT-{day:%Y%m%d}-"
        sequences = [int(b.ticket_number[len(prefix):]) for b in self.bookings if b.ticket_number.startswith(prefix)]
        return max(sequences, default=0)

    async def create(self, *, now: datetime, **fields: object) -> Booking:
        booking = Booking(id=next(_ids), created_at=now, updated_at=now, **fields)
        self.bookings.append(booking)
        return booking

    async def save(self, booking: Booking) -> Booking:
        self.saved.append(booking)
        return booking


class FakeOverrideRepo:
    def __init__(self, overrides: Optional[List[CapacityOverride]] = None) -> None:
        self.overrides: List[CapacityOverride] = list(overrides or [])
        self.deleted: List[CapacityOverride] = []

    async def list_between(self, start: date, end: date, *, active_only: bool = True) -> List[CapacityOverride]:
        return [
            o for o in self.overrides if start <= o.override_date <= end and (o.is_active or not active_only)
        ]

    async def list_active_for(self, day: date, slot: time) -> List[CapacityOverride]:
        return [o for o in self.overrides if o.is_active and o.override_date == day and o.time_slot == slot]

    async def get(self, override_id: int) -> Optional[CapacityOverride]:
        return next((o for o in self.overrides if o.id == override_id), None)

    async def create(self, *, override_date: date, time_slot: time, capacity: int, is_active: bool, now: datetime) -> CapacityOverride:
        override = _override(override_date, time_slot, capacity, is_active=is_active, created_at=now)
        self.overrides.append(override)
        return override

    async def save(self, override: CapacityOverride) -> CapacityOverride:
        return override

    async def delete(self, override: CapacityOverride) -> None:
        self.overrides.remove(override)
        self.deleted.append(override)


class FakeBlockRepo:
    def __init__(self, blocks: Optional[List[BlockedSlot]] = None) -> None:
        self.blocks: List[BlockedSlot] = list(blocks or [])

    async def list_between(self, start: date, end: date) -> List[BlockedSlot]:
        return [b for b in self.blocks if start <= b.block_date <= end]

    async def get(self, block_id: int) -> Optional[BlockedSlot]:
        return next((b for b in self.blocks if b.id == block_id), None)

    async def find(self, day: date, slot: Optional[time]) -> Optional[BlockedSlot]:
        scope = BlockScope.DAY if slot is None else BlockScope.SLOT
        return next(
            (b for b in self.blocks if b.block_date == day and b.scope == scope and b.time_slot == slot),
            None,
        )

    async def create(self, block: BlockedSlot) -> BlockedSlot:
        block.id = next(_ids)
        self.blocks.append(block)
        return block

    async def delete(self, block: BlockedSlot) -> None:
        self.blocks.remove(block)


@dataclass
class Repos:
    bookings: FakeBookingRepo
    overrides: FakeOverrideRepo
    blocks: FakeBlockRepo


@pytest.fixture
def repos() -> Repos:
    return Repos(bookings=FakeBookingRepo(), overrides=FakeOverrideRepo(), blocks=FakeBlockRepo())

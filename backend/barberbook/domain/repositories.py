from __future__ import annotations

from datetime import date, datetime, time
from typing import Protocol, Sequence

from ..models import BlockedSlot, Booking, BookingStatus, CapacityOverride


class BookingRepository(Protocol):
    async def list_between(self, start: date, end: date) -> Sequence[Booking]: ...

    async def list_bookings(
        self,
        start: date,
        end: date,
        *,
        status: BookingStatus | None = None,
        query: str | None = None,
    ) -> Sequence[Booking]: ...

    async def find_by_phone(self, phone: str, day: date) -> Sequence[Booking]: ...

    async def list_occupying(self, day: date, slot: time | None = None) -> Sequence[Booking]: ...

    async def lock_occupying(self, day: date, slot: time) -> Sequence[Booking]: ...

    async def get_by_ticket(self, ticket_number: str) -> Booking | None: ...

    async def get_by_ticket_for_update(self, ticket_number: str) -> Booking | None: ...

    async def max_ticket_sequence(self, day: date) -> int: ...

    async def create(
        self,
        *,
        ticket_number: str,
        status: BookingStatus,
        appointment_date: date,
        appointment_time: time,
        customer_name: str,
        customer_email: str,
        customer_phone: str,
        service_id: str | None,
        special_request: str | None,
        original_booking_id: int | None,
        now: datetime,
    ) -> Booking: ...

    async def save(self, booking: Booking) -> Booking: ...


class OverrideRepository(Protocol):
    async def list_between(self, start: date, end: date, *, active_only: bool = True) -> Sequence[CapacityOverride]: ...

    async def list_active_for(self, day: date, slot: time) -> Sequence[CapacityOverride]: ...

    async def get(self, override_id: int) -> CapacityOverride | None: ...

    async def create(
        self,
        *,
        override_date: date,
        time_slot: time,
        capacity: int,
        is_active: bool,
        now: datetime,
    ) -> CapacityOverride: ...

    async def save(self, override: CapacityOverride) -> CapacityOverride: ...

    async def delete(self, override: CapacityOverride) -> None: ...


class BlockRepository(Protocol):
    async def list_between(self, start: date, end: date) -> Sequence[BlockedSlot]: ...

    async def get(self, block_id: int) -> BlockedSlot | None: ...

    async def find(self, day: date, slot: time | None) -> BlockedSlot | None: ...

    async def create(self, block: BlockedSlot) -> BlockedSlot: ...

    async def delete(self, block: BlockedSlot) -> None: ...

from __future__ import annotations

from datetime import date, datetime, time
from typing import List

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.lifecycle import OCCUPYING_STATUSES
from ..domain.repositories import BlockRepository, BookingRepository, OverrideRepository
from ..models import BlockedSlot, BlockScope, Booking, BookingStatus, CapacityOverride


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _occupying(self, day: date, slot: time | None) -> Select[tuple[Booking]]:
        stmt = select(Booking).where(
            Booking.appointment_date == day,
            Booking.status.in_(OCCUPYING_STATUSES),
        )
        if slot is not None:
            stmt = stmt.where(Booking.appointment_time == slot)
        return stmt.order_by(Booking.appointment_time, Booking.ticket_number)

    async def list_between(self, start: date, end: date) -> List[Booking]:
        stmt = select(Booking).where(Booking.appointment_date >= start, Booking.appointment_date <= end)
        return list(await self.session.scalars(stmt))

    async def list_bookings(
        self,
        start: date,
        end: date,
        *,
        status: BookingStatus | None = None,
        query: str | None = None,
    ) -> List[Booking]:
        stmt = select(Booking).where(Booking.appointment_date >= start, Booking.appointment_date <= end)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        if query:
            stmt = stmt.where(
                or_(
                    Booking.ticket_number.icontains(query, autoescape=True),
                    Booking.customer_name.icontains(query, autoescape=True),
                    Booking.customer_phone.icontains(query, autoescape=True),
                    Booking.customer_email.icontains(query, autoescape=True),
                )
            )
        stmt = stmt.order_by(Booking.appointment_date.desc(), Booking.appointment_time.desc())
        return list(await self.session.scalars(stmt))

    async def find_by_phone(self, phone: str, day: date) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.customer_phone == phone, Booking.appointment_date == day)
            .order_by(Booking.appointment_time)
        )
        return list(await self.session.scalars(stmt))

    async def list_occupying(self, day: date, slot: time | None = None) -> List[Booking]:
        return list(await self.session.scalars(self._occupying(day, slot)))

    async def lock_occupying(self, day: date, slot: time) -> List[Booking]:
        # FOR UPDATE on the indexed (date, time) range also holds the gap, so a
        # concurrent insert into the same slot waits for this transaction.
        return list(await self.session.scalars(self._occupying(day, slot).with_for_update()))

    async def get_by_ticket(self, ticket_number: str) -> Booking | None:
        stmt = select(Booking).where(func.upper(Booking.ticket_number) == ticket_number.upper())
        return await self.session.scalar(stmt)

    async def get_by_ticket_for_update(self, ticket_number: str) -> Booking | None:
        stmt = select(Booking).where(func.upper(Booking.ticket_number) == ticket_number.upper()).with_for_update()
        return await self.session.scalar(stmt)

    async def max_ticket_sequence(self, day: date) -> int:
        prefix = f"TKT-{day:%Y%m%d}-"
        stmt = select(Booking.ticket_number).where(Booking.ticket_number.like(f"{prefix}%"))
        tickets = await self.session.scalars(stmt)
        sequences = [int(t[len(prefix):]) for t in tickets if t[len(prefix):].isdigit()]
        return max(sequences, default=0)

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
    ) -> Booking:
        booking = Booking(
            ticket_number=ticket_number,
            status=status,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            service_id=service_id,
            special_request=special_request,
            original_booking_id=original_booking_id,
            confirmed_at=now if status == BookingStatus.CONFIRMED else None,
            created_at=now,
            updated_at=now,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def save(self, booking: Booking) -> Booking:
        self.session.add(booking)
        await self.session.flush()
        return booking


class SqlAlchemyOverrideRepository(OverrideRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_between(self, start: date, end: date, *, active_only: bool = True) -> List[CapacityOverride]:
        stmt = (
            select(CapacityOverride)
            .where(CapacityOverride.override_date >= start, CapacityOverride.override_date <= end)
            .order_by(CapacityOverride.override_date, CapacityOverride.time_slot)
        )
        if active_only:
            stmt = stmt.where(CapacityOverride.is_active.is_(True))
        return list(await self.session.scalars(stmt))

    async def list_active_for(self, day: date, slot: time) -> List[CapacityOverride]:
        stmt = select(CapacityOverride).where(
            CapacityOverride.override_date == day,
            CapacityOverride.time_slot == slot,
            CapacityOverride.is_active.is_(True),
        )
        return list(await self.session.scalars(stmt))

    async def get(self, override_id: int) -> CapacityOverride | None:
        return await self.session.get(CapacityOverride, override_id)

    async def create(
        self,
        *,
        override_date: date,
        time_slot: time,
        capacity: int,
        is_active: bool,
        now: datetime,
    ) -> CapacityOverride:
        override = CapacityOverride(
            override_date=override_date,
            time_slot=time_slot,
            capacity=capacity,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        self.session.add(override)
        await self.session.flush()
        return override

    async def save(self, override: CapacityOverride) -> CapacityOverride:
        self.session.add(override)
        await self.session.flush()
        return override

    async def delete(self, override: CapacityOverride) -> None:
        await self.session.delete(override)
        await self.session.flush()


class SqlAlchemyBlockRepository(BlockRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_between(self, start: date, end: date) -> List[BlockedSlot]:
        stmt = (
            select(BlockedSlot)
            .where(BlockedSlot.block_date >= start, BlockedSlot.block_date <= end)
            .order_by(BlockedSlot.block_date, BlockedSlot.time_slot)
        )
        return list(await self.session.scalars(stmt))

    async def get(self, block_id: int) -> BlockedSlot | None:
        return await self.session.get(BlockedSlot, block_id)

    async def find(self, day: date, slot: time | None) -> BlockedSlot | None:
        stmt = select(BlockedSlot).where(BlockedSlot.block_date == day)
        if slot is None:
            stmt = stmt.where(BlockedSlot.scope == BlockScope.DAY)
        else:
            stmt = stmt.where(BlockedSlot.scope == BlockScope.SLOT, BlockedSlot.time_slot == slot)
        return await self.session.scalar(stmt.limit(1))

    async def create(self, block: BlockedSlot) -> BlockedSlot:
        self.session.add(block)
        await self.session.flush()
        return block

    async def delete(self, block: BlockedSlot) -> None:
        await self.session.delete(block)
        await self.session.flush()

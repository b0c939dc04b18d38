from datetime import date, datetime, time
from typing import List, Optional, Sequence

from pydantic import BaseModel, EmailStr, Field, field_serializer

from .domain.availability import DayAvailability, SlotAvailability, SlotStatus
from .domain.guard import ConflictReport, OnConflict
from .domain.window import WindowPosition
from .models import BlockedSlot, BlockScope, Booking, BookingStatus, CancelledBy, CapacityOverride
from .utils.time import format_slot

SLOT_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class SlotAvailabilityRead(BaseModel):
    time_slot: time
    status: SlotStatus
    capacity: int
    booked: int
    remaining: int

    @field_serializer("time_slot")
    def _ser_slot(self, value: time) -> str:
        return format_slot(value)

    @classmethod
    def from_domain(cls, slot: SlotAvailability) -> "SlotAvailabilityRead":
        return cls(
            time_slot=slot.time_slot,
            status=slot.status,
            capacity=slot.capacity,
            booked=slot.booked,
            remaining=slot.remaining,
        )


class DayAvailabilityRead(BaseModel):
    date: date
    day_of_week: str
    in_month: bool
    window: WindowPosition
    day_status: SlotStatus
    slots: List[SlotAvailabilityRead]

    @classmethod
    def from_domain(cls, day: DayAvailability) -> "DayAvailabilityRead":
        return cls(
            date=day.date,
            day_of_week=DAY_NAMES[day.date.weekday()],
            in_month=day.in_month,
            window=day.window,
            day_status=day.day_status,
            slots=[SlotAvailabilityRead.from_domain(s) for s in day.slots],
        )


class BookingCreate(BaseModel):
    appointment_date: date
    appointment_time: str = Field(pattern=SLOT_PATTERN)
    customer_name: str = Field(min_length=1, max_length=255)
    customer_email: EmailStr
    customer_phone: str = Field(min_length=5, max_length=50)
    service_id: Optional[str] = Field(default=None, max_length=64)
    special_request: Optional[str] = Field(default=None, max_length=2000)


class BookingCancel(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class BookingReschedule(BaseModel):
    appointment_date: date
    appointment_time: str = Field(pattern=SLOT_PATTERN)


class BookingRead(BaseModel):
    booking_id: int
    ticket_number: str
    status: BookingStatus
    appointment_date: date
    appointment_time: time
    customer_name: str
    customer_email: str
    customer_phone: str
    service_id: Optional[str] = None
    special_request: Optional[str] = None
    original_booking_id: Optional[int] = None
    cancelled_by: Optional[CancelledBy] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("appointment_time")
    def _ser_slot(self, value: time) -> str:
        return format_slot(value)

    @classmethod
    def from_db(cls, *, booking: Booking) -> "BookingRead":
        return cls(
            booking_id=booking.id,
            ticket_number=booking.ticket_number,
            status=booking.status,
            appointment_date=booking.appointment_date,
            appointment_time=booking.appointment_time,
            customer_name=booking.customer_name,
            customer_email=booking.customer_email,
            customer_phone=booking.customer_phone,
            service_id=booking.service_id,
            special_request=booking.special_request,
            original_booking_id=booking.original_booking_id,
            cancelled_by=booking.cancelled_by,
            cancellation_reason=booking.cancellation_reason,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class RescheduleRead(BaseModel):
    new_booking: BookingRead
    original_booking: BookingRead


class BookingListRead(BaseModel):
    bookings: List[BookingRead]
    total: int

    @classmethod
    def from_db(cls, *, bookings: Sequence[Booking]) -> "BookingListRead":
        return cls(bookings=[BookingRead.from_db(booking=b) for b in bookings], total=len(bookings))


class ConflictBookingRead(BaseModel):
    id: int
    ticket_number: str
    customer_name: str
    appointment_time: time

    @field_serializer("appointment_time")
    def _ser_slot(self, value: time) -> str:
        return format_slot(value)


class ConflictRead(BaseModel):
    count: int
    bookings: List[ConflictBookingRead]

    @classmethod
    def from_domain(cls, report: ConflictReport) -> "ConflictRead":
        return cls(
            count=report.count,
            bookings=[
                ConflictBookingRead(
                    id=b.id,
                    ticket_number=b.ticket_number,
                    customer_name=b.customer_name,
                    appointment_time=b.appointment_time,
                )
                for b in report.bookings
            ],
        )


class OverrideCreate(BaseModel):
    override_date: date
    time_slot: str = Field(pattern=SLOT_PATTERN)
    capacity: int = Field(ge=0, le=50)
    is_active: bool = True
    on_conflict: OnConflict = OnConflict.WARN


class OverrideUpdate(BaseModel):
    capacity: Optional[int] = Field(default=None, ge=0, le=50)
    is_active: Optional[bool] = None
    on_conflict: OnConflict = OnConflict.WARN


class OverrideRead(BaseModel):
    override_id: int
    override_date: date
    time_slot: time
    capacity: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @field_serializer("time_slot")
    def _ser_slot(self, value: time) -> str:
        return format_slot(value)

    @classmethod
    def from_db(cls, *, override: CapacityOverride) -> "OverrideRead":
        return cls(
            override_id=override.id,
            override_date=override.override_date,
            time_slot=override.time_slot,
            capacity=override.capacity,
            is_active=override.is_active,
            created_at=override.created_at,
            updated_at=override.updated_at,
        )


class OverrideWriteResult(BaseModel):
    override: OverrideRead
    cancelled_bookings: List[BookingRead] = Field(default_factory=list)


class BlockCreate(BaseModel):
    block_date: date
    time_slot: Optional[str] = Field(default=None, pattern=SLOT_PATTERN)
    reason: Optional[str] = Field(default=None, max_length=255)
    on_conflict: OnConflict = OnConflict.WARN


class BlockRead(BaseModel):
    block_id: int
    block_date: date
    scope: BlockScope
    time_slot: Optional[time]
    reason: Optional[str]
    created_at: datetime

    @field_serializer("time_slot")
    def _ser_slot(self, value: Optional[time]) -> Optional[str]:
        return format_slot(value) if value is not None else None

    @classmethod
    def from_db(cls, *, block: BlockedSlot) -> "BlockRead":
        return cls(
            block_id=block.id,
            block_date=block.block_date,
            scope=block.scope,
            time_slot=block.time_slot,
            reason=block.reason,
            created_at=block.created_at,
        )


class BlockWriteResult(BaseModel):
    block: BlockRead
    cancelled_bookings: List[BookingRead] = Field(default_factory=list)

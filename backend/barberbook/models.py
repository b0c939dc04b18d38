from __future__ import annotations

from datetime import date, datetime, time
from enum import StrEnum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.sqltypes import BigInteger, Date, DateTime, Integer, String, Text, Time


class Base(DeclarativeBase):
    pass


class BookingStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CancelledBy(StrEnum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class BlockScope(StrEnum):
    DAY = "day"
    SLOT = "slot"


def _enum_column(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("ticket_number", name="uq_bookings_ticket"),
        Index("idx_bookings_slot", "appointment_date", "appointment_time"),
        Index("idx_bookings_status", "status"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    ticket_number: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        _enum_column(BookingStatus),
        nullable=False,
        default=BookingStatus.CONFIRMED,
    )
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    appointment_time: Mapped[time] = mapped_column(Time, nullable=False)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    service_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    special_request: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    original_booking_id: Mapped[Optional[int]] = mapped_column(ForeignKey("bookings.id"), nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    cancelled_by: Mapped[Optional[CancelledBy]] = mapped_column(_enum_column(CancelledBy), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    @property
    def starts_at(self) -> datetime:
        """Local shop datetime at which the appointment begins."""
        return datetime.combine(self.appointment_date, self.appointment_time)


class CapacityOverride(Base):
    __tablename__ = "capacity_overrides"
    __table_args__ = (
        CheckConstraint("capacity >= 0", name="chk_overrides_capacity"),
        Index("idx_overrides_slot", "override_date", "time_slot"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    override_date: Mapped[date] = mapped_column(Date, nullable=False)
    time_slot: Mapped[time] = mapped_column(Time, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class BlockedSlot(Base):
    """An admin closure of a whole day (scope=day) or of one slot (scope=slot)."""

    __tablename__ = "blocked_slots"
    __table_args__ = (
        CheckConstraint(
            "(scope = 'day' AND time_slot IS NULL) OR (scope = 'slot' AND time_slot IS NOT NULL)",
            name="chk_blocks_scope",
        ),
        Index("idx_blocks_date", "block_date"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    block_date: Mapped[date] = mapped_column(Date, nullable=False)
    scope: Mapped[BlockScope] = mapped_column(_enum_column(BlockScope), nullable=False)
    time_slot: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    @classmethod
    def whole_day(cls, block_date: date, *, reason: str | None = None, created_at: datetime) -> "BlockedSlot":
        return cls(block_date=block_date, scope=BlockScope.DAY, time_slot=None, reason=reason, created_at=created_at)

    @classmethod
    def single_slot(
        cls,
        block_date: date,
        time_slot: time,
        *,
        reason: str | None = None,
        created_at: datetime,
    ) -> "BlockedSlot":
        return cls(
            block_date=block_date,
            scope=BlockScope.SLOT,
            time_slot=time_slot,
            reason=reason,
            created_at=created_at,
        )

    @property
    def is_whole_day(self) -> bool:
        return self.scope == BlockScope.DAY

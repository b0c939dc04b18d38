from datetime import date, datetime, time, timedelta
from functools import partial
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_now, get_policy, get_session, get_today
from ..domain.errors import BookingError
from ..domain.guard import OnConflict
from ..domain.policy import ShopPolicy
from ..infrastructure.repositories import (
    SqlAlchemyBlockRepository,
    SqlAlchemyBookingRepository,
    SqlAlchemyOverrideRepository,
)
from ..models import Booking, BookingStatus, CancelledBy
from ..schemas import (
    BlockCreate,
    BlockRead,
    BlockWriteResult,
    BookingCancel,
    BookingCreate,
    BookingListRead,
    BookingRead,
    ConflictRead,
    OverrideCreate,
    OverrideRead,
    OverrideUpdate,
    OverrideWriteResult,
)
from ..usecases import admin as admin_usecase
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import parse_slot
from .errors import to_http_error, with_ticket_retry

router = APIRouter(prefix="/admin", tags=["admin"])

DEFAULT_LIST_DAYS = 90


def _audit(**kwargs: Any) -> None:
    try:
        emit_audit_log(**kwargs)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc


def _slot_or_400(value: Optional[str]) -> Optional[time]:
    if value is None:
        return None
    try:
        return parse_slot(value)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _range(date_from: Optional[date], date_to: Optional[date], today: date) -> tuple[date, date]:
    start = date_from or today
    end = date_to or start + timedelta(days=DEFAULT_LIST_DAYS)
    if end < start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="date_to must not precede date_from")
    return start, end


def _audit_cancellations(cancelled: List[Booking], reason: str) -> None:
    for booking in cancelled:
        _audit(
            action="booking.cancelled",
            initiator="admin",
            target_id=booking.id,
            ticket_number=booking.ticket_number,
            appointment_date=booking.appointment_date,
            time_slot=booking.appointment_time,
            status_to=booking.status,
            message=reason,
        )


# Capacity overrides


@router.get("/capacity-overrides", response_model=List[OverrideRead])
async def list_overrides(
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    include_inactive: bool = Query(default=False),
    session: AsyncSession = Depends(get_session),
    today: date = Depends(get_today),
) -> list[OverrideRead]:
    start, end = _range(date_from, date_to, today)
    overrides = await admin_usecase.list_overrides(
        SqlAlchemyOverrideRepository(session),
        start=start,
        end=end,
        active_only=not include_inactive,
    )
    return [OverrideRead.from_db(override=o) for o in overrides]


@router.post("/capacity-overrides", response_model=OverrideWriteResult, status_code=status.HTTP_201_CREATED)
async def create_override(
    payload: OverrideCreate,
    session: AsyncSession = Depends(get_session),
    policy: ShopPolicy = Depends(get_policy),
    now: datetime = Depends(get_now),
) -> OverrideWriteResult:
    try:
        async with session.begin():
            override, cancelled = await admin_usecase.create_override(
                SqlAlchemyBookingRepository(session),
                SqlAlchemyOverrideRepository(session),
                day=payload.override_date,
                slot=parse_slot(payload.time_slot),
                capacity=payload.capacity,
                is_active=payload.is_active,
                on_conflict=payload.on_conflict,
                now=now,
                policy=policy,
            )
    except BookingError as exc:
        raise to_http_error(exc) from exc

    _audit(
        action="override.created",
        initiator="admin",
        target_id=override.id,
        appointment_date=override.override_date,
        time_slot=override.time_slot,
        extra={"capacity": override.capacity, "is_active": override.is_active},
    )
    _audit_cancellations(cancelled, admin_usecase.OVERRIDE_CANCELLATION_REASON)
    return OverrideWriteResult(
        override=OverrideRead.from_db(override=override),
        cancelled_bookings=[BookingRead.from_db(booking=b) for b in cancelled],
    )


@router.patch("/capacity-overrides/{override_id}", response_model=OverrideWriteResult)
async def update_override(
    payload: OverrideUpdate,
    override_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    policy: ShopPolicy = Depends(get_policy),
    now: datetime = Depends(get_now),
) -> OverrideWriteResult:
    if payload.capacity is None and payload.is_active is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="no fields to update")
    try:
        async with session.begin():
            override, cancelled = await admin_usecase.update_override(
                SqlAlchemyBookingRepository(session),
                SqlAlchemyOverrideRepository(session),
                override_id=override_id,
                capacity=payload.capacity,
                is_active=payload.is_active,
                on_conflict=payload.on_conflict,
                now=now,
                policy=policy,
            )
    except BookingError as exc:
        raise to_http_error(exc) from exc

    _audit(
        action="override.updated",
        initiator="admin",
        target_id=override.id,
        appointment_date=override.override_date,
        time_slot=override.time_slot,
        extra={"capacity": override.capacity, "is_active": override.is_active},
    )
    _audit_cancellations(cancelled, admin_usecase.OVERRIDE_CANCELLATION_REASON)
    return OverrideWriteResult(
        override=OverrideRead.from_db(override=override),
        cancelled_bookings=[BookingRead.from_db(booking=b) for b in cancelled],
    )


@router.delete("/capacity-overrides/{override_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_override(
    override_id: int = Path(..., ge=1),
    on_conflict: OnConflict = Query(default=OnConflict.WARN),
    session: AsyncSession = Depends(get_session),
    policy: ShopPolicy = Depends(get_policy),
    now: datetime = Depends(get_now),
) -> None:
    try:
        async with session.begin():
            override, cancelled = await admin_usecase.delete_override(
                SqlAlchemyBookingRepository(session),
                SqlAlchemyOverrideRepository(session),
                override_id=override_id,
                on_conflict=on_conflict,
                now=now,
                policy=policy,
            )
    except BookingError as exc:
        raise to_http_error(exc) from exc

    _audit(
        action="override.deleted",
        initiator="admin",
        target_id=override.id,
        appointment_date=override.override_date,
        time_slot=override.time_slot,
    )
    _audit_cancellations(cancelled, admin_usecase.OVERRIDE_CANCELLATION_REASON)


# Blocks


@router.get("/blocks", response_model=List[BlockRead])
async def list_blocks(
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    today: date = Depends(get_today),
) -> list[BlockRead]:
    start, end = _range(date_from, date_to, today)
    blocks = await admin_usecase.list_blocks(SqlAlchemyBlockRepository(session), start=start, end=end)
    return [BlockRead.from_db(block=b) for b in blocks]


@router.get("/blocks/conflicts", response_model=ConflictRead)
async def check_block_conflicts(
    day: date = Query(..., alias="date"),
    time_slot: Optional[str] = Query(default=None, description="HH:MM; omit for a whole-day block"),
    session: AsyncSession = Depends(get_session),
    policy: ShopPolicy = Depends(get_policy),
) -> ConflictRead:
    try:
        report = await admin_usecase.check_block_conflicts(
            SqlAlchemyBookingRepository(session),
            day=day,
            slot=_slot_or_400(time_slot),
            policy=policy,
        )
    except BookingError as exc:
        raise to_http_error(exc) from exc
    return ConflictRead.from_domain(report)


@router.post("/blocks", response_model=BlockWriteResult, status_code=status.HTTP_201_CREATED)
async def create_block(
    payload: BlockCreate,
    session: AsyncSession = Depends(get_session),
    policy: ShopPolicy = Depends(get_policy),
    now: datetime = Depends(get_now),
) -> BlockWriteResult:
    try:
        async with session.begin():
            block, cancelled = await admin_usecase.create_block(
                SqlAlchemyBookingRepository(session),
                SqlAlchemyBlockRepository(session),
                day=payload.block_date,
                slot=_slot_or_400(payload.time_slot),
                reason=payload.reason,
                on_conflict=payload.on_conflict,
                now=now,
                policy=policy,
            )
    except BookingError as exc:
        raise to_http_error(exc) from exc

    _audit(
        action="block.created",
        initiator="admin",
        target_id=block.id,
        appointment_date=block.block_date,
        time_slot=block.time_slot,
        message=block.reason,
        extra={"scope": block.scope},
    )
    _audit_cancellations(cancelled, payload.reason or admin_usecase.BLOCK_CANCELLATION_REASON)
    return BlockWriteResult(
        block=BlockRead.from_db(block=block),
        cancelled_bookings=[BookingRead.from_db(booking=b) for b in cancelled],
    )


@router.delete("/blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_block(
    block_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> None:
    try:
        async with session.begin():
            block = await admin_usecase.delete_block(SqlAlchemyBlockRepository(session), block_id=block_id)
    except BookingError as exc:
        raise to_http_error(exc) from exc

    _audit(
        action="block.deleted",
        initiator="admin",
        target_id=block.id,
        appointment_date=block.block_date,
        time_slot=block.time_slot,
        extra={"scope": block.scope},
    )


# Bookings


@router.get("/bookings", response_model=BookingListRead)
async def list_bookings(
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    booking_status: Optional[BookingStatus] = Query(default=None, alias="status"),
    q: Optional[str] = Query(default=None, max_length=100, description="ticket, name, phone or email fragment"),
    session: AsyncSession = Depends(get_session),
    today: date = Depends(get_today),
) -> BookingListRead:
    start, end = _range(date_from, date_to, today)
    bookings = await booking_usecase.list_bookings(
        SqlAlchemyBookingRepository(session),
        start=start,
        end=end,
        status=booking_status,
        query=q,
    )
    return BookingListRead.from_db(bookings=bookings)


@router.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    policy: ShopPolicy = Depends(get_policy),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
) -> BookingRead:
    create = partial(
        booking_usecase.create_booking,
        SqlAlchemyBookingRepository(session),
        SqlAlchemyOverrideRepository(session),
        SqlAlchemyBlockRepository(session),
        policy=policy,
        today=today,
        now=now,
        appointment_date=payload.appointment_date,
        appointment_time=parse_slot(payload.appointment_time),
        customer_name=payload.customer_name,
        customer_email=payload.customer_email,
        customer_phone=payload.customer_phone,
        service_id=payload.service_id,
        special_request=payload.special_request,
    )
    try:
        booking = await with_ticket_retry(session, create)
    except BookingError as exc:
        raise to_http_error(exc) from exc

    _audit(
        action="booking.created",
        initiator="admin",
        target_id=booking.id,
        ticket_number=booking.ticket_number,
        appointment_date=booking.appointment_date,
        time_slot=booking.appointment_time,
        status_to=booking.status,
    )
    return BookingRead.from_db(booking=booking)


# Booking transitions


@router.post("/bookings/{ticket_number}/confirm", response_model=BookingRead)
async def confirm_booking(
    ticket_number: str = Path(..., min_length=1, max_length=32),
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> BookingRead:
    try:
        async with session.begin():
            booking, previous = await booking_usecase.confirm_booking(
                SqlAlchemyBookingRepository(session), ticket_number=ticket_number, now=now
            )
    except BookingError as exc:
        raise to_http_error(exc) from exc

    _audit(
        action="booking.confirmed",
        initiator="admin",
        target_id=booking.id,
        ticket_number=booking.ticket_number,
        appointment_date=booking.appointment_date,
        time_slot=booking.appointment_time,
        status_from=previous,
        status_to=BookingStatus.CONFIRMED,
    )
    return BookingRead.from_db(booking=booking)


@router.post("/bookings/{ticket_number}/complete", response_model=BookingRead)
async def complete_booking(
    ticket_number: str = Path(..., min_length=1, max_length=32),
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> BookingRead:
    try:
        async with session.begin():
            booking, previous = await booking_usecase.complete_booking(
                SqlAlchemyBookingRepository(session), ticket_number=ticket_number, now=now
            )
    except BookingError as exc:
        raise to_http_error(exc) from exc

    _audit(
        action="booking.completed",
        initiator="admin",
        target_id=booking.id,
        ticket_number=booking.ticket_number,
        appointment_date=booking.appointment_date,
        time_slot=booking.appointment_time,
        status_from=previous,
        status_to=BookingStatus.COMPLETED,
    )
    return BookingRead.from_db(booking=booking)


@router.post("/bookings/{ticket_number}/cancel", response_model=BookingRead)
async def cancel_booking(
    payload: BookingCancel,
    ticket_number: str = Path(..., min_length=1, max_length=32),
    session: AsyncSession = Depends(get_session),
    policy: ShopPolicy = Depends(get_policy),
    now: datetime = Depends(get_now),
) -> BookingRead:
    try:
        async with session.begin():
            booking, previous = await booking_usecase.cancel_booking(
                SqlAlchemyBookingRepository(session),
                ticket_number=ticket_number,
                initiator=CancelledBy.ADMIN,
                reason=payload.reason,
                now=now,
                policy=policy,
            )
    except BookingError as exc:
        raise to_http_error(exc) from exc

    _audit(
        action="booking.cancelled",
        initiator="admin",
        target_id=booking.id,
        ticket_number=booking.ticket_number,
        appointment_date=booking.appointment_date,
        time_slot=booking.appointment_time,
        status_from=previous,
        status_to=booking.status,
        message=payload.reason,
    )
    return BookingRead.from_db(booking=booking)

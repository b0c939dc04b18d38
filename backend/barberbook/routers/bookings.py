from datetime import date, datetime
from functools import partial
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_now, get_policy, get_session, get_today
from ..domain.errors import BookingError
from ..domain.policy import ShopPolicy
from ..infrastructure.repositories import (
    SqlAlchemyBlockRepository,
    SqlAlchemyBookingRepository,
    SqlAlchemyOverrideRepository,
)
from ..models import CancelledBy
from ..schemas import (
    BookingCancel,
    BookingCreate,
    BookingListRead,
    BookingRead,
    BookingReschedule,
    RescheduleRead,
)
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import parse_slot
from .errors import to_http_error, with_ticket_retry

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _audit(**kwargs: Any) -> None:
    try:
        emit_audit_log(**kwargs)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    policy: ShopPolicy = Depends(get_policy),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
) -> BookingRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    override_repo = SqlAlchemyOverrideRepository(session)
    block_repo = SqlAlchemyBlockRepository(session)
    create = partial(
        booking_usecase.create_booking,
        booking_repo,
        override_repo,
        block_repo,
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
        initiator="customer",
        target_id=booking.id,
        ticket_number=booking.ticket_number,
        appointment_date=booking.appointment_date,
        time_slot=booking.appointment_time,
        status_to=booking.status,
    )
    return BookingRead.from_db(booking=booking)


@router.get("/search", response_model=BookingListRead)
async def search_bookings(
    phone: str = Query(..., min_length=5, max_length=50),
    day: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> BookingListRead:
    bookings = await booking_usecase.find_bookings_by_phone(
        SqlAlchemyBookingRepository(session), phone=phone, day=day
    )
    return BookingListRead.from_db(bookings=bookings)


@router.get("/{ticket_number}", response_model=BookingRead)
async def get_booking(
    ticket_number: str = Path(..., min_length=1, max_length=32),
    session: AsyncSession = Depends(get_session),
) -> BookingRead:
    try:
        booking = await booking_usecase.get_booking(SqlAlchemyBookingRepository(session), ticket_number=ticket_number)
    except BookingError as exc:
        raise to_http_error(exc) from exc
    return BookingRead.from_db(booking=booking)


@router.post("/{ticket_number}/cancel", response_model=BookingRead)
async def cancel_booking(
    payload: BookingCancel,
    ticket_number: str = Path(..., min_length=1, max_length=32),
    session: AsyncSession = Depends(get_session),
    policy: ShopPolicy = Depends(get_policy),
    now: datetime = Depends(get_now),
) -> BookingRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        async with session.begin():
            booking, previous = await booking_usecase.cancel_booking(
                booking_repo,
                ticket_number=ticket_number,
                initiator=CancelledBy.CUSTOMER,
                reason=payload.reason,
                now=now,
                policy=policy,
            )
    except BookingError as exc:
        raise to_http_error(exc) from exc

    _audit(
        action="booking.cancelled",
        initiator="customer",
        target_id=booking.id,
        ticket_number=booking.ticket_number,
        appointment_date=booking.appointment_date,
        time_slot=booking.appointment_time,
        status_from=previous,
        status_to=booking.status,
        message=payload.reason,
    )
    return BookingRead.from_db(booking=booking)


@router.post("/{ticket_number}/reschedule", response_model=RescheduleRead, status_code=status.HTTP_201_CREATED)
async def reschedule_booking(
    payload: BookingReschedule,
    ticket_number: str = Path(..., min_length=1, max_length=32),
    session: AsyncSession = Depends(get_session),
    policy: ShopPolicy = Depends(get_policy),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
) -> RescheduleRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    override_repo = SqlAlchemyOverrideRepository(session)
    block_repo = SqlAlchemyBlockRepository(session)
    reschedule = partial(
        booking_usecase.reschedule_booking,
        booking_repo,
        override_repo,
        block_repo,
        ticket_number=ticket_number,
        new_date=payload.appointment_date,
        new_time=parse_slot(payload.appointment_time),
        policy=policy,
        today=today,
        now=now,
    )
    try:
        replacement, original = await with_ticket_retry(session, reschedule)
    except BookingError as exc:
        raise to_http_error(exc) from exc

    _audit(
        action="booking.rescheduled",
        initiator="customer",
        target_id=replacement.id,
        ticket_number=replacement.ticket_number,
        appointment_date=replacement.appointment_date,
        time_slot=replacement.appointment_time,
        status_to=replacement.status,
        extra={
            "original_ticket_number": original.ticket_number,
            "original_date": original.appointment_date,
            "original_time_slot": original.appointment_time,
        },
    )
    return RescheduleRead(
        new_booking=BookingRead.from_db(booking=replacement),
        original_booking=BookingRead.from_db(booking=original),
    )

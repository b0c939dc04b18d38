from datetime import date, datetime, time
from typing import Sequence

from ..domain.capacity import resolve_capacity
from ..domain.errors import BookingNotFoundError, InvalidSlotError, InvalidTransitionError
from ..domain.lifecycle import ensure_customer_cancellable, ensure_transition
from ..domain.policy import ShopPolicy
from ..domain.repositories import BlockRepository, BookingRepository, OverrideRepository
from ..domain.services import SlotSnapshot, validate_booking
from ..domain.window import classify_window
from ..models import Booking, BookingStatus, CancelledBy


def format_ticket(day: date, sequence: int) -> str:
    return f"TKT-{day:%Y%m%d}-{sequence:03d}"


async def create_booking(
    booking_repo: BookingRepository,
    override_repo: OverrideRepository,
    block_repo: BlockRepository,
    *,
    policy: ShopPolicy,
    today: date,
    now: datetime,
    appointment_date: date,
    appointment_time: time,
    customer_name: str,
    customer_email: str,
    customer_phone: str,
    service_id: str | None = None,
    special_request: str | None = None,
    original_booking_id: int | None = None,
) -> Booking:
    if not policy.is_known_slot(appointment_time):
        raise InvalidSlotError(f"{appointment_time:%H:%M} is not a bookable slot")

    # Lock first, then re-read capacity inputs: the availability the customer
    # saw may be stale by now.
    occupying = await booking_repo.lock_occupying(appointment_date, appointment_time)
    overrides = await override_repo.list_active_for(appointment_date, appointment_time)
    blocks = await block_repo.list_between(appointment_date, appointment_date)
    resolution = resolve_capacity(
        appointment_date,
        appointment_time,
        overrides=overrides,
        blocks=blocks,
        rule=policy.capacity_rule,
    )
    snapshot = SlotSnapshot(
        window=classify_window(appointment_date, today=today, window_days=policy.booking_window_days),
        capacity=resolution.capacity,
        booked=len(occupying),
        is_blocked=resolution.is_blocked,
    )
    validate_booking(snapshot)

    sequence = await booking_repo.max_ticket_sequence(appointment_date) + 1
    return await booking_repo.create(
        ticket_number=format_ticket(appointment_date, sequence),
        status=BookingStatus.CONFIRMED,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        customer_name=customer_name,
        customer_email=customer_email,
        customer_phone=customer_phone,
        service_id=service_id,
        special_request=special_request,
        original_booking_id=original_booking_id,
        now=now,
    )


async def get_booking(booking_repo: BookingRepository, *, ticket_number: str) -> Booking:
    booking = await booking_repo.get_by_ticket(ticket_number)
    if booking is None:
        raise BookingNotFoundError("booking not found")
    return booking


async def list_bookings(
    booking_repo: BookingRepository,
    *,
    start: date,
    end: date,
    status: BookingStatus | None = None,
    query: str | None = None,
) -> Sequence[Booking]:
    """Bookings in a date range, newest appointment first, optionally narrowed by status and free text."""
    query = (query or "").strip() or None
    return await booking_repo.list_bookings(start, end, status=status, query=query)


async def find_bookings_by_phone(booking_repo: BookingRepository, *, phone: str, day: date) -> Sequence[Booking]:
    return await booking_repo.find_by_phone(phone.strip(), day)


async def _locked(booking_repo: BookingRepository, ticket_number: str) -> Booking:
    booking = await booking_repo.get_by_ticket_for_update(ticket_number)
    if booking is None:
        raise BookingNotFoundError("booking not found")
    return booking


async def cancel_booking(
    booking_repo: BookingRepository,
    *,
    ticket_number: str,
    initiator: CancelledBy,
    reason: str,
    now: datetime,
    policy: ShopPolicy,
) -> tuple[Booking, BookingStatus]:
    booking = await _locked(booking_repo, ticket_number)
    previous = booking.status
    ensure_transition(previous, BookingStatus.CANCELLED)
    # Admin cancellations are not bound by the cutoff.
    if initiator == CancelledBy.CUSTOMER:
        ensure_customer_cancellable(booking.starts_at, now=now, cutoff_hours=policy.cancellation_cutoff_hours)

    booking.status = BookingStatus.CANCELLED
    booking.cancelled_at = now
    booking.cancelled_by = initiator
    booking.cancellation_reason = reason
    booking.updated_at = now
    return await booking_repo.save(booking), previous


async def _advance(
    booking_repo: BookingRepository,
    *,
    ticket_number: str,
    target: BookingStatus,
    now: datetime,
) -> tuple[Booking, BookingStatus]:
    booking = await _locked(booking_repo, ticket_number)
    previous = booking.status
    ensure_transition(previous, target)
    booking.status = target
    if target == BookingStatus.CONFIRMED:
        booking.confirmed_at = now
    elif target == BookingStatus.COMPLETED:
        booking.completed_at = now
    booking.updated_at = now
    return await booking_repo.save(booking), previous


async def confirm_booking(
    booking_repo: BookingRepository, *, ticket_number: str, now: datetime
) -> tuple[Booking, BookingStatus]:
    return await _advance(booking_repo, ticket_number=ticket_number, target=BookingStatus.CONFIRMED, now=now)


async def complete_booking(
    booking_repo: BookingRepository, *, ticket_number: str, now: datetime
) -> tuple[Booking, BookingStatus]:
    return await _advance(booking_repo, ticket_number=ticket_number, target=BookingStatus.COMPLETED, now=now)


async def reschedule_booking(
    booking_repo: BookingRepository,
    override_repo: OverrideRepository,
    block_repo: BlockRepository,
    *,
    ticket_number: str,
    new_date: date,
    new_time: time,
    policy: ShopPolicy,
    today: date,
    now: datetime,
) -> tuple[Booking, Booking]:
    """Book the new slot for the same customer and cancel the original. Returns (new, original)."""
    original = await _locked(booking_repo, ticket_number)
    if original.status != BookingStatus.CONFIRMED:
        raise InvalidTransitionError("only confirmed bookings can be rescheduled")
    ensure_customer_cancellable(original.starts_at, now=now, cutoff_hours=policy.cancellation_cutoff_hours)

    replacement = await create_booking(
        booking_repo,
        override_repo,
        block_repo,
        policy=policy,
        today=today,
        now=now,
        appointment_date=new_date,
        appointment_time=new_time,
        customer_name=original.customer_name,
        customer_email=original.customer_email,
        customer_phone=original.customer_phone,
        service_id=original.service_id,
        special_request=original.special_request,
        original_booking_id=original.id,
    )

    original.status = BookingStatus.CANCELLED
    original.cancelled_at = now
    original.cancelled_by = CancelledBy.CUSTOMER
    original.cancellation_reason = f"Rescheduled to {replacement.ticket_number}"
    original.updated_at = now
    await booking_repo.save(original)
    return replacement, original

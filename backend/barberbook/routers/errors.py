import logging
from typing import Awaitable, Callable, TypeVar

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import (
    BlockNotFoundError,
    BookingError,
    BookingNotFoundError,
    BookingWindowError,
    CancelNotAllowedError,
    ConflictWarning,
    DuplicateBlockError,
    DuplicateOverrideError,
    InvalidSlotError,
    InvalidTransitionError,
    OverrideNotFoundError,
    SlotBlockedError,
    SlotFullError,
)
from ..schemas import ConflictRead

logger = logging.getLogger(__name__)

T = TypeVar("T")

TICKET_ATTEMPTS = 3
TICKET_COLLISION_DETAIL = "ticket number taken by a concurrent booking, please retry"

_STATUS_BY_ERROR: list[tuple[type[BookingError], int]] = [
    (BookingNotFoundError, status.HTTP_404_NOT_FOUND),
    (OverrideNotFoundError, status.HTTP_404_NOT_FOUND),
    (BlockNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidSlotError, status.HTTP_400_BAD_REQUEST),
    (BookingWindowError, status.HTTP_400_BAD_REQUEST),
    (CancelNotAllowedError, status.HTTP_403_FORBIDDEN),
    (SlotFullError, status.HTTP_409_CONFLICT),
    (SlotBlockedError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (DuplicateOverrideError, status.HTTP_409_CONFLICT),
    (DuplicateBlockError, status.HTTP_409_CONFLICT),
]


def to_http_error(exc: BookingError) -> HTTPException:
    if isinstance(exc, ConflictWarning):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "existing bookings are affected; resend with on_conflict=apply or cancel_affected",
                "conflicts": ConflictRead.from_domain(exc.report).model_dump(mode="json"),
            },
        )
    for error_cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


async def with_ticket_retry(session: AsyncSession, operation: Callable[[], Awaitable[T]]) -> T:
    """Run ``operation`` in a fresh transaction, retrying when its ticket number is taken.

    Ticket sequences are read without a lock, so two bookings for different
    slots on the same day can pick the same number. The loser hits the unique
    constraint; a retry re-reads the sequence and re-validates the slot.
    """
    attempt = 1
    while True:
        try:
            async with session.begin():
                return await operation()
        except IntegrityError as exc:
            if attempt >= TICKET_ATTEMPTS:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=TICKET_COLLISION_DETAIL) from exc
            logger.warning("ticket number collision on attempt %d, retrying", attempt)
            attempt += 1

from datetime import datetime, timedelta
from typing import Dict, FrozenSet

from ..models import BookingStatus
from .errors import CancelNotAllowedError, InvalidTransitionError

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

OCCUPYING_STATUSES: FrozenSet[BookingStatus] = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def occupies_capacity(status: BookingStatus) -> bool:
    return status in OCCUPYING_STATUSES


def is_terminal(status: BookingStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


def ensure_transition(current: BookingStatus, target: BookingStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(f"cannot move booking from {current.value} to {target.value}")


def ensure_customer_cancellable(starts_at: datetime, *, now: datetime, cutoff_hours: int) -> None:
    """Customers may cancel only while the appointment is at least `cutoff_hours` away."""
    if starts_at - now < timedelta(hours=cutoff_hours):
        raise CancelNotAllowedError("cancellation window closed")

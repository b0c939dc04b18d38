from dataclasses import dataclass

from .errors import BookingWindowError, SlotBlockedError, SlotFullError
from .window import WindowPosition


@dataclass(frozen=True)
class SlotSnapshot:
    window: WindowPosition
    capacity: int
    booked: int
    is_blocked: bool


def validate_booking(snapshot: SlotSnapshot) -> int:
    """
    Pure commit-time check run against freshly locked slot data.
    Returns remaining capacity after booking if OK. Raises domain errors otherwise.
    """
    if snapshot.window == WindowPosition.PAST:
        raise BookingWindowError("cannot book appointments in the past")
    if snapshot.window == WindowPosition.BEYOND_WINDOW:
        raise BookingWindowError("date is beyond the booking window")
    if snapshot.is_blocked:
        raise SlotBlockedError("slot is blocked")

    remaining = snapshot.capacity - snapshot.booked
    if remaining <= 0:
        raise SlotFullError("slot no longer available")
    return remaining - 1

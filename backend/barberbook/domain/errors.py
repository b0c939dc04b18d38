from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .guard import ConflictReport


class BookingError(Exception):
    """Base class for domain errors raised by use cases."""


class InvalidSlotError(BookingError):
    pass


class BookingWindowError(BookingError):
    pass


class SlotFullError(BookingError):
    pass


class SlotBlockedError(BookingError):
    pass


class BookingNotFoundError(BookingError):
    pass


class InvalidTransitionError(BookingError):
    pass


class CancelNotAllowedError(BookingError):
    pass


class DuplicateOverrideError(BookingError):
    pass


class OverrideNotFoundError(BookingError):
    pass


class DuplicateBlockError(BookingError):
    pass


class BlockNotFoundError(BookingError):
    pass


class ConflictWarning(BookingError):
    """A block or override would displace existing bookings; nothing was written."""

    def __init__(self, report: "ConflictReport") -> None:
        super().__init__(f"{report.count} existing booking(s) affected")
        self.report = report

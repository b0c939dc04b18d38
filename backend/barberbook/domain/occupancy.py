from collections import Counter
from datetime import date, time
from typing import Dict, Iterable, Tuple

from ..models import Booking
from .lifecycle import occupies_capacity

SlotKey = Tuple[date, time]


def aggregate_occupancy(bookings: Iterable[Booking]) -> Dict[SlotKey, int]:
    """Count pending/confirmed bookings per (date, slot). Absent keys mean zero."""
    counts: Counter[SlotKey] = Counter(
        (b.appointment_date, b.appointment_time) for b in bookings if occupies_capacity(b.status)
    )
    return dict(counts)

import logging
from datetime import date
from typing import List

from ..domain.availability import DayAvailability, evaluate_day
from ..domain.grid import CalendarCell, CalendarView, build_grid, date_range, month_grid
from ..domain.occupancy import aggregate_occupancy
from ..domain.policy import ShopPolicy
from ..domain.repositories import BlockRepository, BookingRepository, OverrideRepository

logger = logging.getLogger(__name__)


async def evaluate_cells(
    booking_repo: BookingRepository,
    override_repo: OverrideRepository,
    block_repo: BlockRepository,
    *,
    cells: List[CalendarCell],
    today: date,
    policy: ShopPolicy,
) -> List[DayAvailability]:
    start, end = date_range(cells)
    bookings = await booking_repo.list_between(start, end)
    overrides = await override_repo.list_between(start, end)
    blocks = await block_repo.list_between(start, end)
    occupancy = aggregate_occupancy(bookings)
    return [
        evaluate_day(
            cell.date,
            today=today,
            policy=policy,
            overrides=overrides,
            blocks=blocks,
            occupancy=occupancy,
            in_month=cell.in_month,
        )
        for cell in cells
    ]


async def get_month_availability(
    booking_repo: BookingRepository,
    override_repo: OverrideRepository,
    block_repo: BlockRepository,
    *,
    year: int,
    month: int,
    today: date,
    policy: ShopPolicy,
    service_id: str | None = None,
) -> List[DayAvailability]:
    if service_id is not None:
        # Every service takes one chair for one slot, so the filter never changes counts.
        logger.debug("month availability requested for service %s", service_id)
    return await evaluate_cells(
        booking_repo,
        override_repo,
        block_repo,
        cells=month_grid(year, month),
        today=today,
        policy=policy,
    )


async def get_calendar_availability(
    booking_repo: BookingRepository,
    override_repo: OverrideRepository,
    block_repo: BlockRepository,
    *,
    reference: date,
    view: CalendarView,
    today: date,
    policy: ShopPolicy,
) -> List[DayAvailability]:
    return await evaluate_cells(
        booking_repo,
        override_repo,
        block_repo,
        cells=build_grid(reference, view),
        today=today,
        policy=policy,
    )


async def get_day_availability(
    booking_repo: BookingRepository,
    override_repo: OverrideRepository,
    block_repo: BlockRepository,
    *,
    day: date,
    today: date,
    policy: ShopPolicy,
) -> DayAvailability:
    days = await get_calendar_availability(
        booking_repo,
        override_repo,
        block_repo,
        reference=day,
        view=CalendarView.DAY,
        today=today,
        policy=policy,
    )
    return days[0]

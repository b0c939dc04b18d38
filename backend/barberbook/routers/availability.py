from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_policy, get_session, get_today
from ..domain.grid import CalendarView
from ..domain.policy import ShopPolicy
from ..infrastructure.repositories import (
    SqlAlchemyBlockRepository,
    SqlAlchemyBookingRepository,
    SqlAlchemyOverrideRepository,
)
from ..schemas import DayAvailabilityRead
from ..usecases import availability as availability_usecase
from ..utils.time import parse_year_month

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("/month", response_model=List[DayAvailabilityRead])
async def month_availability(
    month: str = Query(..., description="Calendar month as YYYY-MM"),
    service_id: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    today: date = Depends(get_today),
    policy: ShopPolicy = Depends(get_policy),
) -> list[DayAvailabilityRead]:
    try:
        year, month_number = parse_year_month(month)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    days = await availability_usecase.get_month_availability(
        SqlAlchemyBookingRepository(session),
        SqlAlchemyOverrideRepository(session),
        SqlAlchemyBlockRepository(session),
        year=year,
        month=month_number,
        today=today,
        policy=policy,
        service_id=service_id,
    )
    return [DayAvailabilityRead.from_domain(day) for day in days]


@router.get("/calendar", response_model=List[DayAvailabilityRead])
async def calendar_availability(
    reference: date = Query(..., alias="date", description="Any date inside the requested view"),
    view: CalendarView = Query(default=CalendarView.MONTH),
    session: AsyncSession = Depends(get_session),
    today: date = Depends(get_today),
    policy: ShopPolicy = Depends(get_policy),
) -> list[DayAvailabilityRead]:
    days = await availability_usecase.get_calendar_availability(
        SqlAlchemyBookingRepository(session),
        SqlAlchemyOverrideRepository(session),
        SqlAlchemyBlockRepository(session),
        reference=reference,
        view=view,
        today=today,
        policy=policy,
    )
    return [DayAvailabilityRead.from_domain(day) for day in days]


@router.get("/{day}", response_model=DayAvailabilityRead)
async def day_availability(
    day: date,
    session: AsyncSession = Depends(get_session),
    today: date = Depends(get_today),
    policy: ShopPolicy = Depends(get_policy),
) -> DayAvailabilityRead:
    result = await availability_usecase.get_day_availability(
        SqlAlchemyBookingRepository(session),
        SqlAlchemyOverrideRepository(session),
        SqlAlchemyBlockRepository(session),
        day=day,
        today=today,
        policy=policy,
    )
    return DayAvailabilityRead.from_domain(result)

from datetime import date, datetime, time
from typing import Any, cast

import pytest
from barberbook.domain.errors import ConflictWarning, DuplicateOverrideError, InvalidTransitionError, SlotFullError
from barberbook.domain.guard import ConflictReport, OnConflict
from barberbook.domain.policy import ShopPolicy
from barberbook.models import BlockedSlot, Booking, BookingStatus, CancelledBy, CapacityOverride
from barberbook.routers import admin as router
from barberbook.schemas import BlockCreate, BookingCancel, BookingCreate, OverrideCreate, OverrideUpdate
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

NOW = datetime(2024, 11, 1, 9, 0)
FRIDAY = date(2024, 11, 8)


class DummySession:
    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


def _session() -> AsyncSession:
    return cast(AsyncSession, DummySession())


def _booking(booking_id: int, slot: time, status: BookingStatus = BookingStatus.CONFIRMED) -> Booking:
    return Booking(
        id=booking_id,
        ticket_number=f"TKT-20241108-{booking_id:03d}",
        status=status,
        appointment_date=FRIDAY,
        appointment_time=slot,
        customer_name=f"Customer {booking_id}",
        customer_email="walkin@example.com",
        customer_phone="+353870000000",
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture(autouse=True)
def _stub_repositories(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(router, "SqlAlchemyBookingRepository", lambda s: s)
    monkeypatch.setattr(router, "SqlAlchemyOverrideRepository", lambda s: s)
    monkeypatch.setattr(router, "SqlAlchemyBlockRepository", lambda s: s)


@pytest.mark.asyncio
async def test_block_with_conflicts_returns_409_with_bookings(monkeypatch: pytest.MonkeyPatch) -> None:
    report = ConflictReport(bookings=(_booking(1, time(10, 0)), _booking(2, time(14, 0))))

    async def fake_create_block(*args: object, **kwargs: object) -> Any:
        raise ConflictWarning(report)

    monkeypatch.setattr(router.admin_usecase, "create_block", fake_create_block)

    with pytest.raises(HTTPException) as excinfo:
        await router.create_block(
            payload=BlockCreate(block_date=FRIDAY),
            session=_session(),
            policy=ShopPolicy(),
            now=NOW,
        )

    assert excinfo.value.status_code == 409
    detail = excinfo.value.detail
    assert detail["conflicts"]["count"] == 2
    assert [b["ticket_number"] for b in detail["conflicts"]["bookings"]] == ["TKT-20241108-001", "TKT-20241108-002"]
    assert detail["conflicts"]["bookings"][1]["appointment_time"] == "14:00"


@pytest.mark.asyncio
async def test_block_cancel_affected_audits_every_cancellation(monkeypatch: pytest.MonkeyPatch) -> None:
    block = BlockedSlot.whole_day(FRIDAY, reason="boiler repair", created_at=NOW)
    block.id = 3
    cancelled = [
        _booking(1, time(10, 0), BookingStatus.CANCELLED),
        _booking(2, time(14, 0), BookingStatus.CANCELLED),
    ]
    seen: dict[str, Any] = {}

    async def fake_create_block(*args: object, **kwargs: Any) -> tuple[BlockedSlot, list[Booking]]:
        seen.update(kwargs)
        return block, cancelled

    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(router.admin_usecase, "create_block", fake_create_block)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    result = await router.create_block(
        payload=BlockCreate(block_date=FRIDAY, reason="boiler repair", on_conflict=OnConflict.CANCEL_AFFECTED),
        session=_session(),
        policy=ShopPolicy(),
        now=NOW,
    )

    assert seen["slot"] is None
    assert seen["on_conflict"] == OnConflict.CANCEL_AFFECTED
    assert result.block.block_id == 3
    assert result.block.time_slot is None
    assert len(result.cancelled_bookings) == 2
    assert [c["action"] for c in calls] == ["block.created", "booking.cancelled", "booking.cancelled"]
    assert all(c["initiator"] == "admin" for c in calls)
    assert calls[1]["message"] == "boiler repair"


@pytest.mark.asyncio
async def test_conflict_check_rejects_malformed_slot() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await router.check_block_conflicts(day=FRIDAY, time_slot="9am", session=_session(), policy=ShopPolicy())
    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_conflict_check_returns_report(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_check(*args: object, **kwargs: Any) -> ConflictReport:
        assert kwargs["slot"] == time(14, 0)
        return ConflictReport(bookings=(_booking(5, time(14, 0)),))

    monkeypatch.setattr(router.admin_usecase, "check_block_conflicts", fake_check)

    result = await router.check_block_conflicts(day=FRIDAY, time_slot="14:00", session=_session(), policy=ShopPolicy())
    assert result.count == 1
    assert result.bookings[0].customer_name == "Customer 5"


@pytest.mark.asyncio
async def test_duplicate_override_is_409(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_create_override(*args: object, **kwargs: object) -> Any:
        raise DuplicateOverrideError("an active override already exists for this slot")

    monkeypatch.setattr(router.admin_usecase, "create_override", fake_create_override)

    with pytest.raises(HTTPException) as excinfo:
        await router.create_override(
            payload=OverrideCreate(override_date=FRIDAY, time_slot="12:40", capacity=5),
            session=_session(),
            policy=ShopPolicy(),
            now=NOW,
        )
    assert excinfo.value.status_code == 409


@pytest.mark.asyncio
async def test_create_override_audits(monkeypatch: pytest.MonkeyPatch) -> None:
    override = CapacityOverride(
        id=11,
        override_date=FRIDAY,
        time_slot=time(12, 40),
        capacity=5,
        is_active=True,
        created_at=NOW,
        updated_at=NOW,
    )

    async def fake_create_override(*args: object, **kwargs: object) -> tuple[CapacityOverride, list[Booking]]:
        return override, []

    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(router.admin_usecase, "create_override", fake_create_override)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    result = await router.create_override(
        payload=OverrideCreate(override_date=FRIDAY, time_slot="12:40", capacity=5),
        session=_session(),
        policy=ShopPolicy(),
        now=NOW,
    )

    assert result.override.override_id == 11
    assert result.model_dump(mode="json")["override"]["time_slot"] == "12:40"
    assert result.cancelled_bookings == []
    assert calls == [
        {
            "action": "override.created",
            "initiator": "admin",
            "target_id": 11,
            "appointment_date": FRIDAY,
            "time_slot": time(12, 40),
            "extra": {"capacity": 5, "is_active": True},
        }
    ]


@pytest.mark.asyncio
async def test_empty_override_update_is_400() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await router.update_override(
            payload=OverrideUpdate(),
            override_id=1,
            session=_session(),
            policy=ShopPolicy(),
            now=NOW,
        )
    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_list_range_must_be_ordered() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await router.list_blocks(
            date_from=date(2024, 11, 10),
            date_to=date(2024, 11, 1),
            session=_session(),
            today=date(2024, 11, 1),
        )
    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_list_blocks_defaults_to_window_from_today(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict[str, Any] = {}

    async def fake_list(*args: object, **kwargs: Any) -> list[BlockedSlot]:
        seen.update(kwargs)
        return []

    monkeypatch.setattr(router.admin_usecase, "list_blocks", fake_list)

    assert await router.list_blocks(date_from=None, date_to=None, session=_session(), today=date(2024, 11, 1)) == []
    assert seen == {"start": date(2024, 11, 1), "end": date(2025, 1, 30)}


@pytest.mark.asyncio
async def test_admin_cancel_uses_admin_initiator(monkeypatch: pytest.MonkeyPatch) -> None:
    booking = _booking(4, time(10, 0), BookingStatus.CANCELLED)
    seen: dict[str, Any] = {}

    async def fake_cancel(*args: object, **kwargs: Any) -> tuple[Booking, BookingStatus]:
        seen.update(kwargs)
        return booking, BookingStatus.CONFIRMED

    monkeypatch.setattr(router.booking_usecase, "cancel_booking", fake_cancel)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: None)

    await router.cancel_booking(
        payload=BookingCancel(reason="barber off sick"),
        ticket_number=booking.ticket_number,
        session=_session(),
        policy=ShopPolicy(),
        now=NOW,
    )
    assert seen["initiator"] == CancelledBy.ADMIN


@pytest.mark.asyncio
async def test_completing_a_cancelled_booking_is_409(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_complete(*args: object, **kwargs: object) -> Any:
        raise InvalidTransitionError("cannot move booking from cancelled to completed")

    monkeypatch.setattr(router.booking_usecase, "complete_booking", fake_complete)

    with pytest.raises(HTTPException) as excinfo:
        await router.complete_booking(ticket_number="TKT-20241108-001", session=_session(), now=NOW)
    assert excinfo.value.status_code == 409


@pytest.mark.asyncio
async def test_delete_override_passes_on_conflict_and_audits_cancellations(monkeypatch: pytest.MonkeyPatch) -> None:
    override = CapacityOverride(
        id=12,
        override_date=FRIDAY,
        time_slot=time(10, 0),
        capacity=5,
        is_active=True,
        created_at=NOW,
        updated_at=NOW,
    )
    dropped = [_booking(4, time(10, 0), BookingStatus.CANCELLED), _booking(5, time(10, 0), BookingStatus.CANCELLED)]
    seen: dict[str, Any] = {}

    async def fake_delete(*args: object, **kwargs: Any) -> tuple[CapacityOverride, list[Booking]]:
        seen.update(kwargs)
        return override, dropped

    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(router.admin_usecase, "delete_override", fake_delete)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    await router.delete_override(
        override_id=12,
        on_conflict=OnConflict.CANCEL_AFFECTED,
        session=_session(),
        policy=ShopPolicy(),
        now=NOW,
    )

    assert seen["override_id"] == 12
    assert seen["on_conflict"] == OnConflict.CANCEL_AFFECTED
    assert [c["action"] for c in calls] == ["override.deleted", "booking.cancelled", "booking.cancelled"]
    assert calls[1]["message"] == router.admin_usecase.OVERRIDE_CANCELLATION_REASON


@pytest.mark.asyncio
async def test_delete_override_conflict_is_409(monkeypatch: pytest.MonkeyPatch) -> None:
    report = ConflictReport(bookings=tuple(_booking(n, time(10, 0)) for n in range(1, 6)))

    async def fake_delete(*args: object, **kwargs: object) -> Any:
        raise ConflictWarning(report)

    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(router.admin_usecase, "delete_override", fake_delete)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    with pytest.raises(HTTPException) as excinfo:
        await router.delete_override(
            override_id=12, on_conflict=OnConflict.WARN, session=_session(), policy=ShopPolicy(), now=NOW
        )
    assert excinfo.value.status_code == 409
    assert excinfo.value.detail["conflicts"]["count"] == 5
    assert calls == []


@pytest.mark.asyncio
async def test_list_bookings_forwards_filters(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict[str, Any] = {}

    async def fake_list(*args: object, **kwargs: Any) -> list[Booking]:
        seen.update(kwargs)
        return [_booking(2, time(14, 0)), _booking(1, time(10, 0))]

    monkeypatch.setattr(router.booking_usecase, "list_bookings", fake_list)

    result = await router.list_bookings(
        date_from=FRIDAY,
        date_to=FRIDAY,
        booking_status=BookingStatus.CONFIRMED,
        q="customer",
        session=_session(),
        today=date(2024, 11, 1),
    )
    assert seen == {"start": FRIDAY, "end": FRIDAY, "status": BookingStatus.CONFIRMED, "query": "customer"}
    assert result.total == 2
    assert result.bookings[0].appointment_time == time(14, 0)


@pytest.mark.asyncio
async def test_manual_booking_is_audited_as_admin(monkeypatch: pytest.MonkeyPatch) -> None:
    booking = _booking(6, time(12, 40))
    seen: dict[str, Any] = {}

    async def fake_create(*args: object, **kwargs: Any) -> Booking:
        seen.update(kwargs)
        return booking

    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(router.booking_usecase, "create_booking", fake_create)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    result = await router.create_booking(
        payload=BookingCreate(
            appointment_date=FRIDAY,
            appointment_time="12:40",
            customer_name="Walk In",
            customer_email="walkin@example.com",
            customer_phone="+353870000000",
        ),
        session=_session(),
        policy=ShopPolicy(),
        today=date(2024, 11, 1),
        now=NOW,
    )
    assert result.ticket_number == "TKT-20241108-006"
    assert seen["appointment_time"] == time(12, 40)
    assert seen["customer_name"] == "Walk In"
    assert calls[0]["action"] == "booking.created"
    assert calls[0]["initiator"] == "admin"


@pytest.mark.asyncio
async def test_manual_booking_into_full_slot_is_409(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_create(*args: object, **kwargs: object) -> Booking:
        raise SlotFullError("slot no longer available")

    monkeypatch.setattr(router.booking_usecase, "create_booking", fake_create)

    with pytest.raises(HTTPException) as excinfo:
        await router.create_booking(
            payload=BookingCreate(
                appointment_date=FRIDAY,
                appointment_time="12:40",
                customer_name="Walk In",
                customer_email="walkin@example.com",
                customer_phone="+353870000000",
            ),
            session=_session(),
            policy=ShopPolicy(),
            today=date(2024, 11, 1),
            now=NOW,
        )
    assert excinfo.value.status_code == 409

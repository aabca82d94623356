import random
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loom_scheduler.core.config import Settings
from loom_scheduler.db.models import AttendanceStatus, CancellationType, ShiftStatus
from loom_scheduler.repositories import loom as loom_repo
from loom_scheduler.services.errors import InvalidTransitionError, LoomValidationError, NotFoundError
from loom_scheduler.services.events import cancel_participant, reoptimize_instance, report_staff_sickness
from loom_scheduler.services.occurrences import WindowRange
from loom_scheduler.services.weaver import project_window

from .factories import WINDOW_START, RecordingRoutingProvider, at, seed_program

ONE_DAY = WindowRange(start=WINDOW_START, end=WINDOW_START)


async def _projected_instance(session, settings, routing, **seed_kwargs):
    seeded = await seed_program(session, **seed_kwargs)
    await project_window(
        session, ONE_DAY, settings=settings, rng=random.Random(0), routing=routing, now=at(WINDOW_START, 6)
    )
    instance = await loom_repo.get_instance_for_rule_date(session, seeded.rule.id, WINDOW_START)
    return seeded, instance


@pytest.mark.anyio("asyncio")
async def test_cancellation_inside_threshold_is_short_notice(
    session_factory: async_sessionmaker[AsyncSession],
    loom_settings: Settings,
    routing_provider: RecordingRoutingProvider,
) -> None:
    async with session_factory() as session:
        _, instance = await _projected_instance(session, loom_settings, routing_provider, participants=3, staff=1)
        attendance = [row for row, _ in await loom_repo.list_attendance(session, instance.id)]

        result = await cancel_participant(
            session,
            attendance[0].id,
            CancellationType.NORMAL.value,
            now=at(WINDOW_START, 9),
            settings=loom_settings,
        )
        audit = await loom_repo.list_audit_entries(session, instance_id=instance.id, action="participant_cancelled")

    assert result.cancellation_type == CancellationType.SHORT_NOTICE.value
    assert result.billing_impact is True
    assert result.hours_notice == pytest.approx(1.0)
    assert result.remaining_participants == 2
    assert attendance[0].status == AttendanceStatus.CANCELLED.value
    assert attendance[0].is_overridden is True
    assert len(audit) == 1


@pytest.mark.anyio("asyncio")
async def test_cancellation_with_notice_is_normal(
    session_factory: async_sessionmaker[AsyncSession],
    loom_settings: Settings,
    routing_provider: RecordingRoutingProvider,
) -> None:
    async with session_factory() as session:
        _, instance = await _projected_instance(session, loom_settings, routing_provider, participants=2, staff=1)
        row, _ = (await loom_repo.list_attendance(session, instance.id))[0]

        result = await cancel_participant(
            session, row.id, now=at(WINDOW_START - timedelta(days=5), 10), settings=loom_settings
        )

    assert result.cancellation_type == CancellationType.NORMAL.value
    assert result.billing_impact is False
    assert result.hours_notice == pytest.approx(120.0)


@pytest.mark.anyio("asyncio")
async def test_cancellation_measures_notice_against_local_clock(
    session_factory: async_sessionmaker[AsyncSession],
    loom_settings: Settings,
    routing_provider: RecordingRoutingProvider,
) -> None:
    async with session_factory() as session:
        _, instance = await _projected_instance(session, loom_settings, routing_provider, participants=1, staff=1)
        starts_at = (datetime.now() + timedelta(hours=5)).replace(microsecond=0)
        instance.instance_date = starts_at.date()
        instance.start_time = starts_at.time()
        await session.flush()
        row, _ = (await loom_repo.list_attendance(session, instance.id))[0]

        result = await cancel_participant(session, row.id, settings=loom_settings)

    assert result.hours_notice == pytest.approx(5.0, abs=0.1)
    assert result.cancellation_type == CancellationType.NORMAL.value


@pytest.mark.anyio("asyncio")
async def test_requested_short_notice_is_honoured(
    session_factory: async_sessionmaker[AsyncSession],
    loom_settings: Settings,
    routing_provider: RecordingRoutingProvider,
) -> None:
    async with session_factory() as session:
        _, instance = await _projected_instance(session, loom_settings, routing_provider, participants=2, staff=1)
        row, _ = (await loom_repo.list_attendance(session, instance.id))[0]

        result = await cancel_participant(
            session,
            row.id,
            CancellationType.SHORT_NOTICE.value,
            now=at(WINDOW_START - timedelta(days=5), 10),
            settings=loom_settings,
        )

    assert result.billing_impact is True


@pytest.mark.anyio("asyncio")
async def test_cancellation_rejects_bad_requests(
    session_factory: async_sessionmaker[AsyncSession],
    loom_settings: Settings,
    routing_provider: RecordingRoutingProvider,
) -> None:
    async with session_factory() as session:
        _, instance = await _projected_instance(session, loom_settings, routing_provider, participants=2, staff=1)
        row, _ = (await loom_repo.list_attendance(session, instance.id))[0]
        now = at(WINDOW_START - timedelta(days=1), 10)

        with pytest.raises(LoomValidationError):
            await cancel_participant(session, row.id, "whenever", now=now, settings=loom_settings)
        with pytest.raises(NotFoundError):
            await cancel_participant(session, 9999, now=now, settings=loom_settings)

        await cancel_participant(session, row.id, now=now, settings=loom_settings)
        with pytest.raises(InvalidTransitionError):
            await cancel_participant(session, row.id, now=now, settings=loom_settings)


@pytest.mark.anyio("asyncio")
async def test_sick_staff_are_replaced(
    session_factory: async_sessionmaker[AsyncSession],
    loom_settings: Settings,
    routing_provider: RecordingRoutingProvider,
) -> None:
    async with session_factory() as session:
        seeded, instance = await _projected_instance(
            session, loom_settings, routing_provider, participants=2, staff=2
        )
        shift, _ = (await loom_repo.list_staff_assignments(session, instance.id))[0]

        result = await report_staff_sickness(session, shift.id, settings=loom_settings, reason="Flu")
        rows = [row for row, _ in await loom_repo.list_staff_assignments(session, instance.id)]

    assert result.replacement_found is True
    assert result.replacement_staff_id == seeded.staff[1].id
    assert shift.status == ShiftStatus.STAFF_SICK.value
    replacement = next(row for row in rows if row.id == result.replacement_shift_id)
    assert replacement.replaces_assignment_id == shift.id
    assert replacement.role == shift.role
    assert replacement.is_overridden is True
    assert instance.needs_attention is False


@pytest.mark.anyio("asyncio")
async def test_sick_driver_is_swapped_on_the_vehicle(
    session_factory: async_sessionmaker[AsyncSession],
    loom_settings: Settings,
    routing_provider: RecordingRoutingProvider,
) -> None:
    async with session_factory() as session:
        seeded, instance = await _projected_instance(
            session,
            loom_settings,
            routing_provider,
            participants=2,
            staff=0,
            drivers=2,
            vehicle_seats=(8,),
            transport_required=True,
        )
        shift, _ = (await loom_repo.list_staff_assignments(session, instance.id))[0]
        vehicle = (await loom_repo.list_vehicle_assignments(session, instance.id))[0]
        assert vehicle.driver_staff_id == seeded.staff[0].id

        await report_staff_sickness(session, shift.id, settings=loom_settings)

    assert vehicle.driver_staff_id == seeded.staff[1].id


@pytest.mark.anyio("asyncio")
async def test_sickness_without_cover_flags_instance(
    session_factory: async_sessionmaker[AsyncSession],
    loom_settings: Settings,
    routing_provider: RecordingRoutingProvider,
) -> None:
    async with session_factory() as session:
        _, instance = await _projected_instance(session, loom_settings, routing_provider, participants=2, staff=1)
        shift, _ = (await loom_repo.list_staff_assignments(session, instance.id))[0]

        result = await report_staff_sickness(session, shift.id, settings=loom_settings)
        audit = await loom_repo.list_audit_entries(session, instance_id=instance.id, action="staff_sick_unfilled")

        with pytest.raises(InvalidTransitionError):
            await report_staff_sickness(session, shift.id, settings=loom_settings)

    assert result.replacement_found is False
    assert result.needs_attention is True
    assert shift.needs_attention is True
    assert instance.needs_attention is True
    assert instance.staff_shortfall == 1
    assert len(audit) == 1


@pytest.mark.anyio("asyncio")
async def test_reoptimise_shrinks_staffing_after_cancellations(
    session_factory: async_sessionmaker[AsyncSession],
    loom_settings: Settings,
    routing_provider: RecordingRoutingProvider,
) -> None:
    async with session_factory() as session:
        _, instance = await _projected_instance(session, loom_settings, routing_provider, participants=5, staff=3)
        assert instance.required_staff == 2
        row, _ = (await loom_repo.list_attendance(session, instance.id))[0]
        await cancel_participant(
            session, row.id, now=at(WINDOW_START - timedelta(days=3), 10), settings=loom_settings
        )

        outcome = await reoptimize_instance(
            session, instance.id, settings=loom_settings, routing=routing_provider, actor="coordinator"
        )
        shifts = [shift for shift, _ in await loom_repo.list_staff_assignments(session, instance.id)]
        audit = await loom_repo.list_audit_entries(session, instance_id=instance.id, action="instance_reoptimized")

    assert outcome.staff.required_staff == 1
    assert instance.required_staff == 1
    assert len(shifts) == 1
    assert audit[0].actor == "coordinator"


@pytest.mark.anyio("asyncio")
async def test_reoptimise_keeps_overridden_shifts(
    session_factory: async_sessionmaker[AsyncSession],
    loom_settings: Settings,
    routing_provider: RecordingRoutingProvider,
) -> None:
    async with session_factory() as session:
        _, instance = await _projected_instance(session, loom_settings, routing_provider, participants=5, staff=3)
        shifts = [shift for shift, _ in await loom_repo.list_staff_assignments(session, instance.id)]
        pinned = shifts[1]
        pinned.is_overridden = True
        row, _ = (await loom_repo.list_attendance(session, instance.id))[0]
        await cancel_participant(
            session, row.id, now=at(WINDOW_START - timedelta(days=3), 10), settings=loom_settings
        )

        outcome = await reoptimize_instance(session, instance.id, settings=loom_settings, routing=routing_provider)
        remaining = [shift.id for shift, _ in await loom_repo.list_staff_assignments(session, instance.id)]

    assert outcome.staff.preserved == 1
    assert outcome.staff.assigned_staff_ids == []
    assert remaining == [pinned.id]


@pytest.mark.anyio("asyncio")
async def test_reoptimise_unknown_instance(
    session_factory: async_sessionmaker[AsyncSession], loom_settings: Settings
) -> None:
    async with session_factory() as session:
        with pytest.raises(NotFoundError):
            await reoptimize_instance(session, 404, settings=loom_settings)

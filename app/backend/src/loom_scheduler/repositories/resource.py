from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from loom_scheduler.db.models.loom import LoomInstance, ShiftStatus, StaffAssignment, VehicleAssignment
from loom_scheduler.db.models.resource import (
    Participant,
    Staff,
    StaffAvailability,
    Vehicle,
    VehicleBlackout,
    Venue,
)
from loom_scheduler.schemas.resource import (
    ParticipantCreate,
    ParticipantUpdate,
    StaffCreate,
    StaffUpdate,
    VehicleCreate,
    VenueCreate,
)


@dataclass
class StaffCandidate:
    staff: Staff
    allocated_hours: float


def _hours_between(start: time, end: time) -> float:
    delta = datetime.combine(date.min, end) - datetime.combine(date.min, start)
    return max(delta.total_seconds() / 3600, 0.0)


def _overlaps(a_start, a_end, b_start, b_end) -> bool:
    return a_start < b_end and b_start < a_end


async def list_venues(session: AsyncSession) -> list[Venue]:
    result = await session.execute(select(Venue).order_by(Venue.id))
    return list(result.scalars().all())


async def get_venue(session: AsyncSession, venue_id: int) -> Venue | None:
    return await session.get(Venue, venue_id)


async def create_venue(session: AsyncSession, payload: VenueCreate) -> Venue:
    venue = Venue(**payload.model_dump())
    session.add(venue)
    await session.flush()
    await session.refresh(venue)
    return venue


async def list_participants(session: AsyncSession) -> list[Participant]:
    result = await session.execute(select(Participant).order_by(Participant.id))
    return list(result.scalars().all())


async def get_participant(session: AsyncSession, participant_id: int) -> Participant | None:
    return await session.get(Participant, participant_id)


async def get_participants(session: AsyncSession, participant_ids: Iterable[int]) -> dict[int, Participant]:
    ids = set(participant_ids)
    if not ids:
        return {}
    result = await session.execute(select(Participant).where(Participant.id.in_(ids)))
    return {participant.id: participant for participant in result.scalars().all()}


async def create_participant(session: AsyncSession, payload: ParticipantCreate) -> Participant:
    participant = Participant(**payload.model_dump())
    session.add(participant)
    await session.flush()
    await session.refresh(participant)
    return participant


async def update_participant(
    session: AsyncSession, participant: Participant, payload: ParticipantUpdate
) -> Participant:
    data = payload.model_dump(exclude_unset=True)
    for field, value in data.items():
        setattr(participant, field, value)
    await session.flush()
    await session.refresh(participant)
    return participant


async def list_staff(session: AsyncSession) -> list[Staff]:
    result = await session.execute(
        select(Staff).options(selectinload(Staff.availability)).order_by(Staff.id)
    )
    return list(result.scalars().all())


async def get_staff(session: AsyncSession, staff_id: int) -> Staff | None:
    return await session.get(Staff, staff_id, options=[selectinload(Staff.availability)])


async def get_staff_members(session: AsyncSession, staff_ids: Iterable[int]) -> dict[int, Staff]:
    ids = set(staff_ids)
    if not ids:
        return {}
    result = await session.execute(select(Staff).where(Staff.id.in_(ids)))
    return {staff.id: staff for staff in result.scalars().all()}


async def create_staff(session: AsyncSession, payload: StaffCreate) -> Staff:
    data = payload.model_dump(exclude={"availability"})
    staff = Staff(
        **data,
        availability=[StaffAvailability(**window.model_dump()) for window in payload.availability],
    )
    session.add(staff)
    await session.flush()
    await session.refresh(staff)
    return staff


async def update_staff(session: AsyncSession, staff: Staff, payload: StaffUpdate) -> Staff:
    data = payload.model_dump(exclude_unset=True)
    for field, value in data.items():
        setattr(staff, field, value)
    await session.flush()
    await session.refresh(staff)
    return staff


async def list_vehicles(session: AsyncSession) -> list[Vehicle]:
    result = await session.execute(
        select(Vehicle).options(selectinload(Vehicle.blackouts)).order_by(Vehicle.id)
    )
    return list(result.scalars().all())


async def get_vehicle(session: AsyncSession, vehicle_id: int) -> Vehicle | None:
    return await session.get(Vehicle, vehicle_id)


async def create_vehicle(session: AsyncSession, payload: VehicleCreate) -> Vehicle:
    data = payload.model_dump(exclude={"blackouts"})
    vehicle = Vehicle(
        **data,
        blackouts=[VehicleBlackout(**window.model_dump()) for window in payload.blackouts],
    )
    session.add(vehicle)
    await session.flush()
    await session.refresh(vehicle)
    return vehicle


async def _busy_staff_windows(
    session: AsyncSession, day: date, *, exclude_instance_id: int | None
) -> dict[int, list[tuple[time, time]]]:
    query = (
        select(StaffAssignment.staff_id, LoomInstance.start_time, LoomInstance.end_time)
        .join(LoomInstance, LoomInstance.id == StaffAssignment.instance_id)
        .where(LoomInstance.instance_date == day, StaffAssignment.status == ShiftStatus.PLANNED.value)
    )
    if exclude_instance_id is not None:
        query = query.where(LoomInstance.id != exclude_instance_id)
    busy: dict[int, list[tuple[time, time]]] = {}
    for staff_id, start, end in (await session.execute(query)).all():
        busy.setdefault(staff_id, []).append((start, end))
    return busy


async def allocated_hours(
    session: AsyncSession, *, period_start: date, period_end: date
) -> dict[int, float]:
    """Planned hours per staff member across ``[period_start, period_end]``."""
    result = await session.execute(
        select(StaffAssignment.staff_id, LoomInstance.start_time, LoomInstance.end_time)
        .join(LoomInstance, LoomInstance.id == StaffAssignment.instance_id)
        .where(
            LoomInstance.instance_date >= period_start,
            LoomInstance.instance_date <= period_end,
            StaffAssignment.status == ShiftStatus.PLANNED.value,
        )
    )
    totals: dict[int, float] = {}
    for staff_id, start, end in result.all():
        totals[staff_id] = totals.get(staff_id, 0.0) + _hours_between(start, end)
    return totals


async def find_available_staff(
    session: AsyncSession,
    *,
    day: date,
    start: time,
    end: time,
    period_start: date,
    period_end: date,
    exclude_staff_ids: Iterable[int] = (),
    exclude_instance_id: int | None = None,
) -> list[StaffCandidate]:
    """Active staff free for the slot, least-allocated in the pay period first.

    Candidate rows are locked for the rest of the transaction so concurrent
    allocations cannot hand the same person two overlapping shifts.
    """
    excluded = set(exclude_staff_ids)
    result = await session.execute(
        select(Staff).where(Staff.active.is_(True)).order_by(Staff.id).with_for_update()
    )
    staff_members = [staff for staff in result.scalars().all() if staff.id not in excluded]
    if not staff_members:
        return []

    windows = await session.execute(
        select(StaffAvailability).where(
            StaffAvailability.staff_id.in_([staff.id for staff in staff_members]),
            StaffAvailability.day_of_week == day.weekday(),
        )
    )
    available_ids = {
        window.staff_id
        for window in windows.scalars().all()
        if window.start_time <= start and window.end_time >= end
    }
    busy = await _busy_staff_windows(session, day, exclude_instance_id=exclude_instance_id)
    hours = await allocated_hours(session, period_start=period_start, period_end=period_end)

    candidates = [
        StaffCandidate(staff=staff, allocated_hours=hours.get(staff.id, 0.0))
        for staff in staff_members
        if staff.id in available_ids
        and not any(_overlaps(start, end, b_start, b_end) for b_start, b_end in busy.get(staff.id, []))
    ]
    candidates.sort(key=lambda candidate: (candidate.allocated_hours, candidate.staff.id))
    return candidates


async def find_available_vehicles(
    session: AsyncSession,
    *,
    day: date,
    start: time,
    end: time,
    min_seats: int,
    exclude_instance_id: int | None = None,
) -> list[Vehicle]:
    """Active vehicles with enough seats that are neither booked nor blacked out, smallest first."""
    result = await session.execute(
        select(Vehicle)
        .where(Vehicle.active.is_(True), Vehicle.seats >= min_seats)
        .order_by(Vehicle.seats, Vehicle.id)
        .with_for_update()
    )
    vehicles = list(result.scalars().all())
    if not vehicles:
        return []

    booked_query = (
        select(VehicleAssignment.vehicle_id, LoomInstance.start_time, LoomInstance.end_time)
        .join(LoomInstance, LoomInstance.id == VehicleAssignment.instance_id)
        .where(LoomInstance.instance_date == day)
    )
    if exclude_instance_id is not None:
        booked_query = booked_query.where(LoomInstance.id != exclude_instance_id)
    booked = {
        vehicle_id
        for vehicle_id, b_start, b_end in (await session.execute(booked_query)).all()
        if _overlaps(start, end, b_start, b_end)
    }

    slot_start = datetime.combine(day, start)
    slot_end = datetime.combine(day, end)
    blackouts = await session.execute(
        select(VehicleBlackout.vehicle_id).where(
            VehicleBlackout.vehicle_id.in_([vehicle.id for vehicle in vehicles]),
            VehicleBlackout.start_at < slot_end,
            VehicleBlackout.end_at > slot_start,
        )
    )
    blocked = booked | set(blackouts.scalars().all())
    return [vehicle for vehicle in vehicles if vehicle.id not in blocked]

"""Staff and vehicle allocation for a single loom instance.

Shortfalls are reported on the result and on the instance; they are never
raised. Rows an operator has overridden are kept and counted toward the
requirement, everything else is recomputed on each run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from loom_scheduler.core.config import Settings, get_settings
from loom_scheduler.db.models import (
    AttendanceStatus,
    LoomInstance,
    ParticipantAttendance,
    Participant,
    RouteStatus,
    ShiftStatus,
    StaffAssignment,
    StaffRole,
    VehicleAssignment,
    VehicleStatus,
)
from loom_scheduler.repositories import loom as loom_repo
from loom_scheduler.repositories import resource as resource_repo
from loom_scheduler.repositories import rules as rules_repo
from loom_scheduler.services.routing import RouteStop, RoutingProvider, UnroutedProvider
from loom_scheduler.services.rules import RatioTable, load_default_ratio_table

logger = logging.getLogger(__name__)

ACTIVE_ATTENDANCE = frozenset({AttendanceStatus.CONFIRMED.value, AttendanceStatus.ATTENDED.value})


@dataclass
class StaffAllocation:
    instance_id: int
    virtual_participant_count: float
    required_staff: int
    assigned_staff_ids: list[int] = field(default_factory=list)
    preserved: int = 0
    shortfall: int = 0


@dataclass
class VehicleAllocation:
    instance_id: int
    required: bool
    required_seats: int = 0
    vehicle_id: int | None = None
    driver_staff_id: int | None = None
    route_computed: bool = False
    preserved: bool = False
    status: str = VehicleStatus.NOT_REQUIRED.value


@dataclass
class AllocationOutcome:
    staff: StaffAllocation
    vehicle: VehicleAllocation

    @property
    def needs_attention(self) -> bool:
        return self.staff.shortfall > 0 or self.vehicle.status == VehicleStatus.UNASSIGNED


def virtual_participant_count(multipliers: Iterable[float | None]) -> float:
    """Sum of supervision multipliers; a missing or sub-unit multiplier counts as 1.0."""
    return round(sum(max(float(value or 1.0), 1.0) for value in multipliers), 4)


def pay_period_bounds(day: date, anchor: date, length_days: int) -> tuple[date, date]:
    offset = (day - anchor).days % length_days
    start = day - timedelta(days=offset)
    return start, start + timedelta(days=length_days - 1)


def active_attendance(
    rows: Iterable[tuple[ParticipantAttendance, Participant]],
) -> list[tuple[ParticipantAttendance, Participant]]:
    return [(row, participant) for row, participant in rows if row.status in ACTIVE_ATTENDANCE]


async def resolve_ratio_table(session: AsyncSession, table_id: int | None) -> RatioTable:
    if table_id is not None:
        table = await rules_repo.get_ratio_table(session, table_id)
        if table is not None:
            return table
        logger.warning("Ratio table %s missing, using bundled default", table_id)
    return load_default_ratio_table()


async def assign_staff(
    session: AsyncSession,
    instance: LoomInstance,
    *,
    settings: Settings | None = None,
    ratio_table: RatioTable | None = None,
) -> StaffAllocation:
    settings = settings or get_settings()
    attendees = active_attendance(await loom_repo.list_attendance(session, instance.id))
    virtual = virtual_participant_count(participant.supervision_multiplier for _, participant in attendees)
    table = ratio_table or await resolve_ratio_table(session, instance.staffing_ratio_id)
    required = table.required_staff(virtual)

    await loom_repo.delete_unpinned_staff_assignments(session, instance.id)
    kept = [row for row, _ in await loom_repo.list_staff_assignments(session, instance.id)]
    kept_active = [row for row in kept if row.status == ShiftStatus.PLANNED]
    needed = max(required - len(kept_active), 0)

    result = StaffAllocation(
        instance_id=instance.id,
        virtual_participant_count=virtual,
        required_staff=required,
        preserved=len(kept_active),
    )
    if needed:
        period_start, period_end = pay_period_bounds(
            instance.instance_date, settings.pay_period_anchor, settings.pay_period_days
        )
        candidates = await resource_repo.find_available_staff(
            session,
            day=instance.instance_date,
            start=instance.start_time,
            end=instance.end_time,
            period_start=period_start,
            period_end=period_end,
            exclude_staff_ids={row.staff_id for row in kept},
            exclude_instance_id=instance.id,
        )
        has_lead = any(row.role == StaffRole.LEAD for row in kept_active)
        for candidate in candidates[:needed]:
            role = StaffRole.SUPPORT if has_lead else StaffRole.LEAD
            has_lead = True
            session.add(
                StaffAssignment(
                    instance_id=instance.id,
                    staff_id=candidate.staff.id,
                    role=role.value,
                    status=ShiftStatus.PLANNED.value,
                    requires_vehicle=bool(instance.transport_required and candidate.staff.can_drive),
                    is_overridden=False,
                )
            )
            result.assigned_staff_ids.append(candidate.staff.id)

    result.shortfall = needed - len(result.assigned_staff_ids)
    instance.virtual_participant_count = virtual
    instance.required_staff = required
    instance.staff_shortfall = result.shortfall
    refresh_attention(instance)
    if result.shortfall:
        logger.warning(
            "Instance %s on %s is short %s of %s staff",
            instance.id,
            instance.instance_date.isoformat(),
            result.shortfall,
            required,
        )
    await session.flush()
    return result


def refresh_attention(instance: LoomInstance) -> None:
    """Amber while the instance is short of staff or lacks a required vehicle."""
    instance.needs_attention = (
        bool(instance.staff_shortfall) or instance.vehicle_status == VehicleStatus.UNASSIGNED
    )


def pick_driver(assignments: Iterable[StaffAssignment]) -> int | None:
    """Prefer a support worker who can drive; the lead drives only when nobody else can."""
    drivers = [
        row for row in assignments if row.status == ShiftStatus.PLANNED and row.requires_vehicle
    ]
    drivers.sort(key=lambda row: (row.role == StaffRole.LEAD, row.id))
    return drivers[0].staff_id if drivers else None


async def assign_vehicle(
    session: AsyncSession,
    instance: LoomInstance,
    *,
    routing: RoutingProvider | None = None,
) -> VehicleAllocation:
    result = await _place_vehicle(session, instance, routing=routing)
    refresh_attention(instance)
    await session.flush()
    return result


async def _place_vehicle(
    session: AsyncSession,
    instance: LoomInstance,
    *,
    routing: RoutingProvider | None = None,
) -> VehicleAllocation:
    routing = routing or UnroutedProvider()
    result = VehicleAllocation(instance_id=instance.id, required=bool(instance.transport_required))

    await loom_repo.delete_unpinned_vehicle_assignments(session, instance.id)
    if not instance.transport_required:
        instance.vehicle_status = VehicleStatus.NOT_REQUIRED.value
        await session.flush()
        return result

    pinned = await loom_repo.list_vehicle_assignments(session, instance.id)
    if pinned:
        result.preserved = True
        result.vehicle_id = pinned[0].vehicle_id
        result.driver_staff_id = pinned[0].driver_staff_id
        result.status = instance.vehicle_status = VehicleStatus.ASSIGNED.value
        await session.flush()
        return result

    riders = active_attendance(await loom_repo.list_attendance(session, instance.id))
    result.required_seats = len(riders) + 1
    vehicles = await resource_repo.find_available_vehicles(
        session,
        day=instance.instance_date,
        start=instance.start_time,
        end=instance.end_time,
        min_seats=result.required_seats,
        exclude_instance_id=instance.id,
    )
    if not vehicles:
        result.status = instance.vehicle_status = VehicleStatus.UNASSIGNED.value
        logger.warning(
            "No vehicle with %s seats free for instance %s on %s",
            result.required_seats,
            instance.id,
            instance.instance_date.isoformat(),
        )
        await session.flush()
        return result

    vehicle = vehicles[0]
    staff_rows = [row for row, _ in await loom_repo.list_staff_assignments(session, instance.id)]
    stops = [
        RouteStop(
            participant_id=participant.id,
            latitude=participant.latitude,
            longitude=participant.longitude,
            address=participant.address,
        )
        for row, participant in riders
        if row.pickup_required or row.dropoff_required
    ]
    destination = None
    if instance.venue_id is not None:
        venue = await resource_repo.get_venue(session, instance.venue_id)
        if venue is not None and venue.latitude is not None and venue.longitude is not None:
            destination = (venue.latitude, venue.longitude)
    route = await routing.plan_route(vehicle_id=vehicle.id, stops=stops, destination=destination)

    result.vehicle_id = vehicle.id
    result.driver_staff_id = pick_driver(staff_rows)
    result.route_computed = route.computed
    result.status = instance.vehicle_status = VehicleStatus.ASSIGNED.value
    session.add(
        VehicleAssignment(
            instance_id=instance.id,
            vehicle_id=vehicle.id,
            driver_staff_id=result.driver_staff_id,
            stop_sequence=list(route.stop_sequence),
            route_status=(RouteStatus.COMPUTED if route.computed else RouteStatus.NOT_COMPUTED).value,
            route_quality_score=route.quality_score,
            is_overridden=False,
        )
    )
    if result.driver_staff_id is None:
        logger.warning("Vehicle %s on instance %s has no driver", vehicle.id, instance.id)
    await session.flush()
    return result


async def allocate_instance(
    session: AsyncSession,
    instance: LoomInstance,
    *,
    settings: Settings | None = None,
    routing: RoutingProvider | None = None,
    ratio_table: RatioTable | None = None,
) -> AllocationOutcome:
    staff = await assign_staff(session, instance, settings=settings, ratio_table=ratio_table)
    vehicle = await assign_vehicle(session, instance, routing=routing)
    return AllocationOutcome(staff=staff, vehicle=vehicle)

"""Dynamic events against live instances: cancellations, sickness and reoptimisation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from loom_scheduler.core.config import Settings, get_settings
from loom_scheduler.db.models import (
    AttendanceStatus,
    CancellationType,
    LoomInstance,
    ShiftStatus,
    StaffAssignment,
)
from loom_scheduler.repositories import loom as loom_repo
from loom_scheduler.repositories import resource as resource_repo
from loom_scheduler.services.allocator import (
    ACTIVE_ATTENDANCE,
    AllocationOutcome,
    allocate_instance,
    pay_period_bounds,
)
from loom_scheduler.services.errors import InvalidTransitionError, LoomValidationError, NotFoundError
from loom_scheduler.services.routing import RoutingProvider

logger = logging.getLogger(__name__)


@dataclass
class CancellationResult:
    attendance_id: int
    instance_id: int
    participant_id: int
    cancellation_type: str
    billing_impact: bool
    hours_notice: float
    remaining_participants: int


@dataclass
class SicknessResult:
    shift_id: int
    instance_id: int
    staff_id: int
    replacement_found: bool
    replacement_shift_id: int | None = None
    replacement_staff_id: int | None = None
    needs_attention: bool = False


async def _require_instance(session: AsyncSession, instance_id: int) -> LoomInstance:
    instance = await loom_repo.get_instance(session, instance_id)
    if instance is None:
        raise NotFoundError("Instance", instance_id)
    return instance


def hours_until(instance: LoomInstance, now: datetime) -> float:
    starts_at = datetime.combine(instance.instance_date, instance.start_time)
    return (starts_at - now).total_seconds() / 3600


async def cancel_participant(
    session: AsyncSession,
    attendance_id: int,
    cancellation_type: str | None = None,
    *,
    now: datetime | None = None,
    settings: Settings | None = None,
    reason: str | None = None,
    actor: str = "system",
) -> CancellationResult:
    """Cancel one attendance row.

    Notice shorter than the configured threshold always yields a short-notice
    cancellation with billing impact, whatever type was requested.
    """
    settings = settings or get_settings()
    now = now or datetime.now()
    if cancellation_type is not None and cancellation_type not in {item.value for item in CancellationType}:
        raise LoomValidationError(f"Unknown cancellation type {cancellation_type!r}")

    row = await loom_repo.get_attendance(session, attendance_id)
    if row is None:
        raise NotFoundError("Attendance", attendance_id)
    if row.status == AttendanceStatus.CANCELLED:
        raise InvalidTransitionError(f"Attendance {attendance_id} is already cancelled")
    instance = await _require_instance(session, row.instance_id)

    notice = hours_until(instance, now)
    if notice < settings.short_notice_threshold_hours:
        effective = CancellationType.SHORT_NOTICE
    else:
        effective = CancellationType(cancellation_type or CancellationType.NORMAL.value)
    before = {"status": row.status, "cancellation_type": row.cancellation_type}

    row.status = AttendanceStatus.CANCELLED.value
    row.cancellation_type = effective.value
    row.billing_impact = effective == CancellationType.SHORT_NOTICE
    row.hours_notice = round(notice, 2)
    row.cancelled_at = now
    row.is_overridden = True
    if reason:
        row.notes = reason

    await loom_repo.record_audit(
        session,
        action="participant_cancelled",
        instance_id=instance.id,
        before=before,
        after={
            "attendance_id": row.id,
            "status": row.status,
            "cancellation_type": row.cancellation_type,
            "billing_impact": row.billing_impact,
            "hours_notice": row.hours_notice,
        },
        actor=actor,
    )
    remaining = [
        item for item, _ in await loom_repo.list_attendance(session, instance.id) if item.status in ACTIVE_ATTENDANCE
    ]
    logger.info(
        "Cancelled attendance %s on instance %s (%s, %.2fh notice)",
        row.id,
        instance.id,
        row.cancellation_type,
        notice,
    )
    return CancellationResult(
        attendance_id=row.id,
        instance_id=instance.id,
        participant_id=row.participant_id,
        cancellation_type=row.cancellation_type,
        billing_impact=row.billing_impact,
        hours_notice=row.hours_notice,
        remaining_participants=len(remaining),
    )


async def report_staff_sickness(
    session: AsyncSession,
    shift_id: int,
    *,
    settings: Settings | None = None,
    reason: str | None = None,
    actor: str = "system",
) -> SicknessResult:
    """Mark a shift sick and try to cover it.

    Finding no replacement is a normal outcome: the shift and its instance are
    flagged for attention and the result says so.
    """
    settings = settings or get_settings()
    shift = await loom_repo.get_staff_assignment(session, shift_id)
    if shift is None:
        raise NotFoundError("Shift", shift_id)
    if shift.status == ShiftStatus.STAFF_SICK:
        raise InvalidTransitionError(f"Shift {shift_id} is already marked sick")
    instance = await _require_instance(session, shift.instance_id)

    shift.status = ShiftStatus.STAFF_SICK.value
    shift.is_overridden = True
    if reason:
        shift.notes = reason
    result = SicknessResult(shift_id=shift.id, instance_id=instance.id, staff_id=shift.staff_id, replacement_found=False)

    period_start, period_end = pay_period_bounds(
        instance.instance_date, settings.pay_period_anchor, settings.pay_period_days
    )
    assigned = {row.staff_id for row, _ in await loom_repo.list_staff_assignments(session, instance.id)}
    candidates = await resource_repo.find_available_staff(
        session,
        day=instance.instance_date,
        start=instance.start_time,
        end=instance.end_time,
        period_start=period_start,
        period_end=period_end,
        exclude_staff_ids=assigned,
        exclude_instance_id=instance.id,
    )

    if candidates:
        replacement_staff = candidates[0].staff
        replacement = StaffAssignment(
            instance_id=instance.id,
            staff_id=replacement_staff.id,
            role=shift.role,
            status=ShiftStatus.PLANNED.value,
            requires_vehicle=bool(instance.transport_required and replacement_staff.can_drive),
            is_overridden=True,
            replaces_assignment_id=shift.id,
            notes=f"Covering shift {shift.id}",
        )
        session.add(replacement)
        await session.flush()
        for vehicle in await loom_repo.list_vehicle_assignments(session, instance.id):
            if vehicle.driver_staff_id == shift.staff_id:
                vehicle.driver_staff_id = replacement_staff.id if replacement.requires_vehicle else None
        result.replacement_found = True
        result.replacement_shift_id = replacement.id
        result.replacement_staff_id = replacement_staff.id
        logger.info("Staff %s replaced by %s on instance %s", shift.staff_id, replacement_staff.id, instance.id)
    else:
        shift.needs_attention = True
        instance.needs_attention = True
        instance.staff_shortfall = (instance.staff_shortfall or 0) + 1
        result.needs_attention = True
        logger.warning("No replacement for sick staff %s on instance %s", shift.staff_id, instance.id)

    await loom_repo.record_audit(
        session,
        action="staff_replaced" if result.replacement_found else "staff_sick_unfilled",
        instance_id=instance.id,
        before={"shift_id": shift.id, "staff_id": shift.staff_id, "status": ShiftStatus.PLANNED.value},
        after={
            "status": shift.status,
            "replacement_shift_id": result.replacement_shift_id,
            "replacement_staff_id": result.replacement_staff_id,
        },
        actor=actor,
    )
    await session.flush()
    return result


async def reoptimize_instance(
    session: AsyncSession,
    instance_id: int,
    *,
    settings: Settings | None = None,
    routing: RoutingProvider | None = None,
    actor: str = "system",
) -> AllocationOutcome:
    """Recompute staff and vehicle allocation from current attendance."""
    instance = await _require_instance(session, instance_id)
    before = {
        "required_staff": instance.required_staff,
        "staff_shortfall": instance.staff_shortfall,
        "vehicle_status": instance.vehicle_status,
    }
    outcome = await allocate_instance(session, instance, settings=settings, routing=routing)
    await loom_repo.record_audit(
        session,
        action="instance_reoptimized",
        instance_id=instance.id,
        before=before,
        after={
            "required_staff": outcome.staff.required_staff,
            "staff_shortfall": outcome.staff.shortfall,
            "vehicle_status": outcome.vehicle.status,
        },
        actor=actor,
    )
    logger.info("Reoptimised instance %s", instance.id)
    return outcome

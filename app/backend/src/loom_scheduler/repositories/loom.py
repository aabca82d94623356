import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from loom_scheduler.db.models.loom import (
    LoomAuditLog,
    LoomInstance,
    LoomSetting,
    ParticipantAttendance,
    StaffAssignment,
    VehicleAssignment,
)
from loom_scheduler.db.models.resource import Participant, Staff
from loom_scheduler.services.errors import ConsistencyViolationError

logger = logging.getLogger(__name__)


async def get_instance(session: AsyncSession, instance_id: int) -> LoomInstance | None:
    return await session.get(LoomInstance, instance_id)


async def get_instance_for_rule_date(
    session: AsyncSession, rule_id: int, instance_date: date
) -> LoomInstance | None:
    result = await session.execute(
        select(LoomInstance).where(
            LoomInstance.source_rule_id == rule_id, LoomInstance.instance_date == instance_date
        )
    )
    instances = list(result.scalars().all())
    if len(instances) > 1:
        logger.error(
            "Found %s instances for rule %s on %s", len(instances), rule_id, instance_date.isoformat()
        )
        raise ConsistencyViolationError(
            f"Rule {rule_id} has {len(instances)} instances on {instance_date.isoformat()}"
        )
    return instances[0] if instances else None


async def list_instances(
    session: AsyncSession, *, start: date | None = None, end: date | None = None
) -> list[LoomInstance]:
    query = select(LoomInstance)
    if start is not None:
        query = query.where(LoomInstance.instance_date >= start)
    if end is not None:
        query = query.where(LoomInstance.instance_date <= end)
    result = await session.execute(
        query.order_by(LoomInstance.instance_date, LoomInstance.start_time, LoomInstance.id)
    )
    return list(result.scalars().all())


async def list_instances_before(session: AsyncSession, cutoff: date) -> list[LoomInstance]:
    result = await session.execute(
        select(LoomInstance)
        .where(LoomInstance.instance_date < cutoff)
        .order_by(LoomInstance.instance_date, LoomInstance.id)
    )
    return list(result.scalars().all())


async def delete_instance(session: AsyncSession, instance_id: int) -> None:
    """Remove an instance and its child rows."""
    await session.execute(delete(VehicleAssignment).where(VehicleAssignment.instance_id == instance_id))
    await session.execute(delete(StaffAssignment).where(StaffAssignment.instance_id == instance_id))
    await session.execute(
        delete(ParticipantAttendance).where(ParticipantAttendance.instance_id == instance_id)
    )
    await session.execute(delete(LoomInstance).where(LoomInstance.id == instance_id))


async def delete_unpinned_instances(
    session: AsyncSession, *, start: date, end: date | None = None
) -> tuple[int, int]:
    """Delete non-overridden instances in range; returns ``(deleted, retained_overrides)``."""
    instances = await list_instances(session, start=start, end=end)
    deleted = 0
    retained = 0
    for instance in instances:
        if instance.is_overridden:
            retained += 1
            continue
        await delete_instance(session, instance.id)
        deleted += 1
    return deleted, retained


async def list_attendance(
    session: AsyncSession, instance_id: int
) -> list[tuple[ParticipantAttendance, Participant]]:
    result = await session.execute(
        select(ParticipantAttendance, Participant)
        .join(Participant, Participant.id == ParticipantAttendance.participant_id)
        .where(ParticipantAttendance.instance_id == instance_id)
        .order_by(ParticipantAttendance.id)
    )
    return [(row, participant) for row, participant in result.all()]


async def get_attendance(session: AsyncSession, attendance_id: int) -> ParticipantAttendance | None:
    return await session.get(ParticipantAttendance, attendance_id)


async def list_staff_assignments(
    session: AsyncSession, instance_id: int
) -> list[tuple[StaffAssignment, Staff]]:
    result = await session.execute(
        select(StaffAssignment, Staff)
        .join(Staff, Staff.id == StaffAssignment.staff_id)
        .where(StaffAssignment.instance_id == instance_id)
        .order_by(StaffAssignment.id)
    )
    return [(row, staff) for row, staff in result.all()]


async def get_staff_assignment(session: AsyncSession, assignment_id: int) -> StaffAssignment | None:
    return await session.get(StaffAssignment, assignment_id)


async def delete_unpinned_staff_assignments(session: AsyncSession, instance_id: int) -> int:
    result = await session.execute(
        delete(StaffAssignment).where(
            StaffAssignment.instance_id == instance_id, StaffAssignment.is_overridden.is_(False)
        )
    )
    return result.rowcount or 0


async def list_vehicle_assignments(session: AsyncSession, instance_id: int) -> list[VehicleAssignment]:
    result = await session.execute(
        select(VehicleAssignment)
        .where(VehicleAssignment.instance_id == instance_id)
        .order_by(VehicleAssignment.id)
    )
    return list(result.scalars().all())


async def delete_unpinned_vehicle_assignments(session: AsyncSession, instance_id: int) -> int:
    result = await session.execute(
        delete(VehicleAssignment).where(
            VehicleAssignment.instance_id == instance_id, VehicleAssignment.is_overridden.is_(False)
        )
    )
    return result.rowcount or 0


async def count_instances(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(LoomInstance.id)))
    return int(result.scalar_one())


async def get_setting(session: AsyncSession, key: str) -> str | None:
    setting = await session.get(LoomSetting, key)
    return setting.value if setting else None


async def set_setting(session: AsyncSession, key: str, value: str) -> LoomSetting:
    setting = await session.get(LoomSetting, key)
    if setting is None:
        setting = LoomSetting(key=key, value=value)
        session.add(setting)
    else:
        setting.value = value
    await session.flush()
    return setting


async def record_audit(
    session: AsyncSession,
    *,
    action: str,
    instance_id: int | None = None,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
    actor: str = "system",
) -> LoomAuditLog:
    entry = LoomAuditLog(
        instance_id=instance_id,
        action=action,
        before_state=before,
        after_state=after,
        actor=actor,
        created_at=datetime.utcnow(),
    )
    session.add(entry)
    return entry


async def list_audit_entries(
    session: AsyncSession, *, instance_id: int | None = None, action: str | None = None
) -> list[LoomAuditLog]:
    query = select(LoomAuditLog)
    if instance_id is not None:
        query = query.where(LoomAuditLog.instance_id == instance_id)
    if action is not None:
        query = query.where(LoomAuditLog.action == action)
    result = await session.execute(query.order_by(LoomAuditLog.id))
    return list(result.scalars().all())

"""Weaving completed instances into immutable history and payment diamonds."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from loom_scheduler.db.models import (
    AttendanceStatus,
    DiamondStatus,
    HistoryParticipant,
    HistoryShift,
    HistoryStaff,
    HistoryTag,
    LoomInstance,
    PaymentDiamond,
    RateLineItem,
    ShiftStatus,
)
from loom_scheduler.repositories import history as history_repo
from loom_scheduler.repositories import loom as loom_repo
from loom_scheduler.repositories import resource as resource_repo
from loom_scheduler.repositories import rules as rules_repo
from loom_scheduler.services.errors import InvalidTransitionError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class ArchiveStats:
    instances_archived: int = 0
    participants_archived: int = 0
    staff_archived: int = 0
    diamonds_created: int = 0
    missing_rates: int = 0


@dataclass
class ArchiveResult:
    cutoff: date
    stats: ArchiveStats = field(default_factory=ArchiveStats)
    history_shift_ids: list[int] = field(default_factory=list)


def instance_hours(instance: LoomInstance) -> float:
    start = datetime.combine(instance.instance_date, instance.start_time)
    end = datetime.combine(instance.instance_date, instance.end_time)
    return round(max((end - start).total_seconds() / 3600, 0.0), 2)


def is_billable(status: str, billing_impact: bool) -> bool:
    if status == AttendanceStatus.ATTENDED:
        return True
    return status == AttendanceStatus.CANCELLED and billing_impact


class Archiver:
    def __init__(self, session: AsyncSession, *, now: datetime | None = None) -> None:
        self.session = session
        self.now = now or datetime.utcnow()
        self._rates: dict[int, RateLineItem | None] = {}

    async def archive_before(self, cutoff: date) -> ArchiveResult:
        result = ArchiveResult(cutoff=cutoff)
        instances = await loom_repo.list_instances_before(self.session, cutoff)
        logger.info("Archiving %s instances dated before %s", len(instances), cutoff.isoformat())
        for instance in instances:
            async with self.session.begin_nested():
                history_id = await self._archive_instance(instance, result.stats)
            result.history_shift_ids.append(history_id)
        logger.info(
            "Archived %s instances, created %s payment diamonds",
            result.stats.instances_archived,
            result.stats.diamonds_created,
        )
        return result

    async def _rate_for(self, rule_id: int) -> RateLineItem | None:
        if rule_id not in self._rates:
            self._rates[rule_id] = await rules_repo.get_billing_rate(self.session, rule_id)
        return self._rates[rule_id]

    async def _archive_instance(self, instance: LoomInstance, stats: ArchiveStats) -> int:
        rule = await rules_repo.get_rule(self.session, instance.source_rule_id)
        venue = await resource_repo.get_venue(self.session, instance.venue_id) if instance.venue_id else None
        attendance = await loom_repo.list_attendance(self.session, instance.id)
        staff_rows = await loom_repo.list_staff_assignments(self.session, instance.id)
        vehicles = await loom_repo.list_vehicle_assignments(self.session, instance.id)
        hours = instance_hours(instance)
        program_name = rule.name if rule is not None else f"Rule {instance.source_rule_id}"

        shift = HistoryShift(
            original_instance_id=instance.id,
            source_rule_id=instance.source_rule_id,
            program_name=program_name,
            instance_date=instance.instance_date,
            start_time=instance.start_time,
            end_time=instance.end_time,
            venue_name=venue.name if venue else None,
            venue_address=venue.address if venue else None,
            participant_count=sum(1 for row, _ in attendance if row.status == AttendanceStatus.ATTENDED),
            staff_count=sum(1 for row, _ in staff_rows if row.status == ShiftStatus.PLANNED),
            vehicle_count=len(vehicles),
            was_overridden=instance.is_overridden,
            notes=instance.notes,
            archived_at=self.now,
        )
        self.session.add(shift)
        await self.session.flush()

        rate = await self._rate_for(instance.source_rule_id)
        for row, participant in attendance:
            self.session.add(
                HistoryParticipant(
                    history_shift_id=shift.id,
                    participant_id=participant.id,
                    participant_name=participant.display_name,
                    attendance_status=row.status,
                    cancellation_type=row.cancellation_type,
                    billing_impact=row.billing_impact,
                    pickup_provided=row.pickup_required,
                    dropoff_provided=row.dropoff_required,
                    notes=row.notes,
                )
            )
            stats.participants_archived += 1
            if not is_billable(row.status, row.billing_impact):
                continue
            if rate is None:
                stats.missing_rates += 1
                logger.warning(
                    "No rate line for rule %s, participant %s on %s is not billed",
                    instance.source_rule_id,
                    participant.id,
                    instance.instance_date.isoformat(),
                )
                continue
            self.session.add(
                PaymentDiamond(
                    history_shift_id=shift.id,
                    participant_id=participant.id,
                    support_item_number=rate.support_item_number,
                    unit_price=rate.unit_price,
                    quantity=hours,
                    total_amount=round(rate.unit_price * hours, 2),
                    gst_code=rate.gst_code,
                    status=DiamondStatus.PENDING.value,
                    created_at=self.now,
                )
            )
            stats.diamonds_created += 1

        for row, staff in staff_rows:
            self.session.add(
                HistoryStaff(
                    history_shift_id=shift.id,
                    staff_id=staff.id,
                    staff_name=staff.display_name,
                    role=row.role,
                    status=row.status,
                    hours_worked=hours if row.status == ShiftStatus.PLANNED else 0.0,
                    notes=row.notes,
                )
            )
            stats.staff_archived += 1

        tags = {
            "program": program_name,
            "date": instance.instance_date.isoformat(),
            "weekday": instance.instance_date.strftime("%A").lower(),
        }
        if venue is not None:
            tags["venue"] = venue.name
        for key, value in tags.items():
            self.session.add(HistoryTag(history_shift_id=shift.id, tag_key=key, tag_value=value))

        await loom_repo.record_audit(
            self.session,
            action="instance_archived",
            instance_id=instance.id,
            after={"history_shift_id": shift.id},
        )
        await loom_repo.delete_instance(self.session, instance.id)
        await self.session.flush()
        stats.instances_archived += 1
        return shift.id


async def weave_to_history(
    session: AsyncSession, cutoff: date, *, now: datetime | None = None
) -> ArchiveResult:
    """Move every instance dated before ``cutoff`` into history."""
    return await Archiver(session, now=now).archive_before(cutoff)


async def mark_diamond_billed(
    session: AsyncSession, diamond_id: int, *, now: datetime | None = None
) -> PaymentDiamond:
    diamond = await history_repo.get_payment_diamond(session, diamond_id)
    if diamond is None:
        raise NotFoundError("Payment diamond", diamond_id)
    if diamond.status != DiamondStatus.PENDING:
        raise InvalidTransitionError(f"Payment diamond {diamond_id} is already {diamond.status}")
    diamond.status = DiamondStatus.BILLED.value
    diamond.billed_at = now or datetime.utcnow()
    await session.flush()
    return diamond

"""Projection of recurring program rules into concrete loom instances.

Every pass is idempotent: an instance whose fingerprint has not changed
receives bookkeeping updates only, and an instance an operator has
overridden is never rewritten by projection.
"""

from __future__ import annotations

import logging
import random
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from loom_scheduler.core.config import Settings, get_settings
from loom_scheduler.db.models import (
    AttendanceStatus,
    ExceptionType,
    LoomInstance,
    ParticipantAttendance,
    ParticipantEnrolment,
    ProgramRule,
    RuleException,
)
from loom_scheduler.repositories import loom as loom_repo
from loom_scheduler.repositories import rules as rules_repo
from loom_scheduler.services.allocator import AllocationOutcome, allocate_instance
from loom_scheduler.services.errors import NotFoundError
from loom_scheduler.services.fingerprint import effective_shape, projection_fingerprint
from loom_scheduler.services.occurrences import WindowRange, generate_occurrence_dates
from loom_scheduler.services.reconcile import BOOKKEEPING_FIELDS, apply_fields, reconcile_fields, snapshot
from loom_scheduler.services.routing import RoutingProvider, get_routing_provider

logger = logging.getLogger(__name__)

ATTENDANCE_FIELDS = ("enrolment_id", "pickup_required", "dropoff_required", "notes")


@dataclass
class ProjectionStats:
    rules_processed: int = 0
    instances_created: int = 0
    instances_updated: int = 0
    instances_unchanged: int = 0
    instances_removed: int = 0
    exceptions_applied: int = 0
    overrides_preserved: int = 0
    audits_tagged: int = 0
    participants_projected: int = 0
    attendance_preserved: int = 0
    attendance_removed: int = 0
    staff_assigned: int = 0
    staff_shortfall: int = 0
    vehicles_assigned: int = 0
    vehicle_shortfalls: int = 0

    def record_allocation(self, outcome: AllocationOutcome) -> None:
        self.staff_assigned += len(outcome.staff.assigned_staff_ids)
        self.staff_shortfall += outcome.staff.shortfall
        if outcome.vehicle.vehicle_id is not None and not outcome.vehicle.preserved:
            self.vehicles_assigned += 1
        if outcome.vehicle.required and outcome.vehicle.vehicle_id is None:
            self.vehicle_shortfalls += 1

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class ProjectionResult:
    window: WindowRange
    stats: ProjectionStats = field(default_factory=ProjectionStats)
    full_rebuild: bool = False


@dataclass
class AttendanceProjection:
    instance_id: int
    projected: int = 0
    preserved: int = 0
    removed: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.projected or self.removed)


def build_audit_sampler(settings: Settings | None = None) -> random.Random:
    settings = settings or get_settings()
    return random.Random(settings.audit_random_seed)


def sample_quality_audit(rng: random.Random, percentage: float) -> bool:
    return rng.random() * 100 < percentage


def enrolments_for(
    enrolments: Iterable[ParticipantEnrolment], rule_id: int, day: date
) -> list[ParticipantEnrolment]:
    return [
        enrolment
        for enrolment in enrolments
        if enrolment.rule_id == rule_id
        and enrolment.start_date <= day
        and (enrolment.end_date is None or enrolment.end_date >= day)
    ]


async def project_participants(
    session: AsyncSession,
    instance: LoomInstance,
    enrolments: Iterable[ParticipantEnrolment],
) -> AttendanceProjection:
    """Reconcile attendance rows for ``instance`` with the applicable enrolments."""
    outcome = AttendanceProjection(instance_id=instance.id)
    existing = {row.participant_id: row for row, _ in await loom_repo.list_attendance(session, instance.id)}
    wanted: set[int] = set()

    for enrolment in enrolments_for(enrolments, instance.source_rule_id, instance.instance_date):
        wanted.add(enrolment.participant_id)
        projected = {
            "enrolment_id": enrolment.id,
            "pickup_required": enrolment.pickup_required,
            "dropoff_required": enrolment.dropoff_required,
            "notes": enrolment.notes,
        }
        row = existing.get(enrolment.participant_id)
        if row is None:
            session.add(
                ParticipantAttendance(
                    instance_id=instance.id,
                    participant_id=enrolment.participant_id,
                    status=AttendanceStatus.CONFIRMED.value,
                    is_overridden=False,
                    **projected,
                )
            )
            outcome.projected += 1
            continue
        if row.is_overridden:
            outcome.preserved += 1
            continue
        changes = reconcile_fields(snapshot(row, ATTENDANCE_FIELDS), projected, overridden=False)
        if changes:
            apply_fields(row, changes)
            outcome.projected += 1

    for participant_id, row in existing.items():
        if participant_id in wanted:
            continue
        if row.is_overridden:
            outcome.preserved += 1
            continue
        await session.delete(row)
        outcome.removed += 1

    await session.flush()
    return outcome


async def allocate_participants(
    session: AsyncSession, instance_id: int
) -> AttendanceProjection:
    instance = await loom_repo.get_instance(session, instance_id)
    if instance is None:
        raise NotFoundError("Instance", instance_id)
    enrolments = await rules_repo.list_enrolments(
        session, start=instance.instance_date, end=instance.instance_date, rule_id=instance.source_rule_id
    )
    return await project_participants(session, instance, enrolments)


class Weaver:
    """Runs one projection pass over a window."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        settings: Settings | None = None,
        rng: random.Random | None = None,
        routing: RoutingProvider | None = None,
        now: datetime | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.rng = rng or build_audit_sampler(self.settings)
        self.routing = routing or get_routing_provider(self.settings)
        self.now = now or datetime.utcnow()

    async def project(self, window: WindowRange, *, full_rebuild: bool = False) -> ProjectionResult:
        result = ProjectionResult(window=window, full_rebuild=full_rebuild)
        if window.is_empty:
            return result
        stats = result.stats
        logger.info(
            "Projecting window %s to %s (full_rebuild=%s)",
            window.start.isoformat(),
            window.end.isoformat(),
            full_rebuild,
        )

        if full_rebuild:
            removed, retained = await loom_repo.delete_unpinned_instances(
                self.session, start=window.start, end=window.end
            )
            stats.instances_removed += removed
            logger.info("Cleared %s instances, kept %s overridden", removed, retained)

        rules = await rules_repo.list_rules(self.session, active_only=True)
        exceptions = await rules_repo.list_exceptions(self.session, start=window.start, end=window.end)
        enrolments = await rules_repo.list_enrolments(self.session, start=window.start, end=window.end)

        by_rule: dict[int, dict[date, RuleException]] = {}
        for exception in exceptions:
            by_rule.setdefault(exception.rule_id, {})[exception.exception_date] = exception

        for rule in rules:
            rule_exceptions = by_rule.get(rule.id, {})
            rule_enrolments = [enrolment for enrolment in enrolments if enrolment.rule_id == rule.id]
            for day in generate_occurrence_dates(rule, window, rule_exceptions.values()):
                await self._project_occurrence(
                    rule, day, rule_exceptions.get(day), rule_enrolments, stats, full_rebuild
                )
            stats.rules_processed += 1

        await self.session.flush()
        logger.info("Projection finished: %s", stats.as_dict())
        return result

    async def _project_occurrence(
        self,
        rule: ProgramRule,
        day: date,
        exception: RuleException | None,
        enrolments: list[ParticipantEnrolment],
        stats: ProjectionStats,
        full_rebuild: bool,
    ) -> None:
        existing = await loom_repo.get_instance_for_rule_date(self.session, rule.id, day)

        if exception is not None and exception.exception_type == ExceptionType.CANCELLED:
            stats.exceptions_applied += 1
            if existing is not None and not existing.is_overridden:
                instance_id = existing.id
                await loom_repo.delete_instance(self.session, instance_id)
                await loom_repo.record_audit(
                    self.session,
                    action="instance_cancelled_by_exception",
                    instance_id=instance_id,
                    after={"exception_id": exception.id, "date": day.isoformat()},
                )
                stats.instances_removed += 1
            return
        if exception is not None:
            stats.exceptions_applied += 1

        fingerprint = projection_fingerprint(rule, day, exception)
        bookkeeping = {"projection_hash": fingerprint, "projected_at": self.now}

        if existing is not None and existing.is_overridden:
            apply_fields(
                existing,
                reconcile_fields(
                    snapshot(existing, bookkeeping), bookkeeping, overridden=True, bookkeeping=BOOKKEEPING_FIELDS
                ),
            )
            stats.overrides_preserved += 1
            return

        projected = {**effective_shape(rule, exception).as_fields(), **bookkeeping}
        changed = existing is None or existing.projection_hash != fingerprint
        if existing is None:
            instance = LoomInstance(
                source_rule_id=rule.id,
                instance_date=day,
                is_overridden=False,
                quality_audit_flag=self._sample_audit(stats),
                **projected,
            )
            self.session.add(instance)
            await self.session.flush()
            await loom_repo.record_audit(
                self.session,
                action="instance_created",
                instance_id=instance.id,
                after={"rule_id": rule.id, "date": day.isoformat(), "projection_hash": fingerprint},
            )
            stats.instances_created += 1
        else:
            instance = existing
            apply_fields(
                instance,
                reconcile_fields(
                    snapshot(instance, projected), projected, overridden=False, bookkeeping=BOOKKEEPING_FIELDS
                ),
            )
            if changed:
                instance.quality_audit_flag = self._sample_audit(stats)
                stats.instances_updated += 1
            else:
                stats.instances_unchanged += 1

        attendance = await project_participants(self.session, instance, enrolments)
        stats.participants_projected += attendance.projected
        stats.attendance_preserved += attendance.preserved
        stats.attendance_removed += attendance.removed

        if changed or attendance.changed or full_rebuild:
            outcome = await allocate_instance(
                self.session, instance, settings=self.settings, routing=self.routing
            )
            stats.record_allocation(outcome)

    def _sample_audit(self, stats: ProjectionStats) -> bool:
        flagged = sample_quality_audit(self.rng, self.settings.quality_audit_percentage)
        if flagged:
            stats.audits_tagged += 1
        return flagged


async def project_window(
    session: AsyncSession,
    window: WindowRange,
    *,
    full_rebuild: bool = False,
    settings: Settings | None = None,
    rng: random.Random | None = None,
    routing: RoutingProvider | None = None,
    now: datetime | None = None,
) -> ProjectionResult:
    weaver = Weaver(session, settings=settings, rng=rng, routing=routing, now=now)
    return await weaver.project(window, full_rebuild=full_rebuild)

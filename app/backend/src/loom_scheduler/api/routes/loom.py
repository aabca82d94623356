import random
from datetime import date, datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from loom_scheduler.api.dependencies import get_audit_sampler, get_routing
from loom_scheduler.core.config import Settings, get_settings
from loom_scheduler.db.models import AttendanceStatus, LoomInstance
from loom_scheduler.db.session import get_db_session
from loom_scheduler.repositories import loom as loom_repo
from loom_scheduler.schemas.loom import (
    AllocationResponse,
    ArchiveStatsRead,
    AttendanceRead,
    CancellationRequest,
    CancellationResponse,
    LoomInstanceDetail,
    LoomInstanceRead,
    LoomInstanceUpdate,
    ParticipantAllocationResponse,
    ProjectionStatsRead,
    SicknessRequest,
    SicknessResponse,
    StaffAllocationResponse,
    StaffAssignmentRead,
    VehicleAllocationResponse,
    VehicleAssignmentRead,
    WindowOperationResponse,
    WindowRead,
    WindowRequest,
    WindowResize,
)
from loom_scheduler.services import allocator, events, lifecycle, weaver
from loom_scheduler.services.lifecycle import WindowChange, WindowManager
from loom_scheduler.services.reconcile import apply_fields, snapshot
from loom_scheduler.services.routing import RoutingProvider

router = APIRouter()

SessionDep = Annotated[AsyncSession, Depends(get_db_session)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
RoutingDep = Annotated[RoutingProvider, Depends(get_routing)]
SamplerDep = Annotated[random.Random, Depends(get_audit_sampler)]


class AttendanceUpdate(BaseModel):
    status: Literal["confirmed", "attended", "no_show"] | None = None
    pickup_required: bool | None = None
    dropoff_required: bool | None = None
    notes: str | None = None


class StaffAssignmentUpdate(BaseModel):
    role: Literal["lead", "support"] | None = None
    requires_vehicle: bool | None = None
    notes: str | None = None


def _window_read(state: lifecycle.WindowState, settings: Settings) -> WindowRead:
    return WindowRead(
        weeks=state.weeks,
        start=state.window.start,
        end=state.window.end,
        min_weeks=settings.min_window_weeks,
        max_weeks=settings.max_window_weeks,
    )


def _change_response(change: WindowChange, settings: Settings) -> WindowOperationResponse:
    response = WindowOperationResponse(
        window=_window_read(change.state, settings),
        previous_weeks=change.previous_weeks,
        instances_trimmed=change.instances_trimmed,
        overrides_retained=change.overrides_retained,
    )
    if change.projected is not None:
        response.projected_start = change.projected.start
        response.projected_end = change.projected.end
    if change.projection is not None:
        response.projection = ProjectionStatsRead(**change.projection.stats.as_dict())
    if change.archive is not None:
        response.archive = ArchiveStatsRead(
            cutoff=change.archive.cutoff,
            history_shift_ids=change.archive.history_shift_ids,
            **vars(change.archive.stats),
        )
    return response


def _allocation_response(outcome: allocator.AllocationOutcome) -> AllocationResponse:
    return AllocationResponse(
        staff=StaffAllocationResponse(**vars(outcome.staff)),
        vehicle=VehicleAllocationResponse(**vars(outcome.vehicle)),
        needs_attention=outcome.needs_attention,
    )


async def _require_instance(session: AsyncSession, instance_id: int) -> LoomInstance:
    instance = await loom_repo.get_instance(session, instance_id)
    if not instance:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Instance not found")
    return instance


def _manager(session, settings, sampler, routing) -> WindowManager:
    return WindowManager(session, settings=settings, rng=sampler, routing=routing, today=date.today())


@router.get("/window", response_model=WindowRead)
async def read_window(session: SessionDep, settings: SettingsDep) -> WindowRead:
    state = await lifecycle.get_window_state(session, today=date.today(), settings=settings)
    return _window_read(state, settings)


@router.post("/window/generate", response_model=WindowOperationResponse)
async def generate_window(
    session: SessionDep,
    settings: SettingsDep,
    sampler: SamplerDep,
    routing: RoutingDep,
    payload: Annotated[WindowRequest | None, Body()] = None,
    full_rebuild: bool = Query(default=False),
) -> WindowOperationResponse:
    weeks = payload.weeks if payload else None
    change = await _manager(session, settings, sampler, routing).generate(weeks, full_rebuild=full_rebuild)
    await session.commit()
    return _change_response(change, settings)


@router.put("/window", response_model=WindowOperationResponse)
async def resize_window(
    payload: WindowResize,
    session: SessionDep,
    settings: SettingsDep,
    sampler: SamplerDep,
    routing: RoutingDep,
) -> WindowOperationResponse:
    change = await _manager(session, settings, sampler, routing).resize(payload.weeks)
    await session.commit()
    return _change_response(change, settings)


@router.post("/window/roll", response_model=WindowOperationResponse)
async def roll_window(
    session: SessionDep, settings: SettingsDep, sampler: SamplerDep, routing: RoutingDep
) -> WindowOperationResponse:
    change = await _manager(session, settings, sampler, routing).roll()
    await session.commit()
    return _change_response(change, settings)


@router.get("/instances", response_model=list[LoomInstanceRead])
async def list_instances(
    session: SessionDep,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
) -> list[LoomInstanceRead]:
    instances = await loom_repo.list_instances(session, start=start, end=end)
    return [LoomInstanceRead.model_validate(instance) for instance in instances]


@router.get("/instances/{instance_id}", response_model=LoomInstanceDetail)
async def get_instance(instance_id: int, session: SessionDep) -> LoomInstanceDetail:
    instance = await _require_instance(session, instance_id)
    detail = LoomInstanceDetail.model_validate(instance)
    detail.attendance = [
        AttendanceRead.model_validate(row) for row, _ in await loom_repo.list_attendance(session, instance_id)
    ]
    detail.staff_assignments = [
        StaffAssignmentRead.model_validate(row)
        for row, _ in await loom_repo.list_staff_assignments(session, instance_id)
    ]
    detail.vehicle_assignments = [
        VehicleAssignmentRead.model_validate(row)
        for row in await loom_repo.list_vehicle_assignments(session, instance_id)
    ]
    return detail


@router.patch("/instances/{instance_id}", response_model=LoomInstanceRead)
async def update_instance(
    instance_id: int, payload: LoomInstanceUpdate, session: SessionDep
) -> LoomInstanceRead:
    """Operator edit; the instance is pinned against future projection passes."""
    instance = await _require_instance(session, instance_id)
    data = payload.model_dump(exclude_unset=True)
    before = snapshot(instance, data)
    apply_fields(instance, data)
    if instance.end_time <= instance.start_time:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Instance must end after it starts")
    instance.is_overridden = True
    await loom_repo.record_audit(
        session,
        action="instance_edited",
        instance_id=instance.id,
        before={key: str(value) if value is not None else None for key, value in before.items()},
        after={key: str(value) if value is not None else None for key, value in data.items()},
        actor="operator",
    )
    await session.commit()
    return LoomInstanceRead.model_validate(instance)


@router.post("/instances/{instance_id}/participants", response_model=ParticipantAllocationResponse)
async def allocate_participants(instance_id: int, session: SessionDep) -> ParticipantAllocationResponse:
    outcome = await weaver.allocate_participants(session, instance_id)
    await session.commit()
    return ParticipantAllocationResponse(
        instance_id=outcome.instance_id,
        projected=outcome.projected,
        preserved=outcome.preserved,
        removed=outcome.removed,
    )


@router.post("/instances/{instance_id}/staff", response_model=StaffAllocationResponse)
async def assign_staff(instance_id: int, session: SessionDep, settings: SettingsDep) -> StaffAllocationResponse:
    instance = await _require_instance(session, instance_id)
    result = await allocator.assign_staff(session, instance, settings=settings)
    await session.commit()
    return StaffAllocationResponse(**vars(result))


@router.post("/instances/{instance_id}/vehicles", response_model=VehicleAllocationResponse)
async def assign_vehicles(instance_id: int, session: SessionDep, routing: RoutingDep) -> VehicleAllocationResponse:
    instance = await _require_instance(session, instance_id)
    result = await allocator.assign_vehicle(session, instance, routing=routing)
    await session.commit()
    return VehicleAllocationResponse(**vars(result))


@router.post("/instances/{instance_id}/reoptimize", response_model=AllocationResponse)
async def reoptimize_instance(
    instance_id: int, session: SessionDep, settings: SettingsDep, routing: RoutingDep
) -> AllocationResponse:
    outcome = await events.reoptimize_instance(
        session, instance_id, settings=settings, routing=routing, actor="operator"
    )
    await session.commit()
    return _allocation_response(outcome)


@router.patch("/attendance/{attendance_id}", response_model=AttendanceRead)
async def update_attendance(attendance_id: int, payload: AttendanceUpdate, session: SessionDep) -> AttendanceRead:
    row = await loom_repo.get_attendance(session, attendance_id)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attendance not found")
    if row.status == AttendanceStatus.CANCELLED and payload.status is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Attendance is cancelled")
    data = payload.model_dump(exclude_unset=True)
    before = snapshot(row, data)
    apply_fields(row, data)
    row.is_overridden = True
    await loom_repo.record_audit(
        session,
        action="attendance_edited",
        instance_id=row.instance_id,
        before={"attendance_id": row.id, **before},
        after=data,
        actor="operator",
    )
    await session.commit()
    return AttendanceRead.model_validate(row)


@router.post("/attendance/{attendance_id}/cancel", response_model=CancellationResponse)
async def cancel_attendance(
    attendance_id: int,
    session: SessionDep,
    settings: SettingsDep,
    payload: Annotated[CancellationRequest | None, Body()] = None,
) -> CancellationResponse:
    payload = payload or CancellationRequest()
    result = await events.cancel_participant(
        session,
        attendance_id,
        payload.cancellation_type,
        now=datetime.now(),
        settings=settings,
        reason=payload.reason,
        actor="operator",
    )
    await session.commit()
    return CancellationResponse(**vars(result))


@router.patch("/shifts/{shift_id}", response_model=StaffAssignmentRead)
async def update_shift(shift_id: int, payload: StaffAssignmentUpdate, session: SessionDep) -> StaffAssignmentRead:
    shift = await loom_repo.get_staff_assignment(session, shift_id)
    if not shift:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shift not found")
    data = payload.model_dump(exclude_unset=True)
    before = snapshot(shift, data)
    apply_fields(shift, data)
    shift.is_overridden = True
    await loom_repo.record_audit(
        session,
        action="shift_edited",
        instance_id=shift.instance_id,
        before={"shift_id": shift.id, **before},
        after=data,
        actor="operator",
    )
    await session.commit()
    return StaffAssignmentRead.model_validate(shift)


@router.post("/shifts/{shift_id}/sickness", response_model=SicknessResponse)
async def report_sickness(
    shift_id: int,
    session: SessionDep,
    settings: SettingsDep,
    payload: Annotated[SicknessRequest | None, Body()] = None,
) -> SicknessResponse:
    result = await events.report_staff_sickness(
        session, shift_id, settings=settings, reason=payload.reason if payload else None, actor="operator"
    )
    await session.commit()
    return SicknessResponse(**vars(result))

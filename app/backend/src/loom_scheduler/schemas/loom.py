from datetime import date, datetime, time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WindowRequest(BaseModel):
    weeks: int | None = None


class WindowResize(BaseModel):
    weeks: int


class WindowRead(BaseModel):
    weeks: int
    start: date
    end: date
    min_weeks: int
    max_weeks: int


class ProjectionStatsRead(BaseModel):
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


class ArchiveStatsRead(BaseModel):
    cutoff: date
    instances_archived: int = 0
    participants_archived: int = 0
    staff_archived: int = 0
    diamonds_created: int = 0
    missing_rates: int = 0
    history_shift_ids: list[int] = Field(default_factory=list)


class WindowOperationResponse(BaseModel):
    window: WindowRead
    previous_weeks: int | None = None
    projected_start: date | None = None
    projected_end: date | None = None
    projection: ProjectionStatsRead | None = None
    archive: ArchiveStatsRead | None = None
    instances_trimmed: int = 0
    overrides_retained: int = 0


class LoomInstanceRead(BaseModel):
    id: int
    source_rule_id: int
    instance_date: date
    start_time: time
    end_time: time
    venue_id: int | None = None
    transport_required: bool
    staffing_ratio_id: int | None = None
    projection_hash: str | None = None
    projected_at: datetime | None = None
    is_overridden: bool
    quality_audit_flag: bool
    virtual_participant_count: float
    required_staff: int
    staff_shortfall: int
    vehicle_status: str
    needs_attention: bool
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class LoomInstanceUpdate(BaseModel):
    start_time: time | None = None
    end_time: time | None = None
    venue_id: int | None = None
    transport_required: bool | None = None
    staffing_ratio_id: int | None = None
    notes: str | None = None

    @field_validator("start_time", "end_time", "transport_required")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be cleared")
        return value


class AttendanceRead(BaseModel):
    id: int
    instance_id: int
    participant_id: int
    enrolment_id: int | None = None
    status: str
    pickup_required: bool
    dropoff_required: bool
    is_overridden: bool
    cancellation_type: str | None = None
    billing_impact: bool
    hours_notice: float | None = None
    cancelled_at: datetime | None = None
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceCreate(BaseModel):
    participant_id: int
    pickup_required: bool = False
    dropoff_required: bool = False
    notes: str | None = None


class StaffAssignmentRead(BaseModel):
    id: int
    instance_id: int
    staff_id: int
    role: str
    status: str
    requires_vehicle: bool
    is_overridden: bool
    needs_attention: bool
    replaces_assignment_id: int | None = None
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class StaffAssignmentCreate(BaseModel):
    staff_id: int
    role: Literal["lead", "support"] = "support"
    notes: str | None = None


class VehicleAssignmentRead(BaseModel):
    id: int
    instance_id: int
    vehicle_id: int
    driver_staff_id: int | None = None
    stop_sequence: list[int] = Field(default_factory=list)
    route_status: str
    route_quality_score: float | None = None
    is_overridden: bool

    model_config = ConfigDict(from_attributes=True)


class LoomInstanceDetail(LoomInstanceRead):
    attendance: list[AttendanceRead] = Field(default_factory=list)
    staff_assignments: list[StaffAssignmentRead] = Field(default_factory=list)
    vehicle_assignments: list[VehicleAssignmentRead] = Field(default_factory=list)


class ParticipantAllocationResponse(BaseModel):
    instance_id: int
    projected: int
    preserved: int
    removed: int


class StaffAllocationResponse(BaseModel):
    instance_id: int
    virtual_participant_count: float
    required_staff: int
    assigned_staff_ids: list[int]
    preserved: int
    shortfall: int


class VehicleAllocationResponse(BaseModel):
    instance_id: int
    required: bool
    required_seats: int
    vehicle_id: int | None = None
    driver_staff_id: int | None = None
    route_computed: bool = False
    preserved: bool = False
    status: str


class AllocationResponse(BaseModel):
    staff: StaffAllocationResponse
    vehicle: VehicleAllocationResponse
    needs_attention: bool


class CancellationRequest(BaseModel):
    cancellation_type: Literal["normal", "short_notice"] | None = None
    reason: str | None = None


class CancellationResponse(BaseModel):
    attendance_id: int
    instance_id: int
    participant_id: int
    cancellation_type: str
    billing_impact: bool
    hours_notice: float
    remaining_participants: int


class SicknessRequest(BaseModel):
    reason: str | None = None


class SicknessResponse(BaseModel):
    shift_id: int
    instance_id: int
    staff_id: int
    replacement_found: bool
    replacement_shift_id: int | None = None
    replacement_staff_id: int | None = None
    needs_attention: bool

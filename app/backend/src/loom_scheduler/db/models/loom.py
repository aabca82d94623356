from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from loom_scheduler.db.base import Base


class AttendanceStatus(str, Enum):  # type: ignore[call-arg]
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    ATTENDED = "attended"
    NO_SHOW = "no_show"


class CancellationType(str, Enum):  # type: ignore[call-arg]
    NORMAL = "normal"
    SHORT_NOTICE = "short_notice"


class StaffRole(str, Enum):  # type: ignore[call-arg]
    LEAD = "lead"
    SUPPORT = "support"


class ShiftStatus(str, Enum):  # type: ignore[call-arg]
    PLANNED = "planned"
    STAFF_SICK = "staff_sick"


class VehicleStatus(str, Enum):  # type: ignore[call-arg]
    NOT_REQUIRED = "not_required"
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"


class RouteStatus(str, Enum):  # type: ignore[call-arg]
    COMPUTED = "computed"
    NOT_COMPUTED = "not_computed"


class LoomInstance(Base):
    __table_args__ = (UniqueConstraint("source_rule_id", "instance_date", name="uq_loominstance_rule_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    source_rule_id: Mapped[int] = mapped_column(ForeignKey("programrule.id", ondelete="CASCADE"), index=True)
    instance_date: Mapped[date] = mapped_column(Date, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    venue_id: Mapped[Optional[int]] = mapped_column(ForeignKey("venue.id", ondelete="SET NULL"))
    transport_required: Mapped[bool] = mapped_column(Boolean, default=False)
    staffing_ratio_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("staffingratiotable.id", ondelete="SET NULL")
    )
    projection_hash: Mapped[Optional[str]] = mapped_column(String(64))
    projected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_overridden: Mapped[bool] = mapped_column(Boolean, default=False)
    quality_audit_flag: Mapped[bool] = mapped_column(Boolean, default=False)
    virtual_participant_count: Mapped[float] = mapped_column(Float, default=0.0)
    required_staff: Mapped[int] = mapped_column(Integer, default=0)
    staff_shortfall: Mapped[int] = mapped_column(Integer, default=0)
    vehicle_status: Mapped[str] = mapped_column(String(16), default=VehicleStatus.NOT_REQUIRED.value)
    needs_attention: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ParticipantAttendance(Base):
    __table_args__ = (UniqueConstraint("instance_id", "participant_id", name="uq_attendance_participant"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    instance_id: Mapped[int] = mapped_column(ForeignKey("loominstance.id", ondelete="CASCADE"), index=True)
    participant_id: Mapped[int] = mapped_column(ForeignKey("participant.id", ondelete="CASCADE"), index=True)
    enrolment_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("participantenrolment.id", ondelete="SET NULL")
    )
    status: Mapped[str] = mapped_column(String(16), default=AttendanceStatus.CONFIRMED.value)
    pickup_required: Mapped[bool] = mapped_column(Boolean, default=False)
    dropoff_required: Mapped[bool] = mapped_column(Boolean, default=False)
    is_overridden: Mapped[bool] = mapped_column(Boolean, default=False)
    cancellation_type: Mapped[Optional[str]] = mapped_column(String(16))
    billing_impact: Mapped[bool] = mapped_column(Boolean, default=False)
    hours_notice: Mapped[Optional[float]] = mapped_column(Float)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    notes: Mapped[Optional[str]] = mapped_column(Text)


class StaffAssignment(Base):
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    instance_id: Mapped[int] = mapped_column(ForeignKey("loominstance.id", ondelete="CASCADE"), index=True)
    staff_id: Mapped[int] = mapped_column(ForeignKey("staff.id", ondelete="CASCADE"), index=True)
    role: Mapped[str] = mapped_column(String(16), default=StaffRole.SUPPORT.value)
    status: Mapped[str] = mapped_column(String(16), default=ShiftStatus.PLANNED.value)
    requires_vehicle: Mapped[bool] = mapped_column(Boolean, default=False)
    is_overridden: Mapped[bool] = mapped_column(Boolean, default=False)
    needs_attention: Mapped[bool] = mapped_column(Boolean, default=False)
    replaces_assignment_id: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class VehicleAssignment(Base):
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    instance_id: Mapped[int] = mapped_column(ForeignKey("loominstance.id", ondelete="CASCADE"), index=True)
    vehicle_id: Mapped[int] = mapped_column(ForeignKey("vehicle.id", ondelete="CASCADE"), index=True)
    driver_staff_id: Mapped[Optional[int]] = mapped_column(ForeignKey("staff.id", ondelete="SET NULL"))
    stop_sequence: Mapped[list[int]] = mapped_column(JSON, default=list)
    route_status: Mapped[str] = mapped_column(String(16), default=RouteStatus.NOT_COMPUTED.value)
    route_quality_score: Mapped[Optional[float]] = mapped_column(Float)
    is_overridden: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class LoomSetting(Base):
    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(String(255), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class LoomAuditLog(Base):
    """Append-only record of automated and operator changes; survives instance deletion."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    instance_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    before_state: Mapped[Optional[dict]] = mapped_column(JSON)
    after_state: Mapped[Optional[dict]] = mapped_column(JSON)
    actor: Mapped[str] = mapped_column(String(64), default="system")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, ForeignKey, Integer, Numeric, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from loom_scheduler.db.base import Base


class ExceptionType(str, Enum):  # type: ignore[call-arg]
    ADDED = "added"
    CANCELLED = "cancelled"
    MODIFIED = "modified"


class ProgramRule(Base):
    """Recurring program definition. ``day_of_week`` follows ``date.weekday()``."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    venue_id: Mapped[Optional[int]] = mapped_column(ForeignKey("venue.id", ondelete="SET NULL"))
    transport_required: Mapped[bool] = mapped_column(Boolean, default=False)
    staffing_ratio_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("staffingratiotable.id", ondelete="SET NULL")
    )
    time_slots: Mapped[list[dict]] = mapped_column(JSON, default=list)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class RuleException(Base):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rule_id: Mapped[int] = mapped_column(ForeignKey("programrule.id", ondelete="CASCADE"), index=True)
    exception_date: Mapped[date] = mapped_column(Date, index=True)
    exception_type: Mapped[str] = mapped_column(String(16), nullable=False)
    start_time: Mapped[Optional[time]] = mapped_column(Time)
    end_time: Mapped[Optional[time]] = mapped_column(Time)
    venue_id: Mapped[Optional[int]] = mapped_column(ForeignKey("venue.id", ondelete="SET NULL"))
    reason: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class StaffingRatioTable(Base):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)

    brackets: Mapped[list["StaffingRatioBracket"]] = relationship(
        back_populates="table",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="StaffingRatioBracket.min_participants",
    )


class StaffingRatioBracket(Base):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    table_id: Mapped[int] = mapped_column(ForeignKey("staffingratiotable.id", ondelete="CASCADE"), index=True)
    min_participants: Mapped[float] = mapped_column(Float, nullable=False)
    max_participants: Mapped[float] = mapped_column(Float, nullable=False)
    required_staff: Mapped[int] = mapped_column(Integer, nullable=False)

    table: Mapped[StaffingRatioTable] = relationship(back_populates="brackets")


class ParticipantEnrolment(Base):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    participant_id: Mapped[int] = mapped_column(ForeignKey("participant.id", ondelete="CASCADE"), index=True)
    rule_id: Mapped[int] = mapped_column(ForeignKey("programrule.id", ondelete="CASCADE"), index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    pickup_required: Mapped[bool] = mapped_column(Boolean, default=False)
    dropoff_required: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)


class RateLineItem(Base):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rule_id: Mapped[int] = mapped_column(ForeignKey("programrule.id", ondelete="CASCADE"), index=True)
    support_item_number: Mapped[str] = mapped_column(String(40), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    unit_price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    gst_code: Mapped[str] = mapped_column(String(8), default="P2")
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)

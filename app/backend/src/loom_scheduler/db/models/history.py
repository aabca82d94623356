from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column

from loom_scheduler.db.base import Base


class DiamondStatus(str, Enum):  # type: ignore[call-arg]
    PENDING = "pending"
    BILLED = "billed"


class HistoryShift(Base):
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    original_instance_id: Mapped[int] = mapped_column(Integer, index=True)
    source_rule_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    program_name: Mapped[str] = mapped_column(String(160), nullable=False)
    instance_date: Mapped[date] = mapped_column(Date, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    venue_name: Mapped[Optional[str]] = mapped_column(String(120))
    venue_address: Mapped[Optional[str]] = mapped_column(String(255))
    participant_count: Mapped[int] = mapped_column(Integer, default=0)
    staff_count: Mapped[int] = mapped_column(Integer, default=0)
    vehicle_count: Mapped[int] = mapped_column(Integer, default=0)
    was_overridden: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    archived_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class HistoryParticipant(Base):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    history_shift_id: Mapped[int] = mapped_column(ForeignKey("historyshift.id", ondelete="CASCADE"), index=True)
    participant_id: Mapped[int] = mapped_column(Integer, index=True)
    participant_name: Mapped[str] = mapped_column(String(160), nullable=False)
    attendance_status: Mapped[str] = mapped_column(String(16), nullable=False)
    cancellation_type: Mapped[Optional[str]] = mapped_column(String(16))
    billing_impact: Mapped[bool] = mapped_column(Boolean, default=False)
    pickup_provided: Mapped[bool] = mapped_column(Boolean, default=False)
    dropoff_provided: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)


class HistoryStaff(Base):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    history_shift_id: Mapped[int] = mapped_column(ForeignKey("historyshift.id", ondelete="CASCADE"), index=True)
    staff_id: Mapped[int] = mapped_column(Integer, index=True)
    staff_name: Mapped[str] = mapped_column(String(160), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    hours_worked: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), default=0.0)
    notes: Mapped[Optional[str]] = mapped_column(Text)


class HistoryTag(Base):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    history_shift_id: Mapped[int] = mapped_column(ForeignKey("historyshift.id", ondelete="CASCADE"), index=True)
    tag_key: Mapped[str] = mapped_column(String(40), nullable=False)
    tag_value: Mapped[str] = mapped_column(String(160), nullable=False)


class PaymentDiamond(Base):
    """Billable unit derived from an archived attendance record."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    history_shift_id: Mapped[int] = mapped_column(ForeignKey("historyshift.id", ondelete="CASCADE"), index=True)
    participant_id: Mapped[int] = mapped_column(Integer, index=True)
    support_item_number: Mapped[str] = mapped_column(String(40), nullable=False)
    unit_price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    quantity: Mapped[float] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=False)
    total_amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    gst_code: Mapped[str] = mapped_column(String(8), default="P2")
    status: Mapped[str] = mapped_column(String(16), default=DiamondStatus.PENDING.value, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    billed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

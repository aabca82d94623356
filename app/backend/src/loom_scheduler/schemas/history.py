from datetime import date, datetime, time

from pydantic import BaseModel, ConfigDict, Field


class ArchiveRequest(BaseModel):
    cutoff: date | None = None


class HistoryParticipantRead(BaseModel):
    participant_id: int
    participant_name: str
    attendance_status: str
    cancellation_type: str | None = None
    billing_impact: bool
    pickup_provided: bool
    dropoff_provided: bool

    model_config = ConfigDict(from_attributes=True)


class HistoryStaffRead(BaseModel):
    staff_id: int
    staff_name: str
    role: str
    status: str
    hours_worked: float

    model_config = ConfigDict(from_attributes=True)


class HistoryTagRead(BaseModel):
    tag_key: str
    tag_value: str

    model_config = ConfigDict(from_attributes=True)


class HistoryShiftRead(BaseModel):
    id: int
    original_instance_id: int
    source_rule_id: int | None = None
    program_name: str
    instance_date: date
    start_time: time
    end_time: time
    venue_name: str | None = None
    venue_address: str | None = None
    participant_count: int
    staff_count: int
    vehicle_count: int
    was_overridden: bool
    archived_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HistoryShiftDetail(HistoryShiftRead):
    participants: list[HistoryParticipantRead] = Field(default_factory=list)
    staff: list[HistoryStaffRead] = Field(default_factory=list)
    tags: list[HistoryTagRead] = Field(default_factory=list)


class PaymentDiamondRead(BaseModel):
    id: int
    history_shift_id: int
    participant_id: int
    support_item_number: str
    unit_price: float
    quantity: float
    total_amount: float
    gst_code: str
    status: str
    created_at: datetime
    billed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

from datetime import date, datetime, time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from loom_scheduler.services.rules import RatioBracket, RatioTable, TimeSlot, dump_time_slots


class ProgramRuleBase(BaseModel):
    name: str
    description: str | None = None
    day_of_week: int = Field(ge=0, le=6)
    is_recurring: bool = True
    start_time: time
    end_time: time
    venue_id: int | None = None
    transport_required: bool = False
    staffing_ratio_id: int | None = None
    time_slots: list[TimeSlot] = Field(default_factory=list)
    active: bool = True

    @model_validator(mode="after")
    def validate_times(self) -> "ProgramRuleBase":
        if self.end_time <= self.start_time:
            raise ValueError("program must end after it starts")
        return self

    def to_row(self) -> dict:
        data = self.model_dump(exclude={"time_slots"})
        data["time_slots"] = dump_time_slots(self.time_slots)
        return data


class ProgramRuleCreate(ProgramRuleBase):
    pass


class ProgramRuleRead(ProgramRuleBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RuleExceptionBase(BaseModel):
    exception_date: date
    exception_type: Literal["added", "cancelled", "modified"]
    start_time: time | None = None
    end_time: time | None = None
    venue_id: int | None = None
    reason: str | None = None


class RuleExceptionCreate(RuleExceptionBase):
    pass


class RuleExceptionRead(RuleExceptionBase):
    id: int
    rule_id: int
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RatioBracketRead(RatioBracket):
    model_config = ConfigDict(from_attributes=True)


class StaffingRatioTableCreate(RatioTable):
    name: str


class StaffingRatioTableRead(BaseModel):
    id: int
    name: str
    brackets: list[RatioBracketRead]

    model_config = ConfigDict(from_attributes=True)


class EnrolmentBase(BaseModel):
    participant_id: int
    start_date: date
    end_date: date | None = None
    pickup_required: bool = False
    dropoff_required: bool = False
    notes: str | None = None

    @model_validator(mode="after")
    def validate_dates(self) -> "EnrolmentBase":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("enrolment cannot end before it starts")
        return self


class EnrolmentCreate(EnrolmentBase):
    pass


class EnrolmentRead(EnrolmentBase):
    id: int
    rule_id: int

    model_config = ConfigDict(from_attributes=True)


class RateLineItemBase(BaseModel):
    support_item_number: str
    description: str | None = None
    unit_price: float = Field(ge=0)
    gst_code: str = "P2"
    is_default: bool = False


class RateLineItemCreate(RateLineItemBase):
    pass


class RateLineItemRead(RateLineItemBase):
    id: int
    rule_id: int

    model_config = ConfigDict(from_attributes=True)

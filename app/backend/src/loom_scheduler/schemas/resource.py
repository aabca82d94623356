from datetime import datetime, time

from pydantic import BaseModel, ConfigDict, Field, model_validator


class VenueBase(BaseModel):
    name: str
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    notes: str | None = None


class VenueCreate(VenueBase):
    pass


class VenueRead(VenueBase):
    id: int

    model_config = ConfigDict(from_attributes=True)


class ParticipantBase(BaseModel):
    first_name: str
    last_name: str
    supervision_multiplier: float = Field(default=1.0, ge=1.0)
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    active: bool = True
    notes: str | None = None


class ParticipantCreate(ParticipantBase):
    pass


class ParticipantRead(ParticipantBase):
    id: int

    model_config = ConfigDict(from_attributes=True)


class ParticipantUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    supervision_multiplier: float | None = Field(default=None, ge=1.0)
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    active: bool | None = None
    notes: str | None = None


class AvailabilityWindow(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def validate_order(self) -> "AvailabilityWindow":
        if self.end_time <= self.start_time:
            raise ValueError("availability must end after it starts")
        return self


class StaffBase(BaseModel):
    first_name: str
    last_name: str
    contracted_hours: float = Field(default=76.0, gt=0)
    can_drive: bool = False
    active: bool = True
    notes: str | None = None


class StaffCreate(StaffBase):
    availability: list[AvailabilityWindow] = Field(default_factory=list)


class StaffRead(StaffBase):
    id: int
    availability: list[AvailabilityWindow] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class StaffUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    contracted_hours: float | None = Field(default=None, gt=0)
    can_drive: bool | None = None
    active: bool | None = None
    notes: str | None = None


class VehicleBlackoutWindow(BaseModel):
    start_at: datetime
    end_at: datetime
    reason: str | None = None

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def validate_order(self) -> "VehicleBlackoutWindow":
        if self.end_at <= self.start_at:
            raise ValueError("blackout must end after it starts")
        return self


class VehicleBase(BaseModel):
    name: str
    registration: str | None = None
    seats: int = Field(gt=0)
    active: bool = True


class VehicleCreate(VehicleBase):
    blackouts: list[VehicleBlackoutWindow] = Field(default_factory=list)


class VehicleRead(VehicleBase):
    id: int
    blackouts: list[VehicleBlackoutWindow] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

"""Typed rule structures validated at the rule-store boundary and their loaders."""

from __future__ import annotations

import json
import math
from datetime import time
from functools import lru_cache
from importlib import resources
from typing import Annotated, Any, Iterable, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, model_validator


class _Slot(BaseModel):
    start: time
    end: time
    label: str | None = None

    @model_validator(mode="after")
    def validate_order(self) -> "_Slot":
        if self.end <= self.start:
            raise ValueError("time slot must end after it starts")
        return self


class PickupSlot(_Slot):
    kind: Literal["pickup"] = "pickup"
    requires_vehicle: bool = True


class ActivitySlot(_Slot):
    kind: Literal["activity"] = "activity"
    requires_vehicle: bool = False


class DropoffSlot(_Slot):
    kind: Literal["dropoff"] = "dropoff"
    requires_vehicle: bool = True


TimeSlot = Annotated[Union[PickupSlot, ActivitySlot, DropoffSlot], Field(discriminator="kind")]

_TIME_SLOTS = TypeAdapter(list[TimeSlot])


def parse_time_slots(payload: Iterable[Any] | None) -> list[TimeSlot]:
    """Validate raw slot payloads; raises ``pydantic.ValidationError`` on unknown kinds."""
    return _TIME_SLOTS.validate_python(list(payload or []))


def dump_time_slots(slots: Iterable[TimeSlot]) -> list[dict]:
    return [slot.model_dump(mode="json") for slot in slots]


def slots_require_vehicle(slots: Iterable[TimeSlot]) -> bool:
    return any(slot.requires_vehicle for slot in slots)


class RatioBracket(BaseModel):
    min_participants: float = Field(ge=0)
    max_participants: float = Field(gt=0)
    required_staff: int = Field(ge=1)

    @model_validator(mode="after")
    def validate_bounds(self) -> "RatioBracket":
        if self.min_participants > self.max_participants:
            raise ValueError("min_participants cannot exceed max_participants")
        return self


class RatioTable(BaseModel):
    name: str = "Default"
    brackets: list[RatioBracket] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_brackets(self) -> "RatioTable":
        self.brackets.sort(key=lambda bracket: bracket.min_participants)
        for lower, upper in zip(self.brackets, self.brackets[1:]):
            if upper.min_participants <= lower.max_participants:
                raise ValueError("ratio brackets must not overlap")
            if upper.required_staff < lower.required_staff:
                raise ValueError("required staff must not decrease as brackets grow")
        return self

    def required_staff(self, virtual_count: float) -> int:
        """Staff needed for ``virtual_count``; beyond the top bracket its ratio is extrapolated."""
        if virtual_count <= 0:
            return 0
        for bracket in self.brackets:
            if virtual_count <= bracket.max_participants:
                return bracket.required_staff
        top = self.brackets[-1]
        per_staff = top.max_participants / top.required_staff
        return math.ceil(round(virtual_count / per_staff, 9))


def _load_ratio_table_from_json() -> RatioTable:
    with resources.files("loom_scheduler.services.data").joinpath("default_ratios.json").open(
        "r", encoding="utf-8"
    ) as handle:
        payload = json.load(handle)
    return RatioTable.model_validate(payload["ratio_table"])


@lru_cache(maxsize=1)
def load_default_ratio_table() -> RatioTable:
    """Return the ratio table bundled with the application."""

    return _load_ratio_table_from_json()

"""Deterministic fingerprints of the rule inputs that shape a projected instance."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass
from datetime import date, time
from typing import Any

from loom_scheduler.db.models import ProgramRule, RuleException
from loom_scheduler.services.rules import parse_time_slots, slots_require_vehicle


@dataclass(frozen=True)
class ProjectedShape:
    start_time: time
    end_time: time
    venue_id: int | None
    transport_required: bool
    staffing_ratio_id: int | None

    def as_fields(self) -> dict[str, Any]:
        return asdict(self)


def effective_shape(rule: ProgramRule, exception: RuleException | None = None) -> ProjectedShape:
    """Rule values with any exception overrides applied for a single date."""
    slots = parse_time_slots(rule.time_slots)
    start_time = rule.start_time
    end_time = rule.end_time
    venue_id = rule.venue_id
    if exception is not None:
        start_time = exception.start_time or start_time
        end_time = exception.end_time or end_time
        venue_id = exception.venue_id or venue_id
    return ProjectedShape(
        start_time=start_time,
        end_time=end_time,
        venue_id=venue_id,
        transport_required=bool(rule.transport_required) or slots_require_vehicle(slots),
        staffing_ratio_id=rule.staffing_ratio_id,
    )


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def projection_fingerprint(
    rule: ProgramRule, occurrence_date: date, exception: RuleException | None = None
) -> str:
    shape = effective_shape(rule, exception)
    payload = {
        "rule_id": rule.id,
        "date": occurrence_date.isoformat(),
        "start_time": _iso(shape.start_time),
        "end_time": _iso(shape.end_time),
        "venue_id": shape.venue_id,
        "transport_required": shape.transport_required,
        "staffing_ratio_id": shape.staffing_ratio_id,
        "time_slots": rule.time_slots or [],
        "updated_at": _iso(rule.updated_at),
        "exception": None
        if exception is None
        else {
            "id": exception.id,
            "type": exception.exception_type,
            "updated_at": _iso(exception.updated_at),
        },
    }
    encoded = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()

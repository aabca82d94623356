from datetime import date, datetime, time

from loom_scheduler.db.models import ProgramRule, RuleException
from loom_scheduler.services.fingerprint import effective_shape, projection_fingerprint

DAY = date(2026, 3, 2)


def _rule(**overrides) -> ProgramRule:
    data = {
        "id": 1,
        "name": "Monday Club",
        "day_of_week": 0,
        "is_recurring": True,
        "start_time": time(10),
        "end_time": time(14),
        "venue_id": 3,
        "transport_required": False,
        "staffing_ratio_id": None,
        "time_slots": [],
        "updated_at": datetime(2026, 1, 1, 8, 0),
    }
    data.update(overrides)
    return ProgramRule(**data)


def _exception(**overrides) -> RuleException:
    data = {
        "id": 5,
        "rule_id": 1,
        "exception_date": DAY,
        "exception_type": "modified",
        "start_time": time(11),
        "end_time": None,
        "venue_id": None,
        "updated_at": datetime(2026, 1, 2),
    }
    data.update(overrides)
    return RuleException(**data)


def test_fingerprint_is_deterministic() -> None:
    assert projection_fingerprint(_rule(), DAY) == projection_fingerprint(_rule(), DAY)


def test_fingerprint_depends_on_date() -> None:
    assert projection_fingerprint(_rule(), DAY) != projection_fingerprint(_rule(), date(2026, 3, 9))


def test_fingerprint_changes_with_rule_shape() -> None:
    base = projection_fingerprint(_rule(), DAY)
    assert projection_fingerprint(_rule(start_time=time(9)), DAY) != base
    assert projection_fingerprint(_rule(venue_id=4), DAY) != base
    assert projection_fingerprint(_rule(transport_required=True), DAY) != base
    assert projection_fingerprint(_rule(staffing_ratio_id=2), DAY) != base
    assert projection_fingerprint(_rule(updated_at=datetime(2026, 2, 1)), DAY) != base


def test_fingerprint_changes_when_exception_applies() -> None:
    base = projection_fingerprint(_rule(), DAY)
    with_exception = projection_fingerprint(_rule(), DAY, _exception())
    assert with_exception != base
    edited = projection_fingerprint(_rule(), DAY, _exception(updated_at=datetime(2026, 1, 3)))
    assert edited != with_exception


def test_effective_shape_applies_exception_overrides() -> None:
    shape = effective_shape(_rule(), _exception(venue_id=9))
    assert shape.start_time == time(11)
    assert shape.end_time == time(14)
    assert shape.venue_id == 9


def test_vehicle_slots_imply_transport() -> None:
    rule = _rule(time_slots=[{"kind": "pickup", "start": "09:00", "end": "10:00"}])
    assert effective_shape(rule).transport_required is True

from loom_scheduler.services.reconcile import BOOKKEEPING_FIELDS, reconcile_fields

PROJECTED = {"start_time": "10:00", "venue_id": 2, "projection_hash": "new", "projected_at": "now"}


def test_missing_row_takes_every_projected_field() -> None:
    assert reconcile_fields(None, PROJECTED, overridden=False) == PROJECTED


def test_overridden_row_only_takes_bookkeeping() -> None:
    existing = {"start_time": "09:00", "venue_id": 7, "projection_hash": "old", "projected_at": "then"}
    result = reconcile_fields(existing, PROJECTED, overridden=True, bookkeeping=BOOKKEEPING_FIELDS)
    assert result == {"projection_hash": "new", "projected_at": "now"}


def test_overridden_row_without_bookkeeping_is_untouched() -> None:
    existing = {"start_time": "09:00", "venue_id": 7}
    assert reconcile_fields(existing, {"start_time": "10:00"}, overridden=True) == {}


def test_plain_row_takes_changed_fields() -> None:
    existing = {"start_time": "10:00", "venue_id": 7, "projection_hash": "old", "projected_at": "then"}
    result = reconcile_fields(existing, PROJECTED, overridden=False)
    assert result == {"venue_id": 2, "projection_hash": "new", "projected_at": "now"}


def test_bookkeeping_is_written_even_when_unchanged() -> None:
    existing = dict(PROJECTED)
    result = reconcile_fields(existing, PROJECTED, overridden=False, bookkeeping={"projected_at"})
    assert result == {"projected_at": "now"}

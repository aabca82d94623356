"""Field-level reconciliation between projected values and stored rows."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

BOOKKEEPING_FIELDS = frozenset({"projection_hash", "projected_at"})


def reconcile_fields(
    existing: Mapping[str, Any] | None,
    projected: Mapping[str, Any],
    *,
    overridden: bool,
    bookkeeping: Iterable[str] = (),
) -> dict[str, Any]:
    """Return the projected fields that may be written.

    No existing row: everything. Overridden row: bookkeeping fields only.
    Otherwise: bookkeeping fields plus any value that differs.
    """
    if existing is None:
        return dict(projected)
    keep = frozenset(bookkeeping)
    if overridden:
        return {name: value for name, value in projected.items() if name in keep}
    return {
        name: value
        for name, value in projected.items()
        if name in keep or existing.get(name) != value
    }


def snapshot(row: object, fields: Iterable[str]) -> dict[str, Any]:
    return {name: getattr(row, name) for name in fields}


def apply_fields(row: object, fields: Mapping[str, Any]) -> None:
    for name, value in fields.items():
        setattr(row, name, value)

"""Window arithmetic and occurrence date generation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Iterator

from loom_scheduler.db.models import ExceptionType, ProgramRule, RuleException


@dataclass(frozen=True)
class WindowRange:
    start: date
    end: date

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def is_empty(self) -> bool:
        return self.end < self.start


def window_for(start: date, weeks: int) -> WindowRange:
    return WindowRange(start=start, end=start + timedelta(days=weeks * 7 - 1))


def generate_occurrence_dates(
    rule: ProgramRule, window: WindowRange, exceptions: Iterable[RuleException] = ()
) -> list[date]:
    """Dates in ``window`` on which ``rule`` yields an occurrence.

    A day qualifies when it matches the rule's weekday and the rule recurs, or
    when an ``added`` exception names it. Cancelled dates are still returned;
    the weaver decides what a cancellation does to an existing instance.
    """
    added = {
        exception.exception_date
        for exception in exceptions
        if exception.rule_id == rule.id and exception.exception_type == ExceptionType.ADDED
    }
    return [
        day
        for day in window.days()
        if (rule.is_recurring and day.weekday() == rule.day_of_week) or day in added
    ]

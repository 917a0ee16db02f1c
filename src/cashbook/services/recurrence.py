"""Recurrence rules: pure date arithmetic for scheduled transaction cursors.

Nothing here touches persistence. ``advance`` is the single primitive; the preview
helpers just iterate it. Month and year steps use :class:`dateutil.relativedelta`,
which clamps the day of month to the target month's length (Jan 31 + 1 month is
Feb 28 or Feb 29; Feb 29 + 1 year is Feb 28 in non-leap years).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Iterator, Optional

from dateutil.relativedelta import FR, SA, relativedelta

from ..errors import InvalidRuleError
from ..models.scheduled import RecurrencePattern

# Patterns whose step is multiplied by the recurrence value.
VALUE_PATTERNS = frozenset(
    {
        RecurrencePattern.DAILY,
        RecurrencePattern.WEEKLY,
        RecurrencePattern.MONTHLY,
        RecurrencePattern.MONTHLY_LAST_DAY,
        RecurrencePattern.YEARLY,
    }
)

_Step = Callable[[datetime, int], datetime]


def _next_weekday(start: datetime) -> datetime:
    candidate = start + timedelta(days=1)
    while candidate.weekday() >= 5:  # Saturday=5, Sunday=6
        candidate += timedelta(days=1)
    return candidate


_STEPS: dict[RecurrencePattern, _Step] = {
    RecurrencePattern.DAILY: lambda start, n: start + timedelta(days=n),
    RecurrencePattern.WEEKLY: lambda start, n: start + timedelta(weeks=n),
    RecurrencePattern.BI_WEEKLY: lambda start, _n: start + timedelta(weeks=2),
    RecurrencePattern.MONTHLY: lambda start, n: start + relativedelta(months=n),
    # day=31 is clamped to the month's last day
    RecurrencePattern.MONTHLY_LAST_DAY: lambda start, n: start + relativedelta(months=n, day=31),
    RecurrencePattern.YEARLY: lambda start, n: start + relativedelta(years=n),
    # weekday=FR(+1) means "this day if it is a Friday, else the next Friday", so
    # step one day first to get strictly-after semantics.
    RecurrencePattern.EVERY_FRIDAY: lambda start, _n: start + relativedelta(days=1, weekday=FR(+1)),
    RecurrencePattern.EVERY_SATURDAY: lambda start, _n: start + relativedelta(days=1, weekday=SA(+1)),
    RecurrencePattern.EVERY_WEEKDAY: lambda start, _n: _next_weekday(start),
}


def coerce_pattern(pattern: RecurrencePattern | str) -> RecurrencePattern:
    """Accept an enum member or its (case-insensitive) name."""
    if isinstance(pattern, RecurrencePattern):
        return pattern
    try:
        return RecurrencePattern(str(pattern).strip().upper())
    except ValueError as exc:
        raise InvalidRuleError(f"Unknown recurrence pattern {pattern!r}", pattern=pattern) from exc


def validate_rule(pattern: RecurrencePattern | str, value: Optional[int]) -> int:
    """Return the effective interval for ``pattern``.

    ``None`` means 1. Value-based patterns reject non-positive values; the value is
    ignored for BI_WEEKLY and the weekday-anchored patterns.
    """
    rule = coerce_pattern(pattern)
    if rule not in VALUE_PATTERNS or value is None:
        return 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRuleError(f"Recurrence value must be an integer, got {value!r}", value=value)
    if value <= 0:
        raise InvalidRuleError(
            f"Recurrence value must be positive for {rule.value}, got {value}",
            pattern=rule.value,
            value=value,
        )
    return value


def advance(pattern: RecurrencePattern | str, value: Optional[int], start: datetime) -> datetime:
    """Return the next occurrence strictly after ``start``. Time of day is preserved."""
    rule = coerce_pattern(pattern)
    interval = validate_rule(rule, value)
    return _STEPS[rule](start, interval)


def occurrences(
    pattern: RecurrencePattern | str,
    value: Optional[int],
    start: datetime,
    count: int,
) -> list[datetime]:
    """The next ``count`` occurrences after ``start`` (for previews)."""
    if count < 0:
        raise ValueError("count must be non-negative")
    result: list[datetime] = []
    cursor = start
    for _ in range(count):
        cursor = advance(pattern, value, cursor)
        result.append(cursor)
    return result


def occurrences_until(
    pattern: RecurrencePattern | str,
    value: Optional[int],
    start: datetime,
    end: datetime,
) -> Iterator[datetime]:
    """Yield ``start`` and every following occurrence up to ``end`` inclusive."""
    cursor = start
    while cursor <= end:
        yield cursor
        cursor = advance(pattern, value, cursor)


__all__ = [
    "VALUE_PATTERNS",
    "advance",
    "coerce_pattern",
    "occurrences",
    "occurrences_until",
    "validate_rule",
]

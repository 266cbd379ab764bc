"""Minute-granularity schedule evaluation.

Schedules use the familiar five-field cron layout
(``minute hour day month weekday``) but only the minute field is evaluated.
Supported minute forms:

- ``*``     every minute
- ``*/N``   every N minutes (minute divisible by N), 1 <= N <= 59
- ``M``     once an hour at minute M, 0 <= M <= 59

The hour, day, month and weekday fields are kept verbatim and ignored.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from ..errors import InvalidScheduleError


EVERY_MINUTE = "every_minute"
INTERVAL = "interval"
AT_MINUTE = "at_minute"


def _truncate_to_minute(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)


class CronSchedule:
    """A parsed schedule descriptor."""

    def __init__(self, expression: str):
        self.expression = str(expression or "").strip()
        parts = self.expression.split()
        if len(parts) != 5:
            raise InvalidScheduleError(
                f"Invalid schedule expression, expected 5 fields: {expression!r}"
            )

        self.minute_field, self.hour_field, self.day_field, self.month_field, self.weekday_field = parts
        self.kind, self.value = self._parse_minute(self.minute_field)

    def _parse_minute(self, field: str) -> tuple[str, int | None]:
        if field == "*":
            return EVERY_MINUTE, None

        if field.startswith("*/"):
            raw = field[2:]
            if not raw.isdigit():
                raise InvalidScheduleError(f"Invalid minute interval: {field!r}")
            interval = int(raw)
            if not 1 <= interval <= 59:
                raise InvalidScheduleError(f"Minute interval must be between 1 and 59: {field!r}")
            return INTERVAL, interval

        if not field.isdigit():
            raise InvalidScheduleError(f"Unsupported minute field: {field!r}")
        minute = int(field)
        if not 0 <= minute <= 59:
            raise InvalidScheduleError(f"Minute must be between 0 and 59: {field!r}")
        return AT_MINUTE, minute

    def is_due(self, moment: datetime) -> bool:
        """Whether the minute of ``moment`` matches this schedule."""
        if self.kind == EVERY_MINUTE:
            return True
        if self.kind == INTERVAL:
            return moment.minute % self.value == 0
        return moment.minute == self.value

    def next_due_time(self, start: datetime) -> datetime:
        """First due time strictly after ``start``, on a whole minute."""
        current = _truncate_to_minute(start)

        if self.kind == EVERY_MINUTE:
            return current + timedelta(minutes=1)

        if self.kind == INTERVAL:
            next_minute = (current.minute // self.value + 1) * self.value
            if next_minute >= 60:
                return current.replace(minute=0) + timedelta(hours=1)
            return current.replace(minute=next_minute)

        if current.minute >= self.value:
            return current.replace(minute=self.value) + timedelta(hours=1)
        return current.replace(minute=self.value)

    def describe(self) -> str:
        if self.kind == EVERY_MINUTE:
            return "every minute"
        if self.kind == INTERVAL:
            return f"every {self.value} minutes"
        return f"hourly at minute {self.value}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CronSchedule):
            return NotImplemented
        return self.expression == other.expression

    def __hash__(self) -> int:
        return hash(self.expression)

    def __repr__(self) -> str:
        return f"CronSchedule({self.expression!r})"

    def __str__(self) -> str:
        return self.expression


def parse_schedule(expression: str) -> CronSchedule:
    return CronSchedule(expression)

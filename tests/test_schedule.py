from __future__ import annotations

from datetime import datetime

import pytest

from servicewatch.errors import InvalidScheduleError
from servicewatch.scheduler.schedule import CronSchedule, parse_schedule


def test_interval_next_due_is_next_multiple_for_every_minute() -> None:
    for interval in range(1, 60):
        schedule = CronSchedule(f"*/{interval} * * * *")
        for minute in range(60):
            start = datetime(2024, 1, 1, 10, minute, 30)
            nxt = schedule.next_due_time(start)

            assert nxt > start
            assert nxt.second == 0 and nxt.microsecond == 0
            expected = (minute // interval + 1) * interval
            if expected < 60:
                assert nxt == datetime(2024, 1, 1, 10, expected)
            else:
                assert nxt == datetime(2024, 1, 1, 11, 0)


def test_interval_examples() -> None:
    schedule = CronSchedule("*/5 * * * *")
    assert schedule.next_due_time(datetime(2024, 1, 1, 10, 2)) == datetime(2024, 1, 1, 10, 5)
    assert schedule.next_due_time(datetime(2024, 1, 1, 10, 5)) == datetime(2024, 1, 1, 10, 10)
    assert schedule.next_due_time(datetime(2024, 1, 1, 10, 57)) == datetime(2024, 1, 1, 11, 0)
    # Rolls over the day
    assert schedule.next_due_time(datetime(2024, 1, 1, 23, 58)) == datetime(2024, 1, 2, 0, 0)


def test_every_minute() -> None:
    schedule = CronSchedule("* * * * *")
    assert schedule.next_due_time(datetime(2024, 1, 1, 10, 7, 59)) == datetime(2024, 1, 1, 10, 8)
    assert schedule.is_due(datetime(2024, 1, 1, 10, 7))
    assert schedule.describe() == "every minute"


def test_exact_minute() -> None:
    schedule = CronSchedule("0 */6 * * *")
    assert schedule.next_due_time(datetime(2024, 1, 1, 10, 0)) == datetime(2024, 1, 1, 11, 0)
    assert schedule.next_due_time(datetime(2024, 1, 1, 10, 30)) == datetime(2024, 1, 1, 11, 0)

    schedule = CronSchedule("15 * * * *")
    assert schedule.next_due_time(datetime(2024, 1, 1, 10, 14, 59)) == datetime(2024, 1, 1, 10, 15)
    assert schedule.next_due_time(datetime(2024, 1, 1, 10, 15)) == datetime(2024, 1, 1, 11, 15)
    assert schedule.is_due(datetime(2024, 1, 1, 3, 15))
    assert not schedule.is_due(datetime(2024, 1, 1, 3, 16))


def test_other_fields_are_kept_but_ignored() -> None:
    schedule = parse_schedule("30 2 * * 1")
    assert (schedule.hour_field, schedule.weekday_field) == ("2", "1")
    # Only the minute field is evaluated
    assert schedule.next_due_time(datetime(2024, 1, 1, 10, 0)) == datetime(2024, 1, 1, 10, 30)


def test_interval_is_due_on_divisible_minutes() -> None:
    schedule = CronSchedule("*/15 * * * *")
    assert [m for m in range(60) if schedule.is_due(datetime(2024, 1, 1, 0, m))] == [0, 15, 30, 45]


@pytest.mark.parametrize(
    "expression",
    [
        "",
        "*/5",
        "*/5 * * *",
        "*/5 * * * * *",
        "*/0 * * * *",
        "*/60 * * * *",
        "*/x * * * *",
        "60 * * * *",
        "-1 * * * *",
        "1-5 * * * *",
        "1,2 * * * *",
    ],
)
def test_invalid_expressions_fail(expression: str) -> None:
    with pytest.raises(InvalidScheduleError):
        CronSchedule(expression)


def test_invalid_schedule_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        CronSchedule("bogus")


def test_equality_follows_expression() -> None:
    assert CronSchedule("*/5 * * * *") == CronSchedule(" */5 * * * * ")
    assert CronSchedule("*/5 * * * *") != CronSchedule("*/10 * * * *")
    assert str(CronSchedule("5 * * * *")) == "5 * * * *"

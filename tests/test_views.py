# tests/test_views.py

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from tasksync.tasks.task_models import SortOption, Task
from tasksync.tasks.views import (
    NO_DATE,
    counts,
    format_display_date,
    is_overdue,
    partition,
    sort_tasks,
)

BASE = datetime(2026, 10, 17, 9, 0, tzinfo=UTC)


def _task(tid: str, *, status: bool = False, created: int | None = 0, due: int | None = None) -> Task:
    return Task(
        id=tid,
        description=f"task {tid}",
        status=status,
        created_at=BASE + timedelta(days=created) if created is not None else None,
        due_date=BASE + timedelta(days=due) if due is not None else None,
    )


def test_partition_keeps_order_and_covers_every_task() -> None:
    tasks = [_task("a"), _task("b", status=True), _task("c"), _task("d", status=True)]

    active, completed = partition(tasks)

    assert [t.id for t in active] == ["a", "c"]
    assert [t.id for t in completed] == ["b", "d"]
    assert counts(tasks) == (2, 2)


def test_sort_by_due_date_puts_missing_last_in_both_directions() -> None:
    tasks = [_task("none", due=None), _task("five", due=5), _task("three", due=3)]

    asc = sort_tasks(tasks, SortOption.DUE_ASC)
    desc = sort_tasks(tasks, SortOption.DUE_DESC)

    assert [t.id for t in asc] == ["three", "five", "none"]
    assert [t.id for t in desc] == ["five", "three", "none"]


def test_sort_by_created_is_stable_for_equal_keys() -> None:
    tasks = [_task("x", created=1), _task("y", created=1), _task("old", created=0)]

    asc = sort_tasks(tasks, SortOption.CREATED_ASC)
    desc = sort_tasks(tasks, SortOption.CREATED_DESC)

    assert [t.id for t in asc] == ["old", "x", "y"]
    assert [t.id for t in desc] == ["x", "y", "old"]


def test_sort_does_not_mutate_input() -> None:
    tasks = [_task("b", created=2), _task("a", created=1)]
    sort_tasks(tasks, SortOption.CREATED_ASC)
    assert [t.id for t in tasks] == ["b", "a"]


def test_format_display_date() -> None:
    ts = datetime(2026, 10, 17, 14, 30, tzinfo=UTC)

    assert format_display_date(ts, tz=UTC) == "Oct 17, 2026, 02:30 PM"
    assert format_display_date(ts, include_time=False, tz=UTC) == "Oct 17, 2026"
    assert format_display_date(None) == NO_DATE == "No date"


def test_format_display_date_converts_to_given_timezone() -> None:
    ts = datetime(2026, 10, 17, 23, 30, tzinfo=UTC)
    plus_two = timezone(timedelta(hours=2))

    assert format_display_date(ts, tz=plus_two) == "Oct 18, 2026, 01:30 AM"


@pytest.mark.parametrize(
    ("due", "status", "expected"),
    [
        (-1, False, True),
        (0, False, False),
        (1, False, False),
        (-1, True, False),
        (None, False, False),
    ],
)
def test_is_overdue(due: int | None, status: bool, expected: bool) -> None:
    task = _task("t", status=status, due=due)
    assert is_overdue(task, BASE) is expected


def test_sort_option_parse() -> None:
    assert SortOption.parse("dueasc") is SortOption.DUE_ASC
    assert SortOption.parse(" createdAsc ") is SortOption.CREATED_ASC
    assert SortOption.parse(None) is SortOption.CREATED_DESC
    assert SortOption.parse("", default=SortOption.DUE_DESC) is SortOption.DUE_DESC
    with pytest.raises(ValueError):
        SortOption.parse("alphabetical")

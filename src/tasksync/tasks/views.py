# src/tasksync/tasks/views.py

"""
Pure projections over the in-memory task list (no I/O, no mutation).

Used by the console shell to render lists; safe to call on any snapshot copy.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, tzinfo

from .task_models import SortOption, Task

NO_DATE = "No date"


def partition(tasks: Iterable[Task]) -> tuple[list[Task], list[Task]]:
    """Split into (active, completed), keeping relative order."""
    active: list[Task] = []
    completed: list[Task] = []
    for t in tasks:
        (completed if t.status else active).append(t)
    return active, completed


def counts(tasks: Iterable[Task]) -> tuple[int, int]:
    active, completed = partition(tasks)
    return len(active), len(completed)


def _sort_key(task: Task, option: SortOption) -> datetime | None:
    if option in (SortOption.CREATED_ASC, SortOption.CREATED_DESC):
        return task.created_at
    return task.due_date


def sort_tasks(tasks: Sequence[Task], option: SortOption) -> list[Task]:
    """
    Sort by creation or due date.

    Tasks without the key always go last, in both directions.
    Equal keys keep their relative order.
    """
    keyed = [t for t in tasks if _sort_key(t, option) is not None]
    missing = [t for t in tasks if _sort_key(t, option) is None]

    descending = option in (SortOption.CREATED_DESC, SortOption.DUE_DESC)
    # list.sort stays stable with reverse=True.
    keyed.sort(key=lambda t: _sort_key(t, option), reverse=descending)  # type: ignore[arg-type, return-value]
    return keyed + missing


def format_display_date(
        ts: datetime | None,
        include_time: bool = True,
        *,
        tz: tzinfo | None = None,
) -> str:
    """
    en-US style display date: "Oct 17, 2026" or "Oct 17, 2026, 02:30 PM".

    Aware datetimes are shown in `tz` (local time when tz is None).
    """
    if ts is None:
        return NO_DATE

    if ts.tzinfo is not None:
        ts = ts.astimezone(tz)

    text = f"{ts:%b} {ts.day}, {ts.year}"
    if include_time:
        text += f", {ts:%I:%M %p}"
    return text


def is_overdue(task: Task, now: datetime) -> bool:
    """Active task whose due date is strictly before `now`."""
    if task.status or task.due_date is None:
        return False
    return task.due_date < now

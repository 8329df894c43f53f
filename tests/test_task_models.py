# tests/test_task_models.py

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from tasksync.tasks.optimistic import MutationKind, MutationPhase, OptimisticMutation
from tasksync.tasks.task_models import (
    decode_profile,
    decode_task,
    encode_new_task,
    encode_profile,
    normalize_due_date,
    to_datetime,
)

CREATED = datetime(2026, 10, 17, 9, 0, tzinfo=UTC)


def test_decode_task_with_missing_optional_fields() -> None:
    task = decode_task("t1", {"description": "Buy milk", "createdAt": CREATED})

    assert task.id == "t1"
    assert task.description == "Buy milk"
    assert task.status is False
    assert task.completed is False
    assert task.created_at == CREATED
    assert task.due_date is None
    assert task.modified_at is None


def test_decode_task_tolerates_empty_document() -> None:
    task = decode_task("t2", {})
    assert task.description == ""
    assert task.status is False
    assert task.created_at is None


def test_encode_new_task_fields() -> None:
    fields = encode_new_task("Buy milk", created_at=CREATED, due_date=None)
    assert fields == {
        "description": "Buy milk",
        "status": False,
        "createdAt": CREATED,
        "dueDate": None,
    }


def test_profile_encode_decode() -> None:
    profile = decode_profile(encode_profile("u@example.com", CREATED))
    assert profile.email == "u@example.com"
    assert profile.created_at == CREATED


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2026-10-17T09:00:00Z", CREATED),
        ("2026-10-17T11:00:00+02:00", CREATED),
        (datetime(2026, 10, 17, 9, 0), CREATED),
        (CREATED.timestamp(), CREATED),
        (None, None),
        ("", None),
        ("not a date", None),
        (True, None),
    ],
)
def test_to_datetime(raw, expected) -> None:
    assert to_datetime(raw) == expected


def test_normalize_due_date_date_only_is_midnight() -> None:
    assert normalize_due_date(date(2026, 10, 20), False, UTC) == datetime(2026, 10, 20, tzinfo=UTC)


def test_normalize_due_date_drops_time_unless_requested() -> None:
    plus_two = timezone(timedelta(hours=2))
    due = datetime(2026, 10, 20, 14, 30, tzinfo=plus_two)

    assert normalize_due_date(due, False) == datetime(2026, 10, 20, 0, 0, tzinfo=plus_two)
    assert normalize_due_date(due, True) == due
    assert normalize_due_date(None, True) is None


def test_optimistic_mutation_transitions() -> None:
    before = decode_task("t1", {"description": "x"})

    ok = OptimisticMutation(MutationKind.TOGGLE, "t1", before=before)
    assert not ok.settled
    ok.confirm()
    assert ok.phase is MutationPhase.CONFIRMED
    assert ok.settled

    failed = OptimisticMutation(MutationKind.DELETE, "t1", before=before)
    failed.roll_back("Error deleting task: boom.")
    assert failed.phase is MutationPhase.ROLLED_BACK
    assert failed.error == "Error deleting task: boom."

    with pytest.raises(RuntimeError):
        failed.confirm()

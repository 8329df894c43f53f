# src/tasksync/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from enum import StrEnum
from typing import Any

from ..core.ports import DocumentData

# Remote field names (camelCase, shared with the web client).
F_DESCRIPTION = "description"
F_STATUS = "status"
F_CREATED_AT = "createdAt"
F_DUE_DATE = "dueDate"
F_MODIFIED_AT = "modifiedAt"
F_EMAIL = "email"


class SortOption(StrEnum):
    CREATED_ASC = "createdAsc"
    CREATED_DESC = "createdDesc"
    DUE_ASC = "dueAsc"
    DUE_DESC = "dueDesc"

    @classmethod
    def parse(cls, raw: str | None, default: SortOption | None = None) -> SortOption:
        """Case-insensitive lookup by value ("dueasc", "createdDesc", ...)."""
        fallback = default or cls.CREATED_DESC
        if not raw:
            return fallback
        wanted = raw.strip().lower()
        for opt in cls:
            if opt.value.lower() == wanted:
                return opt
        raise ValueError(f"Unknown sort option: {raw}")


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    description: str
    status: bool
    created_at: datetime | None
    due_date: datetime | None = None
    modified_at: datetime | None = None

    @property
    def completed(self) -> bool:
        return self.status


@dataclass(frozen=True, slots=True)
class UserProfile:
    email: str | None
    created_at: datetime | None


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_datetime(raw: Any) -> datetime | None:
    """
    Decode a stored timestamp into an aware datetime.

    Accepts datetime objects, RFC 3339 strings and epoch seconds. Naive values
    are taken as UTC. Anything else (including None) decodes to None.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw if raw.tzinfo is not None else raw.replace(tzinfo=UTC)
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return datetime.fromtimestamp(float(raw), UTC)
    if isinstance(raw, str):
        s = raw.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None
        return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)
    return None


def start_of_day(value: date | datetime, tz=None) -> datetime:
    """
    Midnight of the given day.

    A datetime keeps its own timezone; a plain date becomes local midnight
    (or midnight in `tz` when provided).
    """
    if isinstance(value, datetime):
        aware = value if value.tzinfo is not None else value.astimezone()
        return aware.replace(hour=0, minute=0, second=0, microsecond=0)
    if tz is None:
        tz = datetime.now().astimezone().tzinfo
    return datetime.combine(value, time.min, tzinfo=tz)


def normalize_due_date(
        due_date: date | datetime | None,
        include_time: bool,
        tz=None,
) -> datetime | None:
    if due_date is None:
        return None
    if include_time and isinstance(due_date, datetime):
        return due_date if due_date.tzinfo is not None else due_date.astimezone()
    return start_of_day(due_date, tz)


def decode_task(doc_id: str, data: DocumentData) -> Task:
    return Task(
        id=str(doc_id),
        description=str(data.get(F_DESCRIPTION) or ""),
        status=bool(data.get(F_STATUS) or False),
        created_at=to_datetime(data.get(F_CREATED_AT)),
        due_date=to_datetime(data.get(F_DUE_DATE)),
        modified_at=to_datetime(data.get(F_MODIFIED_AT)),
    )


def decode_profile(data: DocumentData) -> UserProfile:
    email = data.get(F_EMAIL)
    return UserProfile(
        email=str(email) if email is not None else None,
        created_at=to_datetime(data.get(F_CREATED_AT)),
    )


def encode_new_task(
        description: str,
        *,
        created_at: datetime,
        due_date: datetime | None,
) -> DocumentData:
    return {
        F_DESCRIPTION: description,
        F_STATUS: False,
        F_CREATED_AT: created_at,
        F_DUE_DATE: due_date,
    }


def encode_profile(email: str | None, created_at: datetime) -> DocumentData:
    return {F_EMAIL: email, F_CREATED_AT: created_at}

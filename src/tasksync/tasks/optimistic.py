# src/tasksync/tasks/optimistic.py

"""
Two-phase optimistic mutations.

A mutation is applied to the local task list first, then submitted remotely:

    APPLIED -> CONFIRMED     (remote call succeeded; the next snapshot agrees)
    APPLIED -> ROLLED_BACK   (remote call failed; local change reverted)

`before` keeps the pre-mutation task so the rollback does not depend on
whatever snapshot arrived in between.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from .task_models import Task


class MutationKind(StrEnum):
    TOGGLE = "toggle"
    DELETE = "delete"


class MutationPhase(StrEnum):
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass(slots=True)
class OptimisticMutation:
    kind: MutationKind
    task_id: str
    before: Task
    phase: MutationPhase = field(default=MutationPhase.APPLIED)
    error: str | None = None

    @property
    def settled(self) -> bool:
        return self.phase is not MutationPhase.APPLIED

    def confirm(self) -> None:
        self._leave_applied(MutationPhase.CONFIRMED)

    def roll_back(self, error: str | None = None) -> None:
        self._leave_applied(MutationPhase.ROLLED_BACK)
        self.error = error

    def _leave_applied(self, target: MutationPhase) -> None:
        if self.phase is not MutationPhase.APPLIED:
            raise RuntimeError(
                f"{self.kind.value} mutation for task {self.task_id} already {self.phase.value}"
            )
        self.phase = target

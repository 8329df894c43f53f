# src/tasksync/core/errors.py

from __future__ import annotations


class TaskSyncError(RuntimeError):
    """Base class for recoverable errors raised by adapters."""


class AuthError(TaskSyncError):
    """Identity provider rejected an operation. The message is user-facing."""


class StoreError(TaskSyncError):
    """
    Document store failure (network, permission, missing document, ...).

    `status_code` is set when the failure came from an HTTP response.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

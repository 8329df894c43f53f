# src/tasksync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The session provider and the task client depend on Protocols instead of concrete
backends. This keeps the identity provider / document store swappable
(in-memory demo, Firebase REST) and makes testing easier.
"""

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

DocumentData = dict[str, Any]
# Raw document fields as stored remotely, e.g. {"description": "...", "status": False}.


@dataclass(frozen=True, slots=True)
class Identity:
    """Authenticated user reference issued by the identity provider."""

    uid: str
    email: str | None
    id_token: str | None = field(default=None, repr=False)
    refresh_token: str | None = field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class DocumentSnapshot:
    id: str
    data: DocumentData


Snapshot = tuple[DocumentSnapshot, ...]
# Full point-in-time listing of one user's task collection.

IdentityCallback = Callable[[Identity | None], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(Protocol):
    """
    Remote authentication service.

    Failures raise AuthError with a human-readable message; nothing is retried here.
    """

    async def sign_in(self, email: str, password: str) -> Identity: ...
    async def sign_up(self, email: str, password: str) -> Identity: ...
    async def sign_out(self) -> None: ...

    def on_identity_change(
            self,
            callback: IdentityCallback,
            on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        """
        Register a listener. The current identity (or None) is delivered right away,
        then every later change. Returns a callable that removes the listener.
        """
        ...


class SnapshotStream(Protocol):
    """
    Live feed of full-collection snapshots.

    Iteration ends with an exception on feed failure. aclose() releases the
    underlying listener and must be safe to call more than once.
    """

    def __aiter__(self) -> AsyncIterator[Snapshot]: ...
    async def __anext__(self) -> Snapshot: ...
    async def aclose(self) -> None: ...


class DocumentStore(Protocol):
    """
    Hierarchical document store: users/{uid} holds the profile,
    users/{uid}/tasks/{task_id} holds the tasks.

    Failures raise StoreError.
    """

    async def get_profile(self, user_id: str) -> DocumentData | None: ...
    async def put_profile(self, user_id: str, data: DocumentData) -> None: ...

    def subscribe(self, user_id: str) -> SnapshotStream: ...

    async def create_task(self, user_id: str, fields: DocumentData) -> str: ...
    async def update_task(self, user_id: str, task_id: str, fields: DocumentData) -> None: ...
    async def delete_task(self, user_id: str, task_id: str) -> None: ...

# src/tasksync/backends/memory.py

"""
In-process identity provider and document store.

Used for offline demo runs (no Firebase configured) and as the base for test
doubles. Behaves like the remote services where the task client can tell:
- ids are assigned by the store,
- every write pushes a fresh full snapshot to that user's subscribers,
- a new subscriber gets the current snapshot right away.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import uuid
from collections.abc import Callable

from ..core.errors import AuthError, StoreError
from ..core.ports import (
    DocumentData,
    DocumentSnapshot,
    ErrorCallback,
    Identity,
    IdentityCallback,
    Snapshot,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _new_id() -> str:
    return uuid.uuid4().hex[:20]


def _hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class InMemoryIdentityProvider:
    def __init__(self) -> None:
        # email (lowercased) -> (uid, email as typed, password hash)
        self._accounts: dict[str, tuple[str, str, str]] = {}
        self._current: Identity | None = None
        self._listeners: list[tuple[IdentityCallback, ErrorCallback | None]] = []

    @property
    def current(self) -> Identity | None:
        return self._current

    async def sign_up(self, email: str, password: str) -> Identity:
        await asyncio.sleep(0)
        email = (email or "").strip()
        if "@" not in email:
            raise AuthError("The email address is badly formatted.")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")
        key = email.lower()
        if key in self._accounts:
            raise AuthError("The email address is already in use by another account.")

        uid = _new_id()
        self._accounts[key] = (uid, email, _hash_password(password))
        logger.info("Account created uid=%s", uid)
        identity = Identity(uid=uid, email=email, id_token=f"local-{uid}")
        self._set_current(identity)
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        await asyncio.sleep(0)
        account = self._accounts.get((email or "").strip().lower())
        if account is None or not hmac.compare_digest(account[2], _hash_password(password or "")):
            raise AuthError("Invalid email or password.")
        uid, stored_email, _ = account
        identity = Identity(uid=uid, email=stored_email, id_token=f"local-{uid}")
        self._set_current(identity)
        return identity

    async def sign_out(self) -> None:
        await asyncio.sleep(0)
        self._set_current(None)

    def on_identity_change(
            self,
            callback: IdentityCallback,
            on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        entry = (callback, on_error)
        self._listeners.append(entry)
        callback(self._current)

        def _remove() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return _remove

    def _set_current(self, identity: Identity | None) -> None:
        self._current = identity
        for callback, _ in list(self._listeners):
            callback(identity)


class QueueSnapshotStream:
    """
    Snapshot stream backed by an asyncio.Queue.

    Queue items are snapshots, exceptions (raised to the consumer, ending the
    feed) or None (end of feed after aclose()).
    """

    def __init__(self, on_close: Callable[[QueueSnapshotStream], None]) -> None:
        self._queue: asyncio.Queue[Snapshot | Exception | None] = asyncio.Queue()
        self._on_close = on_close
        self.closed = False

    def push(self, item: Snapshot | Exception) -> None:
        if not self.closed:
            self._queue.put_nowait(item)

    def __aiter__(self) -> QueueSnapshotStream:
        return self

    async def __anext__(self) -> Snapshot:
        if self.closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._on_close(self)
        self._queue.put_nowait(None)


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._profiles: dict[str, DocumentData] = {}
        # uid -> task_id -> fields (insertion ordered, like a collection listing)
        self._tasks: dict[str, dict[str, DocumentData]] = {}
        self._streams: dict[str, list[QueueSnapshotStream]] = {}

    # ---- inspection helpers ----

    def snapshot(self, user_id: str) -> Snapshot:
        docs = self._tasks.get(user_id, {})
        return tuple(DocumentSnapshot(id=tid, data=dict(data)) for tid, data in docs.items())

    def profile(self, user_id: str) -> DocumentData | None:
        data = self._profiles.get(user_id)
        return dict(data) if data is not None else None

    def subscriber_count(self, user_id: str) -> int:
        return len(self._streams.get(user_id, []))

    # ---- DocumentStore ----

    async def get_profile(self, user_id: str) -> DocumentData | None:
        await asyncio.sleep(0)
        return self.profile(user_id)

    async def put_profile(self, user_id: str, data: DocumentData) -> None:
        await asyncio.sleep(0)
        self._profiles[user_id] = dict(data)

    def subscribe(self, user_id: str) -> QueueSnapshotStream:
        def _remove(stream: QueueSnapshotStream) -> None:
            streams = self._streams.get(user_id, [])
            if stream in streams:
                streams.remove(stream)
            if not streams:
                self._streams.pop(user_id, None)

        stream = QueueSnapshotStream(_remove)
        self._streams.setdefault(user_id, []).append(stream)
        stream.push(self.snapshot(user_id))
        return stream

    async def create_task(self, user_id: str, fields: DocumentData) -> str:
        await asyncio.sleep(0)
        task_id = _new_id()
        self._tasks.setdefault(user_id, {})[task_id] = dict(fields)
        self._publish(user_id)
        return task_id

    async def update_task(self, user_id: str, task_id: str, fields: DocumentData) -> None:
        await asyncio.sleep(0)
        doc = self._tasks.get(user_id, {}).get(task_id)
        if doc is None:
            raise StoreError(
                f"No document to update: users/{user_id}/tasks/{task_id}", status_code=404
            )
        doc.update(fields)
        self._publish(user_id)

    async def delete_task(self, user_id: str, task_id: str) -> None:
        await asyncio.sleep(0)
        # Deleting a missing document is not an error (same as Firestore).
        self._tasks.get(user_id, {}).pop(task_id, None)
        self._publish(user_id)

    def _publish(self, user_id: str) -> None:
        snap = self.snapshot(user_id)
        for stream in list(self._streams.get(user_id, [])):
            stream.push(snap)

# src/tasksync/tasks/task_client.py

"""
Live task client for one identity.

Owns:
- the snapshot subscription to users/{uid}/tasks,
- the in-memory task list (single writer: only this class mutates it),
- a single last-error slot,
- task mutations (toggle/delete are optimistic with rollback; add/edit are not).

State machine:
    UNSUBSCRIBED -> SUBSCRIBING -> LIVE -> UNSUBSCRIBED (stop / identity lost)
    LIVE -> SUBSCRIBING (feed failed, retrying) -> LIVE
    LIVE -> UNSUBSCRIBED (feed failed, retries disabled)

Key invariants:
- every snapshot replaces the whole list (no merging, so no duplicates),
- a feed error keeps the last good list and only sets the error,
- after stop(), late results of in-flight calls never touch local state
  (guarded by a generation counter).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import date, datetime, tzinfo
from enum import StrEnum

from ..core.ports import DocumentStore, Identity, Snapshot, SnapshotStream, Unsubscribe
from .optimistic import MutationKind, OptimisticMutation
from .task_models import (
    F_DESCRIPTION,
    F_MODIFIED_AT,
    F_STATUS,
    Task,
    decode_task,
    encode_new_task,
    encode_profile,
    normalize_due_date,
    utcnow,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[["TaskStoreClient"], None]


class ClientState(StrEnum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    LIVE = "live"


def _describe(exc: BaseException) -> str:
    msg = str(exc).strip().rstrip(".")
    return msg or exc.__class__.__name__


class TaskStoreClient:
    def __init__(
            self,
            store: DocumentStore,
            identity: Identity | None,
            *,
            resubscribe_delay_seconds: float | None = None,
            clock: Callable[[], datetime] = utcnow,
            tz: tzinfo | None = None,
    ) -> None:
        self._store = store
        self._identity = identity
        self._resubscribe_delay = (
            max(0.01, float(resubscribe_delay_seconds)) if resubscribe_delay_seconds else None
        )
        self._clock = clock
        self._tz = tz

        self._tasks: list[Task] = []
        self.error: str | None = None
        self.state = ClientState.UNSUBSCRIBED

        self._stream: SnapshotStream | None = None
        self._feed_task: asyncio.Task[None] | None = None
        self._generation = 0
        self._snapshot_count = 0
        self._updated = asyncio.Event()
        self._listeners: list[ChangeListener] = []

    # ---- read side ----

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def tasks(self) -> list[Task]:
        """Copy of the current list; readers never mutate client state."""
        return list(self._tasks)

    @property
    def snapshot_count(self) -> int:
        return self._snapshot_count

    def get(self, task_id: str) -> Task | None:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def clear_error(self) -> None:
        if self.error is not None:
            self.error = None
            self._notify()

    def add_listener(self, callback: ChangeListener) -> Unsubscribe:
        self._listeners.append(callback)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(callback)

        return _remove

    async def wait_for_snapshot(self, after: int | None = None, timeout: float = 5.0) -> int:
        """
        Wait until more than `after` snapshots were applied (default: the current count).
        Returns the new count. Raises TimeoutError.
        """
        target = self._snapshot_count if after is None else after

        async def _wait() -> None:
            while self._snapshot_count <= target:
                self._updated.clear()
                await self._updated.wait()

        await asyncio.wait_for(_wait(), timeout)
        return self._snapshot_count

    # ---- lifecycle ----

    async def __aenter__(self) -> TaskStoreClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def start(self) -> None:
        ident = self._identity
        if ident is None:
            logger.debug("TaskStoreClient.start without identity; staying unsubscribed")
            return
        if self.state is not ClientState.UNSUBSCRIBED:
            return

        self.state = ClientState.SUBSCRIBING
        gen = self._generation

        # Profile bootstrap and the task feed are independent: a profile failure
        # is reported but the feed is still opened.
        await self.ensure_profile()
        if gen != self._generation:
            return

        if self._open_feed(gen):
            self.state = ClientState.LIVE
            logger.info("Task feed live uid=%s", ident.uid)
        else:
            self.state = ClientState.UNSUBSCRIBED
        self._notify()

    async def stop(self) -> None:
        """Tear down the feed deterministically and clear local state."""
        self._generation += 1

        feed, self._feed_task = self._feed_task, None
        stream, self._stream = self._stream, None

        if feed is not None and not feed.done():
            feed.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await feed

        if stream is not None:
            try:
                await stream.aclose()
            except Exception:
                logger.debug("Snapshot stream close failed.", exc_info=True)

        was_live = self.state is not ClientState.UNSUBSCRIBED
        self._tasks = []
        self.state = ClientState.UNSUBSCRIBED
        if was_live:
            logger.info(
                "Task feed stopped uid=%s",
                self._identity.uid if self._identity else None,
            )
        self._notify()

    async def aclose(self) -> None:
        await self.stop()

    def _open_feed(self, gen: int) -> bool:
        ident = self._identity
        assert ident is not None
        try:
            stream = self._store.subscribe(ident.uid)
        except Exception as e:
            logger.exception("subscribe failed uid=%s", ident.uid)
            self._set_error(f"Error fetching tasks: {_describe(e)}.")
            return False

        self._stream = stream
        self._feed_task = asyncio.create_task(
            self._consume(stream, gen), name=f"tasksync-feed-{ident.uid}"
        )
        return True

    async def _consume(self, stream: SnapshotStream, gen: int) -> None:
        try:
            async for snapshot in stream:
                if gen != self._generation:
                    return
                self._apply_snapshot(snapshot)
            logger.info("Task feed ended by the store")
            return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if gen != self._generation:
                return
            logger.warning("Task feed failed: %s", e, exc_info=True)
            # Keep the last good list; an empty flash would look like data loss.
            self._set_error(f"Error fetching tasks: {_describe(e)}.")

        if self._stream is stream:
            self._stream = None
        try:
            await stream.aclose()
        except Exception:
            logger.debug("Snapshot stream close failed.", exc_info=True)

        if gen != self._generation:
            return
        if self._resubscribe_delay is None:
            # No retries: signing in again (or start()) reopens the feed.
            self.state = ClientState.UNSUBSCRIBED
            self._notify()
            return

        # Reported as SUBSCRIBING until a feed opens again; stop() ends the loop.
        self.state = ClientState.SUBSCRIBING
        self._notify()
        while True:
            await asyncio.sleep(self._resubscribe_delay)
            if gen != self._generation:
                return
            logger.info("Re-opening task feed after %.2fs", self._resubscribe_delay)
            if self._open_feed(gen):
                self.state = ClientState.LIVE
                self._notify()
                return

    def _apply_snapshot(self, snapshot: Snapshot) -> None:
        self._tasks = [decode_task(doc.id, doc.data) for doc in snapshot]
        self.error = None
        self._snapshot_count += 1
        self._updated.set()
        logger.debug("Snapshot #%d applied: %d tasks", self._snapshot_count, len(self._tasks))
        self._notify()

    # ---- profile ----

    async def _ensure_profile_remote(self, ident: Identity) -> None:
        existing = await self._store.get_profile(ident.uid)
        if existing is not None:
            logger.debug("Profile already exists uid=%s", ident.uid)
            return
        logger.info("Creating profile uid=%s", ident.uid)
        await self._store.put_profile(ident.uid, encode_profile(ident.email, self._clock()))

    async def ensure_profile(self) -> bool:
        """Idempotent: creates users/{uid} only if it is missing."""
        ident = self._identity
        if ident is None:
            return False
        gen = self._generation
        try:
            await self._ensure_profile_remote(ident)
            return True
        except Exception as e:
            logger.exception("ensure_profile failed uid=%s", ident.uid)
            if gen == self._generation:
                self._set_error(f"Error setting up user profile: {_describe(e)}.")
            return False

    # ---- mutations ----

    async def add_task(
            self,
            description: str,
            due_date: date | datetime | None = None,
            include_time: bool = False,
    ) -> str | None:
        """
        Create a task remotely. Returns the new id, or None when nothing was created.

        The local list is not touched: the task shows up with the next snapshot.
        """
        ident = self._identity
        text = (description or "").strip()
        if ident is None or not text:
            return None

        gen = self._generation
        try:
            await self._ensure_profile_remote(ident)
            fields = encode_new_task(
                text,
                created_at=self._clock(),
                due_date=normalize_due_date(due_date, include_time, self._tz),
            )
            task_id = await self._store.create_task(ident.uid, fields)
        except Exception as e:
            logger.exception("add_task failed uid=%s", ident.uid)
            if gen == self._generation:
                self._set_error(f"Error adding task: {_describe(e)}.")
            return None

        logger.info("Task added id=%s uid=%s", task_id, ident.uid)
        if gen == self._generation:
            self.clear_error()
        return task_id

    async def update_description(self, task_id: str, text: str) -> bool:
        """Not optimistic: the edit becomes visible with the next snapshot."""
        ident = self._identity
        new_text = (text or "").strip()
        if ident is None or not new_text:
            return False

        gen = self._generation
        try:
            await self._store.update_task(
                ident.uid,
                task_id,
                {F_DESCRIPTION: new_text, F_MODIFIED_AT: self._clock()},
            )
        except Exception as e:
            logger.exception("update_description failed task_id=%s", task_id)
            if gen == self._generation:
                self._set_error(f"Error updating task {task_id}: {_describe(e)}.")
            return False

        if gen == self._generation:
            self.clear_error()
        return True

    async def toggle_status(self, task_id: str) -> OptimisticMutation | None:
        ident = self._identity
        if ident is None:
            return None
        current = self.get(task_id)
        if current is None:
            logger.warning("toggle_status: unknown task_id=%s", task_id)
            return None

        mutation = OptimisticMutation(MutationKind.TOGGLE, task_id, before=current)
        new_status = not current.status
        self._patch_task(task_id, status=new_status)

        gen = self._generation
        try:
            await self._store.update_task(ident.uid, task_id, {F_STATUS: new_status})
        except Exception as e:
            msg = f"Error updating task: {_describe(e)}."
            logger.warning("toggle_status failed task_id=%s: %s", task_id, e)
            mutation.roll_back(msg)
            if gen == self._generation:
                self._patch_task(task_id, status=current.status)
                self._set_error(msg)
            return mutation

        mutation.confirm()
        if gen == self._generation:
            self.clear_error()
        return mutation

    async def delete_task(self, task_id: str) -> OptimisticMutation | None:
        ident = self._identity
        if ident is None:
            return None
        current = self.get(task_id)
        if current is None:
            logger.warning("delete_task: unknown task_id=%s", task_id)
            return None

        mutation = OptimisticMutation(MutationKind.DELETE, task_id, before=current)
        self._tasks = [t for t in self._tasks if t.id != task_id]
        self._notify()

        gen = self._generation
        try:
            await self._store.delete_task(ident.uid, task_id)
        except Exception as e:
            msg = f"Error deleting task: {_describe(e)}."
            logger.warning("delete_task failed task_id=%s: %s", task_id, e)
            mutation.roll_back(msg)
            if gen == self._generation:
                # Appended, not re-sorted; a snapshot may already have restored it.
                if self.get(task_id) is None:
                    self._tasks.append(current)
                self._set_error(msg)
            return mutation

        mutation.confirm()
        if gen == self._generation:
            self.clear_error()
        return mutation

    # ---- helpers ----

    def _patch_task(self, task_id: str, **changes: object) -> None:
        self._tasks = [replace(t, **changes) if t.id == task_id else t for t in self._tasks]  # type: ignore[arg-type]
        self._notify()

    def _set_error(self, message: str) -> None:
        self.error = message
        self._notify()

    def _notify(self) -> None:
        for cb in list(self._listeners):
            try:
                cb(self)
            except Exception:
                logger.exception("Task client listener failed")

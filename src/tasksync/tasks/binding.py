# src/tasksync/tasks/binding.py

"""
Binds the session's identity to a TaskStoreClient.

One client per identity: a new uid stops the previous client and starts a
fresh one; sign-out stops and drops it (list cleared, feed released).
Rebinds run one at a time in arrival order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..core.ports import Identity, Unsubscribe
from ..session.provider import SessionProvider
from .task_client import ClientState, TaskStoreClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Identity], TaskStoreClient]


class TaskClientBinding:
    def __init__(self, session: SessionProvider, client_factory: ClientFactory) -> None:
        self._session = session
        self._factory = client_factory
        self.client: TaskStoreClient | None = None

        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task[None]] = set()
        self._unsubscribe: Unsubscribe | None = None

    def start(self) -> None:
        """Follow identity changes; binds the current identity right away."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._session.add_listener(self._on_identity)
        if self._session.current_user is not None:
            self._on_identity(self._session.current_user)

    def _on_identity(self, identity: Identity | None) -> None:
        task = asyncio.get_running_loop().create_task(self._rebind(identity))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _rebind(self, identity: Identity | None) -> None:
        async with self._lock:
            current = self.client
            if current is not None and identity is not None and current.identity is not None:
                # A client whose feed never opened is rebuilt, so signing in again retries.
                if (
                        current.identity.uid == identity.uid
                        and current.state is not ClientState.UNSUBSCRIBED
                ):
                    return

            if current is not None:
                self.client = None
                await current.aclose()

            if identity is None:
                return

            client = self._factory(identity)
            self.client = client
            try:
                await client.start()
            except Exception:
                logger.exception("Task client start failed uid=%s", identity.uid)

    async def wait_idle(self) -> None:
        """Wait for queued rebinds (including ones queued while waiting)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()
        await self.wait_idle()
        async with self._lock:
            client, self.client = self.client, None
            if client is not None:
                await client.aclose()

# src/tasksync/session/provider.py

"""
Session provider: observable wrapper around an IdentityProvider.

Exposes current_user / is_loading / last_error for the shell and lets other
components (the task client binding) follow identity changes explicitly
instead of reading an ambient global.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from ..core.ports import Identity, IdentityCallback, IdentityProvider, Unsubscribe

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionProvider:
    def __init__(self, identity_provider: IdentityProvider) -> None:
        self._provider = identity_provider
        self.current_user: Identity | None = None
        self.is_loading = True
        self.last_error: str | None = None

        self._unsubscribe: Unsubscribe | None = None
        self._listeners: list[IdentityCallback] = []

    async def __aenter__(self) -> SessionProvider:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def start(self) -> None:
        """Subscribe to identity changes (the provider reports the initial identity)."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._provider.on_identity_change(
            self._on_identity, self._on_identity_error
        )

    def close(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    def add_listener(self, callback: IdentityCallback) -> Unsubscribe:
        self._listeners.append(callback)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(callback)

        return _remove

    # ---- provider callbacks ----

    def _on_identity(self, identity: Identity | None) -> None:
        prev = self.current_user
        self.current_user = identity
        self.is_loading = False
        self.last_error = None

        if (prev.uid if prev else None) != (identity.uid if identity else None):
            logger.info("Identity changed: %s", identity.email if identity else "<signed out>")

        for cb in list(self._listeners):
            try:
                cb(identity)
            except Exception:
                logger.exception("Identity listener failed")

    def _on_identity_error(self, exc: Exception) -> None:
        logger.error("Identity state error: %s", exc)
        self.last_error = str(exc)
        self.is_loading = False

    # ---- operations ----

    async def _run(self, op: Callable[[], Awaitable[T]]) -> T:
        self.is_loading = True
        try:
            result = await op()
            self.last_error = None
            return result
        except Exception as e:
            self.last_error = str(e)
            raise
        finally:
            self.is_loading = False

    async def sign_in(self, email: str, password: str) -> Identity:
        return await self._run(lambda: self._provider.sign_in(email, password))

    async def sign_up(self, email: str, password: str) -> Identity:
        return await self._run(lambda: self._provider.sign_up(email, password))

    async def sign_out(self) -> None:
        await self._run(self._provider.sign_out)

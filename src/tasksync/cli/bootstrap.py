# src/tasksync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- picks the backend (Firebase REST or in-memory offline demo),
- wires the session provider, the task client factory and the binding into AppState,
- starts and shuts everything down in order.
"""

from __future__ import annotations

import logging

import httpx

from ..backends.firebase import FirebaseAuthProvider, FirestoreDocumentStore, make_timeout
from ..backends.memory import InMemoryDocumentStore, InMemoryIdentityProvider
from ..config import BACKEND_FIREBASE, BACKEND_MEMORY, get_settings
from ..core.ports import DocumentStore, Identity, IdentityProvider
from ..core.state import AppState
from ..session.provider import SessionProvider
from ..tasks.binding import TaskClientBinding
from ..tasks.task_client import TaskStoreClient
from ..tasks.task_models import SortOption

logger = logging.getLogger(__name__)


def build_backends(settings) -> tuple[IdentityProvider, DocumentStore, httpx.AsyncClient | None]:
    """
    Build (identity provider, document store, shared http client) for settings.backend.

    Raises RuntimeError when the firebase backend is selected but not configured.
    """
    backend = str(getattr(settings, "backend", BACKEND_MEMORY)).lower()

    if backend == BACKEND_FIREBASE:
        # Check before opening the HTTP client so a misconfiguration leaks nothing.
        if not settings.firebase_api_key:
            raise RuntimeError("Firebase API key is not set. Set TASKSYNC_FIREBASE_API_KEY in your .env.")
        if not settings.firebase_project_id:
            raise RuntimeError(
                "Firebase project id is not set. Set TASKSYNC_FIREBASE_PROJECT_ID in your .env."
            )

        http = httpx.AsyncClient(
            timeout=make_timeout(
                connect_s=settings.http_connect_timeout_seconds,
                read_s=settings.http_read_timeout_seconds,
            )
        )
        auth = FirebaseAuthProvider(http, settings.firebase_api_key)
        store = FirestoreDocumentStore(
            http,
            settings.firebase_project_id,
            auth.get_id_token,
            poll_interval_seconds=settings.poll_interval_seconds,
        )
        return auth, store, http

    if backend != BACKEND_MEMORY:
        logger.warning("Unknown backend %r; using the in-memory backend.", backend)
    return InMemoryIdentityProvider(), InMemoryDocumentStore(), None


def create_initial_state(
        *,
        settings=None,
        identity_provider: IdentityProvider | None = None,
        document_store: DocumentStore | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings and backends injectable makes the app easier to test and
    avoids hidden global reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    http: httpx.AsyncClient | None = None
    if identity_provider is None or document_store is None:
        try:
            identity_provider, document_store, http = build_backends(settings)
        except RuntimeError as e:
            # Fallback for demos / local runs without external services.
            logger.warning("%s Falling back to the offline in-memory backend.", e)
            identity_provider, document_store = InMemoryIdentityProvider(), InMemoryDocumentStore()

    store = document_store
    resubscribe_delay = getattr(settings, "resubscribe_delay_seconds", None)

    def _client_factory(identity: Identity) -> TaskStoreClient:
        return TaskStoreClient(store, identity, resubscribe_delay_seconds=resubscribe_delay)

    session = SessionProvider(identity_provider)
    binding = TaskClientBinding(session, _client_factory)

    try:
        sort_option = SortOption.parse(getattr(settings, "default_sort", None))
    except ValueError:
        logger.warning("Invalid default sort %r; using createdDesc.", settings.default_sort)
        sort_option = SortOption.CREATED_DESC

    return AppState(
        settings=settings,
        session=session,
        binding=binding,
        sort_option=sort_option,
        show_completed=bool(getattr(settings, "show_completed", True)),
        http=http,
    )


async def start_state(state: AppState) -> None:
    """Resolve the initial identity and bind a task client to it (if signed in)."""
    state.session.start()
    state.binding.start()
    await state.binding.wait_idle()


async def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.binding.aclose()
    except Exception:
        logger.exception("Task client shutdown failed.")

    try:
        state.session.close()
    except Exception:
        logger.debug("Session close failed.", exc_info=True)

    if state.http is not None:
        try:
            await state.http.aclose()
        except Exception:
            logger.debug("HTTP client close failed.", exc_info=True)

# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasksync.backends.memory import InMemoryIdentityProvider
from tasksync.cli.bootstrap import create_initial_state
from tasksync.core.ports import Identity
from tasksync.core.state import AppState

from .fakes import FakeDocumentStore, FixedClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's .env.
    """
    return SimpleNamespace(
        app_name="tasksync-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        backend="memory",
        firebase_api_key=None,
        firebase_project_id=None,
        http_connect_timeout_seconds=1.0,
        http_read_timeout_seconds=1.0,
        poll_interval_seconds=0.25,
        resubscribe_delay_seconds=None,
        default_sort="createdAsc",
        show_completed=True,
    )


@pytest.fixture()
def store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture()
def identity_provider() -> InMemoryIdentityProvider:
    return InMemoryIdentityProvider()


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def identity() -> Identity:
    return Identity(uid="u1", email="u@example.com")


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    identity_provider: InMemoryIdentityProvider,
    store: FakeDocumentStore,
) -> AppState:
    """AppState wired with the in-memory identity provider and the fake store."""
    return create_initial_state(
        settings=settings,
        identity_provider=identity_provider,
        document_store=store,
    )

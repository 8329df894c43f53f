# tests/test_config.py

from __future__ import annotations

from pathlib import Path

import pytest

from tasksync.backends.firebase import FirebaseAuthProvider
from tasksync.backends.memory import InMemoryIdentityProvider
from tasksync.cli.bootstrap import build_backends, create_initial_state
from tasksync.config import BACKEND_FIREBASE, BACKEND_MEMORY, Settings
from tasksync.tasks.task_models import SortOption

_VARS = (
    "TASKSYNC_BACKEND",
    "TASKSYNC_FIREBASE_API_KEY",
    "TASKSYNC_FIREBASE_PROJECT_ID",
    "FIREBASE_API_KEY",
    "FIREBASE_PROJECT_ID",
    "TASKSYNC_POLL_INTERVAL_SECONDS",
    "TASKSYNC_RESUBSCRIBE_DELAY_SECONDS",
    "TASKSYNC_SHOW_COMPLETED",
    "TASKSYNC_DATA_DIR",
    "TASKSYNC_DEFAULT_SORT",
)


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults_use_memory_backend(clean_env) -> None:
    s = Settings.from_env()
    assert s.backend == BACKEND_MEMORY
    assert s.firebase_api_key is None
    assert s.poll_interval_seconds == 2.0
    assert s.resubscribe_delay_seconds == 5.0
    assert s.show_completed is True
    assert s.default_sort == "createdDesc"
    assert s.data_dir == Path(".local/tasksync")


def test_firebase_selected_when_configured(clean_env) -> None:
    clean_env.setenv("FIREBASE_API_KEY", "key")
    clean_env.setenv("TASKSYNC_FIREBASE_PROJECT_ID", "demo")
    s = Settings.from_env()
    assert s.backend == BACKEND_FIREBASE
    assert s.firebase_api_key == "key"
    assert s.firebase_project_id == "demo"


def test_env_overrides(clean_env) -> None:
    clean_env.setenv("TASKSYNC_POLL_INTERVAL_SECONDS", "0.01")
    clean_env.setenv("TASKSYNC_RESUBSCRIBE_DELAY_SECONDS", "0")
    clean_env.setenv("TASKSYNC_SHOW_COMPLETED", "off")
    s = Settings.from_env()
    assert s.poll_interval_seconds == 0.25
    assert s.resubscribe_delay_seconds is None
    assert s.show_completed is False


def test_unconfigured_firebase_falls_back_to_memory(settings) -> None:
    settings.backend = BACKEND_FIREBASE

    with pytest.raises(RuntimeError):
        build_backends(settings)

    state = create_initial_state(settings=settings)
    assert isinstance(state.session._provider, InMemoryIdentityProvider)
    assert state.http is None


@pytest.mark.asyncio
async def test_firebase_backends_share_one_http_client(settings) -> None:
    settings.backend = BACKEND_FIREBASE
    settings.firebase_api_key = "key"
    settings.firebase_project_id = "demo"

    auth, store, http = build_backends(settings)
    try:
        assert isinstance(auth, FirebaseAuthProvider)
        assert http is not None
    finally:
        await http.aclose()


def test_invalid_default_sort_falls_back(settings, identity_provider, store) -> None:
    settings.default_sort = "alphabetical"
    state = create_initial_state(
        settings=settings, identity_provider=identity_provider, document_store=store
    )
    assert state.sort_option is SortOption.CREATED_DESC

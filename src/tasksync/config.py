# src/tasksync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (Firebase keys are only checked when the
  firebase backend is built).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKSYNC"

BACKEND_MEMORY = "memory"
BACKEND_FIREBASE = "firebase"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_optional_seconds(name: str, default: float | None) -> float | None:
    """Empty or non-positive disables the feature (None)."""
    raw = os.getenv(name)
    if raw is None:
        return default
    if raw.strip() == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else None


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Backend selection ----
    backend: str

    # ---- Firebase ----
    firebase_api_key: str | None
    firebase_project_id: str | None

    # ---- HTTP / live feed ----
    http_connect_timeout_seconds: float
    http_read_timeout_seconds: float
    poll_interval_seconds: float
    resubscribe_delay_seconds: float | None

    # ---- Presentation defaults ----
    default_sort: str
    show_completed: bool

    @staticmethod
    def from_env() -> Settings:
        app_name = _env(_k("APP_NAME"), "tasksync") or "tasksync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasksync"))

        firebase_api_key = _first_env(_k("FIREBASE_API_KEY"), "FIREBASE_API_KEY", default=None)
        firebase_project_id = _first_env(
            _k("FIREBASE_PROJECT_ID"), "FIREBASE_PROJECT_ID", default=None
        )

        # Without explicit choice: firebase when configured, offline memory backend otherwise.
        default_backend = (
            BACKEND_FIREBASE if firebase_api_key and firebase_project_id else BACKEND_MEMORY
        )
        backend = _env(_k("BACKEND"), default_backend).strip().lower() or default_backend

        connect_timeout = _env_float(_k("HTTP_CONNECT_TIMEOUT_SECONDS"), 5.0)
        read_timeout = _env_float(_k("HTTP_READ_TIMEOUT_SECONDS"), 15.0)

        poll_interval = max(0.25, _env_float(_k("POLL_INTERVAL_SECONDS"), 2.0))
        resubscribe_delay = _env_optional_seconds(_k("RESUBSCRIBE_DELAY_SECONDS"), 5.0)

        default_sort = _env(_k("DEFAULT_SORT"), "createdDesc").strip() or "createdDesc"
        show_completed = _env_bool(_k("SHOW_COMPLETED"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            backend=backend,
            firebase_api_key=firebase_api_key,
            firebase_project_id=firebase_project_id,
            http_connect_timeout_seconds=connect_timeout,
            http_read_timeout_seconds=read_timeout,
            poll_interval_seconds=poll_interval,
            resubscribe_delay_seconds=resubscribe_delay,
            default_sort=default_sort,
            show_completed=show_completed,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS

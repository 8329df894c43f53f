# src/tasksync/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from ..session.provider import SessionProvider
from ..tasks.binding import TaskClientBinding
from ..tasks.task_client import TaskStoreClient
from ..tasks.task_models import SortOption


@dataclass
class AppState:
    # Store Settings on the state for easy access in commands.
    settings: Any

    session: SessionProvider
    binding: TaskClientBinding

    sort_option: SortOption = SortOption.CREATED_DESC
    show_completed: bool = True

    # Task ids in the order of the last /list output (1-based numbers in the UI).
    listing: list[str] = field(default_factory=list)

    # Shared HTTP client of the firebase backend (None for the memory backend).
    http: httpx.AsyncClient | None = None

    @property
    def tasks(self) -> TaskStoreClient | None:
        """Task client of the signed-in identity, if any."""
        return self.binding.client

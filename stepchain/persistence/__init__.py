"""Persistence layer for stepchain workflows, history and preferences."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from ..config import StepchainConfig, load_config
from .inmemory import (
    InMemoryExecutionHistoryRepository,
    InMemoryPreferencesRepository,
    InMemoryWorkflowRepository,
)
from .models import ExecutionHistory, HistoryStepResult, ThemePreference, UserPreferences
from .repository import (
    ExecutionHistoryRepository,
    PreferencesRepository,
    WorkflowRepository,
)
from .sqlite import (
    SQLiteDatabase,
    SQLiteExecutionHistoryRepository,
    SQLitePreferencesRepository,
    SQLiteWorkflowRepository,
)


@dataclass
class Repositories:
    """The three repositories backed by the same store."""

    workflows: WorkflowRepository
    history: ExecutionHistoryRepository
    preferences: PreferencesRepository

    @classmethod
    def in_memory(cls) -> "Repositories":
        return cls(
            workflows=InMemoryWorkflowRepository(),
            history=InMemoryExecutionHistoryRepository(),
            preferences=InMemoryPreferencesRepository(),
        )

    @classmethod
    def sqlite(cls, path: str) -> "Repositories":
        db = SQLiteDatabase(path)
        return cls(
            workflows=SQLiteWorkflowRepository(db),
            history=SQLiteExecutionHistoryRepository(db),
            preferences=SQLitePreferencesRepository(db),
        )


_repositories_instance: Repositories | None = None


def get_repositories(
    database_url: Optional[str] = None, config: Optional[StepchainConfig] = None
) -> Repositories:
    """Factory function to obtain the repositories.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``STEPCHAIN_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, in-memory repositories are returned.
    """

    global _repositories_instance
    if _repositories_instance is not None and database_url is None and config is None:
        return _repositories_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("STEPCHAIN_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        _repositories_instance = Repositories.in_memory()
        return _repositories_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repositories_instance = Repositories.sqlite(path)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repositories_instance


__all__ = [
    "ExecutionHistory",
    "ExecutionHistoryRepository",
    "HistoryStepResult",
    "InMemoryExecutionHistoryRepository",
    "InMemoryPreferencesRepository",
    "InMemoryWorkflowRepository",
    "PreferencesRepository",
    "Repositories",
    "SQLiteDatabase",
    "SQLiteExecutionHistoryRepository",
    "SQLitePreferencesRepository",
    "SQLiteWorkflowRepository",
    "ThemePreference",
    "UserPreferences",
    "WorkflowRepository",
    "get_repositories",
]

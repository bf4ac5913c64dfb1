"""Repository abstractions for workflows, run history and preferences."""

from __future__ import annotations

import uuid
from typing import Protocol

from ..contracts import Workflow
from .models import ExecutionHistory, UserPreferences


class WorkflowRepository(Protocol):
    """Protocol for workflow storage backends."""

    async def fetch_all(self) -> list[Workflow]:
        """Return all workflows, most recently modified first."""

    async def fetch(self, workflow_id: uuid.UUID) -> Workflow | None:
        """Retrieve a workflow by id."""

    async def save(self, workflow: Workflow) -> None:
        """Insert or replace ``workflow`` and its steps."""

    async def delete(self, workflow: Workflow) -> None:
        """Delete ``workflow`` together with its steps."""

    async def fetch_favorites(self) -> list[Workflow]:
        """Return favorite workflows sorted by name."""

    async def search(self, query: str) -> list[Workflow]:
        """Return workflows whose name contains ``query``."""


class ExecutionHistoryRepository(Protocol):
    """Protocol for run history storage backends."""

    async def fetch_all(self) -> list[ExecutionHistory]:
        """Return every record, newest first."""

    async def fetch_for_workflow(self, workflow_id: uuid.UUID) -> list[ExecutionHistory]:
        """Return records of one workflow, newest first."""

    async def fetch(self, history_id: uuid.UUID) -> ExecutionHistory | None:
        """Retrieve a single record by id."""

    async def save(self, history: ExecutionHistory) -> None:
        """Persist a new record."""

    async def delete(self, history: ExecutionHistory) -> None:
        """Delete a single record."""

    async def delete_all(self) -> None:
        """Delete every record."""

    async def fetch_recent(self, limit: int) -> list[ExecutionHistory]:
        """Return at most ``limit`` newest records."""


class PreferencesRepository(Protocol):
    """Protocol for user preferences storage backends."""

    async def fetch(self) -> UserPreferences:
        """Return stored preferences or raise ``PreferencesNotFoundError``."""

    async def save(self, preferences: UserPreferences) -> None:
        """Persist ``preferences``."""

    async def get_or_create(self) -> UserPreferences:
        """Return stored preferences, creating defaults on first use."""

"""In-memory implementations of the repositories."""

from __future__ import annotations

import uuid
from typing import Dict, Optional

from ..contracts import Workflow
from ..errors import PreferencesNotFoundError
from .models import ExecutionHistory, UserPreferences
from .repository import (
    ExecutionHistoryRepository,
    PreferencesRepository,
    WorkflowRepository,
)


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflows in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._workflows: Dict[uuid.UUID, Workflow] = {}

    async def fetch_all(self) -> list[Workflow]:
        return sorted(
            self._workflows.values(), key=lambda wf: wf.modified_at, reverse=True
        )

    async def fetch(self, workflow_id: uuid.UUID) -> Workflow | None:
        return self._workflows.get(workflow_id)

    async def save(self, workflow: Workflow) -> None:
        workflow.touch()
        for step in workflow.steps:
            step.workflow_id = workflow.id
        self._workflows[workflow.id] = workflow

    async def delete(self, workflow: Workflow) -> None:
        # steps live on the workflow object and go with it
        self._workflows.pop(workflow.id, None)

    async def fetch_favorites(self) -> list[Workflow]:
        return sorted(
            (wf for wf in self._workflows.values() if wf.is_favorite),
            key=lambda wf: wf.name,
        )

    async def search(self, query: str) -> list[Workflow]:
        needle = query.casefold()
        return [wf for wf in await self.fetch_all() if needle in wf.name.casefold()]


class InMemoryExecutionHistoryRepository(ExecutionHistoryRepository):
    def __init__(self) -> None:
        self._records: Dict[uuid.UUID, ExecutionHistory] = {}

    async def fetch_all(self) -> list[ExecutionHistory]:
        return sorted(
            self._records.values(), key=lambda record: record.executed_at, reverse=True
        )

    async def fetch_for_workflow(self, workflow_id: uuid.UUID) -> list[ExecutionHistory]:
        return [
            record for record in await self.fetch_all() if record.workflow_id == workflow_id
        ]

    async def fetch(self, history_id: uuid.UUID) -> ExecutionHistory | None:
        return self._records.get(history_id)

    async def save(self, history: ExecutionHistory) -> None:
        self._records[history.id] = history

    async def delete(self, history: ExecutionHistory) -> None:
        self._records.pop(history.id, None)

    async def delete_all(self) -> None:
        self._records.clear()

    async def fetch_recent(self, limit: int) -> list[ExecutionHistory]:
        return (await self.fetch_all())[: max(limit, 0)]


class InMemoryPreferencesRepository(PreferencesRepository):
    def __init__(self) -> None:
        self._preferences: Optional[UserPreferences] = None

    async def fetch(self) -> UserPreferences:
        if self._preferences is None:
            raise PreferencesNotFoundError()
        return self._preferences

    async def save(self, preferences: UserPreferences) -> None:
        preferences.touch()
        self._preferences = preferences

    async def get_or_create(self) -> UserPreferences:
        try:
            return await self.fetch()
        except PreferencesNotFoundError:
            preferences = UserPreferences()
            await self.save(preferences)
            return preferences

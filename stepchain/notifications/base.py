"""Base interface for live progress notifications."""

from __future__ import annotations

import abc
import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from ..contracts import utcnow


class ActivityStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class NotificationState(BaseModel):
    """Snapshot of what a live notification currently displays."""

    workflow_name: str
    workflow_id: uuid.UUID
    total_steps: int
    current_step_index: int = 0
    current_step_name: str = "Starting..."
    current_output: str = ""
    status: ActivityStatus = ActivityStatus.RUNNING
    progress: float = 0.0
    elapsed_time: float = 0.0
    updated_at: datetime = Field(default_factory=utcnow)


class BaseNotifier(metaclass=abc.ABCMeta):
    """Abstract live progress surface for a running workflow.

    Callers treat every method as best-effort; implementations may raise and
    the run carries on regardless.
    """

    def are_enabled(self) -> bool:
        """Whether notifications can be shown at all (enabled by default)."""
        return True

    @abc.abstractmethod
    async def start(
        self, workflow_name: str, workflow_id: uuid.UUID, total_steps: int
    ) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def update(
        self,
        step_index: int,
        step_name: str,
        output: str,
        progress: float,
        elapsed: float,
    ) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def end(
        self,
        final_output: str = "",
        status: ActivityStatus = ActivityStatus.COMPLETED,
        elapsed: float = 0.0,
    ) -> None:
        raise NotImplementedError

    async def cancel(self) -> None:
        """Show the cancelled state and end the notification."""
        await self.end(status=ActivityStatus.CANCELLED)


class NullNotifier(BaseNotifier):
    """Notifier that never shows anything."""

    def are_enabled(self) -> bool:
        return False

    async def start(self, workflow_name, workflow_id, total_steps) -> None:
        pass

    async def update(self, step_index, step_name, output, progress, elapsed) -> None:
        pass

    async def end(self, final_output="", status=ActivityStatus.COMPLETED, elapsed=0.0) -> None:
        pass

"""In-memory notifier for testing."""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from .base import ActivityStatus, BaseNotifier, NotificationState

logger = logging.getLogger(__name__)


class InMemoryNotifier(BaseNotifier):
    """Keep every displayed state in a list instead of showing it."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.current: Optional[NotificationState] = None
        self.history: List[NotificationState] = []

    def are_enabled(self) -> bool:
        return self.enabled

    def _record(self, state: NotificationState) -> None:
        self.current = state
        self.history.append(state)

    async def start(
        self, workflow_name: str, workflow_id: uuid.UUID, total_steps: int
    ) -> None:
        await self.end()
        self._record(
            NotificationState(
                workflow_name=workflow_name,
                workflow_id=workflow_id,
                total_steps=total_steps,
            )
        )

    async def update(
        self,
        step_index: int,
        step_name: str,
        output: str,
        progress: float,
        elapsed: float,
    ) -> None:
        if self.current is None:
            logger.warning("No active notification to update")
            return
        self._record(
            self.current.model_copy(
                update={
                    "current_step_index": step_index,
                    "current_step_name": step_name,
                    "current_output": output,
                    "progress": progress,
                    "elapsed_time": elapsed,
                }
            )
        )

    async def end(
        self,
        final_output: str = "",
        status: ActivityStatus = ActivityStatus.COMPLETED,
        elapsed: float = 0.0,
    ) -> None:
        if self.current is None:
            return
        self._record(
            self.current.model_copy(
                update={
                    "current_step_index": self.current.total_steps - 1,
                    "current_step_name": status.value,
                    "current_output": final_output,
                    "status": status,
                    "progress": 1.0,
                    "elapsed_time": elapsed,
                }
            )
        )
        self.current = None

    @property
    def statuses(self) -> List[ActivityStatus]:
        return [state.status for state in self.history]

"""Data models for persisted run history and user preferences."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..constants import MAX_WIDGET_SELECTIONS
from ..contracts import (
    ExecutionStatus,
    StepExecutionResult,
    WorkflowExecutionResult,
    utcnow,
)

logger = logging.getLogger(__name__)


class HistoryStepResult(BaseModel):
    """Per-step summary kept inside a history record."""

    step_name: str
    output: str
    duration: float


_step_results_adapter = TypeAdapter(List[HistoryStepResult])


class ExecutionHistory(BaseModel):
    """Denormalized snapshot of a finished or failed run.

    Only the workflow's id and name are copied, so the record outlives later
    edits or deletion of the workflow.
    """

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    workflow_id: uuid.UUID
    workflow_name: str
    executed_at: datetime = Field(default_factory=utcnow)
    duration: float = 0.0
    status: str
    input_text: str
    output_text: str
    step_results: List[HistoryStepResult] = Field(default_factory=list)

    @property
    def execution_status(self) -> Optional[ExecutionStatus]:
        try:
            return ExecutionStatus(self.status)
        except ValueError:
            return None

    @property
    def step_results_json(self) -> str:
        return _step_results_adapter.dump_json(self.step_results).decode()

    @staticmethod
    def decode_step_results(raw: Optional[str]) -> List[HistoryStepResult]:
        if not raw:
            return []
        try:
            return _step_results_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable step results: {e}")
            return []

    @classmethod
    def from_result(
        cls,
        result: WorkflowExecutionResult,
        step_results: Optional[Sequence[StepExecutionResult]] = None,
    ) -> "ExecutionHistory":
        collected = result.step_results if step_results is None else step_results
        return cls(
            workflow_id=result.workflow.id,
            workflow_name=result.workflow.name,
            executed_at=result.started_at,
            duration=result.total_duration,
            status=result.status.value,
            input_text=result.input_text,
            output_text=result.final_output,
            step_results=[
                HistoryStepResult(
                    step_name=step_result.step.display_name,
                    output=step_result.output,
                    duration=step_result.duration,
                )
                for step_result in collected
            ],
        )


class ThemePreference(str, Enum):
    LIGHT = "Light"
    DARK = "Dark"
    SYSTEM = "System"


class UserPreferences(BaseModel):
    """Single-row user settings."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    default_workflow_id: Optional[uuid.UUID] = None
    theme_preference: str = ThemePreference.SYSTEM.value
    widget_selections: List[uuid.UUID] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    modified_at: datetime = Field(default_factory=utcnow)

    @property
    def theme(self) -> ThemePreference:
        try:
            return ThemePreference(self.theme_preference)
        except ValueError:
            return ThemePreference.SYSTEM

    def touch(self) -> None:
        self.modified_at = utcnow()

    def set_theme(self, theme: ThemePreference) -> None:
        self.theme_preference = theme.value
        self.touch()

    def set_widget_selections(self, workflow_ids: Sequence[uuid.UUID]) -> None:
        self.widget_selections = list(workflow_ids)
        self.touch()

    def add_widget_selection(self, workflow_id: uuid.UUID) -> bool:
        """Add ``workflow_id`` unless present or the limit is reached."""
        if (
            workflow_id in self.widget_selections
            or len(self.widget_selections) >= MAX_WIDGET_SELECTIONS
        ):
            return False
        self.set_widget_selections([*self.widget_selections, workflow_id])
        return True

    def remove_widget_selection(self, workflow_id: uuid.UUID) -> None:
        self.set_widget_selections(
            [selected for selected in self.widget_selections if selected != workflow_id]
        )

"""Core data contracts for stepchain workflows."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    MAX_TEMPERATURE,
    MAX_TOKENS_LIMIT,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepType(str, Enum):
    """Kinds of transformation a step can apply."""

    SUMMARIZE = "Summarize"
    TRANSLATE = "Translate"
    EXTRACT = "Extract Information"
    REWRITE = "Rewrite"
    ANALYZE = "Analyze"
    CUSTOM = "Custom"

    @property
    def system_prompt(self) -> str:
        return _SYSTEM_PROMPTS[self]

    @classmethod
    def parse(cls, raw: Any) -> Optional["StepType"]:
        """Return the matching member, or ``None`` for unknown stored values."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(raw)
        except ValueError:
            return None


_SYSTEM_PROMPTS = {
    StepType.SUMMARIZE: "Summarize the following text concisely:",
    StepType.TRANSLATE: "Translate the following text:",
    StepType.EXTRACT: "Extract the requested information from the text:",
    StepType.REWRITE: "Rewrite the following text:",
    StepType.ANALYZE: "Analyze the following text:",
    StepType.CUSTOM: "",
}


class SamplingMode(str, Enum):
    GREEDY = "greedy"
    RANDOM = "random"


class AdvancedOptions(BaseModel):
    """Generation overrides for a single step.

    The values only take effect when ``enabled`` is set; otherwise the
    engine's defaults apply.
    """

    model_config = ConfigDict(frozen=True)

    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=MAX_TEMPERATURE)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1, le=MAX_TOKENS_LIMIT)
    sampling_mode: SamplingMode = SamplingMode.RANDOM
    enabled: bool = False


class WorkflowStep(BaseModel):
    """One instruction within a workflow."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    step_type: str = StepType.CUSTOM.value
    prompt: str = ""
    order: int = 0
    workflow_id: Optional[uuid.UUID] = None
    advanced_options: AdvancedOptions = Field(default_factory=AdvancedOptions)

    @field_validator("step_type", mode="before")
    @classmethod
    def _coerce_step_type(cls, value: Any) -> Any:
        # Stored values are kept verbatim so unknown kinds survive a round trip
        if isinstance(value, StepType):
            return value.value
        return value

    @property
    def kind(self) -> Optional[StepType]:
        return StepType.parse(self.step_type)

    @property
    def display_name(self) -> str:
        return self.step_type


class Workflow(BaseModel):
    """An ordered list of steps plus metadata; the unit of execution."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: str
    description: str = ""
    steps: List[WorkflowStep] = Field(default_factory=list)
    is_favorite: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    modified_at: datetime = Field(default_factory=utcnow)

    def model_post_init(self, __context: Any) -> None:
        for step in self.steps:
            step.workflow_id = self.id

    @property
    def step_count(self) -> int:
        return len(self.steps)

    @property
    def has_steps(self) -> bool:
        return bool(self.steps)

    @property
    def sorted_steps(self) -> List[WorkflowStep]:
        return sorted(self.steps, key=lambda step: step.order)

    # ------------------------------------------------------------------
    # Step editing
    def add_step(self, step: WorkflowStep) -> WorkflowStep:
        """Append ``step`` at the end of the execution sequence."""
        if any(existing.id == step.id for existing in self.steps):
            raise ValueError(f"Step {step.id} already belongs to workflow {self.id}")
        step.order = len(self.steps)
        step.workflow_id = self.id
        self.steps.append(step)
        return step

    def remove_step(self, index: int) -> None:
        ordered = self.sorted_steps
        if not 0 <= index < len(ordered):
            return
        target = ordered[index]
        self.steps = [step for step in self.steps if step.id != target.id]
        self.renormalize_order()

    def move_step(self, source: int, destination: int) -> None:
        ordered = self.sorted_steps
        if not (0 <= source < len(ordered) and 0 <= destination < len(ordered)):
            return
        step = ordered.pop(source)
        ordered.insert(destination, step)
        # list position is the new execution order
        for index, moved in enumerate(ordered):
            moved.order = index
        self.steps = ordered

    def duplicate_step(self, index: int) -> Optional[WorkflowStep]:
        ordered = self.sorted_steps
        if not 0 <= index < len(ordered):
            return None
        original = ordered[index]
        copy = WorkflowStep(
            step_type=original.step_type,
            prompt=original.prompt,
            advanced_options=original.advanced_options,
        )
        self.renormalize_order()
        return self.add_step(copy)

    def renormalize_order(self) -> None:
        """Rewrite step orders to ``0..N-1`` keeping the current sequence."""
        ordered = self.sorted_steps
        for index, step in enumerate(ordered):
            step.order = index
        self.steps = ordered

    def touch(self) -> None:
        self.modified_at = utcnow()


class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StepExecutionResult(BaseModel):
    """Immutable record of one step's run."""

    model_config = ConfigDict(frozen=True)

    step: WorkflowStep
    step_index: int
    output: str = ""
    duration: float
    started_at: datetime
    completed_at: datetime
    is_success: bool
    error: Optional[str] = None


class WorkflowExecutionResult(BaseModel):
    """Immutable record of a full run."""

    model_config = ConfigDict(frozen=True)

    workflow: Workflow
    input_text: str
    final_output: str
    step_results: Tuple[StepExecutionResult, ...] = ()
    total_duration: float
    started_at: datetime
    completed_at: datetime
    status: ExecutionStatus
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is ExecutionStatus.SUCCESS

"""Progress events emitted while a workflow runs."""

from __future__ import annotations

import inspect
from typing import Any, Callable, Literal, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict

from .contracts import StepExecutionResult, WorkflowStep


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_index: int


class StepStarted(_Event):
    kind: Literal["step_started"] = "step_started"
    step: WorkflowStep


class StepProgressed(_Event):
    kind: Literal["step_progressed"] = "step_progressed"
    step: WorkflowStep
    output: str


class StepCompleted(_Event):
    kind: Literal["step_completed"] = "step_completed"
    result: StepExecutionResult

    @property
    def step(self) -> WorkflowStep:
        return self.result.step


StepEvent = Union[StepStarted, StepProgressed, StepCompleted]


class ExecutionObserver(Protocol):
    """Receives step events in the order they are produced."""

    async def on_event(self, event: StepEvent) -> None:
        ...


StepStartCallback = Callable[[WorkflowStep], Any]
StepProgressCallback = Callable[[WorkflowStep, str], Any]
StepCompleteCallback = Callable[[StepExecutionResult], Any]


async def _call(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    outcome = callback(*args)
    if inspect.isawaitable(outcome):
        await outcome


class CallbackObserver:
    """Adapt loose ``on_step_*`` callbacks (sync or async) to an observer."""

    def __init__(
        self,
        on_step_start: Optional[StepStartCallback] = None,
        on_step_progress: Optional[StepProgressCallback] = None,
        on_step_complete: Optional[StepCompleteCallback] = None,
    ) -> None:
        self.on_step_start = on_step_start
        self.on_step_progress = on_step_progress
        self.on_step_complete = on_step_complete

    @property
    def is_empty(self) -> bool:
        return not (self.on_step_start or self.on_step_progress or self.on_step_complete)

    async def on_event(self, event: StepEvent) -> None:
        if isinstance(event, StepStarted):
            await _call(self.on_step_start, event.step)
        elif isinstance(event, StepProgressed):
            await _call(self.on_step_progress, event.step, event.output)
        elif isinstance(event, StepCompleted):
            await _call(self.on_step_complete, event.result)


class ObserverChain:
    """Deliver each event to several observers, one after another."""

    def __init__(self, *observers: Optional[ExecutionObserver]) -> None:
        self._observers = [observer for observer in observers if observer is not None]

    async def on_event(self, event: StepEvent) -> None:
        for observer in self._observers:
            await observer.on_event(event)

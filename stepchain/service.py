"""Workflow execution service wrapping the engine with notifications and history."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, List, Optional

from .cancellation import CancellationToken
from .constants import NOTIFICATION_OUTPUT_PREVIEW
from .contracts import (
    ExecutionStatus,
    StepExecutionResult,
    Workflow,
    WorkflowExecutionResult,
    utcnow,
)
from .engine import WorkflowExecutionEngine, validate_run
from .errors import ExecutionCancelledError
from .events import (
    CallbackObserver,
    ExecutionObserver,
    ObserverChain,
    StepCompleted,
    StepEvent,
    StepCompleteCallback,
    StepProgressCallback,
    StepProgressed,
    StepStartCallback,
    StepStarted,
)
from .notifications import ActivityStatus, BaseNotifier, NullNotifier
from .persistence import ExecutionHistory, ExecutionHistoryRepository

logger = logging.getLogger(__name__)


def _last_successful_output(step_results: List[StepExecutionResult]) -> str:
    for step_result in reversed(step_results):
        if step_result.is_success:
            return step_result.output
    return ""


class _RunTracker:
    """Observer attached to a single run by the service."""

    def __init__(
        self,
        service: "WorkflowExecutionService",
        workflow: Workflow,
        notify: bool,
        downstream: ExecutionObserver,
    ) -> None:
        self._service = service
        self._total_steps = workflow.step_count
        self._notify = notify
        self._downstream = downstream
        self._clock = time.perf_counter()
        self.step_results: List[StepExecutionResult] = []

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self._clock

    async def _update(self, event: StepStarted | StepProgressed, output: str) -> None:
        if not self._notify:
            return
        # step_index equals the number of steps completed before this one
        await self._service._notify(
            self._service.notifier.update(
                step_index=event.step_index,
                step_name=event.step.display_name,
                output=output[:NOTIFICATION_OUTPUT_PREVIEW],
                progress=event.step_index / self._total_steps,
                elapsed=self.elapsed,
            )
        )

    async def on_event(self, event: StepEvent) -> None:
        if isinstance(event, StepStarted):
            await self._update(event, "")
        elif isinstance(event, StepProgressed):
            await self._update(event, event.output)
        elif isinstance(event, StepCompleted):
            self.step_results.append(event.result)
        await self._downstream.on_event(event)


class WorkflowExecutionService:
    """Runs workflows and records every attempt in the history repository.

    Notification calls and history writes are best-effort: their failures are
    logged and never change the outcome reported to the caller.
    """

    def __init__(
        self,
        engine: WorkflowExecutionEngine,
        history_repository: ExecutionHistoryRepository,
        notifier: Optional[BaseNotifier] = None,
    ) -> None:
        self._engine = engine
        self._history = history_repository
        self.notifier = notifier or NullNotifier()
        self._background: set[asyncio.Task] = set()

    @property
    def engine(self) -> WorkflowExecutionEngine:
        return self._engine

    async def execute_workflow(
        self,
        workflow: Workflow,
        input_text: str,
        enable_notifications: bool = True,
        on_step_start: Optional[StepStartCallback] = None,
        on_step_progress: Optional[StepProgressCallback] = None,
        on_step_complete: Optional[StepCompleteCallback] = None,
        observer: Optional[ExecutionObserver] = None,
        token: Optional[CancellationToken] = None,
    ) -> WorkflowExecutionResult:
        """Run ``workflow`` against ``input_text``.

        Errors raised by the engine are re-raised unchanged after a failure
        history record has been written (when at least one step completed).

        Args:
            workflow: Workflow to run; its steps are read once at start.
            input_text: Text fed to the first step.
            enable_notifications: Drive the configured notifier during the run.
            on_step_start: Optional callback receiving each step as it starts.
            on_step_progress: Optional callback receiving ``(step, snapshot)``.
            on_step_complete: Optional callback receiving each step result.
            observer: Optional observer receiving the raw step events.
            token: Optional token to cancel this run only.
        """
        # Reject invalid runs before any notification is shown
        validate_run(workflow, input_text)

        started_at = utcnow()
        notify = enable_notifications and self.notifier.are_enabled()
        callbacks = CallbackObserver(on_step_start, on_step_progress, on_step_complete)
        tracker = _RunTracker(
            self,
            workflow,
            notify,
            ObserverChain(observer, None if callbacks.is_empty else callbacks),
        )

        if notify:
            await self._notify(
                self.notifier.start(workflow.name, workflow.id, workflow.step_count)
            )

        try:
            result = await self._engine.execute_streaming(
                workflow, input_text, observer=tracker, token=token
            )
        except Exception as e:
            logger.info(f"Workflow {workflow.id} failed: {e}")
            if notify:
                status = (
                    ActivityStatus.CANCELLED
                    if isinstance(e, ExecutionCancelledError)
                    else ActivityStatus.FAILED
                )
                await self._notify(
                    self.notifier.end(
                        final_output=str(e),
                        status=status,
                        elapsed=tracker.elapsed,
                    )
                )
            if tracker.step_results:
                failed_result = WorkflowExecutionResult(
                    workflow=workflow,
                    input_text=input_text,
                    final_output=_last_successful_output(tracker.step_results),
                    step_results=tuple(tracker.step_results),
                    total_duration=tracker.elapsed,
                    started_at=started_at,
                    completed_at=utcnow(),
                    status=ExecutionStatus.FAILED,
                    error=str(e),
                )
                await self._save_history(failed_result, tracker.step_results)
            raise

        if notify:
            await self._notify(
                self.notifier.end(
                    final_output=result.final_output,
                    status=ActivityStatus.COMPLETED,
                    elapsed=tracker.elapsed,
                )
            )
        await self._save_history(result, tracker.step_results)
        return result

    def cancel_execution(self) -> None:
        """Cancel running workflows and show the cancelled notification state.

        The notification update is scheduled in the background and is not
        awaited.
        """
        self._engine.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; skipping cancel notification")
            return
        task = loop.create_task(self._notify(self.notifier.cancel()))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    async def _notify(self, call: Awaitable[None]) -> None:
        try:
            await call
        except Exception as e:
            logger.warning(f"Notification update failed: {e}")

    async def _save_history(
        self,
        result: WorkflowExecutionResult,
        step_results: List[StepExecutionResult],
    ) -> None:
        history = ExecutionHistory.from_result(result, step_results)
        try:
            await self._history.save(history)
        except Exception:
            logger.exception(
                f"Failed to save execution history for workflow {result.workflow.id}"
            )
            return
        logger.debug(f"Saved execution history {history.id} ({history.status})")

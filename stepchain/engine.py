"""Sequential execution engine for stepchain workflows."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional

from .cancellation import CancellationToken
from .contracts import (
    ExecutionStatus,
    StepExecutionResult,
    Workflow,
    WorkflowExecutionResult,
    WorkflowStep,
    utcnow,
)
from .errors import (
    AIServiceUnavailableError,
    EmptyInputError,
    NoStepsError,
    StepFailedError,
)
from .events import (
    CallbackObserver,
    ExecutionObserver,
    ObserverChain,
    StepCompleteCallback,
    StepCompleted,
    StepProgressCallback,
    StepProgressed,
    StepStartCallback,
    StepStarted,
)
from .llm import GenerationOptions, LanguageModelClient
from .prompts import build_prompt

logger = logging.getLogger(__name__)


class _ModelCallFailed(Exception):
    """Internal marker separating model failures from observer errors."""


def validate_run(workflow: Workflow, input_text: str) -> None:
    """Raise if ``workflow`` cannot be run against ``input_text``."""
    if not workflow.has_steps:
        raise NoStepsError()
    if not input_text.strip():
        raise EmptyInputError()


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class WorkflowExecutionEngine:
    """Runs workflow steps one after another, chaining outputs to inputs.

    Every run is scoped to its own :class:`CancellationToken`, so one engine
    can serve several runs at once. ``cancel`` stops all of them.
    """

    def __init__(
        self,
        client: LanguageModelClient,
        default_options: Optional[GenerationOptions] = None,
        step_timeout: Optional[float] = None,
    ) -> None:
        self._client = client
        self._default_options = default_options or GenerationOptions()
        self._step_timeout = step_timeout
        self._active_tokens: set[CancellationToken] = set()

    @property
    def client(self) -> LanguageModelClient:
        return self._client

    async def execute(
        self,
        workflow: Workflow,
        input_text: str,
        *,
        token: Optional[CancellationToken] = None,
    ) -> WorkflowExecutionResult:
        """Run ``workflow`` in batch mode without progress events."""
        return await self._run(workflow, input_text, token, observer=None, streaming=False)

    async def execute_streaming(
        self,
        workflow: Workflow,
        input_text: str,
        observer: Optional[ExecutionObserver] = None,
        *,
        token: Optional[CancellationToken] = None,
        on_step_start: Optional[StepStartCallback] = None,
        on_step_progress: Optional[StepProgressCallback] = None,
        on_step_complete: Optional[StepCompleteCallback] = None,
    ) -> WorkflowExecutionResult:
        """Run ``workflow`` streaming each step and reporting progress.

        ``observer`` receives :class:`StepStarted`, :class:`StepProgressed`
        and :class:`StepCompleted` events; the ``on_step_*`` callbacks are a
        shorthand for the same events and are called after the observer.
        """
        callbacks = CallbackObserver(on_step_start, on_step_progress, on_step_complete)
        chain = ObserverChain(observer, None if callbacks.is_empty else callbacks)
        return await self._run(workflow, input_text, token, observer=chain, streaming=True)

    def cancel(self) -> None:
        """Request cancellation of every run currently in flight."""
        logger.info(f"Cancelling {len(self._active_tokens)} active run(s)")
        for token in list(self._active_tokens):
            token.cancel()

    # ------------------------------------------------------------------
    def _options_for(self, step: WorkflowStep) -> GenerationOptions:
        if step.advanced_options.enabled:
            return GenerationOptions.from_advanced(step.advanced_options)
        return self._default_options

    def _deadline(self) -> Optional[float]:
        if self._step_timeout is None:
            return None
        return asyncio.get_running_loop().time() + self._step_timeout

    def _timeout_message(self) -> str:
        return f"Step timed out after {self._step_timeout:g} seconds"

    async def _run(
        self,
        workflow: Workflow,
        input_text: str,
        token: Optional[CancellationToken],
        observer: Optional[ExecutionObserver],
        streaming: bool,
    ) -> WorkflowExecutionResult:
        token = token or CancellationToken()
        self._active_tokens.add(token)
        try:
            validate_run(workflow, input_text)
            if not await self._client.is_available():
                raise AIServiceUnavailableError()
            return await self._run_steps(workflow, input_text, token, observer, streaming)
        finally:
            self._active_tokens.discard(token)

    async def _run_steps(
        self,
        workflow: Workflow,
        input_text: str,
        token: CancellationToken,
        observer: Optional[ExecutionObserver],
        streaming: bool,
    ) -> WorkflowExecutionResult:
        steps = workflow.sorted_steps
        started_at = utcnow()
        clock = time.perf_counter()
        current_input = input_text
        results: List[StepExecutionResult] = []

        logger.info(
            f"Running workflow {workflow.name!r} ({workflow.id}) with {len(steps)} steps"
        )

        for index, step in enumerate(steps):
            token.raise_if_cancelled(results)

            if observer is not None:
                await observer.on_event(StepStarted(step_index=index, step=step))

            step_started_at = utcnow()
            step_clock = time.perf_counter()
            prompt = build_prompt(step, current_input)
            options = self._options_for(step)
            logger.debug(f"Step {index + 1}/{len(steps)} ({step.step_type}) started")

            try:
                if streaming:
                    output = await self._stream_step(
                        step, index, prompt, options, token, observer, results
                    )
                else:
                    output = await self._generate_step(prompt, options)
            except _ModelCallFailed as e:
                message = str(e)
                result = StepExecutionResult(
                    step=step,
                    step_index=index,
                    output="",
                    duration=time.perf_counter() - step_clock,
                    started_at=step_started_at,
                    completed_at=utcnow(),
                    is_success=False,
                    error=message,
                )
                results.append(result)
                if observer is not None:
                    await observer.on_event(StepCompleted(step_index=index, result=result))
                logger.warning(
                    f"Step {index + 1} of workflow {workflow.id} failed: {message}"
                )
                raise StepFailedError(index, message, results) from e.__cause__

            result = StepExecutionResult(
                step=step,
                step_index=index,
                output=output,
                duration=time.perf_counter() - step_clock,
                started_at=step_started_at,
                completed_at=utcnow(),
                is_success=True,
            )
            results.append(result)
            if observer is not None:
                await observer.on_event(StepCompleted(step_index=index, result=result))
            logger.debug(f"Step {index + 1}/{len(steps)} completed in {result.duration:.2f}s")
            current_input = output

        total_duration = time.perf_counter() - clock
        logger.info(f"Workflow {workflow.id} completed in {total_duration:.2f}s")
        return WorkflowExecutionResult(
            workflow=workflow,
            input_text=input_text,
            final_output=current_input,
            step_results=tuple(results),
            total_duration=total_duration,
            started_at=started_at,
            completed_at=utcnow(),
            status=ExecutionStatus.SUCCESS,
        )

    async def _generate_step(self, prompt: str, options: GenerationOptions) -> str:
        try:
            async with asyncio.timeout_at(self._deadline()):
                return await self._client.generate(prompt, options)
        except TimeoutError as e:
            raise _ModelCallFailed(self._timeout_message()) from e
        except Exception as e:
            raise _ModelCallFailed(_describe(e)) from e

    async def _stream_step(
        self,
        step: WorkflowStep,
        index: int,
        prompt: str,
        options: GenerationOptions,
        token: CancellationToken,
        observer: Optional[ExecutionObserver],
        results: List[StepExecutionResult],
    ) -> str:
        deadline = self._deadline()
        last_output = ""
        try:
            stream = self._client.stream(prompt, options)
        except Exception as e:
            raise _ModelCallFailed(_describe(e)) from e

        try:
            while True:
                try:
                    async with asyncio.timeout_at(deadline):
                        snapshot = await anext(stream)
                except StopAsyncIteration:
                    break
                except TimeoutError as e:
                    raise _ModelCallFailed(self._timeout_message()) from e
                except Exception as e:
                    raise _ModelCallFailed(_describe(e)) from e

                # A partially streamed step never produces a result
                token.raise_if_cancelled(results)
                last_output = snapshot
                if observer is not None:
                    await observer.on_event(
                        StepProgressed(step_index=index, step=step, output=snapshot)
                    )
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
        return last_output


__all__ = ["WorkflowExecutionEngine", "validate_run"]

"""Exception hierarchy for stepchain."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .contracts import StepExecutionResult


class StepchainError(Exception):
    """Base class for all stepchain errors."""


class WorkflowExecutionError(StepchainError):
    """Raised when a workflow run cannot start or is aborted."""

    message = "Workflow execution failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class NoStepsError(WorkflowExecutionError):
    message = "Workflow has no steps to execute"


class EmptyInputError(WorkflowExecutionError):
    message = "Input text cannot be empty"


class AIServiceUnavailableError(WorkflowExecutionError):
    message = "AI service is not available on this device"


class _PartialResultsMixin:
    """Keeps the step results collected before a run was aborted."""

    step_results: tuple["StepExecutionResult", ...] = ()

    def _attach(self, step_results: Sequence["StepExecutionResult"] | None) -> None:
        self.step_results = tuple(step_results or ())


class StepFailedError(_PartialResultsMixin, WorkflowExecutionError):
    """A step's model call failed; remaining steps were not run."""

    def __init__(
        self,
        step_index: int,
        error: str,
        step_results: Sequence["StepExecutionResult"] | None = None,
    ) -> None:
        self.step_index = step_index
        self.error = error
        self._attach(step_results)
        super().__init__(f"Step {step_index + 1} failed: {error}")


class ExecutionCancelledError(_PartialResultsMixin, WorkflowExecutionError):
    message = "Execution was cancelled"

    def __init__(
        self, step_results: Sequence["StepExecutionResult"] | None = None
    ) -> None:
        self._attach(step_results)
        super().__init__()


class LanguageModelError(StepchainError):
    """Base class for errors raised by language model clients."""


class ModelUnavailableError(LanguageModelError):
    def __init__(self, message: str = "Language model is not available") -> None:
        super().__init__(message)


class InvalidResponseError(LanguageModelError):
    def __init__(self, message: str = "Invalid response from language model") -> None:
        super().__init__(message)


class ModelExecutionError(LanguageModelError):
    def __init__(self, message: str) -> None:
        self.detail = message
        super().__init__(f"Model execution failed: {message}")


class PersistenceError(StepchainError):
    """Opaque storage backend failure."""


class PreferencesNotFoundError(PersistenceError):
    def __init__(self) -> None:
        super().__init__("Preferences not found")


class WorkflowNotFoundError(StepchainError):
    def __init__(self, workflow_id: object) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow {workflow_id} not found")

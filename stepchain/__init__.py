"""stepchain: chained language model workflows."""

from .automation import run_workflow_by_id
from .cancellation import CancellationToken
from .contracts import (
    AdvancedOptions,
    ExecutionStatus,
    SamplingMode,
    StepExecutionResult,
    StepType,
    Workflow,
    WorkflowExecutionResult,
    WorkflowStep,
)
from .engine import WorkflowExecutionEngine
from .events import CallbackObserver, StepCompleted, StepProgressed, StepStarted
from .llm import GenerationOptions, LanguageModelClient, PydanticAIClient
from .notifications import get_notifier
from .persistence import get_repositories
from .prompts import build_prompt
from .service import WorkflowExecutionService

__version__ = "0.1.0"
__all__ = [
    "AdvancedOptions",
    "CallbackObserver",
    "CancellationToken",
    "ExecutionStatus",
    "GenerationOptions",
    "LanguageModelClient",
    "PydanticAIClient",
    "SamplingMode",
    "StepCompleted",
    "StepExecutionResult",
    "StepProgressed",
    "StepStarted",
    "StepType",
    "Workflow",
    "WorkflowExecutionEngine",
    "WorkflowExecutionResult",
    "WorkflowExecutionService",
    "WorkflowStep",
    "build_prompt",
    "get_notifier",
    "get_repositories",
    "run_workflow_by_id",
]

"""Shared fixtures: scripted language model clients and sample workflows."""

from __future__ import annotations

from typing import Callable, List, Optional

import pytest

from stepchain.contracts import StepType, Workflow, WorkflowStep
from stepchain.errors import ModelExecutionError
from stepchain.llm import GenerationOptions, LanguageModelClient


class ScriptedClient(LanguageModelClient):
    """Return canned outputs in call order and record every prompt.

    Streamed outputs are revealed word by word, each snapshot holding the
    full text so far.
    """

    def __init__(
        self,
        outputs: List[str],
        available: bool = True,
        fail_on: Optional[set[int]] = None,
        on_snapshot: Optional[Callable[[int, str], None]] = None,
    ) -> None:
        self.outputs = outputs
        self.available = available
        self.fail_on = fail_on or set()
        self.on_snapshot = on_snapshot
        self.prompts: List[str] = []
        self.options: List[Optional[GenerationOptions]] = []
        self.availability_checks = 0

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def is_available(self) -> bool:
        self.availability_checks += 1
        return self.available

    def _next(self, prompt: str, options: Optional[GenerationOptions]) -> str:
        call_index = len(self.prompts)
        self.prompts.append(prompt)
        self.options.append(options)
        if call_index in self.fail_on:
            raise ModelExecutionError("boom")
        return self.outputs[call_index]

    async def generate(self, prompt, options=None) -> str:
        return self._next(prompt, options)

    async def stream(self, prompt, options=None):
        call_index = len(self.prompts)
        output = self._next(prompt, options)
        words = output.split(" ")
        for count in range(1, len(words) + 1):
            snapshot = " ".join(words[:count])
            yield snapshot
            if self.on_snapshot is not None:
                self.on_snapshot(call_index, snapshot)


@pytest.fixture
def scripted_client() -> type[ScriptedClient]:
    return ScriptedClient


def make_workflow(*kinds: StepType, name: str = "Test workflow") -> Workflow:
    workflow = Workflow(name=name)
    for kind in kinds:
        workflow.add_step(WorkflowStep(step_type=kind, prompt=f"{kind.value} please"))
    return workflow


@pytest.fixture
def workflow_factory() -> Callable[..., Workflow]:
    return make_workflow


@pytest.fixture
def two_step_workflow() -> Workflow:
    return make_workflow(StepType.SUMMARIZE, StepType.TRANSLATE, name="Summarize and translate")


@pytest.fixture
def three_step_workflow() -> Workflow:
    return make_workflow(
        StepType.SUMMARIZE, StepType.REWRITE, StepType.TRANSLATE, name="Three steps"
    )

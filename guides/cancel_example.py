"""Example showing how a running workflow is cancelled from another task."""

import asyncio

from stepchain import (
    CancellationToken,
    StepType,
    Workflow,
    WorkflowExecutionEngine,
    WorkflowStep,
)
from stepchain.config import ModelConfig, StepchainConfig
from stepchain.errors import ExecutionCancelledError
from stepchain.llm import build_client


async def main():
    config = StepchainConfig(model=ModelConfig(test_output="one two three four five"))
    engine = WorkflowExecutionEngine(build_client(config))

    workflow = Workflow(name="Three rewrites")
    for _ in range(3):
        workflow.add_step(WorkflowStep(step_type=StepType.REWRITE, prompt="Make it nicer"))

    token = CancellationToken()

    def stop_after_first(result):
        print(f"Step {result.step_index + 1} done: {result.output}")
        token.cancel()

    try:
        await engine.execute_streaming(
            workflow, "Some text", token=token, on_step_complete=stop_after_first
        )
    except ExecutionCancelledError as e:
        print(f"{e} after {len(e.step_results)} step(s)")


if __name__ == "__main__":
    asyncio.run(main())

"""Example showing a two step workflow streamed through the offline test model.

Set ``STEPCHAIN_CONFIG`` to a YAML file with ``model.name`` set to a real
pydantic-ai model string (e.g. ``openai:gpt-4o-mini``) to talk to a provider.
"""

import asyncio
import sys

from stepchain import (
    StepType,
    Workflow,
    WorkflowExecutionEngine,
    WorkflowExecutionService,
    WorkflowStep,
    get_notifier,
    get_repositories,
)
from stepchain.config import load_config
from stepchain.llm import build_client


async def main():
    text = sys.argv[1] if len(sys.argv) > 1 else "A long English paragraph to shorten."

    config = load_config()
    repos = get_repositories(config=config)
    service = WorkflowExecutionService(
        WorkflowExecutionEngine(build_client(config)),
        repos.history,
        notifier=get_notifier("console", config),
    )

    workflow = Workflow(name="Summarize and translate")
    workflow.add_step(WorkflowStep(step_type=StepType.SUMMARIZE, prompt="Two sentences"))
    workflow.add_step(WorkflowStep(step_type=StepType.TRANSLATE, prompt="To Spanish"))
    await repos.workflows.save(workflow)

    result = await service.execute_workflow(
        workflow,
        text,
        on_step_progress=lambda step, output: print(f"{step.display_name}: {output}"),
    )
    print(f"Final output: {result.final_output}")

    for record in await repos.history.fetch_for_workflow(workflow.id):
        print(f"{record.executed_at:%H:%M:%S} {record.status} {record.duration:.2f}s")


if __name__ == "__main__":
    asyncio.run(main())

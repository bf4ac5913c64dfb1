"""Entry points for running workflows from automation triggers."""

from __future__ import annotations

import logging
import uuid

from .contracts import WorkflowExecutionResult
from .errors import WorkflowNotFoundError
from .persistence import WorkflowRepository
from .service import WorkflowExecutionService

logger = logging.getLogger(__name__)


async def run_workflow_by_id(
    workflow_id: uuid.UUID | str,
    input_text: str,
    *,
    workflows: WorkflowRepository,
    service: WorkflowExecutionService,
    enable_notifications: bool = True,
) -> WorkflowExecutionResult:
    """Resolve ``workflow_id`` and run it through the regular service path."""
    if not isinstance(workflow_id, uuid.UUID):
        try:
            workflow_id = uuid.UUID(str(workflow_id))
        except ValueError as e:
            raise WorkflowNotFoundError(workflow_id) from e

    workflow = await workflows.fetch(workflow_id)
    if workflow is None:
        raise WorkflowNotFoundError(workflow_id)

    logger.info(f"Automation run requested for workflow {workflow.name!r}")
    return await service.execute_workflow(
        workflow, input_text, enable_notifications=enable_notifications
    )

"""Prompt construction for workflow steps."""

from __future__ import annotations

from .contracts import WorkflowStep


def build_prompt(step: WorkflowStep, current_input: str) -> str:
    """Return the literal prompt sent to the model for ``step``.

    Unknown stored step types fall back to the bare instructions, the same
    way ``Custom`` steps do.
    """
    kind = step.kind
    system_prompt = kind.system_prompt if kind is not None else ""
    if system_prompt:
        return f"{system_prompt}\n\n{step.prompt}\n\n{current_input}"
    return f"{step.prompt}\n\n{current_input}"


def preview_prompt(step: WorkflowStep) -> str:
    """Prompt shown while editing a step, before any input is attached."""
    kind = step.kind
    system_prompt = kind.system_prompt if kind is not None else ""
    instructions = step.prompt.strip()
    if not system_prompt:
        return instructions
    return f"{system_prompt}\n\n{instructions}"

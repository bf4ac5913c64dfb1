"""Command line interface for managing and running stepchain workflows."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import List, Optional

import typer

from stepchain.automation import run_workflow_by_id
from stepchain.config import load_config
from stepchain.contracts import StepType, Workflow, WorkflowStep
from stepchain.engine import WorkflowExecutionEngine
from stepchain.errors import StepchainError
from stepchain.llm import GenerationOptions, build_client
from stepchain.notifications import get_notifier
from stepchain.persistence import ThemePreference, get_repositories
from stepchain.service import WorkflowExecutionService

app = typer.Typer(help="CLI for stepchain workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for managing workflows")
history_app = typer.Typer(help="Commands for inspecting execution history")
prefs_app = typer.Typer(help="Commands for user preferences")

app.add_typer(workflow_app, name="workflow")
app.add_typer(history_app, name="history")
app.add_typer(prefs_app, name="prefs")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", help="Logging level for stepchain"),
) -> None:
    """stepchain CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_uuid(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        typer.secho(f"Invalid id: {value}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _parse_step(spec: str) -> WorkflowStep:
    raw_type, sep, prompt = spec.partition(":")
    if not sep:
        raise typer.BadParameter(f"Expected TYPE:PROMPT, got {spec!r}")
    wanted = raw_type.strip().casefold()
    for kind in StepType:
        if wanted in (kind.value.casefold(), kind.name.casefold()):
            return WorkflowStep(step_type=kind, prompt=prompt.strip())
    raise typer.BadParameter(f"Unknown step type {raw_type!r}")


def _load_workflow(workflow_id: str) -> Workflow:
    repos = get_repositories()
    wf = asyncio.run(repos.workflows.fetch(_parse_uuid(workflow_id)))
    if wf is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    return wf


# ----------------------------------------------------------------------
# Workflows
@workflow_app.command("list")
def workflow_list(
    favorites: bool = typer.Option(False, help="Only show favorite workflows"),
    search: Optional[str] = typer.Option(None, help="Filter by name"),
) -> None:
    """
    List workflows, most recently modified first.

    Example:
        stepchain workflow list
        stepchain workflow list --favorites
        # Output: 6c1f...    Translate notes    2 steps
    """
    repos = get_repositories()
    if favorites:
        workflows = asyncio.run(repos.workflows.fetch_favorites())
    elif search:
        workflows = asyncio.run(repos.workflows.search(search))
    else:
        workflows = asyncio.run(repos.workflows.fetch_all())
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        star = "*" if wf.is_favorite else ""
        typer.echo(f"{wf.id}\t{wf.name}{star}\t{wf.step_count} steps")


@workflow_app.command("show")
def workflow_show(workflow_id: str) -> None:
    """Show a workflow and its steps in execution order."""
    wf = _load_workflow(workflow_id)
    typer.echo(f"Workflow {wf.id}: {wf.name}")
    if wf.description:
        typer.echo(f"Description: {wf.description}")
    for index, step in enumerate(wf.sorted_steps, start=1):
        typer.echo(f"{index}. {step.display_name}: {step.prompt}")


@workflow_app.command("create")
def workflow_create(
    name: str,
    step: List[str] = typer.Option(
        [], "--step", "-s", help="Step as TYPE:PROMPT, e.g. 'Summarize:Keep it short'"
    ),
    description: str = typer.Option("", help="Workflow description"),
    favorite: bool = typer.Option(False, help="Mark as favorite"),
) -> None:
    """
    Create a workflow from a list of steps.

    Example:
        stepchain workflow create "Notes" -s "Summarize:Two sentences" -s "Translate:To Spanish"
    """
    name = name.strip()
    if len(name) < 3:
        raise typer.BadParameter("Workflow name must be at least 3 characters")
    if not step:
        raise typer.BadParameter("At least one --step is required")

    wf = Workflow(name=name, description=description.strip(), is_favorite=favorite)
    for spec in step:
        wf.add_step(_parse_step(spec))

    repos = get_repositories()
    asyncio.run(repos.workflows.save(wf))
    typer.echo(f"Created workflow {wf.id}")


@workflow_app.command("delete")
def workflow_delete(workflow_id: str) -> None:
    """Delete a workflow. Its execution history is kept."""
    wf = _load_workflow(workflow_id)
    asyncio.run(get_repositories().workflows.delete(wf))
    typer.echo(f"Deleted workflow {wf.id}")


@workflow_app.command("favorite")
def workflow_favorite(workflow_id: str) -> None:
    """Toggle the favorite flag of a workflow."""
    wf = _load_workflow(workflow_id)
    wf.is_favorite = not wf.is_favorite
    asyncio.run(get_repositories().workflows.save(wf))
    typer.echo(f"{wf.name}: {'favorite' if wf.is_favorite else 'not favorite'}")


# ----------------------------------------------------------------------
# Running
@app.command("run")
def run(
    workflow_id: str,
    input_text: str,
    notify: bool = typer.Option(True, help="Show live progress notifications"),
) -> None:
    """
    Run a workflow against INPUT_TEXT and print the final output.

    The run is recorded in the execution history whether it succeeds or not.

    Example:
        stepchain run 6c1f0b2e-... "Long English text"
    """
    config = load_config()
    repos = get_repositories()
    engine = WorkflowExecutionEngine(
        build_client(config),
        default_options=GenerationOptions(
            temperature=config.engine.temperature,
            max_tokens=config.engine.max_tokens,
            sampling_mode=config.engine.sampling_mode,
        ),
        step_timeout=config.engine.step_timeout,
    )
    service = WorkflowExecutionService(
        engine, repos.history, notifier=get_notifier(config=config)
    )

    try:
        result = asyncio.run(
            run_workflow_by_id(
                workflow_id,
                input_text,
                workflows=repos.workflows,
                service=service,
                enable_notifications=notify,
            )
        )
    except StepchainError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(result.final_output)


# ----------------------------------------------------------------------
# History
@history_app.command("list")
def history_list(
    workflow: Optional[str] = typer.Option(None, help="Only runs of this workflow id"),
    limit: Optional[int] = typer.Option(None, help="Maximum number of records"),
) -> None:
    """List recorded runs, newest first."""
    repos = get_repositories()
    if workflow:
        records = asyncio.run(repos.history.fetch_for_workflow(_parse_uuid(workflow)))
        if limit is not None:
            records = records[:limit]
    elif limit is not None:
        records = asyncio.run(repos.history.fetch_recent(limit))
    else:
        records = asyncio.run(repos.history.fetch_all())
    if not records:
        typer.echo("No history found")
        return
    for record in records:
        typer.echo(
            f"{record.id}\t{record.workflow_name}\t{record.status}\t"
            f"{record.executed_at:%Y-%m-%d %H:%M}\t{record.duration:.1f}s"
        )


@history_app.command("show")
def history_show(history_id: str) -> None:
    """Show input, output and per-step results of a recorded run."""
    repos = get_repositories()
    record = asyncio.run(repos.history.fetch(_parse_uuid(history_id)))
    if record is None:
        typer.echo("History record not found")
        raise typer.Exit(code=1)
    typer.echo(f"Run {record.id} of {record.workflow_name}: {record.status}")
    typer.echo(f"Input: {record.input_text}")
    typer.echo(f"Output: {record.output_text}")
    for step in record.step_results:
        typer.echo(f"- {step.step_name} ({step.duration:.2f}s): {step.output}")


@history_app.command("clear")
def history_clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete every history record."""
    if not yes:
        typer.confirm("Delete all execution history?", abort=True)
    asyncio.run(get_repositories().history.delete_all())
    typer.echo("History cleared")


# ----------------------------------------------------------------------
# Preferences
@prefs_app.command("show")
def prefs_show() -> None:
    """Show the stored preferences."""
    prefs = asyncio.run(get_repositories().preferences.get_or_create())
    typer.echo(f"Theme: {prefs.theme.value}")
    typer.echo(f"Default workflow: {prefs.default_workflow_id or '-'}")
    typer.echo(f"Widgets: {', '.join(str(v) for v in prefs.widget_selections) or '-'}")


@prefs_app.command("theme")
def prefs_theme(theme: ThemePreference) -> None:
    """Set the theme preference."""
    repos = get_repositories()
    prefs = asyncio.run(repos.preferences.get_or_create())
    prefs.set_theme(theme)
    asyncio.run(repos.preferences.save(prefs))
    typer.echo(f"Theme set to {theme.value}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()

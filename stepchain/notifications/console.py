"""Notifier printing progress lines to the terminal."""

from __future__ import annotations

import uuid

import typer

from .base import ActivityStatus, BaseNotifier

_STATUS_COLORS = {
    ActivityStatus.COMPLETED: typer.colors.GREEN,
    ActivityStatus.FAILED: typer.colors.RED,
    ActivityStatus.CANCELLED: typer.colors.YELLOW,
}


class ConsoleNotifier(BaseNotifier):
    def __init__(self, err: bool = True) -> None:
        self._err = err
        self._workflow_name: str | None = None
        self._total_steps = 0

    async def start(
        self, workflow_name: str, workflow_id: uuid.UUID, total_steps: int
    ) -> None:
        self._workflow_name = workflow_name
        self._total_steps = total_steps
        typer.secho(
            f"▶ {workflow_name} ({total_steps} steps)", fg=typer.colors.CYAN, err=self._err
        )

    async def update(
        self,
        step_index: int,
        step_name: str,
        output: str,
        progress: float,
        elapsed: float,
    ) -> None:
        # Only the step transitions are printed; streamed snapshots are too noisy
        if output:
            return
        typer.echo(
            f"  [{step_index + 1}/{self._total_steps}] {step_name} "
            f"({progress:.0%}, {elapsed:.1f}s)",
            err=self._err,
        )

    async def end(
        self,
        final_output: str = "",
        status: ActivityStatus = ActivityStatus.COMPLETED,
        elapsed: float = 0.0,
    ) -> None:
        if self._workflow_name is None:
            return
        typer.secho(
            f"■ {self._workflow_name}: {status.value} after {elapsed:.1f}s",
            fg=_STATUS_COLORS.get(status),
            err=self._err,
        )
        self._workflow_name = None

"""Per-run cooperative cancellation."""

from __future__ import annotations

import logging

from .errors import ExecutionCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Flag scoped to a single workflow run.

    The engine polls the token at step boundaries and after every streamed
    snapshot. Cancelling never interrupts an in-flight model call.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if not self._cancelled:
            logger.debug("Cancellation requested")
        self._cancelled = True

    def raise_if_cancelled(self, step_results=None) -> None:
        if self._cancelled:
            raise ExecutionCancelledError(step_results)

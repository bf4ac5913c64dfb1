"""Notifier factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import StepchainConfig, load_config
from .base import ActivityStatus, BaseNotifier, NotificationState, NullNotifier
from .inmemory import InMemoryNotifier


def get_notifier(
    backend: Optional[str] = None, config: Optional[StepchainConfig] = None
) -> BaseNotifier:
    """Factory function to get the configured notifier."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("STEPCHAIN_NOTIFICATIONS")
        or config.notifications.backend
    ).lower()

    if backend == "none":
        return NullNotifier()
    elif backend == "inmemory":
        return InMemoryNotifier()
    elif backend == "console":
        from .console import ConsoleNotifier

        return ConsoleNotifier()
    else:
        raise ValueError(f"Unsupported notification backend: {backend}")


__all__ = [
    "ActivityStatus",
    "BaseNotifier",
    "InMemoryNotifier",
    "NotificationState",
    "NullNotifier",
    "get_notifier",
]

# src/session_sweeper/tasks/task_models.py

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..errors import ValidationError

DEFAULT_SUPERVISOR_INTERVAL_SECONDS = 0.5
DEFAULT_TASK_TIMEOUT_SECONDS = 60 * 60.0

# Callbacks receive the task's asyncio handle.
TaskCallback = Callable[[Any], None]


class TaskState(StrEnum):
    """
    Task lifecycle status.

    PENDING -> RUNNING -> {COMPLETED, FAILED, STOPPED}. Transitions are driven by the
    event loop; the supervisor only observes them.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def finished(self) -> bool:
        return self in (TaskState.COMPLETED, TaskState.FAILED, TaskState.STOPPED)


@dataclass(slots=True, frozen=True)
class SupervisorConfig:
    interval_seconds: float = DEFAULT_SUPERVISOR_INTERVAL_SECONDS
    timeout_seconds: float = DEFAULT_TASK_TIMEOUT_SECONDS

    def validate(self) -> None:
        if not self.interval_seconds > 0:
            raise ValidationError(f"supervisor interval must be positive, got {self.interval_seconds}")
        if not self.timeout_seconds > 0:
            raise ValidationError(f"task timeout must be positive, got {self.timeout_seconds}")

# src/session_sweeper/errors.py

"""
Error taxonomy.

- ValidationError: bad configuration, raised before the main loop starts.
- DirectoryUnavailableError: the session directory could not be enumerated (transient).
- NotificationFailure / LogoffFailure: per-task, logged and absorbed by the logout task.
- NotStartedError / AlreadyStartedError: Task lifecycle misuse (programmer errors).
"""

from __future__ import annotations


class SweeperError(Exception):
    """Base class for all session-sweeper errors."""


class ValidationError(SweeperError, ValueError):
    pass


class DirectoryUnavailableError(SweeperError):
    pass


class NotificationFailure(SweeperError):
    pass


class LogoffFailure(SweeperError):
    pass


class TaskError(SweeperError, RuntimeError):
    pass


class NotStartedError(TaskError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Task {name!r} has not been started")
        self.name = name


class AlreadyStartedError(TaskError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Task {name!r} was already started")
        self.name = name

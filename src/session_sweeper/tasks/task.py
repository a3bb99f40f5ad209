# src/session_sweeper/tasks/task.py

"""
Task: a named unit of asynchronous work.

Wraps an asyncio task (the "handle") and adds:
- explicit start (so the caller decides when work begins),
- a coarse lifecycle state (pending / running / completed / failed / stopped),
- uptime since start,
- optional lifecycle callbacks that a supervisor dispatches.

Querying state or uptime before start() is a programming error and raises
NotStartedError instead of returning a default.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..errors import AlreadyStartedError, NotStartedError
from .task_models import TaskCallback, TaskState

logger = logging.getLogger(__name__)


class Task:
    def __init__(
            self,
            name: str,
            work: Callable[..., Awaitable[Any]],
            *args: Any,
            on_running: TaskCallback | None = None,
            on_completed: TaskCallback | None = None,
            on_failed: TaskCallback | None = None,
    ) -> None:
        self.name = name
        self.on_running = on_running
        self.on_completed = on_completed
        self.on_failed = on_failed

        self._work = work
        self._args = args
        self._handle: asyncio.Task[Any] | None = None
        self._entered = False
        self._stop_requested = False
        self._started_mono = 0.0
        self.started_at: float | None = None

    def __repr__(self) -> str:
        state = self.state().value if self.started else "unstarted"
        return f"Task(name={self.name!r}, state={state})"

    @property
    def handle(self) -> asyncio.Task[Any] | None:
        return self._handle

    @property
    def started(self) -> bool:
        return self._handle is not None

    def start(self) -> asyncio.Task[Any]:
        """Schedule the work on the running event loop and return its handle."""
        if self._handle is not None:
            raise AlreadyStartedError(self.name)

        loop = asyncio.get_running_loop()
        self.started_at = time.time()
        self._started_mono = time.monotonic()
        self._handle = loop.create_task(self._run(), name=self.name)
        self._handle.add_done_callback(self._on_done)
        logger.debug("Task %s started", self.name)
        return self._handle

    async def _run(self) -> Any:
        self._entered = True
        return await self._work(*self._args)

    def _on_done(self, handle: asyncio.Task[Any]) -> None:
        # Retrieve the exception here so asyncio does not report it as "never retrieved".
        if handle.cancelled():
            logger.debug("Task %s stopped", self.name)
            return
        exc = handle.exception()
        if exc is not None:
            logger.warning("Task %s failed: %r", self.name, exc)

    def _require_handle(self) -> asyncio.Task[Any]:
        if self._handle is None:
            raise NotStartedError(self.name)
        return self._handle

    def state(self) -> TaskState:
        handle = self._require_handle()

        if handle.done():
            if handle.cancelled() or self._stop_requested:
                return TaskState.STOPPED
            if handle.exception() is not None:
                return TaskState.FAILED
            return TaskState.COMPLETED

        if self._stop_requested:
            return TaskState.STOPPED
        return TaskState.RUNNING if self._entered else TaskState.PENDING

    def uptime(self) -> float:
        """Seconds elapsed since start()."""
        self._require_handle()
        return time.monotonic() - self._started_mono

    def result(self) -> Any:
        """Return value of the work. Raises if the task is not finished or did not complete."""
        return self._require_handle().result()

    def stop(self) -> None:
        """
        Request cancellation. Never blocks and never raises.

        No-op for unstarted or finished tasks. Calling it again on a task that
        swallowed the cancellation re-issues the request.
        """
        handle = self._handle
        if handle is None or handle.done():
            return
        self._stop_requested = True
        handle.cancel()

    # ---- lifecycle callbacks ----

    def invoke_running(self) -> None:
        if self.on_running is not None:
            self.on_running(self._handle)

    def invoke_completed(self) -> None:
        if self.on_completed is not None:
            self.on_completed(self._handle)

    def invoke_failed(self) -> None:
        if self.on_failed is not None:
            self.on_failed(self._handle)

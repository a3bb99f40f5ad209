# src/session_sweeper/tasks/task_supervisor.py

"""
Task supervisor.

A small polling loop that, every interval:
- reads the state of each managed task and dispatches the matching callback
  (running / completed / failed; pending and stopped are ignored),
- stops tasks that have been up longer than the timeout ceiling.

The supervisor never drives transitions itself, it only observes them.
Each task is handled in isolation: a failing callback is logged and the tick goes on.

The managed-task map is guarded by a lock because add/remove may be called from
any thread while the timer coroutine iterates. Callbacks run on a snapshot,
outside the lock, so they may call remove_task().
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading

from .task import Task
from .task_models import SupervisorConfig, TaskState

logger = logging.getLogger(__name__)


class TaskSupervisor:
    def __init__(self, config: SupervisorConfig | None = None) -> None:
        self.config = config or SupervisorConfig()
        self.config.validate()

        self._tasks: dict[str, Task] = {}
        self._lock = threading.Lock()
        self._timer: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._tasks)

    def get_task(self, name: str) -> Task | None:
        with self._lock:
            return self._tasks.get(name)

    def add_task(self, task: Task) -> None:
        """
        Manage `task` under its name.

        A different task already registered under the same name is stopped
        before it is replaced, so it cannot keep running unsupervised.
        """
        with self._lock:
            previous = self._tasks.get(task.name)
            self._tasks[task.name] = task

        if previous is not None and previous is not task:
            logger.warning("Task %s replaced; stopping the previous one", task.name)
            previous.stop()

    def remove_task(self, name: str) -> Task | None:
        with self._lock:
            task = self._tasks.pop(name, None)
        if task is not None:
            task.stop()
        return task

    # ---- timer ----

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        """Start the periodic timer on the running event loop (no-op if already running)."""
        if self.running:
            return
        self._timer = asyncio.get_running_loop().create_task(self._run(), name="task-supervisor")
        logger.debug(
            "TaskSupervisor started interval=%.2fs timeout=%.0fs",
            self.config.interval_seconds,
            self.config.timeout_seconds,
        )

    async def stop(self) -> None:
        """Cancel the timer. Managed tasks are left alone (see stop_all)."""
        timer, self._timer = self._timer, None
        if timer is None:
            return
        timer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await timer

    def stop_all(self) -> None:
        """Stop and forget every managed task."""
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            task.stop()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.config.interval_seconds)
            self.tick()

    def tick(self) -> None:
        with self._lock:
            snapshot = list(self._tasks.values())

        for task in snapshot:
            try:
                self._dispatch(task)
            except Exception:
                logger.exception("Task %s: dispatch failed", task.name)

        for task in snapshot:
            try:
                self._enforce_timeout(task)
            except Exception:
                logger.exception("Task %s: timeout check failed", task.name)

    @staticmethod
    def _dispatch(task: Task) -> None:
        state = task.state()
        if state == TaskState.RUNNING:
            task.invoke_running()
        elif state == TaskState.COMPLETED:
            task.invoke_completed()
        elif state == TaskState.FAILED:
            task.invoke_failed()

    def _enforce_timeout(self, task: Task) -> None:
        # Stopped-but-still-alive tasks stay eligible: stop() re-issues the cancel.
        handle = task.handle
        if handle is None or handle.done():
            return
        uptime = task.uptime()
        if uptime > self.config.timeout_seconds:
            logger.warning(
                "Task %s exceeded timeout (%.0fs > %.0fs); stopping",
                task.name,
                uptime,
                self.config.timeout_seconds,
            )
            task.stop()

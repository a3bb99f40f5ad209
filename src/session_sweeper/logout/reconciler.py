# src/session_sweeper/logout/reconciler.py

"""
Session reconciler.

The main control loop. Every poll interval it:
- works out how long is left until the grace-period cutoff,
- enumerates live sessions (minus the operator's own),
- drops queued logouts whose session vanished or changed owner,
- drops finished logouts whose session is still live, so they are retried,
- schedules logouts for sessions that are not queued yet,
- prints a status summary.

Pass order within a tick is fixed: stale removal, identity mismatch, retry,
admission. That way a session id reused by another user, or a session whose
logout task ended without effect, is re-queued in the same tick instead of one
tick later.

The queue is only ever touched by the coroutine running the loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..core.models import QueuedLogout, Session
from ..core.ports import SessionDirectory
from ..errors import DirectoryUnavailableError, ValidationError
from ..status import StatusCategory, StatusStream
from ..tasks.task import Task
from ..tasks.task_supervisor import TaskSupervisor
from .logout_task import DEFAULT_MESSAGE_BODY, DEFAULT_MESSAGE_TITLE, LogoutTaskFactory, format_duration

logger = logging.getLogger(__name__)

DEFAULT_LOGOUT_DELAY_MINUTES = 2
DEFAULT_POLL_INTERVAL_SECONDS = 10
DEFAULT_GRACE_PERIOD_MINUTES = 5

LOGOUT_DELAY_RANGE = (0, 10)
POLL_INTERVAL_RANGE = (1, 240)
GRACE_PERIOD_RANGE = (0, 30)

# Slack applied when rounding the time to the cutoff, so the grace period does not
# flip one tick early when a tick lands exactly on a minute boundary.
CUTOFF_SLACK = timedelta(seconds=1)


def _check_range(name: str, value: int, bounds: tuple[int, int]) -> None:
    lo, hi = bounds
    if not lo <= value <= hi:
        raise ValidationError(f"{name} must be between {lo} and {hi}, got {value}")


@dataclass(slots=True, frozen=True)
class ReconcilerConfig:
    logout_delay_minutes: int = DEFAULT_LOGOUT_DELAY_MINUTES
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    grace_period_minutes: int = DEFAULT_GRACE_PERIOD_MINUTES
    drain_on_empty: bool = False
    exclude_username: str | None = None
    message_title: str = DEFAULT_MESSAGE_TITLE
    message_body: str = DEFAULT_MESSAGE_BODY

    def validate(self) -> None:
        _check_range("logout_delay_minutes", self.logout_delay_minutes, LOGOUT_DELAY_RANGE)
        _check_range("poll_interval_seconds", self.poll_interval_seconds, POLL_INTERVAL_RANGE)
        _check_range("grace_period_minutes", self.grace_period_minutes, GRACE_PERIOD_RANGE)


@dataclass(slots=True)
class TickResult:
    """What one reconciler iteration saw and did."""

    minutes_to_cutoff: int
    grace_period_passed: bool
    skipped: bool = False
    live_count: int = 0
    removed_stale: list[int] = field(default_factory=list)
    removed_mismatch: list[int] = field(default_factory=list)
    retried: list[int] = field(default_factory=list)
    admitted: dict[int, int] = field(default_factory=dict)  # session id -> delay minutes


def _now_local() -> datetime:
    return datetime.now().astimezone()


def _on_logout_finished(supervisor: TaskSupervisor, handle: asyncio.Task[object]) -> None:
    """Supervisor callback: log the outcome and stop supervising the task."""
    name = handle.get_name()
    managed = supervisor.get_task(name)
    if managed is not None and managed.handle is handle:
        supervisor.remove_task(name)

    exc = handle.exception()
    if exc is not None:
        logger.warning("%s failed: %r", name, exc)
    else:
        logger.info("%s finished: %s", name, handle.result())


class SessionReconciler:
    def __init__(
            self,
            directory: SessionDirectory,
            factory: LogoutTaskFactory,
            config: ReconcilerConfig | None = None,
            *,
            status: StatusStream | None = None,
            supervisor: TaskSupervisor | None = None,
            clock: Callable[[], datetime] = _now_local,
    ) -> None:
        self.config = config or ReconcilerConfig()
        self.config.validate()

        self._directory = directory
        self._factory = factory
        self._status = status or StatusStream()
        self._supervisor = supervisor
        self._clock = clock

        self.cutoff_time = self._clock() + timedelta(minutes=self.config.grace_period_minutes)
        self.grace_period_passed = False
        self._queue: dict[int, QueuedLogout] = {}
        # Dropped tasks still unwinding; they stay supervised until their handle is done.
        self._stopping: list[Task] = []

    @property
    def queue(self) -> dict[int, QueuedLogout]:
        """Read-only view (a copy) of the logout queue."""
        return dict(self._queue)

    def minutes_to_cutoff(self, now: datetime) -> int:
        return int((self.cutoff_time - now + CUTOFF_SLACK) // timedelta(minutes=1))

    def delay_for(self, session: Session, minutes_to_cutoff: int) -> int:
        if self.grace_period_passed or session.disconnected:
            return 0
        return max(0, min(minutes_to_cutoff, self.config.logout_delay_minutes))

    # ---- queue mutation ----

    def _drop(self, session_id: int) -> None:
        entry = self._queue.pop(session_id)
        entry.task.stop()
        if self._supervisor is None:
            return
        handle = entry.task.handle
        if handle is not None and not handle.done():
            self._stopping.append(entry.task)
        else:
            self._forget(entry.task)

    def _forget(self, task: Task) -> None:
        if self._supervisor is not None and self._supervisor.get_task(task.name) is task:
            self._supervisor.remove_task(task.name)

    def _forget_stopped(self) -> None:
        still_running: list[Task] = []
        for task in self._stopping:
            handle = task.handle
            if handle is not None and handle.done():
                self._forget(task)
            else:
                still_running.append(task)
        self._stopping = still_running

    def _admit(self, session: Session, delay: int, now: datetime) -> None:
        task = self._factory.schedule(
            session,
            delay,
            self.config.message_title,
            self.config.message_body,
        )
        supervisor = self._supervisor
        if supervisor is not None:
            callback = functools.partial(_on_logout_finished, supervisor)
            task.on_completed = callback
            task.on_failed = callback
            supervisor.add_task(task)
        self._queue[session.id] = QueuedLogout(
            session_id=session.id,
            username=session.username,
            logout_time=now + timedelta(minutes=delay),
            task=task,
        )

    # ---- main loop ----

    async def _list_live_sessions(self) -> list[Session]:
        sessions = await asyncio.to_thread(self._directory.list_sessions)
        exclude = self.config.exclude_username
        if exclude:
            sessions = [s for s in sessions if s.username.lower() != exclude.lower()]
        return sessions

    async def tick(self) -> TickResult:
        now = self._clock()
        minutes = self.minutes_to_cutoff(now)

        if minutes <= 0:
            if not self.grace_period_passed:
                self.grace_period_passed = True
                self._status.emit(StatusCategory.GRACE, "Grace period passed; logging off sessions immediately")
            else:
                self._status.emit(StatusCategory.GRACE, "Grace period passed", verbose=True)

        self._forget_stopped()
        result = TickResult(minutes_to_cutoff=minutes, grace_period_passed=self.grace_period_passed)

        try:
            sessions = await self._list_live_sessions()
        except DirectoryUnavailableError as exc:
            self._status.emit(StatusCategory.DIRECTORY, f"Session directory unavailable: {exc}", verbose=True)
            logger.warning("Session directory unavailable; skipping tick: %s", exc)
            result.skipped = True
            return result
        except Exception:
            logger.exception("list_sessions failed; skipping tick")
            result.skipped = True
            return result

        live = {s.id: s for s in sessions}
        result.live_count = len(live)

        for session_id in [sid for sid in self._queue if sid not in live]:
            entry = self._queue[session_id]
            self._drop(session_id)
            result.removed_stale.append(session_id)
            logger.debug("Session %s (%s) gone; dropped from queue", session_id, entry.username)

        for session_id, entry in list(self._queue.items()):
            current = live[session_id]
            if current.username != entry.username:
                self._drop(session_id)
                result.removed_mismatch.append(session_id)
                self._status.emit(
                    StatusCategory.QUEUE,
                    f"Session {session_id} now belongs to {current.username} (was {entry.username}); re-queueing",
                    verbose=True,
                )

        # A finished task whose session is still live (same user) had no effect:
        # directory outage on re-check, failed logoff, or the user came back on the same id.
        for session_id, entry in list(self._queue.items()):
            handle = entry.task.handle
            if handle is not None and handle.done():
                self._drop(session_id)
                result.retried.append(session_id)
                self._status.emit(
                    StatusCategory.QUEUE,
                    f"Session {session_id} ({entry.username}) still live after its logoff task ended; re-queueing",
                    verbose=True,
                )

        for session in live.values():
            if session.id in self._queue:
                continue
            delay = self.delay_for(session, minutes)
            self._admit(session, delay, now)
            result.admitted[session.id] = delay
            self._status.emit(
                StatusCategory.QUEUE,
                f"Queued logoff of session {session.id} ({session.username}@{session.host}, "
                f"{session.state.value}) in {format_duration(delay)}",
                verbose=True,
            )

        self._emit_summary()
        return result

    def _emit_summary(self) -> None:
        if not self._queue:
            self._status.emit(StatusCategory.STATUS, "No sessions to terminate")
            return
        latest = max(entry.logout_time for entry in self._queue.values())
        self._status.emit(
            StatusCategory.STATUS,
            f"{len(self._queue)} session(s) queued; last logoff at {latest.strftime('%H:%M:%S')}",
        )

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """
        Loop until drained (drain_on_empty and no live sessions) or stop_event is set.

        Queued logouts are stopped on the way out.
        """
        stop_event = stop_event or asyncio.Event()
        self._status.emit(
            StatusCategory.START,
            f"Logging off sessions: delay {format_duration(self.config.logout_delay_minutes)}, "
            f"grace period until {self.cutoff_time.strftime('%H:%M:%S')}, "
            f"poll every {self.config.poll_interval_seconds}s"
            + (", drain on empty" if self.config.drain_on_empty else ""),
        )
        try:
            while not stop_event.is_set():
                result = await self.tick()

                if self.config.drain_on_empty and not result.skipped and result.live_count == 0:
                    self._status.emit(StatusCategory.DRAIN, "No active sessions remain; exiting")
                    return

                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(stop_event.wait(), timeout=self.config.poll_interval_seconds)

            self._status.emit(StatusCategory.STOP, "Stop requested; exiting")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop every queued logout and empty the queue."""
        for session_id in list(self._queue):
            self._drop(session_id)

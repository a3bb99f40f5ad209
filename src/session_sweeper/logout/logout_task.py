# src/session_sweeper/logout/logout_task.py

"""
Logout task factory.

schedule() starts one asynchronous logout per session and returns immediately:
1. warn the user (only when there is a delay) and wait out the delay,
2. re-enumerate sessions,
3. force the logoff only if the session id still belongs to the same user.

Everything the work needs (session id, username, host, delay, message) is
captured at schedule time and passed in as plain arguments; the work never reads
back from the reconciler or from the Session object.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from ..core.models import Session
from ..core.ports import SessionDirectory, SessionMessenger, SessionTerminator
from ..tasks.task import Task

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_TITLE = "Scheduled logoff"
DEFAULT_MESSAGE_BODY = (
    "This server is being taken down for maintenance. "
    "You will be logged off in {duration}. Please save your work and sign out."
)

Sleep = Callable[[float], Awaitable[None]]


class LogoutOutcome(StrEnum):
    LOGGED_OFF = "logged_off"
    SESSION_GONE = "session_gone"
    IDENTITY_CHANGED = "identity_changed"
    DIRECTORY_UNAVAILABLE = "directory_unavailable"
    LOGOFF_FAILED = "logoff_failed"


def format_duration(minutes: int) -> str:
    return "1 minute" if minutes == 1 else f"{minutes} minutes"


def render_message(body: str, delay_minutes: int) -> str:
    """Fill the `{duration}` placeholder; bodies without one are sent as-is."""
    if "{duration}" not in body:
        return body
    return body.replace("{duration}", format_duration(delay_minutes))


def logout_task_name(session_id: int, username: str) -> str:
    return f"logout-{session_id}-{username}"


async def _logout_session(
        session_id: int,
        username: str,
        host: str,
        delay_minutes: int,
        title: str,
        body: str,
        directory: SessionDirectory,
        messenger: SessionMessenger,
        terminator: SessionTerminator,
        sleep: Sleep,
) -> LogoutOutcome:
    if delay_minutes > 0:
        text = render_message(body, delay_minutes)
        try:
            await asyncio.to_thread(messenger.send_message, host, session_id, title, text)
            logger.info("Warned session %s (%s) about logoff in %s", session_id, username, format_duration(delay_minutes))
        except Exception:
            # Best-effort: the logoff still goes ahead after the delay.
            logger.warning("Could not notify session %s (%s)", session_id, username, exc_info=True)
        await sleep(delay_minutes * 60)

    try:
        sessions = await asyncio.to_thread(directory.list_sessions)
    except Exception:
        logger.warning("Session %s (%s): directory unavailable, logoff skipped", session_id, username, exc_info=True)
        return LogoutOutcome.DIRECTORY_UNAVAILABLE

    current = next((s for s in sessions if s.id == session_id), None)
    if current is None:
        logger.info("Session %s (%s) already gone", session_id, username)
        return LogoutOutcome.SESSION_GONE
    if current.username != username:
        logger.info(
            "Session %s now belongs to %s (was %s); not logging off",
            session_id,
            current.username,
            username,
        )
        return LogoutOutcome.IDENTITY_CHANGED

    try:
        await asyncio.to_thread(terminator.force_logoff, host, session_id)
    except Exception:
        logger.warning("Logoff of session %s (%s) failed", session_id, username, exc_info=True)
        return LogoutOutcome.LOGOFF_FAILED

    logger.info("Logged off session %s (%s) on %s", session_id, username, host)
    return LogoutOutcome.LOGGED_OFF


class LogoutTaskFactory:
    """Builds and starts logout tasks against the given session ports."""

    def __init__(
            self,
            directory: SessionDirectory,
            messenger: SessionMessenger,
            terminator: SessionTerminator,
            *,
            sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._directory = directory
        self._messenger = messenger
        self._terminator = terminator
        self._sleep = sleep

    def schedule(
            self,
            session: Session,
            delay_minutes: int,
            message_title: str = DEFAULT_MESSAGE_TITLE,
            message_body: str = DEFAULT_MESSAGE_BODY,
    ) -> Task:
        """Start the logout of `session` after `delay_minutes`; does not wait for it."""
        delay = max(0, int(delay_minutes))
        task = Task(
            logout_task_name(session.id, session.username),
            _logout_session,
            session.id,
            session.username,
            session.host,
            delay,
            message_title,
            message_body,
            self._directory,
            self._messenger,
            self._terminator,
            self._sleep,
        )
        task.start()
        logger.debug("Scheduled %s delay=%s", task.name, format_duration(delay))
        return task

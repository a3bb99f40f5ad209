# tests/test_logout_task.py

from __future__ import annotations

import asyncio

import pytest

from session_sweeper.core.models import Session
from session_sweeper.logout.logout_task import (
    LogoutOutcome,
    LogoutTaskFactory,
    format_duration,
    render_message,
)
from session_sweeper.tasks.task_models import TaskState

from .fakes import BlockingSleep, FakeMessenger, FakeSessionDirectory, FakeTerminator, InstantSleep

BODY = "Logging off in {duration}."


@pytest.mark.parametrize(
    ("minutes", "text"),
    [(1, "1 minute"), (0, "0 minutes"), (2, "2 minutes"), (10, "10 minutes")],
)
def test_format_duration_pluralizes(minutes: int, text: str) -> None:
    assert format_duration(minutes) == text


def test_render_message_fills_duration_placeholder() -> None:
    assert render_message(BODY, 1) == "Logging off in 1 minute."
    assert render_message("Save your {work} now", 3) == "Save your {work} now"


async def _run(factory: LogoutTaskFactory, session: Session, delay: int) -> LogoutOutcome:
    task = factory.schedule(session, delay, "Maintenance", BODY)
    await asyncio.wait([task.handle])
    assert task.state() == TaskState.COMPLETED
    return task.result()


@pytest.mark.asyncio
async def test_zero_delay_logs_off_without_message(
        alice: Session,
        directory: FakeSessionDirectory,
        messenger: FakeMessenger,
        terminator: FakeTerminator,
) -> None:
    directory.sessions = [alice]
    sleep = InstantSleep()
    factory = LogoutTaskFactory(directory, messenger, terminator, sleep=sleep)

    assert await _run(factory, alice, 0) == LogoutOutcome.LOGGED_OFF
    assert messenger.sent == []
    assert sleep.calls == []
    assert terminator.logged_off == [("ts01", 1)]


@pytest.mark.asyncio
async def test_delay_warns_then_waits_then_logs_off(
        alice: Session,
        directory: FakeSessionDirectory,
        messenger: FakeMessenger,
        terminator: FakeTerminator,
) -> None:
    directory.sessions = [alice]
    sleep = InstantSleep()
    factory = LogoutTaskFactory(directory, messenger, terminator, sleep=sleep)

    assert await _run(factory, alice, 5) == LogoutOutcome.LOGGED_OFF

    assert len(messenger.sent) == 1
    popup = messenger.sent[0]
    assert (popup.host, popup.session_id, popup.title) == ("ts01", 1, "Maintenance")
    assert popup.body == "Logging off in 5 minutes."
    assert sleep.calls == [300]
    assert terminator.logged_off == [("ts01", 1)]


@pytest.mark.asyncio
async def test_id_reused_by_another_user_is_not_logged_off(
        directory: FakeSessionDirectory,
        messenger: FakeMessenger,
        terminator: FakeTerminator,
) -> None:
    alice = Session(id=7, username="alice", host="ts01")
    bob = Session(id=7, username="bob", host="ts01")
    directory.sessions = [alice]

    def swap(_seconds: float) -> None:
        directory.sessions = [bob]

    factory = LogoutTaskFactory(directory, messenger, terminator, sleep=InstantSleep(swap))

    assert await _run(factory, alice, 5) == LogoutOutcome.IDENTITY_CHANGED
    assert terminator.logged_off == []


@pytest.mark.asyncio
async def test_session_gone_before_logoff(
        alice: Session,
        directory: FakeSessionDirectory,
        messenger: FakeMessenger,
        terminator: FakeTerminator,
) -> None:
    directory.sessions = [alice]

    def leave(_seconds: float) -> None:
        directory.sessions = []

    factory = LogoutTaskFactory(directory, messenger, terminator, sleep=InstantSleep(leave))

    assert await _run(factory, alice, 1) == LogoutOutcome.SESSION_GONE
    assert messenger.sent[0].body == "Logging off in 1 minute."
    assert terminator.logged_off == []


@pytest.mark.asyncio
async def test_notification_failure_does_not_prevent_logoff(
        alice: Session,
        directory: FakeSessionDirectory,
        terminator: FakeTerminator,
) -> None:
    directory.sessions = [alice]
    factory = LogoutTaskFactory(directory, FakeMessenger(fail=True), terminator, sleep=InstantSleep())

    assert await _run(factory, alice, 2) == LogoutOutcome.LOGGED_OFF
    assert terminator.logged_off == [("ts01", 1)]


@pytest.mark.asyncio
async def test_logoff_failure_is_absorbed(
        alice: Session,
        directory: FakeSessionDirectory,
        messenger: FakeMessenger,
) -> None:
    directory.sessions = [alice]
    factory = LogoutTaskFactory(directory, messenger, FakeTerminator(fail=True), sleep=InstantSleep())

    assert await _run(factory, alice, 0) == LogoutOutcome.LOGOFF_FAILED


@pytest.mark.asyncio
async def test_directory_unavailable_on_recheck_skips_logoff(
        alice: Session,
        directory: FakeSessionDirectory,
        messenger: FakeMessenger,
        terminator: FakeTerminator,
) -> None:
    directory.sessions = [alice]
    directory.unavailable = True
    factory = LogoutTaskFactory(directory, messenger, terminator, sleep=InstantSleep())

    assert await _run(factory, alice, 0) == LogoutOutcome.DIRECTORY_UNAVAILABLE
    assert terminator.logged_off == []


@pytest.mark.asyncio
async def test_schedule_returns_while_task_is_still_waiting(
        alice: Session,
        directory: FakeSessionDirectory,
        messenger: FakeMessenger,
        terminator: FakeTerminator,
) -> None:
    directory.sessions = [alice]
    sleep = BlockingSleep()
    factory = LogoutTaskFactory(directory, messenger, terminator, sleep=sleep)

    task = factory.schedule(alice, 3, "Maintenance", BODY)
    assert task.name == "logout-1-alice"

    for _ in range(50):
        if sleep.calls:
            break
        await asyncio.sleep(0.01)

    assert sleep.calls == [180]
    assert task.state() == TaskState.RUNNING
    assert terminator.logged_off == []

    task.stop()
    await asyncio.wait([task.handle])
    assert task.state() == TaskState.STOPPED
    assert terminator.logged_off == []

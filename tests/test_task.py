# tests/test_task.py

from __future__ import annotations

import asyncio

import pytest

from session_sweeper.errors import AlreadyStartedError, NotStartedError
from session_sweeper.tasks.task import Task
from session_sweeper.tasks.task_models import TaskState


async def _ok() -> str:
    return "ok"


async def _boom() -> None:
    raise RuntimeError("boom")


async def _forever() -> None:
    await asyncio.Event().wait()


def test_state_and_uptime_fail_before_start() -> None:
    task = Task("t", _ok)

    with pytest.raises(NotStartedError):
        task.state()
    with pytest.raises(NotStartedError):
        task.uptime()
    assert not task.started


@pytest.mark.asyncio
async def test_start_twice_raises() -> None:
    task = Task("t", _ok)
    task.start()

    with pytest.raises(AlreadyStartedError):
        task.start()

    await task.handle


@pytest.mark.asyncio
async def test_lifecycle_pending_running_completed() -> None:
    gate = asyncio.Event()

    async def work(x: int) -> int:
        await gate.wait()
        return x * 2

    task = Task("double", work, 21)
    handle = task.start()

    assert handle.get_name() == "double"
    assert task.started_at is not None
    assert task.state() == TaskState.PENDING

    await asyncio.sleep(0)
    assert task.state() == TaskState.RUNNING

    gate.set()
    await handle
    assert task.state() == TaskState.COMPLETED
    assert task.result() == 42


@pytest.mark.asyncio
async def test_exception_in_work_is_failed_state() -> None:
    task = Task("boom", _boom)
    task.start()
    await asyncio.wait([task.handle])

    assert task.state() == TaskState.FAILED


@pytest.mark.asyncio
async def test_stop_is_idempotent() -> None:
    task = Task("forever", _forever)
    task.start()
    await asyncio.sleep(0)

    task.stop()
    task.stop()
    assert task.state() == TaskState.STOPPED

    await asyncio.wait([task.handle])
    assert task.handle.cancelled()

    task.stop()
    assert task.state() == TaskState.STOPPED


@pytest.mark.asyncio
async def test_stop_is_noop_for_unstarted_and_finished_tasks() -> None:
    Task("never", _ok).stop()

    done = Task("done", _ok)
    done.start()
    await done.handle
    done.stop()
    assert done.state() == TaskState.COMPLETED

    failed = Task("failed", _boom)
    failed.start()
    await asyncio.wait([failed.handle])
    failed.stop()
    assert failed.state() == TaskState.FAILED


@pytest.mark.asyncio
async def test_uptime_grows_after_start() -> None:
    task = Task("forever", _forever)
    task.start()

    first = task.uptime()
    await asyncio.sleep(0.01)
    assert task.uptime() > first >= 0

    task.stop()
    await asyncio.wait([task.handle])


@pytest.mark.asyncio
async def test_callbacks_receive_handle_and_missing_ones_are_noops() -> None:
    seen: list[object] = []
    task = Task("t", _ok, on_completed=seen.append)
    task.start()
    await task.handle

    task.invoke_completed()
    task.invoke_running()
    task.invoke_failed()

    assert seen == [task.handle]

# tests/conftest.py

from __future__ import annotations

import io

import pytest

from session_sweeper.core.models import Session, SessionState
from session_sweeper.status import StatusStream

from .fakes import FakeClock, FakeMessenger, FakeSessionDirectory, FakeTerminator


@pytest.fixture()
def alice() -> Session:
    return Session(id=1, username="alice", host="ts01", state=SessionState.ACTIVE)


@pytest.fixture()
def directory() -> FakeSessionDirectory:
    return FakeSessionDirectory()


@pytest.fixture()
def messenger() -> FakeMessenger:
    return FakeMessenger()


@pytest.fixture()
def terminator(directory: FakeSessionDirectory) -> FakeTerminator:
    return FakeTerminator(directory=directory)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def status_out() -> io.StringIO:
    return io.StringIO()


@pytest.fixture()
def status(status_out: io.StringIO, clock: FakeClock) -> StatusStream:
    """Non-verbose status stream writing to an in-memory buffer."""
    return StatusStream(status_out, clock=clock)

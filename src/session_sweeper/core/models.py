# src/session_sweeper/core/models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..tasks.task import Task


class SessionState(StrEnum):
    ACTIVE = "active"
    DISCONNECTED = "disconnected"

    @classmethod
    def parse(cls, raw: str | None) -> SessionState:
        """Accept the usual spellings ("Active", "Disc", "disconnected", ...)."""
        value = (raw or "").strip().lower()
        if value.startswith("disc"):
            return cls.DISCONNECTED
        return cls.ACTIVE


@dataclass(slots=True, frozen=True)
class Session:
    """
    A live remote session as reported by the session directory.

    `id` is only unique while the session is live: a later, unrelated session
    may reuse it after the original one logs out.
    """

    id: int
    username: str
    host: str
    state: SessionState = SessionState.ACTIVE

    @property
    def disconnected(self) -> bool:
        return self.state == SessionState.DISCONNECTED


@dataclass(slots=True, frozen=True)
class QueuedLogout:
    """
    A logout task the reconciler has already scheduled.

    Frozen on purpose: entries are replaced (remove + insert), never patched,
    so username/logout_time always describe the task that was actually started.
    """

    session_id: int
    username: str
    logout_time: datetime
    task: Task

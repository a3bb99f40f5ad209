# src/session_sweeper/core/ports.py

"""
Ports (interfaces) used by the core.

The reconciler and the logout tasks depend on these Protocols instead of concrete
implementations, so the session backend stays swappable and tests can use fakes.

All three calls are blocking; the core runs them through asyncio.to_thread.
"""

from __future__ import annotations

from typing import Protocol

from .models import Session


class SessionDirectory(Protocol):
    """Enumerates live sessions. Raises DirectoryUnavailableError when it cannot."""

    def list_sessions(self) -> list[Session]: ...


class SessionMessenger(Protocol):
    """Shows a warning popup inside a session. Raises NotificationFailure on error."""

    def send_message(self, host: str, session_id: int, title: str, body: str) -> None: ...


class SessionTerminator(Protocol):
    """Forcibly logs a session off. Raises LogoffFailure on error."""

    def force_logoff(self, host: str, session_id: int) -> None: ...

# src/session_sweeper/connectors/session_file.py

"""
JSON-file session host.

Implements all three session ports against a plain JSON file:

    [{"id": 2, "username": "alice", "host": "ts01", "state": "Active"}, ...]

- list_sessions() reads the file on every call,
- send_message() only logs the popup it would show,
- force_logoff() rewrites the file without that session (atomic replace).

Handy for dry runs and demos of the reconciler without a terminal server.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from ..core.models import Session, SessionState
from ..errors import DirectoryUnavailableError, LogoffFailure

logger = logging.getLogger(__name__)


def _parse_session(raw: Any) -> Session | None:
    if not isinstance(raw, dict):
        return None
    try:
        session_id = int(raw["id"])
        username = str(raw["username"]).strip()
    except (KeyError, TypeError, ValueError):
        return None
    if not username:
        return None
    return Session(
        id=session_id,
        username=username,
        host=str(raw.get("host") or "localhost"),
        state=SessionState.parse(raw.get("state")),
    )


class FileSessionHost:
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        # logoff runs on worker threads; serialize read-modify-write of the file.
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_raw(self) -> list[Any]:
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError) as exc:
            raise DirectoryUnavailableError(f"cannot read {self._path}: {exc}") from exc
        if not isinstance(data, list):
            raise DirectoryUnavailableError(f"{self._path}: expected a JSON list of sessions")
        return data

    def list_sessions(self) -> list[Session]:
        with self._lock:
            raw_items = self._read_raw()

        sessions: list[Session] = []
        for raw in raw_items:
            session = _parse_session(raw)
            if session is None:
                logger.debug("Skipping malformed session entry in %s: %r", self._path, raw)
                continue
            sessions.append(session)
        return sessions

    def send_message(self, host: str, session_id: int, title: str, body: str) -> None:
        logger.info("[popup] %s session=%s title=%r body=%r", host, session_id, title, body)

    def force_logoff(self, host: str, session_id: int) -> None:
        with self._lock:
            try:
                raw_items = self._read_raw()
            except DirectoryUnavailableError as exc:
                raise LogoffFailure(str(exc)) from exc

            kept = [r for r in raw_items if not (isinstance(r, dict) and str(r.get("id")) == str(session_id))]
            if len(kept) == len(raw_items):
                raise LogoffFailure(f"no session {session_id} on {host}")

            tmp = self._path.with_suffix(".tmp")
            try:
                tmp.write_text(json.dumps(kept, ensure_ascii=False, indent=2), "utf-8")
                os.replace(tmp, self._path)
            except OSError as exc:
                raise LogoffFailure(f"cannot update {self._path}: {exc}") from exc

        logger.info("[logoff] %s session=%s", host, session_id)

# src/session_sweeper/status.py

"""
Status stream: one line per event, `[timestamp] [CATEGORY] message`.

This is the operator-facing output of the reconciler (meant for console or log
capture). Every line is mirrored to the `session_sweeper.status` logger; verbose
lines only reach the text stream when the stream itself is verbose.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from datetime import datetime
from enum import StrEnum
from typing import TextIO

logger = logging.getLogger(__name__)


class StatusCategory(StrEnum):
    START = "START"
    GRACE = "GRACE"
    QUEUE = "QUEUE"
    STATUS = "STATUS"
    DRAIN = "DRAIN"
    DIRECTORY = "DIRECTORY"
    STOP = "STOP"


def _ts_local() -> datetime:
    return datetime.now().astimezone()


class StatusStream:
    def __init__(
            self,
            stream: TextIO | None = None,
            *,
            verbose: bool = False,
            clock: Callable[[], datetime] = _ts_local,
    ) -> None:
        self._stream = stream
        self.verbose = verbose
        self._clock = clock

    def emit(self, category: StatusCategory, message: str, *, verbose: bool = False) -> None:
        logger.log(
            logging.DEBUG if verbose else logging.INFO,
            "[%s] %s",
            category.value,
            message,
        )
        if verbose and not self.verbose:
            return

        ts = self._clock().strftime("%Y-%m-%d %H:%M:%S")
        # Resolve stdout lazily so pytest's capsys (and redirected stdout) is honoured.
        out = self._stream if self._stream is not None else sys.stdout
        print(f"[{ts}] [{category.value}] {message}", file=out, flush=True)

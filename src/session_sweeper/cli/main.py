# src/session_sweeper/cli/main.py

"""
CLI entrypoint.

Loads settings, initializes logging, wires the session host, the logout task
factory, the task supervisor and the reconciler, then runs the reconciler loop
until it drains or a signal stops it.

Exit codes:
- 0 after a drain,
- 2 on invalid configuration,
- 128 + signal number after SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from ..config import Settings, get_settings
from ..connectors.session_file import FileSessionHost
from ..errors import ValidationError
from ..logging_setup import setup_logging
from ..logout.logout_task import LogoutTaskFactory
from ..logout.reconciler import SessionReconciler
from ..status import StatusStream
from ..tasks.task_supervisor import TaskSupervisor

logger = logging.getLogger(__name__)

EXIT_INVALID_CONFIG = 2


def build_reconciler(settings: Settings, supervisor: TaskSupervisor | None = None) -> SessionReconciler:
    """Composition root: concrete ports + factory + reconciler from settings."""
    host = FileSessionHost(settings.sessions_file)
    factory = LogoutTaskFactory(host, host, host)
    return SessionReconciler(
        host,
        factory,
        settings.reconciler_config(),
        status=StatusStream(verbose=settings.verbose),
        supervisor=supervisor,
    )


async def serve(settings: Settings) -> int:
    supervisor = TaskSupervisor(settings.supervisor_config())
    reconciler = build_reconciler(settings, supervisor)

    stop_event = asyncio.Event()
    received: list[int] = []

    def _handle_signal(signum: int) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        received.append(signum)
        stop_event.set()

    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handle_signal, int(sig))
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Windows event loops don't support add_signal_handler.
            logger.debug("Cannot install handler for %s", sig)

    supervisor.start()
    try:
        await reconciler.run(stop_event)
    finally:
        await supervisor.stop()
        supervisor.stop_all()
        for sig in installed:
            loop.remove_signal_handler(sig)

    return 128 + received[0] if received else 0


def run() -> int:
    try:
        settings = get_settings()
        settings.validate()
    except ValidationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_INVALID_CONFIG

    level_name = settings.log_level.upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.log_dir, console_level=console_level)

    logger.info("Starting %s (sessions from %s)...", settings.app_name, settings.sessions_file)

    try:
        code = asyncio.run(serve(settings))
    except KeyboardInterrupt:
        code = 128 + int(signal.SIGINT)

    logger.info("Bye (exit code %s).", code)
    return code


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()

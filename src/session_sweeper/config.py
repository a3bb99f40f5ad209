# src/session_sweeper/config.py

"""Settings loaded from environment variables (+ .env via python-dotenv).

Design goals:
- One Settings object, built explicitly by the entrypoint and passed down.
- Typed sub-configs for the reconciler and the task supervisor.
- Unparseable numbers fail loudly (ValidationError) instead of falling back to defaults;
  range checks live on the sub-configs.
"""

from __future__ import annotations

import getpass
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv as _load_dotenv

from .errors import ValidationError
from .logout.logout_task import DEFAULT_MESSAGE_BODY, DEFAULT_MESSAGE_TITLE
from .logout.reconciler import (
    DEFAULT_GRACE_PERIOD_MINUTES,
    DEFAULT_LOGOUT_DELAY_MINUTES,
    DEFAULT_POLL_INTERVAL_SECONDS,
    ReconcilerConfig,
)
from .tasks.task_models import DEFAULT_SUPERVISOR_INTERVAL_SECONDS, DEFAULT_TASK_TIMEOUT_SECONDS, SupervisorConfig

ENV_PREFIX = "SWEEP"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number, got {raw!r}") from None


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _current_user() -> str | None:
    try:
        return getpass.getuser()
    except Exception:
        return None


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    log_dir: Path
    verbose: bool

    # ---- Logoff policy ----
    logout_delay_minutes: int
    poll_interval_seconds: int
    grace_period_minutes: int
    drain_on_empty: bool
    exclude_username: str | None

    # ---- Warning popup ----
    message_title: str
    message_body: str

    # ---- Session source ----
    sessions_file: Path

    # ---- Task supervisor ----
    supervisor_interval_seconds: float
    task_timeout_minutes: float

    @staticmethod
    def from_env(*, load_dotenv: bool = True) -> "Settings":
        if load_dotenv:
            _load_dotenv(override=False)

        app_name = _env(_k("APP_NAME"), "session-sweeper")
        log_level = _env(_k("LOG_LEVEL"), "WARNING")
        log_dir = _env_path(_k("LOG_DIR"), Path(".local/session-sweeper"))
        verbose = _env_bool(_k("VERBOSE"), False)

        exclude_username = _env(_k("EXCLUDE_USER"), "").strip() or _current_user()

        return Settings(
            app_name=app_name,
            log_level=log_level,
            log_dir=log_dir,
            verbose=verbose,
            logout_delay_minutes=_env_int(_k("LOGOUT_DELAY_MINUTES"), DEFAULT_LOGOUT_DELAY_MINUTES),
            poll_interval_seconds=_env_int(_k("POLL_INTERVAL_SECONDS"), DEFAULT_POLL_INTERVAL_SECONDS),
            grace_period_minutes=_env_int(_k("GRACE_PERIOD_MINUTES"), DEFAULT_GRACE_PERIOD_MINUTES),
            drain_on_empty=_env_bool(_k("DRAIN"), False),
            exclude_username=exclude_username,
            message_title=_env(_k("MESSAGE_TITLE"), DEFAULT_MESSAGE_TITLE),
            message_body=_env(_k("MESSAGE_BODY"), DEFAULT_MESSAGE_BODY),
            sessions_file=_env_path(_k("SESSIONS_FILE"), log_dir / "sessions.json"),
            supervisor_interval_seconds=_env_float(
                _k("SUPERVISOR_INTERVAL_SECONDS"),
                DEFAULT_SUPERVISOR_INTERVAL_SECONDS,
            ),
            task_timeout_minutes=_env_float(_k("TASK_TIMEOUT_MINUTES"), DEFAULT_TASK_TIMEOUT_SECONDS / 60),
        )

    def reconciler_config(self) -> ReconcilerConfig:
        return ReconcilerConfig(
            logout_delay_minutes=self.logout_delay_minutes,
            poll_interval_seconds=self.poll_interval_seconds,
            grace_period_minutes=self.grace_period_minutes,
            drain_on_empty=self.drain_on_empty,
            exclude_username=self.exclude_username,
            message_title=self.message_title,
            message_body=self.message_body,
        )

    def supervisor_config(self) -> SupervisorConfig:
        return SupervisorConfig(
            interval_seconds=self.supervisor_interval_seconds,
            timeout_seconds=self.task_timeout_minutes * 60,
        )

    def validate(self) -> None:
        """Raise ValidationError if any bounded value is out of range."""
        self.reconciler_config().validate()
        self.supervisor_config().validate()


def get_settings() -> Settings:
    return Settings.from_env()

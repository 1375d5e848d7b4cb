"""Runtime configuration for the night-shift runner."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

DEFAULT_DASHBOARD_URL = "http://localhost:3002"
DEFAULT_USER_AGENT = "NightShift-Agent/1.0"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(slots=True)
class DashboardSettings:
    """Dashboard API connection settings."""

    base_url: str = DEFAULT_DASHBOARD_URL
    timeout_seconds: float = 10.0
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(slots=True)
class RunnerSettings:
    """Night-shift runner settings."""

    agent_name: str = "night-shift-runner"
    poll_interval_seconds: float = 30.0
    max_concurrent_tasks: int = 3
    task_timeout_seconds: float = 600.0
    warn_on_handler_overwrite: bool = True

    @property
    def task_timeout(self) -> float | None:
        """Per-task timeout, or None when disabled."""

        if self.task_timeout_seconds <= 0:
            return None
        return self.task_timeout_seconds


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    dashboard: DashboardSettings = field(default_factory=DashboardSettings)
    runner: RunnerSettings = field(default_factory=RunnerSettings)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            dashboard=DashboardSettings(
                base_url=os.getenv(
                    "NIGHT_SHIFT_DASHBOARD_URL",
                    os.getenv("DASHBOARD_URL", DEFAULT_DASHBOARD_URL),
                ).strip(),
                timeout_seconds=float(
                    os.getenv("NIGHT_SHIFT_DASHBOARD_TIMEOUT_SECONDS", "10.0"),
                ),
                max_retries=int(os.getenv("NIGHT_SHIFT_DASHBOARD_MAX_RETRIES", "3")),
                retry_backoff_seconds=float(
                    os.getenv("NIGHT_SHIFT_DASHBOARD_RETRY_BACKOFF_SECONDS", "1.0"),
                ),
                user_agent=os.getenv("NIGHT_SHIFT_USER_AGENT", DEFAULT_USER_AGENT),
            ),
            runner=RunnerSettings(
                agent_name=os.getenv("NIGHT_SHIFT_AGENT_NAME", "night-shift-runner"),
                poll_interval_seconds=float(
                    os.getenv("NIGHT_SHIFT_POLL_INTERVAL_SECONDS", "30.0"),
                ),
                max_concurrent_tasks=int(os.getenv("NIGHT_SHIFT_MAX_CONCURRENT_TASKS", "3")),
                task_timeout_seconds=float(
                    os.getenv("NIGHT_SHIFT_TASK_TIMEOUT_SECONDS", "600.0"),
                ),
                warn_on_handler_overwrite=_env_bool(
                    "NIGHT_SHIFT_WARN_ON_HANDLER_OVERWRITE",
                    default=True,
                ),
            ),
            log_level=os.getenv("NIGHT_SHIFT_LOG_LEVEL", "INFO").strip().upper(),
        )

    def validate(self) -> None:
        """Raise configuration error if any setting is out of range."""

        _validate_base_url(self.dashboard.base_url)
        if self.dashboard.timeout_seconds <= 0:
            raise ValueError("NIGHT_SHIFT_DASHBOARD_TIMEOUT_SECONDS must be > 0.")
        if self.dashboard.max_retries < 0:
            raise ValueError("NIGHT_SHIFT_DASHBOARD_MAX_RETRIES must be >= 0.")
        if self.dashboard.retry_backoff_seconds < 0:
            raise ValueError("NIGHT_SHIFT_DASHBOARD_RETRY_BACKOFF_SECONDS must be >= 0.")
        if not self.runner.agent_name.strip():
            raise ValueError("NIGHT_SHIFT_AGENT_NAME must not be empty.")
        if self.runner.max_concurrent_tasks < 1:
            raise ValueError("NIGHT_SHIFT_MAX_CONCURRENT_TASKS must be a positive integer.")
        if self.runner.poll_interval_seconds < 0:
            raise ValueError("NIGHT_SHIFT_POLL_INTERVAL_SECONDS must be >= 0.")
        if self.runner.task_timeout_seconds < 0:
            raise ValueError("NIGHT_SHIFT_TASK_TIMEOUT_SECONDS must be >= 0 (0 disables).")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"Invalid NIGHT_SHIFT_LOG_LEVEL: {self.log_level!r}. "
                f"Expected one of {', '.join(_LOG_LEVELS)}.",
            )


def _validate_base_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid dashboard URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")

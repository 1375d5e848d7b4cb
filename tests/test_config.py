from __future__ import annotations

import allure
import pytest

from night_shift.config import DEFAULT_DASHBOARD_URL, RunnerSettings, Settings

pytestmark = [
    allure.epic("Night Shift"),
    allure.feature("Configuration"),
]

_ENV_NAMES = (
    "NIGHT_SHIFT_DASHBOARD_URL",
    "DASHBOARD_URL",
    "NIGHT_SHIFT_MAX_CONCURRENT_TASKS",
    "NIGHT_SHIFT_TASK_TIMEOUT_SECONDS",
    "NIGHT_SHIFT_WARN_ON_HANDLER_OVERWRITE",
    "NIGHT_SHIFT_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_from_env_defaults() -> None:
    settings = Settings.from_env()

    assert settings.dashboard.base_url == DEFAULT_DASHBOARD_URL
    assert settings.runner.max_concurrent_tasks == 3
    assert settings.runner.poll_interval_seconds == 30.0
    assert settings.runner.task_timeout == 600.0
    settings.validate()


def test_from_env_falls_back_to_legacy_dashboard_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DASHBOARD_URL", "http://dashboard.internal:8080")

    assert Settings.from_env().dashboard.base_url == "http://dashboard.internal:8080"


def test_from_env_prefers_namespaced_dashboard_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DASHBOARD_URL", "http://legacy:1")
    monkeypatch.setenv("NIGHT_SHIFT_DASHBOARD_URL", "https://dash.example.com")

    assert Settings.from_env().dashboard.base_url == "https://dash.example.com"


def test_zero_task_timeout_disables_timeout() -> None:
    assert RunnerSettings(task_timeout_seconds=0).task_timeout is None


def test_validate_rejects_non_positive_concurrency(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NIGHT_SHIFT_MAX_CONCURRENT_TASKS", "0")

    with pytest.raises(ValueError, match="NIGHT_SHIFT_MAX_CONCURRENT_TASKS"):
        Settings.from_env().validate()


def test_validate_rejects_relative_dashboard_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NIGHT_SHIFT_DASHBOARD_URL", "localhost:3002")

    with pytest.raises(ValueError, match="Invalid dashboard URL"):
        Settings.from_env().validate()


def test_validate_rejects_unknown_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NIGHT_SHIFT_LOG_LEVEL", "chatty")

    with pytest.raises(ValueError, match="Invalid NIGHT_SHIFT_LOG_LEVEL"):
        Settings.from_env().validate()


def test_invalid_boolean_env_value_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NIGHT_SHIFT_WARN_ON_HANDLER_OVERWRITE", "maybe")

    with pytest.raises(ValueError, match="Invalid boolean value"):
        Settings.from_env()


def test_boolean_env_value_false(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NIGHT_SHIFT_WARN_ON_HANDLER_OVERWRITE", "off")

    assert Settings.from_env().runner.warn_on_handler_overwrite is False

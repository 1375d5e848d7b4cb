from __future__ import annotations

import logging

import allure
import pytest

from night_shift.orchestrator.models import TaskType
from night_shift.orchestrator.registry import HandlerRegistrationError, HandlerRegistry

pytestmark = [
    allure.epic("Night Shift"),
    allure.feature("Handler Registry"),
]


async def _first(data, task):
    return "first"


async def _second(data, task):
    return "second"


def test_register_and_lookup_by_string_or_enum() -> None:
    registry = HandlerRegistry()
    registry.register(TaskType.SCRAPE, _first)

    assert registry.has("scrape")
    assert registry.get(TaskType.SCRAPE) is _first
    assert "scrape" in registry
    assert registry.list_types() == ["scrape"]
    assert len(registry) == 1


def test_lookup_of_unknown_type_returns_none() -> None:
    registry = HandlerRegistry()

    assert registry.get("nope") is None
    assert not registry.has("nope")
    assert 42 not in registry


def test_reregistration_overwrites_and_warns(caplog: pytest.LogCaptureFixture) -> None:
    registry = HandlerRegistry()
    registry.register("scrape", _first)

    with caplog.at_level(logging.WARNING, logger="night_shift.orchestrator.registry"):
        registry.register("scrape", _second)

    assert registry.get("scrape") is _second
    assert len(registry) == 1
    assert "Overwriting handler for task type: scrape" in caplog.text


def test_reregistering_same_handler_does_not_warn(caplog: pytest.LogCaptureFixture) -> None:
    registry = HandlerRegistry()
    registry.register("scrape", _first)

    with caplog.at_level(logging.WARNING, logger="night_shift.orchestrator.registry"):
        registry.register("scrape", _first)

    assert "Overwriting" not in caplog.text


def test_overwrite_warning_can_be_disabled(caplog: pytest.LogCaptureFixture) -> None:
    registry = HandlerRegistry(warn_on_overwrite=False)
    registry.register("scrape", _first)

    with caplog.at_level(logging.WARNING, logger="night_shift.orchestrator.registry"):
        registry.register("scrape", _second)

    assert registry.get("scrape") is _second
    assert caplog.text == ""


def test_register_rejects_non_callable() -> None:
    registry = HandlerRegistry()

    with pytest.raises(HandlerRegistrationError, match="must be callable"):
        registry.register("scrape", "not a function")  # type: ignore[arg-type]


def test_unregister_and_clear() -> None:
    registry = HandlerRegistry()
    registry.register("a", _first)
    registry.register("b", _second)

    assert registry.unregister("a") is True
    assert registry.unregister("a") is False
    assert registry.clear() == 1
    assert len(registry) == 0

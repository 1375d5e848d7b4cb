"""Registry mapping task types to handler callables."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from night_shift.orchestrator.models import HandlerResult, NightShiftTask, TaskType

logger = logging.getLogger(__name__)

HandlerReturn = HandlerResult | Any
TaskHandler = Callable[[Any, NightShiftTask], Awaitable[HandlerReturn] | HandlerReturn]


class HandlerRegistrationError(TypeError):
    """Handler passed to the registry is not callable."""


class HandlerRegistry:
    """Holds exactly one handler per task type.

    Registering a type twice replaces the earlier handler (last write wins)
    and logs a warning when ``warn_on_overwrite`` is set.
    """

    def __init__(self, *, warn_on_overwrite: bool = True) -> None:
        self._handlers: dict[str, TaskHandler] = {}
        self._warn_on_overwrite = warn_on_overwrite

    def register(self, task_type: str | TaskType, handler: TaskHandler) -> None:
        key = _key(task_type)
        if not callable(handler):
            raise HandlerRegistrationError(f'Handler for task type "{key}" must be callable')
        existing = self._handlers.get(key)
        if existing is not None and existing != handler and self._warn_on_overwrite:
            logger.warning("Overwriting handler for task type: %s", key)
        self._handlers[key] = handler
        logger.debug("Registered handler for task type: %s", key)

    def unregister(self, task_type: str | TaskType) -> bool:
        key = _key(task_type)
        if self._handlers.pop(key, None) is None:
            return False
        logger.info("Unregistered handler for task type: %s", key)
        return True

    def has(self, task_type: str | TaskType) -> bool:
        return _key(task_type) in self._handlers

    def get(self, task_type: str | TaskType) -> TaskHandler | None:
        return self._handlers.get(_key(task_type))

    def list_types(self) -> list[str]:
        return list(self._handlers)

    def clear(self) -> int:
        count = len(self._handlers)
        self._handlers.clear()
        logger.info("Cleared %d registered handlers", count)
        return count

    def __contains__(self, task_type: object) -> bool:
        if not isinstance(task_type, str):
            return False
        return self.has(task_type)

    def __len__(self) -> int:
        return len(self._handlers)


def _key(task_type: str | TaskType) -> str:
    if isinstance(task_type, TaskType):
        return task_type.value
    return task_type

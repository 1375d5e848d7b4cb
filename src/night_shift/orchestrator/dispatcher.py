"""Dispatch one task to its registered handler under a uniform result contract."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any

from night_shift.orchestrator.metrics import DispatchMetrics
from night_shift.orchestrator.models import DispatchResult, HandlerResult, NightShiftTask
from night_shift.orchestrator.registry import HandlerRegistry, TaskHandler

logger = logging.getLogger(__name__)

MISSING_TASK_TYPE_ERROR = "Task type is required"
NO_HANDLER_ERROR_PREFIX = "No handler found for task type: "


class TaskDispatcher:
    """Resolves handlers, runs them and converts every failure into data.

    ``dispatch`` never raises for handler errors, unknown types or timeouts;
    only cancellation of the surrounding coroutine propagates.

    Plain (non-async) handlers run in a worker thread. A timeout abandons the
    wait but cannot stop that thread, which keeps running in the background
    until the handler returns.
    """

    def __init__(
        self,
        *,
        registry: HandlerRegistry,
        metrics: DispatchMetrics | None = None,
        task_timeout_seconds: float | None = None,
    ) -> None:
        self.registry = registry
        self.metrics = metrics or DispatchMetrics()
        self.task_timeout_seconds = task_timeout_seconds

    async def dispatch(self, task: NightShiftTask) -> DispatchResult:
        if not task.task_type:
            return DispatchResult(success=False, error=MISSING_TASK_TYPE_ERROR)

        handler = self.registry.get(task.task_type)
        if handler is None:
            logger.error("No handler registered for task type: %s", task.task_type)
            return DispatchResult(
                success=False,
                error=f"{NO_HANDLER_ERROR_PREFIX}{task.task_type}",
            )

        logger.info("Dispatching task [%s] of type: %s", task.task_id, task.task_type)
        data = task.decoded_data()
        deadline = asyncio.timeout(self.task_timeout_seconds)
        started = time.perf_counter()
        try:
            async with deadline:
                returned = await _call_handler(handler, data, task)
        except Exception as error:  # noqa: BLE001
            result = self._failure(task, error, expired=deadline.expired(), started=started)
        else:
            result = _normalize(returned, duration_ms=_elapsed_ms(started))

        self.metrics.record(
            task_type=task.task_type,
            success=result.success,
            duration_ms=result.duration_ms,
            tokens_used=result.tokens_used,
        )
        logger.info(
            "Task [%s] %s: %s (%dms, %d tokens)",
            task.task_id,
            "completed" if result.success else "failed",
            task.task_type,
            result.duration_ms,
            result.tokens_used,
        )
        return result

    def _failure(
        self,
        task: NightShiftTask,
        error: Exception,
        *,
        expired: bool,
        started: float,
    ) -> DispatchResult:
        duration_ms = _elapsed_ms(started)
        # Only our own deadline counts as a timeout; a TimeoutError raised
        # inside the handler is an ordinary handler failure.
        if expired and isinstance(error, TimeoutError):
            message = f"Task timed out after {self.task_timeout_seconds:g}s"
            logger.error("Task [%s] %s", task.task_id, message.lower())
        else:
            message = str(error) or type(error).__name__
            logger.exception("Task [%s] execution error: %s", task.task_id, error)
        return DispatchResult(success=False, error=message, duration_ms=duration_ms)


async def _call_handler(handler: TaskHandler, data: Any, task: NightShiftTask) -> Any:
    if inspect.iscoroutinefunction(handler):
        return await handler(data, task)
    returned = await asyncio.to_thread(handler, data, task)
    if inspect.isawaitable(returned):
        return await returned
    return returned


def _normalize(returned: Any, *, duration_ms: int) -> DispatchResult:
    if isinstance(returned, HandlerResult):
        return DispatchResult(
            success=returned.success,
            output=returned.output,
            error=None if returned.success else returned.error or "Handler reported failure",
            duration_ms=duration_ms,
            tokens_used=max(int(returned.tokens_used or 0), 0),
        )
    return DispatchResult(success=True, output=returned, duration_ms=duration_ms)


def _elapsed_ms(started: float) -> int:
    return max(int((time.perf_counter() - started) * 1000), 0)

"""Built-in night-shift task handlers.

Each handler translates the queue payload into a ``TaskActionRequest`` and
delegates the business effect to a ``TaskBackend``. ``EchoTaskBackend`` is a
deterministic stand-in used by default and in tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from night_shift.orchestrator.models import HandlerResult, NightShiftTask, TaskType
from night_shift.orchestrator.registry import HandlerRegistry, TaskHandler

logger = logging.getLogger(__name__)

DEFAULT_SITE_URL = "https://werkpilot.ch"

TOKEN_ESTIMATES: dict[TaskType, int] = {
    TaskType.SCRAPE: 0,
    TaskType.SEO_ANALYSIS: 500,
    TaskType.FOLLOW_UP: 300,
    TaskType.PIPELINE_UPDATE: 200,
    TaskType.CONTENT_GENERATE: 2000,
    TaskType.SECURITY_SCAN: 100,
    TaskType.AGENT_OPTIMIZE: 1000,
}


@dataclass(slots=True)
class TaskActionRequest:
    """Inputs for one business action."""

    task_type: TaskType
    task_id: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TaskActionResult:
    success: bool
    output: Any = None
    error: str | None = None


class TaskBackend(Protocol):
    """Protocol implemented by business-action backends."""

    async def run(self, request: TaskActionRequest) -> TaskActionResult:
        """Perform the action and report its outcome."""


class EchoTaskBackend:
    """Describes the requested action without performing it."""

    async def run(self, request: TaskActionRequest) -> TaskActionResult:
        return TaskActionResult(
            success=True,
            output={
                "backend": "echo",
                "taskType": request.task_type.value,
                "summary": describe_action(request),
            },
        )


def describe_action(request: TaskActionRequest) -> str:
    params = request.params
    task_type = request.task_type
    if task_type == TaskType.SCRAPE:
        return f"Scraped data from {params.get('url', 'unknown URL')}"
    if task_type == TaskType.SEO_ANALYSIS:
        return f"SEO analysis for {params.get('url') or DEFAULT_SITE_URL}"
    if task_type == TaskType.FOLLOW_UP:
        return f"Follow-up email for lead {params.get('leadId', 'unknown')}"
    if task_type == TaskType.PIPELINE_UPDATE:
        return "Pipeline updated"
    if task_type == TaskType.CONTENT_GENERATE:
        return (
            f"Generated {params.get('type') or 'blog'} content "
            f"({params.get('language') or 'de'}): {params.get('topic', 'unknown topic')}"
        )
    if task_type == TaskType.SECURITY_SCAN:
        return f"Security scan: {params.get('scope') or 'full'}"
    if task_type == TaskType.AGENT_OPTIMIZE:
        return f"Agent optimization: {params.get('agentName') or 'all agents'}"
    return task_type.value


class DefaultTaskHandlers:
    """One handler per ``TaskType``, built once so re-installation is a no-op."""

    def __init__(self, backend: TaskBackend | None = None) -> None:
        self.backend = backend or EchoTaskBackend()
        self._handlers: dict[TaskType, TaskHandler] = {
            task_type: self._make_handler(task_type) for task_type in TaskType
        }

    def install(self, registry: HandlerRegistry) -> list[str]:
        for task_type, handler in self._handlers.items():
            registry.register(task_type, handler)
        registered = registry.list_types()
        logger.info("Registered %d task handlers: %s", len(registered), ", ".join(registered))
        return registered

    def _make_handler(self, task_type: TaskType) -> TaskHandler:
        tokens = TOKEN_ESTIMATES[task_type]

        async def handler(data: Any, task: NightShiftTask) -> HandlerResult:
            params = data if isinstance(data, dict) else {"value": data}
            request = TaskActionRequest(task_type=task_type, task_id=task.task_id, params=params)
            logger.info("Running %s for task %s", task_type.value, task.task_id)
            outcome = await self.backend.run(request)
            if not outcome.success:
                return HandlerResult.fail(
                    outcome.error or f"{task_type.value} action failed",
                    output=outcome.output,
                    tokens_used=tokens,
                )
            return HandlerResult.ok(outcome.output, tokens_used=tokens)

        handler.__name__ = f"handle_{task_type.name.lower()}"
        return handler


def install_default_handlers(
    registry: HandlerRegistry,
    backend: TaskBackend | None = None,
) -> list[str]:
    """Register one built-in handler per ``TaskType``; return registered types."""

    return DefaultTaskHandlers(backend).install(registry)

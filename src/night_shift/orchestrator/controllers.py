"""Controllers for night-shift CLI commands."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from night_shift.config import Settings
from night_shift.http.client import DashboardClient
from night_shift.orchestrator.handlers import TOKEN_ESTIMATES, DefaultTaskHandlers
from night_shift.orchestrator.health import aggregate_fleet_health, render_health_lines
from night_shift.orchestrator.metrics import render_metrics_lines
from night_shift.orchestrator.monitor import DashboardMonitor
from night_shift.orchestrator.queue import NightShiftQueue
from night_shift.orchestrator.registry import HandlerRegistry
from night_shift.orchestrator.runner import NightShiftRunner


@dataclass(slots=True)
class RunCommand:
    """CLI input for a runner invocation."""

    continuous: bool = False
    dry_run: bool = False


@dataclass(slots=True)
class RunCommandResult:
    exit_code: int
    lines: list[str]


@dataclass(slots=True)
class EnqueueCommand:
    """CLI input for task enqueue."""

    task_type: str
    priority: int = 1
    data: str | None = None


@dataclass(slots=True)
class HealthCommand:
    """CLI input for fleet health rollup."""

    shutting_down: bool = False
    output_format: str = "table"


class NightShiftCliController:
    """Builds runner collaborators from settings and executes CLI commands."""

    def __init__(
        self,
        *,
        settings_factory: Callable[[], Settings] = Settings.from_env,
        transport: httpx.AsyncBaseTransport | None = None,
        handlers_factory: Callable[[], DefaultTaskHandlers] = DefaultTaskHandlers,
    ) -> None:
        self._settings_factory = settings_factory
        self._transport = transport
        self._handlers_factory = handlers_factory

    def settings(self) -> Settings:
        settings = self._settings_factory()
        settings.validate()
        return settings

    def run(self, command: RunCommand) -> RunCommandResult:
        return asyncio.run(self._run(self.settings(), command))

    def enqueue(self, command: EnqueueCommand) -> list[str]:
        return asyncio.run(self._enqueue(self.settings(), command))

    def health(self, command: HealthCommand) -> list[str]:
        return asyncio.run(self._health(self.settings(), command))

    def handlers(self) -> list[str]:
        registry = HandlerRegistry()
        registered = self._handlers_factory().install(registry)
        estimates = {task_type.value: tokens for task_type, tokens in TOKEN_ESTIMATES.items()}
        lines = [f"Registered handlers ({len(registered)}):"]
        lines.extend(
            f"- {task_type} (estimated tokens: {estimates.get(task_type, 0)})"
            for task_type in registered
        )
        return lines

    async def _run(self, settings: Settings, command: RunCommand) -> RunCommandResult:
        async with self._client(settings) as client:
            runner = NightShiftRunner.from_settings(
                settings.runner,
                queue=NightShiftQueue(client),
                monitor=DashboardMonitor(client),
                install_handlers=self._handlers_factory().install,
            )
            if command.continuous:
                iterations = await runner.run_continuous()
                lines = [f"Night shift runner stopped after {iterations} iteration(s)."]
                lines.extend(render_metrics_lines(runner.metrics.snapshot()))
                return RunCommandResult(exit_code=0, lines=lines)

            result = await runner.run_once(dry_run=command.dry_run)
        return RunCommandResult(
            exit_code=0 if result.success else 1,
            lines=[json.dumps(result.to_dict(), indent=2, default=str)],
        )

    async def _enqueue(self, settings: Settings, command: EnqueueCommand) -> list[str]:
        async with self._client(settings) as client:
            task = await NightShiftQueue(client).enqueue(
                command.task_type,
                priority=command.priority,
                data=command.data,
            )
        return [
            f"Task enqueued: id={task.task_id} type={command.task_type} "
            f"priority={command.priority}",
        ]

    async def _health(self, settings: Settings, command: HealthCommand) -> list[str]:
        async with self._client(settings) as client:
            snapshots = await DashboardMonitor(client).fetch_agent_snapshots()
        health = aggregate_fleet_health(snapshots, shutting_down=command.shutting_down)
        if command.output_format == "json":
            return [json.dumps(health.to_dict(), indent=2)]
        return render_health_lines(health)

    def _client(self, settings: Settings) -> DashboardClient:
        return DashboardClient.from_settings(settings.dashboard, transport=self._transport)

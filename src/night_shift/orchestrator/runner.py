"""Night-shift runner: fetch pending tasks, execute them under a pool, report."""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from enum import Enum

from night_shift.config import RunnerSettings
from night_shift.orchestrator.dispatcher import TaskDispatcher
from night_shift.orchestrator.metrics import DispatchMetrics
from night_shift.orchestrator.models import (
    DispatchResult,
    NightShiftTask,
    RunResult,
    RunSummary,
    TaskOutcome,
    TaskPreview,
    TaskStatus,
    ensure_transition,
    utc_now,
)
from night_shift.orchestrator.monitor import AgentState, MonitorSink, Severity
from night_shift.orchestrator.queue import TaskQueue
from night_shift.orchestrator.registry import HandlerRegistry

logger = logging.getLogger(__name__)

DEFAULT_AGENT_NAME = "night-shift-runner"
DEFAULT_POLL_INTERVAL_SECONDS = 30.0
DEFAULT_MAX_CONCURRENT_TASKS = 3

HandlerInstaller = Callable[[HandlerRegistry], object]


class RunnerState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    EXECUTING = "executing"
    REPORTING = "reporting"


class NightShiftRunner:
    """Drains the pending queue once per ``run_once`` call.

    At most ``max_concurrent_tasks`` handlers are in flight at any time; a new
    task is admitted, in fetch order, as soon as any running one finishes.
    Failed tasks are never retried here.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        queue: TaskQueue,
        monitor: MonitorSink,
        registry: HandlerRegistry | None = None,
        dispatcher: TaskDispatcher | None = None,
        install_handlers: HandlerInstaller | None = None,
        agent_name: str = DEFAULT_AGENT_NAME,
        max_concurrent_tasks: int = DEFAULT_MAX_CONCURRENT_TASKS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        task_timeout_seconds: float | None = None,
    ) -> None:
        if max_concurrent_tasks < 1:
            raise ValueError("max_concurrent_tasks must be >= 1")
        self.queue = queue
        self.monitor = monitor
        if registry is None:
            registry = dispatcher.registry if dispatcher is not None else HandlerRegistry()
        self.registry = registry
        self.dispatcher = dispatcher or TaskDispatcher(
            registry=self.registry,
            metrics=DispatchMetrics(),
            task_timeout_seconds=task_timeout_seconds,
        )
        self.install_handlers = install_handlers
        self.agent_name = agent_name
        self.max_concurrent_tasks = max_concurrent_tasks
        self.poll_interval_seconds = poll_interval_seconds
        self.state = RunnerState.IDLE
        self._stop_requested = False
        self._stop_signal_name: str | None = None

    @classmethod
    def from_settings(
        cls,
        settings: RunnerSettings,
        *,
        queue: TaskQueue,
        monitor: MonitorSink,
        install_handlers: HandlerInstaller | None = None,
    ) -> NightShiftRunner:
        return cls(
            queue=queue,
            monitor=monitor,
            registry=HandlerRegistry(warn_on_overwrite=settings.warn_on_handler_overwrite),
            install_handlers=install_handlers,
            agent_name=settings.agent_name,
            max_concurrent_tasks=settings.max_concurrent_tasks,
            poll_interval_seconds=settings.poll_interval_seconds,
            task_timeout_seconds=settings.task_timeout,
        )

    @property
    def metrics(self) -> DispatchMetrics:
        return self.dispatcher.metrics

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    async def run_once(self, dry_run: bool = False) -> RunResult:
        """Process every currently pending task once."""

        run_started = time.perf_counter()
        logger.info("=== Night Shift Runner Starting ===")
        await self._publish(AgentState.ACTIVE)
        try:
            self._ensure_handlers()
            self.state = RunnerState.FETCHING
            tasks = await self.queue.fetch_pending()

            if not tasks:
                logger.info("No pending tasks. Night shift idle.")
                await self._publish(AgentState.IDLE)
                return RunResult(success=True, tasks_executed=0, message="No pending tasks")

            if dry_run:
                return await self._preview(tasks)

            logger.info("Executing %d tasks...", len(tasks))
            self.state = RunnerState.EXECUTING
            outcomes = await self.execute_tasks(tasks)

            self.state = RunnerState.REPORTING
            summary = RunSummary.from_outcomes(outcomes)
            await self._report(summary)

            total_duration_ms = _elapsed_ms(run_started)
            logger.info("=== Night Shift Complete in %.1fs ===", total_duration_ms / 1000)
            await self._publish(
                AgentState.IDLE,
                success_rate=summary.success_rate,
                succeeded=summary.succeeded,
                failed=summary.failed,
            )
            return RunResult(
                success=True,
                tasks_executed=len(outcomes),
                summary=summary,
                results=outcomes,
                total_duration_ms=total_duration_ms,
            )
        except Exception as error:  # noqa: BLE001
            return await self._fail_run(error)
        finally:
            self.state = RunnerState.IDLE

    async def run_continuous(self, *, max_iterations: int | None = None) -> int:
        """Poll the queue until a stop signal arrives; return iterations run.

        A stop request never interrupts an iteration already in flight.
        """

        logger.info("=== Night Shift Runner - Continuous Mode ===")
        logger.info("Polling interval: %.1fs", self.poll_interval_seconds)
        iterations = 0
        with self._signal_handlers():
            while not self._stop_requested:
                if max_iterations is not None and iterations >= max_iterations:
                    break
                try:
                    await self.run_once()
                except Exception:  # noqa: BLE001
                    logger.exception("Continuous mode error")
                iterations += 1
                if self._stop_requested:
                    break
                if max_iterations is not None and iterations >= max_iterations:
                    break
                await self._sleep_with_stop(self.poll_interval_seconds)
        logger.info("Night shift runner stopped (%s)", self._stop_signal_name or "iteration limit")
        return iterations

    def request_stop(self, *, signal_name: str = "manual") -> None:
        if not self._stop_requested:
            logger.info("Received %s - shutting down gracefully...", signal_name)
        self._stop_requested = True
        self._stop_signal_name = signal_name

    async def execute_tasks(self, tasks: list[NightShiftTask]) -> list[TaskOutcome]:
        """Run tasks through a fixed pool of workers; outcomes keep fetch order."""

        outcomes: list[TaskOutcome | None] = [None] * len(tasks)
        admission = iter(enumerate(tasks))

        async def worker() -> None:
            for index, task in admission:
                outcomes[index] = await self.execute_task(task)

        pool_size = min(self.max_concurrent_tasks, len(tasks))
        async with asyncio.TaskGroup() as group:
            for _ in range(pool_size):
                group.create_task(worker())
        return [outcome for outcome in outcomes if outcome is not None]

    async def execute_task(self, task: NightShiftTask) -> TaskOutcome:
        logger.info(
            "Executing task %s: %s (priority: %d)",
            task.task_id,
            task.task_type,
            task.priority,
        )
        if task.status != TaskStatus.PENDING:
            error = f"Task is not pending (status: {task.status.value})"
            logger.error("Task %s skipped: %s", task.task_id, error)
            return TaskOutcome(
                task_id=task.task_id,
                task_type=task.task_type,
                success=False,
                duration_ms=0,
                tokens_used=0,
                error=error,
            )

        await self._transition(task, TaskStatus.RUNNING)
        try:
            result = await self.dispatcher.dispatch(task)
        except Exception as error:  # noqa: BLE001
            logger.exception("Task %s crashed outside its handler: %s", task.task_id, error)
            result = DispatchResult(success=False, error=str(error) or type(error).__name__)

        if result.success:
            await self._transition(task, TaskStatus.DONE, output=result.output)
            logger.info(
                "Task %s completed successfully: %s (%dms, %d tokens)",
                task.task_id,
                task.task_type,
                result.duration_ms,
                result.tokens_used,
            )
        else:
            await self._transition(task, TaskStatus.FAILED, output={"error": result.error})
            logger.error("Task %s failed: %s", task.task_id, result.error)

        return TaskOutcome(
            task_id=task.task_id,
            task_type=task.task_type,
            success=result.success,
            duration_ms=result.duration_ms,
            tokens_used=result.tokens_used,
            output=result.output if result.success else None,
            error=None if result.success else result.error,
        )

    def _ensure_handlers(self) -> None:
        if self.install_handlers is not None:
            logger.info("Registering task handlers...")
            self.install_handlers(self.registry)
        if len(self.registry) == 0:
            logger.warning("No task handlers registered; every task will fail")

    async def _preview(self, tasks: list[NightShiftTask]) -> RunResult:
        logger.info("DRY RUN MODE - Tasks would be executed:")
        previews = []
        for task in tasks:
            logger.info("  - [%s] %s (priority: %d)", task.task_id, task.task_type, task.priority)
            previews.append(
                TaskPreview(task_id=task.task_id, task_type=task.task_type, priority=task.priority),
            )
        await self._publish(AgentState.IDLE)
        return RunResult(success=True, dry_run=True, tasks=previews)

    async def _transition(
        self,
        task: NightShiftTask,
        status: TaskStatus,
        *,
        output: object = None,
    ) -> None:
        ensure_transition(task.status, status)
        task.status = status
        if status == TaskStatus.RUNNING:
            task.started_at = utc_now()
        else:
            task.completed_at = utc_now()
        try:
            await self.queue.update_status(task.task_id, status, output)
        except Exception as error:  # noqa: BLE001
            # Bookkeeping only: the task outcome stands either way.
            logger.warning("Failed to update task %s to %s: %s", task.task_id, status.value, error)

    async def _report(self, summary: RunSummary) -> None:
        logger.info(
            "Night Shift Summary: %d/%d successful (%.1f%%), %d tokens, avg %dms per task",
            summary.succeeded,
            summary.total,
            summary.success_rate,
            summary.total_tokens,
            summary.avg_duration_ms,
        )
        await self._notify(
            "Night Shift Complete",
            f"Completed {summary.total} tasks: {summary.succeeded} successful, "
            f"{summary.failed} failed. Total tokens: {summary.total_tokens}",
            Severity.WARNING if summary.failed > 0 else Severity.SUCCESS,
        )

    async def _fail_run(self, error: Exception) -> RunResult:
        logger.error("Night shift error: %s", error)
        await self._publish(AgentState.ERROR)
        await self._notify(
            "Night Shift Error",
            f"Night shift runner failed: {error}",
            Severity.ERROR,
        )
        return RunResult(success=False, error=str(error) or type(error).__name__)

    async def _publish(
        self,
        state: AgentState,
        *,
        success_rate: float | None = None,
        succeeded: int | None = None,
        failed: int | None = None,
    ) -> None:
        try:
            await self.monitor.publish_status(
                self.agent_name,
                state,
                success_rate,
                succeeded,
                failed,
            )
        except Exception as error:  # noqa: BLE001
            logger.warning("Status publish failed (%s): %s", state.value, error)

    async def _notify(self, title: str, message: str, severity: Severity) -> None:
        try:
            await self.monitor.notify(title, message, severity)
        except Exception as error:  # noqa: BLE001
            logger.warning("Notification %r failed: %s", title, error)

    async def _sleep_with_stop(self, seconds: float) -> None:
        deadline = time.monotonic() + seconds
        while not self._stop_requested and time.monotonic() < deadline:
            await asyncio.sleep(min(0.1, max(0.0, deadline - time.monotonic())))

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if not hasattr(signal, "SIGINT"):
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            self.request_stop(signal_name=name)

        try:
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
        except ValueError:
            # Signal handlers can only be installed in main thread.
            yield
            return
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)


def _elapsed_ms(started: float) -> int:
    return max(int((time.perf_counter() - started) * 1000), 0)

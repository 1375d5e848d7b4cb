"""Night-shift queue access over the dashboard API."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from night_shift.http.client import DashboardClient
from night_shift.orchestrator.models import NightShiftTask, QueueStats, TaskStatus

logger = logging.getLogger(__name__)

QUEUE_PATH = "/api/nightshift"


class TaskQueue(Protocol):
    """Queue operations the runner depends on."""

    async def fetch_pending(self) -> list[NightShiftTask]:
        """Return pending tasks, highest priority first."""

    async def update_status(
        self,
        task_id: str,
        status: TaskStatus,
        output: Any = None,
    ) -> None:
        """Persist a status transition for one task."""


@dataclass(slots=True)
class QueueListing:
    """Tasks plus server-side execution stats from one list call."""

    tasks: list[NightShiftTask] = field(default_factory=list)
    stats: QueueStats = field(default_factory=QueueStats)


class NightShiftQueue:
    """Dashboard-backed task queue."""

    def __init__(self, client: DashboardClient) -> None:
        self._client = client

    async def list_tasks(self, *, status: TaskStatus | None = None) -> QueueListing:
        params = {"status": status.value} if status is not None else None
        response = await self._client.get(QUEUE_PATH, params=params)
        tasks = [NightShiftTask.from_api(item) for item in response.get("tasks") or []]
        return QueueListing(tasks=tasks, stats=QueueStats.from_api(response.get("stats")))

    async def fetch_pending(self) -> list[NightShiftTask]:
        logger.info("Fetching pending tasks from dashboard...")
        listing = await self.list_tasks(status=TaskStatus.PENDING)
        logger.info("Found %d pending tasks", len(listing.tasks))
        return listing.tasks

    async def update_status(
        self,
        task_id: str,
        status: TaskStatus,
        output: Any = None,
    ) -> None:
        body: dict[str, Any] = {"id": task_id, "status": status.value}
        if output is not None:
            body["output"] = output if isinstance(output, str) else json.dumps(output, default=str)
        await self._client.patch(QUEUE_PATH, body)
        logger.info("Task %s updated: %s", task_id, status.value)

    async def enqueue(
        self,
        task_type: str,
        *,
        priority: int = 1,
        data: Any = None,
    ) -> NightShiftTask:
        body: dict[str, Any] = {"task": task_type, "priority": priority}
        if data is not None:
            body["data"] = data if isinstance(data, str) else json.dumps(data)
        response = await self._client.post(QUEUE_PATH, body)
        task = NightShiftTask.from_api(response)
        logger.info("Enqueued task %s: %s (priority: %d)", task.task_id, task_type, priority)
        return task


def compute_queue_stats(tasks: Iterable[NightShiftTask]) -> QueueStats:
    """Recompute finished-task stats from task timestamps.

    Only tasks in a terminal status with both start and completion timestamps
    count. Average duration is taken over ``done`` tasks, in whole seconds.
    """

    finished = [
        task
        for task in tasks
        if task.status.is_terminal and task.started_at is not None and task.completed_at is not None
    ]
    completed = [task for task in finished if task.status == TaskStatus.DONE]
    failed = len(finished) - len(completed)
    durations = [task.duration_ms or 0 for task in completed]
    avg_seconds = sum(durations) / len(durations) / 1000 if durations else 0.0
    return QueueStats(
        total=len(finished),
        completed=len(completed),
        failed=failed,
        avg_duration_seconds=round(avg_seconds),
        success_rate=round(len(completed) / len(finished) * 100, 2) if finished else 0.0,
    )

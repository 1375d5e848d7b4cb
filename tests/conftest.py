"""Shared test fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from night_shift.orchestrator.models import NightShiftTask, TaskStatus
from night_shift.orchestrator.monitor import AgentState, Severity


class FakeQueue:
    """In-memory queue recording every status update."""

    def __init__(self, tasks: list[NightShiftTask] | None = None) -> None:
        self.tasks = list(tasks or [])
        self.updates: list[tuple[str, TaskStatus, Any]] = []
        self.fetch_error: Exception | None = None
        self.update_error: Exception | None = None
        self.fetch_calls = 0

    async def fetch_pending(self) -> list[NightShiftTask]:
        self.fetch_calls += 1
        if self.fetch_error is not None:
            raise self.fetch_error
        return [task for task in self.tasks if task.status == TaskStatus.PENDING]

    async def update_status(self, task_id: str, status: TaskStatus, output: Any = None) -> None:
        self.updates.append((task_id, status, output))
        if self.update_error is not None:
            raise self.update_error

    def statuses_for(self, task_id: str) -> list[TaskStatus]:
        return [status for item_id, status, _ in self.updates if item_id == task_id]


class FakeMonitor:
    """Monitor sink that remembers what it was asked to publish."""

    def __init__(self) -> None:
        self.states: list[AgentState] = []
        self.status_calls: list[dict[str, Any]] = []
        self.notifications: list[tuple[str, str, Severity]] = []

    async def publish_status(
        self,
        agent_name: str,
        state: AgentState,
        success_rate: float | None = None,
        succeeded: int | None = None,
        failed: int | None = None,
    ) -> bool:
        self.states.append(state)
        self.status_calls.append(
            {
                "agent_name": agent_name,
                "state": state,
                "success_rate": success_rate,
                "succeeded": succeeded,
                "failed": failed,
            },
        )
        return True

    async def notify(self, title: str, message: str, severity: Severity) -> bool:
        self.notifications.append((title, message, severity))
        return True


def make_task(task_id: str, task_type: str | None, *, priority: int = 1, data: Any = None):
    return NightShiftTask(task_id=task_id, task_type=task_type, data=data, priority=priority)


@pytest.fixture()
def fake_queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture()
def fake_monitor() -> FakeMonitor:
    return FakeMonitor()

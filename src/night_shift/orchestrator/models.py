"""Domain models for night-shift tasks, dispatch results and run reports."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class TaskStatus(str, Enum):
    """Queue lifecycle states. Transitions only move forward."""

    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({TaskStatus.DONE, TaskStatus.FAILED})
_ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.RUNNING}),
    TaskStatus.RUNNING: frozenset({TaskStatus.DONE, TaskStatus.FAILED}),
    TaskStatus.DONE: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


class InvalidStatusTransitionError(ValueError):
    """Requested status change would move a task backwards."""


def ensure_transition(current: TaskStatus, target: TaskStatus) -> None:
    """Raise if ``current -> target`` is not a forward lifecycle step."""

    if target not in _ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(
            f"Invalid task status transition: {current.value} -> {target.value}",
        )


class TaskType(str, Enum):
    """Built-in night-shift task types."""

    SCRAPE = "scrape"
    SEO_ANALYSIS = "seo-analysis"
    FOLLOW_UP = "follow-up"
    PIPELINE_UPDATE = "pipeline-update"
    CONTENT_GENERATE = "content-generate"
    SECURITY_SCAN = "security-scan"
    AGENT_OPTIMIZE = "agent-optimize"


def decode_task_data(raw: Any, *, task_id: str | None = None) -> Any:
    """Decode a task payload that may arrive as a JSON string.

    Missing or empty payloads decode to ``{}``. Undecodable strings are wrapped
    as ``{"raw": value}`` instead of failing.
    """

    if raw is None or raw == "":
        return {}
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Failed to parse task data for %s, using raw value", task_id or "unknown")
        return {"raw": raw}


@dataclass(slots=True)
class NightShiftTask:
    """One unit of deferred work as returned by the queue."""

    task_id: str
    task_type: str | None
    data: Any = None
    priority: int = 1
    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    output: str | None = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> NightShiftTask:
        """Build a task from a queue API item (``task`` holds the type)."""

        task_type = payload.get("task", payload.get("type"))
        return cls(
            task_id=str(payload.get("id")),
            task_type=str(task_type) if task_type else None,
            data=payload.get("data"),
            priority=_parse_int(payload.get("priority"), default=1),
            status=TaskStatus(payload.get("status") or TaskStatus.PENDING.value),
            created_at=_parse_timestamp(payload.get("createdAt")),
            started_at=_parse_timestamp(payload.get("startedAt")),
            completed_at=_parse_timestamp(payload.get("completedAt")),
            output=payload.get("output"),
        )

    @property
    def duration_ms(self) -> int | None:
        if self.started_at is None or self.completed_at is None:
            return None
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def decoded_data(self) -> Any:
        return decode_task_data(self.data, task_id=self.task_id)


@dataclass(slots=True)
class HandlerResult:
    """Result contract every handler may return.

    Handlers returning anything else are treated as succeeding with that value
    as output.
    """

    success: bool = True
    output: Any = None
    error: str | None = None
    tokens_used: int = 0

    @classmethod
    def ok(cls, output: Any = None, *, tokens_used: int = 0) -> HandlerResult:
        return cls(success=True, output=output, tokens_used=tokens_used)

    @classmethod
    def fail(cls, error: str, *, output: Any = None, tokens_used: int = 0) -> HandlerResult:
        return cls(success=False, output=output, error=error, tokens_used=tokens_used)


@dataclass(slots=True)
class DispatchResult:
    """Canonical outcome of one dispatch."""

    success: bool
    output: Any = None
    error: str | None = None
    duration_ms: int = 0
    tokens_used: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "durationMs": self.duration_ms,
            "tokensUsed": self.tokens_used,
        }


@dataclass(slots=True)
class TaskOutcome:
    """Per-task outcome collected by the runner."""

    task_id: str
    task_type: str | None
    success: bool
    duration_ms: int
    tokens_used: int
    output: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "taskId": self.task_id,
            "taskType": self.task_type,
            "success": self.success,
            "durationMs": self.duration_ms,
            "tokensUsed": self.tokens_used,
        }
        if self.success:
            payload["output"] = self.output
        else:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class TypeBreakdown:
    """Outcome counters for one task type."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0


@dataclass(slots=True)
class RunSummary:
    """Aggregate report for one night-shift run."""

    total: int
    succeeded: int
    failed: int
    success_rate: float
    total_duration_ms: int
    avg_duration_ms: int
    total_tokens: int
    breakdown: dict[str, TypeBreakdown]
    timestamp: datetime

    @classmethod
    def from_outcomes(
        cls,
        outcomes: Iterable[TaskOutcome],
        *,
        now: datetime | None = None,
    ) -> RunSummary:
        items = list(outcomes)
        total = len(items)
        succeeded = sum(1 for item in items if item.success)
        failed = total - succeeded
        total_duration = sum(item.duration_ms for item in items)
        breakdown: dict[str, TypeBreakdown] = {}
        for item in items:
            entry = breakdown.setdefault(item.task_type or "unknown", TypeBreakdown())
            entry.total += 1
            if item.success:
                entry.succeeded += 1
            else:
                entry.failed += 1
        return cls(
            total=total,
            succeeded=succeeded,
            failed=failed,
            success_rate=round(succeeded / total * 100, 1) if total else 0.0,
            total_duration_ms=total_duration,
            avg_duration_ms=round(total_duration / total) if total else 0,
            total_tokens=sum(item.tokens_used for item in items),
            breakdown=breakdown,
            timestamp=now or utc_now(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalTasks": self.total,
            "successful": self.succeeded,
            "failed": self.failed,
            "successRate": self.success_rate,
            "totalDuration": self.total_duration_ms,
            "avgDuration": self.avg_duration_ms,
            "totalTokens": self.total_tokens,
            "taskBreakdown": {
                task_type: {
                    "total": entry.total,
                    "successful": entry.succeeded,
                    "failed": entry.failed,
                }
                for task_type, entry in self.breakdown.items()
            },
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(slots=True)
class TaskPreview:
    """Dry-run view of a pending task."""

    task_id: str
    task_type: str | None
    priority: int

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.task_id, "type": self.task_type, "priority": self.priority}


@dataclass(slots=True)
class RunResult:
    """Return value of ``NightShiftRunner.run_once``."""

    success: bool
    tasks_executed: int = 0
    message: str | None = None
    dry_run: bool = False
    tasks: list[TaskPreview] = field(default_factory=list)
    summary: RunSummary | None = None
    results: list[TaskOutcome] = field(default_factory=list)
    total_duration_ms: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.error is not None:
            payload["error"] = self.error
            return payload
        if self.dry_run:
            payload["dryRun"] = True
            payload["tasks"] = [task.to_dict() for task in self.tasks]
            return payload
        payload["tasksExecuted"] = self.tasks_executed
        if self.message is not None:
            payload["message"] = self.message
        if self.summary is not None:
            payload["summary"] = self.summary.to_dict()
            payload["results"] = [outcome.to_dict() for outcome in self.results]
        if self.total_duration_ms is not None:
            payload["totalDuration"] = self.total_duration_ms
        return payload


@dataclass(slots=True)
class QueueStats:
    """Execution statistics over finished queue tasks."""

    total: int = 0
    completed: int = 0
    failed: int = 0
    avg_duration_seconds: int = 0
    success_rate: float = 0.0

    @classmethod
    def from_api(cls, payload: Mapping[str, Any] | None) -> QueueStats:
        if not payload:
            return cls()
        return cls(
            total=_parse_int(payload.get("total"), default=0),
            completed=_parse_int(payload.get("completed"), default=0),
            failed=_parse_int(payload.get("failed"), default=0),
            avg_duration_seconds=_parse_int(payload.get("avgDuration"), default=0),
            success_rate=float(payload.get("successRate") or 0.0),
        )


def _parse_int(value: Any, *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed

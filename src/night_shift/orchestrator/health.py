"""Fleet health rollup from per-agent status snapshots.

Everything here is a pure reduction: the same snapshot collection always
yields the same ``FleetHealth``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

HEALTHY_STATUSES = frozenset({"ready", "running"})
DEGRADED_STATUSES = frozenset({"degraded"})
ERRORED_STATUSES = frozenset({"error", "timeout", "disabled_by_failure"})
MISSING_STATUSES = frozenset({"missing"})

HEALTHY_THRESHOLD = 80
DEGRADED_THRESHOLD = 50
LOW_SCORE_THRESHOLD = 50
ERROR_RATE_THRESHOLD = 0.10


class HealthLevel(str, Enum):
    """Discretized fleet health label."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"
    SHUTTING_DOWN = "shutting_down"


@dataclass(frozen=True, slots=True)
class AgentSnapshot:
    """Status report of one agent, produced outside the runner."""

    name: str
    status: str
    enabled: bool = True
    score: int = 0
    tasks_today: int = 0
    errors_today: int = 0
    department: str | None = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> AgentSnapshot:
        return cls(
            name=str(payload.get("name", "")),
            status=str(payload.get("status", "")).lower(),
            enabled=bool(payload.get("enabled", True)),
            score=int(payload.get("score") or 0),
            tasks_today=int(payload.get("tasksToday") or 0),
            errors_today=int(payload.get("errorsToday") or 0),
            department=payload.get("dept") or payload.get("department"),
        )


@dataclass(frozen=True, slots=True)
class DepartmentHealth:
    department: str
    total: int
    running: int
    errored: int
    avg_score: int
    health_percentage: int


@dataclass(frozen=True, slots=True)
class HealthAlert:
    level: str
    message: str
    threshold: float


@dataclass(frozen=True, slots=True)
class FleetHealth:
    """Aggregated fleet health."""

    status: HealthLevel
    total: int
    enabled: int
    healthy: int
    degraded: int
    errored: int
    missing: int
    health_percentage: int
    avg_score: int
    min_score: int
    max_score: int
    tasks_today: int
    errors_today: int
    departments: tuple[DepartmentHealth, ...] = ()
    alerts: tuple[HealthAlert, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "agents": {
                "total": self.total,
                "enabled": self.enabled,
                "healthy": self.healthy,
                "degraded": self.degraded,
                "errored": self.errored,
                "missing": self.missing,
                "healthPercentage": self.health_percentage,
            },
            "scores": {
                "average": self.avg_score,
                "min": self.min_score,
                "max": self.max_score,
            },
            "tasksToday": self.tasks_today,
            "errorsToday": self.errors_today,
            "departments": [
                {
                    "dept": item.department,
                    "total": item.total,
                    "running": item.running,
                    "errored": item.errored,
                    "avgScore": item.avg_score,
                    "healthPct": item.health_percentage,
                }
                for item in self.departments
            ],
            "alerts": [
                {"level": alert.level, "message": alert.message, "threshold": alert.threshold}
                for alert in self.alerts
            ],
        }


def classify_health(health_percentage: int, *, shutting_down: bool = False) -> HealthLevel:
    if shutting_down:
        return HealthLevel.SHUTTING_DOWN
    if health_percentage >= HEALTHY_THRESHOLD:
        return HealthLevel.HEALTHY
    if health_percentage >= DEGRADED_THRESHOLD:
        return HealthLevel.DEGRADED
    return HealthLevel.CRITICAL


def aggregate_fleet_health(
    snapshots: Iterable[AgentSnapshot],
    *,
    shutting_down: bool = False,
) -> FleetHealth:
    """Reduce agent snapshots to one fleet health record.

    ``health_percentage`` is the share of enabled agents in a healthy status,
    rounded half up, and 0 when no agent is enabled.
    """

    units = list(snapshots)
    enabled_units = [unit for unit in units if unit.enabled]
    healthy = sum(1 for unit in enabled_units if unit.status in HEALTHY_STATUSES)
    degraded = sum(1 for unit in units if unit.status in DEGRADED_STATUSES)
    errored = sum(1 for unit in units if unit.status in ERRORED_STATUSES)
    missing = sum(1 for unit in units if unit.status in MISSING_STATUSES)
    enabled = len(enabled_units)
    health_percentage = _round_half_up(healthy / enabled * 100) if enabled else 0

    scores = [unit.score for unit in units]
    avg_score = _round_half_up(sum(scores) / len(scores)) if scores else 0
    tasks_today = sum(unit.tasks_today for unit in units)
    errors_today = sum(unit.errors_today for unit in units)

    return FleetHealth(
        status=classify_health(health_percentage, shutting_down=shutting_down),
        total=len(units),
        enabled=enabled,
        healthy=healthy,
        degraded=degraded,
        errored=errored,
        missing=missing,
        health_percentage=health_percentage,
        avg_score=avg_score,
        min_score=min(scores) if scores else 0,
        max_score=max(scores) if scores else 0,
        tasks_today=tasks_today,
        errors_today=errors_today,
        departments=_department_breakdown(units),
        alerts=_alerts(
            errored=errored,
            avg_score=avg_score,
            has_units=bool(units),
            tasks_today=tasks_today,
            errors_today=errors_today,
        ),
    )


def _department_breakdown(units: list[AgentSnapshot]) -> tuple[DepartmentHealth, ...]:
    grouped: dict[str, list[AgentSnapshot]] = {}
    for unit in units:
        if unit.department:
            grouped.setdefault(unit.department, []).append(unit)

    breakdown: list[DepartmentHealth] = []
    for department in sorted(grouped):
        members = grouped[department]
        total = len(members)
        errored = sum(1 for unit in members if unit.status in ERRORED_STATUSES)
        breakdown.append(
            DepartmentHealth(
                department=department,
                total=total,
                running=sum(1 for unit in members if unit.status == "running"),
                errored=errored,
                avg_score=_round_half_up(sum(unit.score for unit in members) / total),
                health_percentage=_round_half_up((total - errored) / total * 100),
            ),
        )
    return tuple(breakdown)


def _alerts(
    *,
    errored: int,
    avg_score: int,
    has_units: bool,
    tasks_today: int,
    errors_today: int,
) -> tuple[HealthAlert, ...]:
    alerts: list[HealthAlert] = []
    if errored > 0:
        alerts.append(
            HealthAlert(
                level="critical",
                message=f"{errored} agent(s) in error state",
                threshold=0,
            ),
        )
    if has_units and avg_score < LOW_SCORE_THRESHOLD:
        alerts.append(
            HealthAlert(
                level="warning",
                message=f"Average score below {LOW_SCORE_THRESHOLD}: {avg_score}",
                threshold=LOW_SCORE_THRESHOLD,
            ),
        )
    if errors_today > tasks_today * ERROR_RATE_THRESHOLD:
        rate = _round_half_up(errors_today / (tasks_today or 1) * 100)
        alerts.append(
            HealthAlert(
                level="warning",
                message=f"Error rate above {ERROR_RATE_THRESHOLD:.0%}: {rate}%",
                threshold=ERROR_RATE_THRESHOLD * 100,
            ),
        )
    return tuple(alerts)


def render_health_lines(health: FleetHealth) -> list[str]:
    """Render fleet health as CLI lines."""

    lines = [
        f"Fleet health: {health.status.value} ({health.health_percentage}%)",
        f"- agents: total={health.total} enabled={health.enabled} healthy={health.healthy} "
        f"degraded={health.degraded} errored={health.errored} missing={health.missing}",
        f"- scores: avg={health.avg_score} min={health.min_score} max={health.max_score}",
        f"- today: tasks={health.tasks_today} errors={health.errors_today}",
    ]
    if health.departments:
        lines.append("Departments:")
        lines.extend(
            f"- {item.department}: total={item.total} running={item.running} "
            f"errored={item.errored} avg_score={item.avg_score} health={item.health_percentage}%"
            for item in health.departments
        )
    if health.alerts:
        lines.append("Alerts:")
        lines.extend(f"- [{alert.level}] {alert.message}" for alert in health.alerts)
    return lines


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

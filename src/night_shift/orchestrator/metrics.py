"""In-process dispatch metrics."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Counters:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    avg_duration_ms: float = 0.0
    tokens_used: int = 0

    def record(self, *, success: bool, duration_ms: int, tokens_used: int) -> None:
        self.total += 1
        if success:
            self.succeeded += 1
        else:
            self.failed += 1
        # Incremental mean: O(1) per record, no history kept.
        self.avg_duration_ms = (
            self.avg_duration_ms * (self.total - 1) + duration_ms
        ) / self.total
        self.tokens_used += tokens_used


@dataclass(frozen=True, slots=True)
class TypeMetricsSnapshot:
    """Counters for one task type."""

    task_type: str
    total: int
    succeeded: int
    failed: int
    avg_duration_ms: float
    tokens_used: int


@dataclass(frozen=True, slots=True)
class DispatchMetricsSnapshot:
    """Point-in-time view of dispatch metrics."""

    total: int
    succeeded: int
    failed: int
    avg_duration_ms: float
    tokens_used: int
    by_type: dict[str, TypeMetricsSnapshot]

    @property
    def success_rate(self) -> float:
        """Share of succeeded dispatches in percent."""

        if self.total == 0:
            return 0.0
        return self.succeeded / self.total * 100


@dataclass(slots=True)
class DispatchMetrics:
    """Process-lifetime dispatch counters.

    Not thread-safe: records must come from the event-loop thread only.
    """

    _global: _Counters = field(default_factory=_Counters)
    _by_type: dict[str, _Counters] = field(default_factory=dict)

    def record(
        self,
        *,
        task_type: str,
        success: bool,
        duration_ms: int,
        tokens_used: int = 0,
    ) -> None:
        self._global.record(success=success, duration_ms=duration_ms, tokens_used=tokens_used)
        per_type = self._by_type.setdefault(task_type, _Counters())
        per_type.record(success=success, duration_ms=duration_ms, tokens_used=tokens_used)

    @property
    def total(self) -> int:
        return self._global.total

    @property
    def avg_duration_ms(self) -> float:
        return self._global.avg_duration_ms

    def snapshot(self) -> DispatchMetricsSnapshot:
        return DispatchMetricsSnapshot(
            total=self._global.total,
            succeeded=self._global.succeeded,
            failed=self._global.failed,
            avg_duration_ms=self._global.avg_duration_ms,
            tokens_used=self._global.tokens_used,
            by_type={
                task_type: TypeMetricsSnapshot(
                    task_type=task_type,
                    total=counters.total,
                    succeeded=counters.succeeded,
                    failed=counters.failed,
                    avg_duration_ms=counters.avg_duration_ms,
                    tokens_used=counters.tokens_used,
                )
                for task_type, counters in self._by_type.items()
            },
        )

    def reset(self) -> None:
        self._global = _Counters()
        self._by_type = {}
        logger.info("Dispatch metrics reset")


def render_metrics_lines(snapshot: DispatchMetricsSnapshot) -> list[str]:
    """Render metrics snapshot as CLI lines."""

    lines = [
        "Dispatch metrics:",
        f"- total={snapshot.total} succeeded={snapshot.succeeded} failed={snapshot.failed} "
        f"success_rate={snapshot.success_rate:.1f}%",
        f"- avg_duration_ms={snapshot.avg_duration_ms:.1f} tokens_used={snapshot.tokens_used}",
    ]
    for task_type in sorted(snapshot.by_type):
        item = snapshot.by_type[task_type]
        lines.append(
            f"- {task_type}: total={item.total} succeeded={item.succeeded} "
            f"failed={item.failed} avg_duration_ms={item.avg_duration_ms:.1f}",
        )
    return lines

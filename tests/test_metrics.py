from __future__ import annotations

import allure
import pytest

from night_shift.orchestrator.metrics import DispatchMetrics, render_metrics_lines

pytestmark = [
    allure.epic("Night Shift"),
    allure.feature("Dispatch Metrics"),
]


def test_incremental_average_equals_mean() -> None:
    metrics = DispatchMetrics()
    for duration in (10, 20, 60):
        metrics.record(task_type="scrape", success=True, duration_ms=duration)

    assert metrics.avg_duration_ms == pytest.approx(30.0)


def test_snapshot_tracks_global_and_per_type_counters() -> None:
    metrics = DispatchMetrics()
    metrics.record(task_type="scrape", success=True, duration_ms=100, tokens_used=0)
    metrics.record(task_type="seo-analysis", success=False, duration_ms=300, tokens_used=500)
    metrics.record(task_type="seo-analysis", success=True, duration_ms=100, tokens_used=500)

    snapshot = metrics.snapshot()

    assert (snapshot.total, snapshot.succeeded, snapshot.failed) == (3, 2, 1)
    assert snapshot.tokens_used == 1000
    assert snapshot.success_rate == pytest.approx(200 / 3)
    assert snapshot.by_type["seo-analysis"].total == 2
    assert snapshot.by_type["seo-analysis"].avg_duration_ms == pytest.approx(200.0)
    assert snapshot.by_type["scrape"].failed == 0


def test_reset_clears_counters() -> None:
    metrics = DispatchMetrics()
    metrics.record(task_type="scrape", success=True, duration_ms=5)

    metrics.reset()

    snapshot = metrics.snapshot()
    assert snapshot.total == 0
    assert snapshot.by_type == {}
    assert snapshot.success_rate == 0.0


def test_render_metrics_lines_lists_types_sorted() -> None:
    metrics = DispatchMetrics()
    metrics.record(task_type="scrape", success=True, duration_ms=5)
    metrics.record(task_type="follow-up", success=False, duration_ms=15)

    lines = render_metrics_lines(metrics.snapshot())

    assert lines[0] == "Dispatch metrics:"
    assert "success_rate=50.0%" in lines[1]
    assert lines[3].startswith("- follow-up:")
    assert lines[4].startswith("- scrape:")

from __future__ import annotations

from datetime import UTC, datetime

import allure
import pytest

from night_shift.orchestrator.models import (
    InvalidStatusTransitionError,
    NightShiftTask,
    RunSummary,
    TaskOutcome,
    TaskStatus,
    decode_task_data,
    ensure_transition,
)

pytestmark = [
    allure.epic("Night Shift"),
    allure.feature("Task Model"),
]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, {}),
        ('{"a": 1}', {"a": 1}),
        ("[1, 2]", [1, 2]),
        ("{broken", {"raw": "{broken"}),
        ({"already": "decoded"}, {"already": "decoded"}),
    ],
)
def test_decode_task_data(raw, expected) -> None:
    assert decode_task_data(raw) == expected


def test_forward_transitions_are_allowed() -> None:
    ensure_transition(TaskStatus.PENDING, TaskStatus.RUNNING)
    ensure_transition(TaskStatus.RUNNING, TaskStatus.DONE)
    ensure_transition(TaskStatus.RUNNING, TaskStatus.FAILED)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (TaskStatus.DONE, TaskStatus.PENDING),
        (TaskStatus.FAILED, TaskStatus.RUNNING),
        (TaskStatus.RUNNING, TaskStatus.PENDING),
        (TaskStatus.PENDING, TaskStatus.DONE),
    ],
)
def test_backward_or_skipping_transitions_are_rejected(
    current: TaskStatus,
    target: TaskStatus,
) -> None:
    with pytest.raises(InvalidStatusTransitionError):
        ensure_transition(current, target)


def test_task_from_api_reads_timestamps_and_duration() -> None:
    task = NightShiftTask.from_api(
        {
            "id": 12,
            "task": "scrape",
            "status": "done",
            "startedAt": "2024-05-01T22:00:00Z",
            "completedAt": "2024-05-01T22:00:01.500000Z",
        },
    )

    assert task.task_id == "12"
    assert task.status == TaskStatus.DONE
    assert task.status.is_terminal
    assert task.priority == 1
    assert task.started_at == datetime(2024, 5, 1, 22, 0, tzinfo=UTC)
    assert task.duration_ms == 1500


def test_task_from_api_accepts_type_key_and_missing_type() -> None:
    assert NightShiftTask.from_api({"id": "1", "type": "follow-up"}).task_type == "follow-up"
    assert NightShiftTask.from_api({"id": "2"}).task_type is None


def test_run_summary_rounds_rate_and_average() -> None:
    outcomes = [
        TaskOutcome(task_id="1", task_type="a", success=True, duration_ms=10, tokens_used=5),
        TaskOutcome(task_id="2", task_type="a", success=False, duration_ms=11, tokens_used=0),
        TaskOutcome(task_id="3", task_type="b", success=True, duration_ms=12, tokens_used=7),
    ]
    now = datetime(2024, 5, 2, 6, 0, tzinfo=UTC)

    summary = RunSummary.from_outcomes(outcomes, now=now)

    assert summary.success_rate == 66.7
    assert summary.avg_duration_ms == 11
    assert summary.total_tokens == 12
    assert summary.to_dict()["taskBreakdown"] == {
        "a": {"total": 2, "successful": 1, "failed": 1},
        "b": {"total": 1, "successful": 1, "failed": 0},
    }
    assert summary.to_dict()["timestamp"] == "2024-05-02T06:00:00+00:00"


def test_empty_run_summary() -> None:
    summary = RunSummary.from_outcomes([])

    assert (summary.total, summary.success_rate, summary.avg_duration_ms) == (0, 0.0, 0)


def test_empty_string_payload_decodes_to_empty_mapping() -> None:
    assert decode_task_data("") == {}
    assert NightShiftTask(task_id="1", task_type="scrape", data="").decoded_data() == {}

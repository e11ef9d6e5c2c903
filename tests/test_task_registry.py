# tests/test_task_registry.py

from __future__ import annotations

import pytest

from groundcontrol.background.models import BackgroundTaskStatus, LaunchInput
from groundcontrol.background.registry import TaskRegistry, new_task_id


class FakeClock:
    def __init__(self, *ticks: float) -> None:
        self.ticks = list(ticks)
        self.last = 0.0

    def __call__(self) -> float:
        if self.ticks:
            self.last = self.ticks.pop(0)
        return self.last


def _launch(**overrides) -> LaunchInput:
    fields = {"description": "d", "prompt": "p", "agent": "explore"}
    fields.update(overrides)
    return LaunchInput(**fields)


def test_create_task_records_pending_task() -> None:
    reg = TaskRegistry(clock=FakeClock(100.0))

    task = reg.create_task(_launch(parent_session_id="ses_parent", parent_message_id="msg_1"))

    assert reg.get(task.id) is task
    assert task.status is BackgroundTaskStatus.PENDING
    assert task.created_at == 100.0
    assert task.started_at is None and task.completed_at is None
    assert task.session_id is None
    assert task.error is None
    assert task.last_message_count == 0
    assert task.parent_session_id == "ses_parent"
    assert task.parent_message_id == "msg_1"
    assert task.id in reg
    assert len(reg) == 1


def test_create_task_coerces_descriptors_to_str() -> None:
    reg = TaskRegistry()
    task = reg.create_task(LaunchInput(description=42, prompt=None, agent=3.5))  # type: ignore[arg-type]

    assert task.description == "42"
    assert task.prompt == "None"
    assert task.agent == "3.5"


def test_task_ids_are_unique_and_shaped() -> None:
    reg = TaskRegistry()
    ids = {reg.create_task(_launch()).id for _ in range(500)}

    assert len(ids) == 500
    assert all(i.startswith("bg_") and len(i.split("_")[2]) == 6 for i in ids)
    assert new_task_id(now_ms=36).startswith("bg_10_")


def test_get_unknown_returns_none() -> None:
    assert TaskRegistry().get("bg_nope_000000") is None


def test_list_tasks_keeps_creation_order() -> None:
    reg = TaskRegistry()
    a = reg.create_task(_launch(description="a"))
    b = reg.create_task(_launch(description="b"))

    assert [t.id for t in reg.list_tasks()] == [a.id, b.id]


def test_subagent_sessions_is_shared_and_filled_by_bind_session() -> None:
    reg = TaskRegistry()
    shared = reg.subagent_sessions()
    task = reg.create_task(_launch())

    reg.mark_running(task)
    reg.bind_session(task, "ses_1")
    reg.bind_session(task, "ses_1")

    assert shared is reg.subagent_sessions()
    assert shared == {"ses_1"}
    assert reg.find_by_session("ses_1") is task
    assert reg.find_by_session("ses_2") is None


def test_session_id_is_set_once() -> None:
    reg = TaskRegistry()
    task = reg.create_task(_launch())
    reg.bind_session(task, "ses_1")

    with pytest.raises(ValueError):
        reg.bind_session(task, "ses_2")
    assert task.session_id == "ses_1"


def test_happy_path_transitions_and_timestamps() -> None:
    reg = TaskRegistry(clock=FakeClock(10.0, 11.0, 12.0))
    task = reg.create_task(_launch())

    assert reg.mark_running(task) is True
    assert task.status is BackgroundTaskStatus.RUNNING
    assert task.started_at == 11.0

    assert reg.mark_running(task) is False

    assert reg.mark_completed(task) is True
    assert task.status is BackgroundTaskStatus.COMPLETED
    assert task.completed_at == 12.0
    assert task.timed_out is False


def test_timestamps_never_go_backwards() -> None:
    reg = TaskRegistry(clock=FakeClock(50.0, 40.0, 30.0))
    task = reg.create_task(_launch())

    reg.mark_running(task)
    reg.mark_completed(task)

    assert task.created_at == 50.0
    assert task.started_at == 50.0
    assert task.completed_at == 50.0


def test_completed_requires_running() -> None:
    reg = TaskRegistry()
    task = reg.create_task(_launch())

    assert reg.mark_completed(task) is False
    assert task.status is BackgroundTaskStatus.PENDING


def test_failed_is_not_applied_to_terminal_tasks() -> None:
    reg = TaskRegistry()
    task = reg.create_task(_launch())
    reg.mark_running(task)
    reg.mark_cancelled(task)

    assert reg.mark_failed(task, "late error") is False
    assert task.status is BackgroundTaskStatus.CANCELLED
    assert task.error is None


def test_mark_failed_records_error() -> None:
    reg = TaskRegistry()
    task = reg.create_task(_launch())
    reg.mark_running(task)

    assert reg.mark_failed(task, "boom") is True
    assert task.status is BackgroundTaskStatus.FAILED
    assert task.error == "boom"
    assert task.completed_at is not None


def test_cancel_is_unconditional_and_keeps_first_completion_time() -> None:
    reg = TaskRegistry(clock=FakeClock(1.0, 2.0, 3.0, 4.0))
    task = reg.create_task(_launch())
    reg.mark_running(task)
    reg.mark_completed(task)

    reg.mark_cancelled(task)

    assert task.status is BackgroundTaskStatus.CANCELLED
    assert task.completed_at == 3.0
    assert reg.mark_completed(task) is False


def test_reopen_needs_a_session_and_clears_terminal_fields() -> None:
    reg = TaskRegistry()
    task = reg.create_task(_launch())
    reg.mark_running(task)
    reg.mark_failed(task, "prompt failed")

    assert reg.mark_running(task, reopen=True) is False

    task2 = reg.create_task(_launch())
    reg.mark_running(task2)
    reg.bind_session(task2, "ses_9")
    reg.mark_completed(task2, timed_out=True)

    assert reg.mark_running(task2, reopen=True) is True
    assert task2.status is BackgroundTaskStatus.RUNNING
    assert task2.completed_at is None
    assert task2.timed_out is False
    assert task2.session_id == "ses_9"


def test_watermark_only_moves_forward() -> None:
    reg = TaskRegistry()
    task = reg.create_task(_launch())

    assert reg.advance_watermark(task, 3) == 3
    assert reg.advance_watermark(task, 3) == 0
    assert reg.advance_watermark(task, 1) == 0
    assert task.last_message_count == 3
    assert reg.advance_watermark(task, 5) == 2
    assert task.last_message_count == 5


def test_terminal_statuses() -> None:
    assert not BackgroundTaskStatus.PENDING.is_terminal
    assert not BackgroundTaskStatus.RUNNING.is_terminal
    assert BackgroundTaskStatus.COMPLETED.is_terminal
    assert BackgroundTaskStatus.FAILED.is_terminal
    assert BackgroundTaskStatus.CANCELLED.is_terminal

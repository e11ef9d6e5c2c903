# src/groundcontrol/background/registry.py

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable

from .models import BackgroundTask, BackgroundTaskStatus, LaunchInput

logger = logging.getLogger(__name__)

_B36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    if n <= 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_B36[r])
    return "".join(reversed(out))


def new_task_id(now_ms: int | None = None) -> str:
    """bg_<base36 millis>_<6 random base36 chars>"""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_B36) for _ in range(6))
    return f"bg_{_base36(now_ms)}_{suffix}"


class TaskRegistry:
    """
    In-memory background task registry.

    Owns every BackgroundTask record and is the only place that writes
    status / session_id / error / timestamps. The engine calls the mark_*
    helpers; each helper is a single non-suspending step, so flows running
    on the same event loop never observe a half-applied transition.

    Records are never evicted.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._tasks: dict[str, BackgroundTask] = {}
        self._subagent_sessions: set[str] = set()
        self._clock = clock

    def _now(self, floor: float | None) -> float:
        # Timestamps never go backwards relative to earlier transitions.
        now = self._clock()
        if floor is not None and now < floor:
            return floor
        return now

    # ---- lookup ----

    def get(self, task_id: str) -> BackgroundTask | None:
        return self._tasks.get(task_id)

    def list_tasks(self) -> list[BackgroundTask]:
        return list(self._tasks.values())

    def find_by_session(self, session_id: str) -> BackgroundTask | None:
        for task in self._tasks.values():
            if task.session_id == session_id:
                return task
        return None

    def subagent_sessions(self) -> set[str]:
        """Shared set of session ids created for background work. Returned by reference."""
        return self._subagent_sessions

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    # ---- creation ----

    def create_task(self, launch: LaunchInput) -> BackgroundTask:
        task_id = new_task_id()
        while task_id in self._tasks:
            task_id = new_task_id()

        task = BackgroundTask(
            id=task_id,
            description=str(launch.description),
            prompt=str(launch.prompt),
            agent=str(launch.agent),
            status=BackgroundTaskStatus.PENDING,
            created_at=self._clock(),
            parent_session_id=launch.parent_session_id,
            parent_message_id=launch.parent_message_id,
        )
        self._tasks[task.id] = task
        logger.debug("Task created id=%s agent=%s", task.id, task.agent)
        return task

    # ---- transitions ----

    def mark_running(self, task: BackgroundTask, *, reopen: bool = False) -> bool:
        """
        pending -> running, or (reopen=True) any state with a session -> running.

        Returns False when the transition is not allowed.
        """
        if reopen:
            if task.session_id is None:
                return False
        elif task.status is not BackgroundTaskStatus.PENDING:
            return False

        task.status = BackgroundTaskStatus.RUNNING
        task.started_at = self._now(task.completed_at or task.created_at)
        task.completed_at = None
        task.error = None
        task.timed_out = False
        return True

    def bind_session(self, task: BackgroundTask, session_id: str) -> None:
        """Record the remote session for a task (once) and register it as a subagent session."""
        if task.session_id is not None and task.session_id != session_id:
            raise ValueError(f"Task {task.id} is already bound to session {task.session_id}")
        task.session_id = session_id
        self._subagent_sessions.add(session_id)

    def mark_completed(self, task: BackgroundTask, *, timed_out: bool = False) -> bool:
        if task.status is not BackgroundTaskStatus.RUNNING:
            return False
        task.status = BackgroundTaskStatus.COMPLETED
        task.completed_at = self._now(task.started_at)
        task.timed_out = timed_out
        return True

    def mark_failed(self, task: BackgroundTask, error: str) -> bool:
        if task.status.is_terminal:
            return False
        task.status = BackgroundTaskStatus.FAILED
        task.error = error
        task.completed_at = self._now(task.started_at or task.created_at)
        return True

    def mark_cancelled(self, task: BackgroundTask) -> None:
        # Cancel is unconditional; completed_at is only stamped the first time.
        task.status = BackgroundTaskStatus.CANCELLED
        if task.completed_at is None:
            task.completed_at = self._now(task.started_at or task.created_at)

    def update_prompt(self, task: BackgroundTask, prompt: str) -> None:
        task.prompt = str(prompt)

    def advance_watermark(self, task: BackgroundTask, message_count: int) -> int:
        """
        Move last_message_count forward to message_count.

        Returns how many messages are new. Never moves backwards.
        """
        delta = message_count - task.last_message_count
        if delta <= 0:
            return 0
        task.last_message_count = message_count
        return delta

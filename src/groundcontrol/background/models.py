# src/groundcontrol/background/models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class BackgroundTaskStatus(StrEnum):
    """
    Background task lifecycle status.

    pending -> running -> completed | failed | cancelled
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        BackgroundTaskStatus.COMPLETED,
        BackgroundTaskStatus.FAILED,
        BackgroundTaskStatus.CANCELLED,
    }
)


class BackgroundTaskError(Exception):
    """Base error for background task orchestration."""


class SessionCreateError(BackgroundTaskError):
    """The transport did not hand back a usable session id."""


@dataclass(slots=True)
class BackgroundTask:
    id: str
    description: str
    prompt: str
    agent: str
    status: BackgroundTaskStatus
    created_at: float

    parent_session_id: str | None = None
    parent_message_id: str | None = None
    session_id: str | None = None

    started_at: float | None = None
    completed_at: float | None = None
    error: str | None = None

    # Number of transcript messages already handed to the caller.
    last_message_count: int = 0

    # Set when the poll budget ran out before the session reported idle.
    timed_out: bool = False


@dataclass(slots=True, frozen=True)
class LaunchInput:
    description: str
    prompt: str
    agent: str
    parent_session_id: str | None = None
    parent_message_id: str | None = None


@dataclass(slots=True, frozen=True)
class OutputResult:
    status: BackgroundTaskStatus
    output: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"status": self.status.value, "output": self.output, "error": self.error}

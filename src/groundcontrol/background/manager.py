# src/groundcontrol/background/manager.py

from __future__ import annotations

"""
Background task manager.

Launches agent work on a session transport without blocking the caller:
- launch() records a pending task and spawns a detached driver
  (create session -> send prompt -> poll until idle),
- get_result() hands back only the transcript messages the caller has not seen yet,
- resume() sends a new prompt into an existing session and restarts polling,
- cancel() marks the task cancelled and asks the transport to abort (best-effort).

Drivers are asyncio tasks on the caller's event loop. They are supervised:
anything they raise ends up as a `failed` task, never as an unhandled error.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from ..core.ports import IDLE_STATUSES, SessionTransport, TransportCapabilities
from .formatting import format_messages, normalize_transcript, resolve_session_id, resolve_status_token
from .models import (
    BackgroundTask,
    BackgroundTaskStatus,
    LaunchInput,
    OutputResult,
    SessionCreateError,
)
from .registry import TaskRegistry

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 2000
DEFAULT_MAX_POLLS = 300


def error_message(exc: BaseException | object) -> str:
    if isinstance(exc, BaseException):
        return str(exc) or exc.__class__.__name__
    return str(exc)


class BackgroundTaskManager:
    def __init__(
        self,
        transport: SessionTransport,
        *,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        max_polls: int = DEFAULT_MAX_POLLS,
        registry: TaskRegistry | None = None,
    ) -> None:
        self._transport = transport
        self._capabilities = TransportCapabilities.resolve(transport)
        self._poll_interval_ms = max(0, int(poll_interval_ms))
        self._poll_interval_s = self._poll_interval_ms / 1000.0
        self._max_polls = max(0, int(max_polls))
        self._registry = registry if registry is not None else TaskRegistry()

        # task id -> generation of the newest driver; older poll loops stand down.
        self._generations: dict[str, int] = {}
        self._drivers: set[asyncio.Task[None]] = set()

    # ---- read access ----

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    @property
    def capabilities(self) -> TransportCapabilities:
        return self._capabilities

    @property
    def poll_interval_ms(self) -> int:
        return self._poll_interval_ms

    @property
    def max_polls(self) -> int:
        return self._max_polls

    def get(self, task_id: str) -> BackgroundTask | None:
        return self._registry.get(task_id)

    def get_subagent_sessions(self) -> set[str]:
        return self._registry.subagent_sessions()

    def is_subagent_session(self, session_id: str) -> bool:
        return session_id in self._registry.subagent_sessions()

    # ---- public API ----

    def launch(self, launch: LaunchInput) -> BackgroundTask:
        """
        Create a pending task and start driving it in the background.

        Returns immediately; the session does not exist yet. Setup failures
        surface later as status=failed, never as an exception here.
        Raises RuntimeError (and records nothing) when no event loop is running.
        """
        asyncio.get_running_loop()
        task = self._registry.create_task(launch)
        generation = self._next_generation(task.id)
        logger.info("Background task launched id=%s agent=%s desc=%r", task.id, task.agent, task.description)
        self._spawn(task, self._run_task(task, generation), name=f"bg-run-{task.id}")
        return task

    async def resume(self, task_id: str, prompt: str) -> BackgroundTask | None:
        """
        Send a new prompt into the task's existing session and poll again.

        Returns None when the task is unknown or never got a session.
        Errors from the prompt call propagate to the caller.
        """
        task = self._registry.get(task_id)
        if task is None or task.session_id is None:
            logger.debug("Resume ignored: no resumable task id=%s", task_id)
            return None

        self._registry.update_prompt(task, prompt)
        self._registry.mark_running(task, reopen=True)
        self._registry.bind_session(task, task.session_id)
        generation = self._next_generation(task.id)
        logger.info("Background task resumed id=%s session=%s", task.id, task.session_id)

        try:
            await self._transport.prompt(task.session_id, task.prompt, task.agent)
        except Exception as e:
            # No poll loop will run for this prompt, so the task must not stay running.
            self._registry.mark_failed(task, error_message(e))
            raise
        self._spawn(task, self._poll_task(task, generation), name=f"bg-poll-{task.id}")
        return task

    async def cancel(self, task_id: str) -> bool:
        """
        Mark the task cancelled, then ask the transport to abort its session.

        The local mark always happens first; an abort error propagates but
        does not undo it. Running poll loops notice on their next iteration.
        """
        task = self._registry.get(task_id)
        if task is None:
            return False

        self._registry.mark_cancelled(task)
        logger.info("Background task cancelled id=%s", task.id)

        if task.session_id is not None and self._capabilities.abort is not None:
            await self._capabilities.abort(task.session_id)
        return True

    async def consume_new_messages(self, task: BackgroundTask) -> str | None:
        """
        Format transcript messages past the task's watermark and advance it.

        None when there is no session yet or nothing new since the last call.
        """
        if task.session_id is None:
            return None

        messages = normalize_transcript(await self._transport.messages(task.session_id))
        seen = task.last_message_count
        if len(messages) <= seen:
            return None

        fresh = messages[seen:]
        self._registry.advance_watermark(task, len(messages))
        return format_messages(fresh)

    async def get_result(self, task_id: str) -> OutputResult:
        task = self._registry.get(task_id)
        if task is None:
            return OutputResult(status=BackgroundTaskStatus.FAILED, error=f"Unknown task {task_id}")

        output = await self.consume_new_messages(task)
        return OutputResult(status=task.status, output=output, error=task.error)

    # ---- driver supervision ----

    def _next_generation(self, task_id: str) -> int:
        gen = self._generations.get(task_id, 0) + 1
        self._generations[task_id] = gen
        return gen

    def _is_current(self, task: BackgroundTask, generation: int) -> bool:
        return self._generations.get(task.id) == generation

    def _spawn(self, task: BackgroundTask, coro: Coroutine[Any, Any, None], *, name: str) -> None:
        driver = asyncio.get_running_loop().create_task(coro, name=name)
        self._drivers.add(driver)

        def _done(t: asyncio.Task[None]) -> None:
            self._drivers.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is None:
                return
            logger.error("Background driver crashed task_id=%s", task.id, exc_info=exc)
            if self._registry.mark_failed(task, error_message(exc)):
                logger.info("Background task failed id=%s error=%s", task.id, task.error)

        driver.add_done_callback(_done)

    async def wait_idle(self) -> None:
        """Wait until every driver spawned so far (and any they start) has finished."""
        while self._drivers:
            await asyncio.gather(*list(self._drivers), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel all live drivers. Task records are left as they are."""
        drivers = list(self._drivers)
        for d in drivers:
            d.cancel()
        if drivers:
            await asyncio.gather(*drivers, return_exceptions=True)
        logger.debug("BackgroundTaskManager shut down (%d drivers cancelled)", len(drivers))

    @property
    def active_drivers(self) -> int:
        return len(self._drivers)

    # ---- drivers ----

    async def _run_task(self, task: BackgroundTask, generation: int) -> None:
        if not self._registry.mark_running(task):
            logger.debug("Task %s left pending before its driver started (%s)", task.id, task.status)
            return

        try:
            response = await self._transport.create(task.parent_session_id)
            session_id = resolve_session_id(response)
            if not session_id:
                raise SessionCreateError("Failed to create background session")

            self._registry.bind_session(task, session_id)
            logger.info("Background task id=%s bound to session=%s", task.id, session_id)

            if task.status is not BackgroundTaskStatus.RUNNING:
                # Cancelled while create was in flight; cancel() had no session to abort.
                if task.status is BackgroundTaskStatus.CANCELLED:
                    await self._abort_quietly(task)
                return

            await self._transport.prompt(session_id, task.prompt, task.agent)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._registry.mark_failed(task, error_message(e)):
                logger.info("Background task failed id=%s error=%s", task.id, task.error)
            return

        await self._poll_task(task, generation)

    async def _poll_task(self, task: BackgroundTask, generation: int) -> None:
        for _ in range(self._max_polls):
            if task.status is not BackgroundTaskStatus.RUNNING or not self._is_current(task, generation):
                return

            if await self._is_session_idle(task.session_id):
                if task.status is BackgroundTaskStatus.RUNNING and self._is_current(task, generation):
                    self._registry.mark_completed(task)
                    logger.info("Background task completed id=%s", task.id)
                return

            await asyncio.sleep(self._poll_interval_s)

        if task.status is not BackgroundTaskStatus.RUNNING or not self._is_current(task, generation):
            return

        # Budget exhausted: still reported as completed; timed_out tells the two apart.
        self._registry.mark_completed(task, timed_out=True)
        logger.warning(
            "Background task id=%s never reported idle after %d polls; marking completed",
            task.id,
            self._max_polls,
        )

    async def _is_session_idle(self, session_id: str | None) -> bool:
        if session_id is None or self._capabilities.status is None:
            return False
        token = resolve_status_token(await self._capabilities.status(session_id))
        return token is not None and token in IDLE_STATUSES

    async def _abort_quietly(self, task: BackgroundTask) -> None:
        if task.session_id is None or self._capabilities.abort is None:
            return
        try:
            await self._capabilities.abort(task.session_id)
        except Exception as e:
            logger.warning("Abort of session=%s for cancelled task id=%s failed: %s", task.session_id, task.id, e)

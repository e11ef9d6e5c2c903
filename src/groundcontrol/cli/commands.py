# src/groundcontrol/cli/commands.py

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import cast

from ..background.models import BackgroundTask, LaunchInput
from ..core.state import AppState

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

DESCRIPTION_MAX_CHARS = 48
BACKGROUND_DISABLED = "Background agents are disabled (GROUNDCONTROL_BACKGROUND_AGENTS_ENABLED=false)."


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /bg, /out, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return await h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return await h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _background_enabled(state: AppState) -> bool:
    return bool(getattr(state.settings, "background_agents_enabled", True))


def _ts_local(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%H:%M:%S")


def _short_description(prompt: str) -> str:
    text = " ".join(prompt.split())
    if len(text) <= DESCRIPTION_MAX_CHARS:
        return text
    return text[: DESCRIPTION_MAX_CHARS - 3] + "..."


def _task_line(task: BackgroundTask) -> str:
    flag = " (timed out)" if task.timed_out else ""
    return (
        f"{task.id}  {task.status.value}{flag}  agent={task.agent}  "
        f"started={_ts_local(task.started_at)}  {task.description}"
    )


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    manager = state.manager
    caps = manager.capabilities
    models = ", ".join(list(getattr(settings, "llm_models", []) or []))
    return (
        "Status:\n"
        f"  Transport: {getattr(settings, 'transport', '?')} "
        f"(status={'yes' if caps.can_report_status else 'no'}, abort={'yes' if caps.can_abort else 'no'})\n"
        f"  Models (priority -> fallback): {models}\n"
        f"  Polling: every {manager.poll_interval_ms} ms, up to {manager.max_polls} polls\n"
        f"  Tasks: {len(manager.registry)} total, {manager.active_drivers} active drivers\n"
        f"  Subagent sessions: {len(manager.get_subagent_sessions())}"
    )


async def cmd_bg(state: AppState, args: list[str]) -> str:
    """
    /bg <agent> <prompt...>  -> launch a background task
    """
    if not _background_enabled(state):
        return BACKGROUND_DISABLED
    if len(args) < 2:
        return "Usage: /bg <agent> <prompt...>"

    agent, prompt = args[0], " ".join(args[1:])
    task = state.manager.launch(
        LaunchInput(
            description=_short_description(prompt),
            prompt=prompt,
            agent=agent,
            parent_session_id=state.session_id,
        )
    )
    logger.debug("Console launched task id=%s agent=%s", task.id, agent)
    return f"Launched {task.id} ({task.status.value}). Use /out {task.id} to read its output."


async def cmd_out(state: AppState, args: list[str]) -> str:
    """
    /out <task_id>  -> status + output produced since the last /out
    """
    if not _background_enabled(state):
        return BACKGROUND_DISABLED
    if not args:
        return "Usage: /out <task_id>"

    result = await state.manager.get_result(args[0])
    lines = [f"Task {args[0]}: {result.status.value}"]
    if result.error:
        lines.append(f"Error: {result.error}")
    lines.append(result.output if result.output else "(no new output)")
    return "\n".join(lines)


async def cmd_cancel(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not _background_enabled(state):
        return BACKGROUND_DISABLED
    if not args:
        return "Usage: /cancel <task_id>"

    task = state.manager.get(args[0])
    if emit is not None and task is not None and task.session_id is not None:
        emit(f"Aborting session {task.session_id}...")
    if await state.manager.cancel(args[0]):
        return f"Cancelled {args[0]}."
    return f"No such task: {args[0]}"


async def cmd_resume(state: AppState, args: list[str]) -> str:
    """
    /resume <task_id> <prompt...>  -> send a follow-up prompt into the task's session
    """
    if not _background_enabled(state):
        return BACKGROUND_DISABLED
    if len(args) < 2:
        return "Usage: /resume <task_id> <prompt...>"

    task = await state.manager.resume(args[0], " ".join(args[1:]))
    if task is None:
        return f"Task {args[0]} cannot be resumed (unknown, or it never got a session)."
    return f"Resumed {task.id} on session {task.session_id}."


async def cmd_tasks(state: AppState, args: list[str]) -> str:
    if not _background_enabled(state):
        return BACKGROUND_DISABLED
    tasks = state.manager.registry.list_tasks()
    if not tasks:
        return "No background tasks yet."
    return "\n".join(["Background tasks:", *(f"  {_task_line(t)}" for t in tasks)])


async def cmd_tool(state: AppState, args: list[str]) -> str:
    """
    /tool                     -> list tools
    /tool <name> <json-args>  -> run a tool, e.g. /tool background_output {"task_id": "bg_..."}
    """
    if not args:
        if not state.tools:
            return "No tools are enabled."
        return "\n".join(["Tools:", *(f"  {t.name} - {t.description}" for t in state.tools.values())])

    tool = state.tools.get(args[0])
    if tool is None:
        return f"Unknown tool: {args[0]}"

    raw = " ".join(args[1:]).strip() or "{}"
    try:
        tool_input = json.loads(raw)
    except json.JSONDecodeError as e:
        return f"Tool input must be a JSON object: {e}"
    if not isinstance(tool_input, dict):
        return "Tool input must be a JSON object."

    context = {"session": {"id": state.session_id}} if state.session_id else None
    result = await tool.execute(tool_input, context)
    return json.dumps(result, ensure_ascii=False, indent=2)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show transport and polling settings.")
registry.register("bg", cmd_bg, help_text="Launch a background task: /bg <agent> <prompt...>.", aliases=["launch"])
registry.register("out", cmd_out, help_text="Show task status and new output: /out <task_id>.", aliases=["output"])
registry.register("cancel", cmd_cancel, help_text="Cancel a background task: /cancel <task_id>.")
registry.register("resume", cmd_resume, help_text="Send a follow-up prompt: /resume <task_id> <prompt...>.")
registry.register("tasks", cmd_tasks, help_text="List background tasks.", aliases=["ls"])
registry.register("tool", cmd_tool, help_text="Run an agent tool: /tool <name> <json-args>.")

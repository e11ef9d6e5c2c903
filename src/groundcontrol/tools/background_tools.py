# src/groundcontrol/tools/background_tools.py

"""
Tool definitions exposed to an agent runtime.

Each tool is a ToolDefinition: a description, a JSON-schema for its parameters
and an async execute(input, context) returning a JSON-friendly dict.
Inputs are coerced to str here; no further validation is done, bad values
surface as transport failures on the task.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from ..background.formatting import format_transcript_lines, normalize_transcript, resolve_session_id
from ..background.manager import BackgroundTaskManager
from ..background.models import LaunchInput
from ..core.ports import SessionTransport

logger = logging.getLogger(__name__)

ToolInput = Mapping[str, Any]
ToolContext = Mapping[str, Any]
ToolExecutor = Callable[[ToolInput, ToolContext | None], Awaitable[dict[str, Any]]]

POLL_HINT = "Use background_output to poll for results."
DEFAULT_AGENT = "assistant"


@dataclass(slots=True, frozen=True)
class ToolDefinition:
    name: str
    description: str
    parameters: dict[str, Any]
    execute: ToolExecutor


def _str(value: Any, default: str = "") -> str:
    return default if value is None else str(value)


def _context_session_id(context: ToolContext | None) -> str | None:
    if not context:
        return None
    session = context.get("session")
    if isinstance(session, Mapping):
        sid = session.get("id")
        return str(sid) if sid else None
    return None


def create_background_task_tool(manager: BackgroundTaskManager) -> ToolDefinition:
    async def execute(tool_input: ToolInput, context: ToolContext | None = None) -> dict[str, Any]:
        task = manager.launch(
            LaunchInput(
                description=_str(tool_input.get("description")),
                prompt=_str(tool_input.get("prompt")),
                agent=_str(tool_input.get("agent"), DEFAULT_AGENT),
                parent_session_id=_context_session_id(context),
            )
        )
        return {
            "task_id": task.id,
            "status": task.status.value,
            "session_id": task.session_id,
            "message": POLL_HINT,
        }

    return ToolDefinition(
        name="background_task",
        description="Launch a background task",
        parameters={
            "type": "object",
            "properties": {
                "description": {"type": "string"},
                "prompt": {"type": "string"},
                "agent": {"type": "string"},
            },
            "required": ["description", "prompt", "agent"],
        },
        execute=execute,
    )


def create_background_output_tool(manager: BackgroundTaskManager) -> ToolDefinition:
    async def execute(tool_input: ToolInput, context: ToolContext | None = None) -> dict[str, Any]:
        result = await manager.get_result(_str(tool_input.get("task_id")))
        return result.to_dict()

    return ToolDefinition(
        name="background_output",
        description="Check background task status and output",
        parameters={
            "type": "object",
            "properties": {"task_id": {"type": "string"}},
            "required": ["task_id"],
        },
        execute=execute,
    )


def create_background_cancel_tool(manager: BackgroundTaskManager) -> ToolDefinition:
    async def execute(tool_input: ToolInput, context: ToolContext | None = None) -> dict[str, Any]:
        task_id = _str(tool_input.get("task_id"))
        cancelled = await manager.cancel(task_id)
        return {"task_id": task_id, "cancelled": cancelled}

    return ToolDefinition(
        name="background_cancel",
        description="Cancel a background task",
        parameters={
            "type": "object",
            "properties": {"task_id": {"type": "string"}},
            "required": ["task_id"],
        },
        execute=execute,
    )


def create_delegate_task_tool(manager: BackgroundTaskManager, transport: SessionTransport) -> ToolDefinition:
    """
    Delegate work to another agent.

    run_in_background=true  -> launch a task (or resume the task owning session_id)
    run_in_background=false -> prompt a child session and return its whole transcript
    """

    async def execute(tool_input: ToolInput, context: ToolContext | None = None) -> dict[str, Any]:
        run_in_background = bool(tool_input.get("run_in_background"))
        session_id = tool_input.get("session_id") or None
        prompt = _str(tool_input.get("prompt"))
        description = _str(tool_input.get("description"))
        agent = _str(tool_input.get("subagent_type") or tool_input.get("category") or DEFAULT_AGENT)
        parent_session_id = _context_session_id(context)

        if run_in_background:
            if session_id:
                # Accept either the session id or the task id of the task to resume.
                owner = manager.registry.find_by_session(str(session_id)) or manager.get(str(session_id))
                task = await manager.resume(owner.id, prompt) if owner is not None else None
            else:
                task = manager.launch(
                    LaunchInput(
                        description=description,
                        prompt=prompt,
                        agent=agent,
                        parent_session_id=parent_session_id,
                    )
                )

            if task is None:
                return {"error": "Unable to resume background task", "status": "failed"}

            return {
                "status": task.status.value,
                "task_id": task.id,
                "session_id": task.session_id,
                "message": POLL_HINT,
            }

        child_session_id = str(session_id) if session_id else None
        if child_session_id is None:
            child_session_id = resolve_session_id(await transport.create(parent_session_id))
        if not child_session_id:
            return {"error": "Failed to create delegated session"}

        await transport.prompt(child_session_id, prompt, agent)
        messages = normalize_transcript(await transport.messages(child_session_id))
        logger.debug("Foreground delegation session=%s messages=%d", child_session_id, len(messages))
        return {"session_id": child_session_id, "output": format_transcript_lines(messages)}

    return ToolDefinition(
        name="delegate_task",
        description="Delegate a task to another agent",
        parameters={
            "type": "object",
            "properties": {
                "load_skills": {"type": "array", "items": {"type": "string"}},
                "description": {"type": "string"},
                "prompt": {"type": "string"},
                "run_in_background": {"type": "boolean"},
                "category": {"type": "string"},
                "subagent_type": {"type": "string"},
                "session_id": {"type": "string"},
                "command": {"type": "string"},
            },
            "required": ["load_skills", "description", "prompt", "run_in_background"],
        },
        execute=execute,
    )


def create_tools(
    manager: BackgroundTaskManager,
    transport: SessionTransport,
    *,
    background_enabled: bool = True,
    delegation_enabled: bool = True,
) -> dict[str, ToolDefinition]:
    """Build the enabled tools keyed by name."""
    tools: list[ToolDefinition] = []
    if background_enabled:
        tools += [
            create_background_task_tool(manager),
            create_background_output_tool(manager),
            create_background_cancel_tool(manager),
        ]
    if delegation_enabled:
        tools.append(create_delegate_task_tool(manager, transport))
    return {t.name: t for t in tools}

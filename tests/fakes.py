# tests/fakes.py

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

_UNSET: Any = object()


def raw_message(role: str, *texts: str, extra_parts: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    """A transcript entry shaped the way session backends usually return them."""
    parts: list[dict[str, Any]] = [{"type": "text", "text": t} for t in texts]
    parts.extend(extra_parts or [])
    return {"info": {"role": role}, "parts": parts}


class MinimalFakeTransport:
    """
    Deterministic session transport with only the required capabilities
    (create / prompt / messages). No status(), no abort().

    - Captures calls for assertions
    - prompt() appends the user message, plus `reply` as an assistant message when set
    """

    def __init__(
        self,
        *,
        reply: str | None = None,
        create_response: Any = _UNSET,
        create_error: BaseException | None = None,
        prompt_error: BaseException | None = None,
        create_gate: asyncio.Event | None = None,
    ) -> None:
        self.reply = reply
        self.create_response = create_response
        self.create_error = create_error
        self.prompt_error = prompt_error
        self.create_gate = create_gate

        self.sessions: dict[str, list[dict[str, Any]]] = {}
        self.created_parents: list[str | None] = []
        self.prompts: list[tuple[str, str, str]] = []
        self.message_calls = 0

    def add_message(self, session_id: str, role: str, *texts: str) -> None:
        self.sessions.setdefault(session_id, []).append(raw_message(role, *texts))

    async def create(self, parent_session_id: str | None = None) -> Any:
        self.created_parents.append(parent_session_id)
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.create_error is not None:
            raise self.create_error
        if self.create_response is not _UNSET:
            return self.create_response

        session_id = f"ses_{len(self.created_parents)}"
        self.sessions[session_id] = []
        return {"data": {"id": session_id}}

    async def prompt(self, session_id: str, content: str, agent: str) -> None:
        self.prompts.append((session_id, content, agent))
        if self.prompt_error is not None:
            raise self.prompt_error
        self.add_message(session_id, "user", content)
        if self.reply is not None:
            self.add_message(session_id, "assistant", self.reply)

    async def messages(self, session_id: str) -> dict[str, Any]:
        self.message_calls += 1
        return {"data": list(self.sessions.get(session_id, []))}


class FakeSessionTransport(MinimalFakeTransport):
    """
    Fake transport with the optional status() and abort() capabilities.

    status() returns `statuses` in order, then keeps returning `default_status`.
    """

    def __init__(
        self,
        *,
        statuses: list[str] | None = None,
        default_status: str = "busy",
        status_error: BaseException | None = None,
        abort_error: BaseException | None = None,
        on_status: Callable[[str], Awaitable[None]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.statuses = list(statuses or [])
        self.default_status = default_status
        self.status_error = status_error
        self.abort_error = abort_error
        self.on_status = on_status

        self.status_calls = 0
        self.aborted: list[str] = []

    async def status(self, session_id: str) -> dict[str, Any]:
        self.status_calls += 1
        if self.on_status is not None:
            await self.on_status(session_id)
        if self.status_error is not None:
            raise self.status_error
        token = self.statuses.pop(0) if self.statuses else self.default_status
        return {"data": {"status": token}}

    async def abort(self, session_id: str) -> None:
        self.aborted.append(session_id)
        if self.abort_error is not None:
            raise self.abort_error


async def wait_for(predicate: Callable[[], bool], *, timeout: float = 2.0) -> None:
    """Yield to the event loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)

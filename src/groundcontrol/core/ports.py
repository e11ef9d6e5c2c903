# src/groundcontrol/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the background engine.

The engine depends on Protocols instead of a concrete session backend.
This keeps transports swappable (offline demo, OpenAI-compatible API, test fakes)
and makes the engine easy to test.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

# A transcript entry as returned by SessionTransport.messages().
# Transports may also return raw mappings shaped like
# {"info": {"role": "..."}, "parts": [{"type": "text", "text": "..."}]}.


@dataclass(slots=True, frozen=True)
class MessagePart:
    type: str
    text: str | None = None


@dataclass(slots=True, frozen=True)
class TranscriptMessage:
    role: str
    parts: tuple[MessagePart, ...] = field(default_factory=tuple)

    @classmethod
    def text(cls, role: str, *texts: str) -> TranscriptMessage:
        return cls(role=role, parts=tuple(MessagePart(type="text", text=t) for t in texts))


IDLE_STATUSES: frozenset[str] = frozenset({"idle", "completed", "done"})


class SessionTransport(Protocol):
    """
    Remote session backend.

    Required capabilities only. status()/abort() are optional, see
    SessionStatusReader / SessionAborter and TransportCapabilities.
    """

    async def create(self, parent_session_id: str | None = None) -> Any: ...

    async def prompt(self, session_id: str, content: str, agent: str) -> Any: ...

    async def messages(self, session_id: str) -> Sequence[Any]: ...


class SessionStatusReader(Protocol):
    async def status(self, session_id: str) -> Any: ...


class SessionAborter(Protocol):
    async def abort(self, session_id: str) -> Any: ...


@dataclass(slots=True, frozen=True)
class TransportCapabilities:
    """
    Optional transport members, resolved once when the engine is built.

    None means the transport does not offer the capability.
    """

    status: Callable[[str], Awaitable[Any]] | None = None
    abort: Callable[[str], Awaitable[Any]] | None = None

    @classmethod
    def resolve(cls, transport: object) -> TransportCapabilities:
        status = getattr(transport, "status", None)
        abort = getattr(transport, "abort", None)
        return cls(
            status=status if callable(status) else None,
            abort=abort if callable(abort) else None,
        )

    @property
    def can_report_status(self) -> bool:
        return self.status is not None

    @property
    def can_abort(self) -> bool:
        return self.abort is not None

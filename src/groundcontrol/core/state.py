# src/groundcontrol/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..background.manager import BackgroundTaskManager
from .ports import SessionTransport

if TYPE_CHECKING:
    from ..tools.background_tools import ToolDefinition


@dataclass
class AppState:
    # Settings are kept on the state so commands can report them.
    settings: Any

    transport: SessionTransport
    manager: BackgroundTaskManager

    # Session id of the foreground conversation; used as parent for launched tasks.
    session_id: str | None = None

    # Tools exposed to agents, keyed by name (see tools/background_tools.py).
    tools: dict[str, ToolDefinition] = field(default_factory=dict)

# src/groundcontrol/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- picks a session transport (OpenAI-compatible API or offline demo),
- wires the transport into a BackgroundTaskManager and the agent tools on AppState.
"""

from __future__ import annotations

import logging

from ..background.manager import BackgroundTaskManager
from ..config import get_settings
from ..core.ports import SessionTransport
from ..core.state import AppState
from ..tools.background_tools import create_tools
from ..transport.offline import OfflineSessionTransport
from ..transport.openai_sessions import OpenAISessionTransport, TransportError

logger = logging.getLogger(__name__)


def build_transport(settings) -> SessionTransport:
    if settings.transport == "openai":
        try:
            return OpenAISessionTransport.from_settings(settings)
        except TransportError as e:
            # Fallback for demos / local runs without external services.
            logger.warning("OpenAI transport unavailable (%s); using offline transport.", e)
    return OfflineSessionTransport()


def create_initial_state(*, settings=None, transport: SessionTransport | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the transport) injectable makes the app easy to test.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    settings.data_dir.mkdir(parents=True, exist_ok=True)

    if transport is None:
        transport = build_transport(settings)

    manager = BackgroundTaskManager(
        transport,
        poll_interval_ms=settings.poll_interval_ms,
        max_polls=settings.max_polls,
    )
    logger.info(
        "Background manager ready transport=%s poll_interval_ms=%s max_polls=%s",
        type(transport).__name__,
        settings.poll_interval_ms,
        settings.max_polls,
    )
    tools = create_tools(
        manager,
        transport,
        background_enabled=settings.background_agents_enabled,
        delegation_enabled=settings.delegation_enabled,
    )
    return AppState(settings=settings, transport=transport, manager=manager, tools=tools)

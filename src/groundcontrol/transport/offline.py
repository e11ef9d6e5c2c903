# src/groundcontrol/transport/offline.py

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field

from ..core.ports import TranscriptMessage

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _OfflineSession:
    id: str
    parent_id: str | None
    messages: list[TranscriptMessage] = field(default_factory=list)
    aborted: bool = False


class OfflineSessionTransport:
    """
    Offline deterministic session transport used for demos when no external API is configured.

    Behavior:
    - create() allocates ses_offline_<n>
    - prompt() appends the user message and an assistant reply echoing it
    - status() is always "idle" (replies are produced synchronously), "aborted" after abort()
    """

    def __init__(self) -> None:
        self._sessions: dict[str, _OfflineSession] = {}
        self._ids = itertools.count(1)

    def _session(self, session_id: str) -> _OfflineSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise KeyError(f"Unknown session {session_id}") from None

    async def create(self, parent_session_id: str | None = None) -> str:
        session_id = f"ses_offline_{next(self._ids)}"
        self._sessions[session_id] = _OfflineSession(id=session_id, parent_id=parent_session_id)
        logger.debug("Offline session created id=%s parent=%s", session_id, parent_session_id)
        return session_id

    async def prompt(self, session_id: str, content: str, agent: str) -> None:
        session = self._session(session_id)
        session.aborted = False
        session.messages.append(TranscriptMessage.text("user", content))
        session.messages.append(
            TranscriptMessage.text(
                "assistant",
                f"Offline demo mode ({agent}): no external session backend is configured.\n"
                "Set GROUNDCONTROL_TRANSPORT=openai and GROUNDCONTROL_OPENAI_API_KEY to run real agents.",
                f"You asked: {content}",
            )
        )

    async def messages(self, session_id: str) -> list[TranscriptMessage]:
        return list(self._session(session_id).messages)

    async def status(self, session_id: str) -> str:
        return "aborted" if self._session(session_id).aborted else "idle"

    async def abort(self, session_id: str) -> None:
        self._session(session_id).aborted = True

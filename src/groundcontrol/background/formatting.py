# src/groundcontrol/background/formatting.py

"""
Helpers for reading what transports hand back.

Transports are loosely typed: a session id may come back as a bare string or
wrapped in a response payload, and transcripts may be TranscriptMessage objects
or raw mappings. Everything here normalizes those shapes; nothing does I/O.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ..core.ports import MessagePart, TranscriptMessage

DEFAULT_ROLE = "assistant"


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def _non_empty_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def resolve_session_id(response: Any) -> str | None:
    """
    Pull a session id out of a transport create() response.

    Accepted: "ses_1", {"id": ...}, {"data": {"id": ...}}, {"sessionId": ...},
    {"session_id": ...}, or any object with an `id` attribute.
    """
    direct = _non_empty_str(response)
    if direct:
        return direct
    if response is None:
        return None

    data = _get(response, "data")
    if data is not None:
        found = _non_empty_str(_get(data, "id"))
        if found:
            return found

    for key in ("id", "sessionId", "session_id"):
        found = _non_empty_str(_get(response, key))
        if found:
            return found
    return None


def resolve_status_token(response: Any) -> str | None:
    """status() may return "idle", {"status": "idle"} or {"data": {"status": "idle"}}."""
    direct = _non_empty_str(response)
    if direct:
        return direct.strip().lower()
    if response is None:
        return None

    data = _get(response, "data")
    token = _non_empty_str(_get(data, "status")) if data is not None else None
    if token is None:
        token = _non_empty_str(_get(response, "status"))
    return token.strip().lower() if token else None


def _to_message(raw: Any) -> TranscriptMessage:
    if isinstance(raw, TranscriptMessage):
        return raw

    info = _get(raw, "info")
    role = _non_empty_str(_get(info, "role")) if info is not None else None
    if role is None and info is not None:
        role = _non_empty_str(_get(info, "type"))
    if role is None:
        role = _non_empty_str(_get(raw, "role")) or DEFAULT_ROLE

    parts: list[MessagePart] = []
    for part in _get(raw, "parts") or ():
        if isinstance(part, MessagePart):
            parts.append(part)
            continue
        ptype = _get(part, "type")
        text = _get(part, "text")
        parts.append(
            MessagePart(
                type=str(ptype) if ptype is not None else "",
                text=text if isinstance(text, str) else None,
            )
        )
    return TranscriptMessage(role=role, parts=tuple(parts))


def normalize_transcript(response: Any) -> list[TranscriptMessage]:
    """Accept a list of messages, or a {"data": [...]} wrapper around one."""
    if response is None:
        return []
    if isinstance(response, Mapping):
        response = response.get("data") or []
    if isinstance(response, (str, bytes)) or not isinstance(response, Iterable):
        return []
    return [_to_message(m) for m in response]


def extract_text_parts(message: TranscriptMessage) -> list[str]:
    """Trimmed, non-empty text segments. Non-text parts are ignored."""
    out: list[str] = []
    for part in message.parts:
        if part.type != "text" or not isinstance(part.text, str):
            continue
        text = part.text.strip()
        if text:
            out.append(text)
    return out


def format_message(message: TranscriptMessage) -> str | None:
    texts = extract_text_parts(message)
    if not texts:
        return None
    return f"## {message.role}\n\n" + "\n\n".join(texts)


def format_messages(messages: Sequence[TranscriptMessage]) -> str:
    """
    Render messages as role-headed blocks; header, text and blocks are all separated by a blank line.

    Messages without any text contribute no block.
    """
    blocks = [b for b in (format_message(m) for m in messages) if b is not None]
    return "\n\n".join(blocks)


def format_transcript_lines(messages: Sequence[TranscriptMessage]) -> str:
    """
    Full-transcript rendering used by foreground delegation.

    Unlike format_messages(), a message without text still gets its header.
    """
    lines = []
    for m in messages:
        texts = extract_text_parts(m)
        lines.append(f"## {m.role}\n" + "\n\n".join(texts) if texts else f"## {m.role}")
    return "\n\n".join(lines)

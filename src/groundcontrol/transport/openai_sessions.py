# src/groundcontrol/transport/openai_sessions.py

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

import httpx
import openai
from openai import OpenAI

from ..background.formatting import extract_text_parts
from ..core.ports import TranscriptMessage

logger = logging.getLogger(__name__)

_BAD_MODEL_COOLDOWN_S = 3600.0

DEFAULT_SYSTEM_PROMPT = (
    "You are a background agent working on a delegated task. "
    "Work autonomously and finish with a concise report of what you did and found."
)


class TransportError(RuntimeError):
    """Raised for session-level failures (unknown session, no usable model, bad config)."""


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    return isinstance(exc, openai.RateLimitError)


def _is_connection_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.APIConnectionError, openai.APITimeoutError, httpx.TimeoutException))


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


def build_openai_client(
    *,
    api_key: str | None,
    base_url: str,
    connect_timeout_s: float = 5.0,
    read_timeout_s: float = 120.0,
) -> OpenAI:
    """
    Build the OpenAI-compatible client.

    Automatic retries are disabled so a failing model falls through to the next one quickly.
    """
    if not api_key or not str(api_key).strip():
        raise TransportError("OpenAI API key is not set. Set GROUNDCONTROL_OPENAI_API_KEY in your .env.")
    if not base_url.strip():
        raise TransportError("OpenAI base URL is not set. Set GROUNDCONTROL_OPENAI_BASE_URL in your .env.")

    timeout = httpx.Timeout(connect=connect_timeout_s, read=read_timeout_s, write=10.0, pool=connect_timeout_s)
    return OpenAI(base_url=base_url, api_key=str(api_key), timeout=timeout, max_retries=0)


@dataclass(slots=True)
class _ChatSession:
    id: str
    parent_id: str | None
    transcript: list[TranscriptMessage] = field(default_factory=list)
    state: str = "idle"
    job: asyncio.Task[None] | None = None


class OpenAISessionTransport:
    """
    Session transport over an OpenAI-compatible chat completions API.

    Sessions are local transcripts. prompt() appends the user message and starts
    a completion in the background (the sync SDK call runs in a worker thread),
    so the caller can poll status() while the model works:
      busy -> idle       reply appended
      busy -> idle       error appended as an "error" message
      any  -> aborted    abort() called; a late reply is dropped
    """

    def __init__(
        self,
        client: OpenAI,
        *,
        models: list[str],
        system_prompts: dict[str, str] | None = None,
    ) -> None:
        self._client = client
        self._models = [m.strip() for m in models if m and m.strip()]
        if not self._models:
            raise TransportError("LLM model list is empty. Set GROUNDCONTROL_LLM_MODELS in your .env.")
        self._system_prompts = dict(system_prompts or {})
        self._sessions: dict[str, _ChatSession] = {}
        self._bad_models: dict[str, float] = {}

    @classmethod
    def from_settings(cls, settings: Any) -> OpenAISessionTransport:
        client = build_openai_client(
            api_key=getattr(settings, "openai_api_key", None),
            base_url=str(getattr(settings, "openai_base_url", "") or ""),
        )
        return cls(client, models=list(getattr(settings, "llm_models", []) or []))

    def _session(self, session_id: str) -> _ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise TransportError(f"Unknown session {session_id}")
        return session

    # ---- SessionTransport ----

    async def create(self, parent_session_id: str | None = None) -> dict[str, str]:
        session_id = f"ses_{uuid4().hex[:16]}"
        self._sessions[session_id] = _ChatSession(id=session_id, parent_id=parent_session_id)
        logger.debug("Chat session created id=%s parent=%s", session_id, parent_session_id)
        return {"id": session_id}

    async def prompt(self, session_id: str, content: str, agent: str) -> dict[str, str]:
        session = self._session(session_id)
        if session.job is not None and not session.job.done():
            raise TransportError(f"Session {session_id} is busy")

        session.transcript.append(TranscriptMessage.text("user", content))
        session.state = "busy"
        session.job = asyncio.get_running_loop().create_task(
            self._complete(session, agent), name=f"chat-{session_id}"
        )
        return {"id": session_id, "status": session.state}

    async def messages(self, session_id: str) -> list[TranscriptMessage]:
        return list(self._session(session_id).transcript)

    async def status(self, session_id: str) -> dict[str, str]:
        return {"status": self._session(session_id).state}

    async def abort(self, session_id: str) -> None:
        session = self._session(session_id)
        session.state = "aborted"
        job = session.job
        if job is not None and not job.done():
            # The worker thread finishes on its own; cancelling drops its result.
            job.cancel()
            # Settle the job so a prompt right after abort() is not rejected as busy.
            await asyncio.wait({job})

    # ---- completion ----

    def _history(self, session: _ChatSession, agent: str) -> list[dict[str, str]]:
        system_prompt = self._system_prompts.get(agent, DEFAULT_SYSTEM_PROMPT)
        history = [{"role": "system", "content": system_prompt}]
        for m in session.transcript:
            if m.role not in ("user", "assistant"):
                continue
            text = "\n\n".join(extract_text_parts(m))
            if text:
                history.append({"role": m.role, "content": text})
        return history

    async def _complete(self, session: _ChatSession, agent: str) -> None:
        history = self._history(session, agent)
        try:
            reply = await asyncio.to_thread(self.complete_sync, history)
        except asyncio.CancelledError:
            logger.info("Completion aborted session=%s", session.id)
            raise
        except Exception as e:
            logger.warning("Completion failed session=%s: %s", session.id, e)
            if session.state != "aborted":
                session.transcript.append(TranscriptMessage.text("error", str(e) or e.__class__.__name__))
                session.state = "idle"
            return

        if session.state == "aborted":
            return
        session.transcript.append(TranscriptMessage.text("assistant", reply))
        session.state = "idle"

    def complete_sync(self, history: list[dict[str, str]]) -> str:
        """
        Run one chat completion, trying models in order.

        - 404 (model not available) -> cool the model down for an hour, try next.
        - Rate limit / network issues -> try next.
        - Auth issues -> fail fast (no retries across models).
        """
        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            t0 = time.monotonic()
            try:
                resp = self._client.chat.completions.create(model=model, messages=history)
            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise TransportError(
                        "LLM authentication failed. Check your API key (GROUNDCONTROL_OPENAI_API_KEY)."
                    ) from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + _BAD_MODEL_COOLDOWN_S
                    logger.info("LLM: model not available (404): %s", model)
                elif _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                elif _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                else:
                    logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

            try:
                content = resp.choices[0].message.content
            except (AttributeError, IndexError):
                content = None

            if content:
                logger.debug("LLM: completed with model=%s (%.2fs)", model, time.monotonic() - t0)
                return content
            last_error = TransportError(f"Model returned no content: {model}")

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise TransportError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise TransportError("LLM network/timeout error. Try again later or change models.") from last_error
            raise TransportError("All LLM models failed.") from last_error

        raise TransportError("All LLM models failed.")

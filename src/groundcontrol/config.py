# src/groundcontrol/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Components receive the values they need by injection; only the CLI reads get_settings().
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "GROUNDCONTROL"

TRANSPORTS = ("offline", "openai")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Connectors ----
    console_enabled: bool

    # ---- Background agents ----
    background_agents_enabled: bool
    poll_interval_ms: int
    max_polls: int
    delegation_enabled: bool

    # ---- Session transport ----
    transport: str
    openai_api_key: str | None
    openai_base_url: str
    llm_models: list[str]

    @staticmethod
    def from_env() -> Settings:
        app_name = _env(_k("APP_NAME"), "groundcontrol").strip() or "groundcontrol"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/groundcontrol"))

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        background_agents_enabled = _env_bool(_k("BACKGROUND_AGENTS_ENABLED"), True)
        poll_interval_ms = max(0, _env_int(_k("POLL_INTERVAL_MS"), 2000))
        max_polls = max(1, _env_int(_k("MAX_POLLS"), 300))
        delegation_enabled = _env_bool(_k("DELEGATION_ENABLED"), True)

        transport = _env(_k("TRANSPORT"), "offline").strip().lower()
        if transport not in TRANSPORTS:
            transport = "offline"

        openai_api_key = _first_env(_k("OPENAI_API_KEY"), "OPENAI_API_KEY", default=None)
        openai_base_url = _env(_k("OPENAI_BASE_URL"), "https://api.openai.com/v1")
        llm_models = _env_list(_k("LLM_MODELS"), ["gpt-4o-mini"])

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            console_enabled=console_enabled,
            background_agents_enabled=background_agents_enabled,
            poll_interval_ms=poll_interval_ms,
            max_polls=max_polls,
            delegation_enabled=delegation_enabled,
            transport=transport,
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            llm_models=llm_models,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Load .env (if present) and build Settings once per process."""
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS

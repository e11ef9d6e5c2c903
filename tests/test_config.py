# tests/test_config.py

from __future__ import annotations

import os
from pathlib import Path

import pytest

from groundcontrol.config import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("GROUNDCONTROL_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


def test_defaults() -> None:
    s = Settings.from_env()

    assert s.app_name == "groundcontrol"
    assert s.data_dir == Path(".local/groundcontrol")
    assert s.background_agents_enabled is True
    assert s.delegation_enabled is True
    assert s.poll_interval_ms == 2000
    assert s.max_polls == 300
    assert s.transport == "offline"
    assert s.openai_api_key is None
    assert s.llm_models == ["gpt-4o-mini"]


def test_polling_values_are_parsed_and_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GROUNDCONTROL_POLL_INTERVAL_MS", "-5")
    monkeypatch.setenv("GROUNDCONTROL_MAX_POLLS", "0")
    s = Settings.from_env()
    assert s.poll_interval_ms == 0
    assert s.max_polls == 1

    monkeypatch.setenv("GROUNDCONTROL_POLL_INTERVAL_MS", "250")
    monkeypatch.setenv("GROUNDCONTROL_MAX_POLLS", "lots")
    s = Settings.from_env()
    assert s.poll_interval_ms == 250
    assert s.max_polls == 300


def test_flags_transport_and_models(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GROUNDCONTROL_BACKGROUND_AGENTS_ENABLED", "off")
    monkeypatch.setenv("GROUNDCONTROL_DELEGATION_ENABLED", "Yes")
    monkeypatch.setenv("GROUNDCONTROL_TRANSPORT", " OpenAI ")
    monkeypatch.setenv("GROUNDCONTROL_LLM_MODELS", "model-a, model-b  model-c")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-fallback")

    s = Settings.from_env()

    assert s.background_agents_enabled is False
    assert s.delegation_enabled is True
    assert s.transport == "openai"
    assert s.llm_models == ["model-a", "model-b", "model-c"]
    assert s.openai_api_key == "sk-fallback"


def test_prefixed_api_key_wins_and_unknown_transport_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-fallback")
    monkeypatch.setenv("GROUNDCONTROL_OPENAI_API_KEY", "sk-project")
    monkeypatch.setenv("GROUNDCONTROL_TRANSPORT", "carrier-pigeon")

    s = Settings.from_env()

    assert s.openai_api_key == "sk-project"
    assert s.transport == "offline"

# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from groundcontrol.cli.bootstrap import create_initial_state
from groundcontrol.core.state import AppState

from .fakes import FakeSessionTransport


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI modules.

    We intentionally use a SimpleNamespace rather than reading the environment,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="groundcontrol-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        console_enabled=False,
        background_agents_enabled=True,
        poll_interval_ms=1,
        max_polls=50,
        delegation_enabled=True,
        transport="offline",
        openai_api_key=None,
        openai_base_url="https://api.openai.com/v1",
        llm_models=["test-model"],
    )


@pytest.fixture()
def transport() -> FakeSessionTransport:
    return FakeSessionTransport(reply="done", statuses=["idle"])


@pytest.fixture()
def state(settings: SimpleNamespace, transport: FakeSessionTransport) -> AppState:
    """AppState wired with the fake transport (real manager, registry and tools)."""
    return create_initial_state(settings=settings, transport=transport)
